"""Product listing, client-side search and input debouncing."""

import asyncio
import logging
import math
from typing import Awaitable, Callable, Optional

from .models import Product
from .results import ApiFailure
from .storefront_client import StorefrontClient

logger = logging.getLogger(__name__)

SEARCH_FETCH_LIMIT = 100
SEARCH_RESULTS_PER_PAGE = 12


def matches_query(product: Product, query: str) -> bool:
    """Case-insensitive substring match over the searchable product fields."""
    needle = query.lower()
    fields = (
        product.title,
        product.description,
        product.category_name,
        product.brand_name,
        product.slug,
    )
    return any(field and needle in field.lower() for field in fields)


class ProductListing:
    """Product catalog state for a listing page."""

    def __init__(self, client: StorefrontClient, page_size: int = 40, search_delay: float = 0.5) -> None:
        self.client = client
        self.page_size = page_size
        self.debouncer = SearchDebouncer(self.search, delay=search_delay)
        self.products: list[Product] = []
        self.matches: list[Product] = []
        self.current_page = 1
        self.total_pages = 1
        self.query = ""
        self.loading = False
        self.error: Optional[str] = None

    async def load(self, page: int = 1) -> bool:
        """Fetch one catalog page."""
        self.loading = True
        self.error = None
        try:
            result = await self.client.fetch_products(page, self.page_size)
            if isinstance(result, ApiFailure):
                self.error = f"Failed to load products: {result.user_message}"
                return False
            self.products = result.data.items
            self.current_page = result.data.page
            self.total_pages = result.data.total_pages
            return True
        finally:
            self.loading = False

    async def search(self, query: str, page: int = 1) -> bool:
        """
        Filter the catalog by ``query``.

        An empty query restores the regular listing. Otherwise a large first
        page is fetched and filtered locally; ``products`` holds the requested
        page of matches and ``matches`` all of them.
        """
        self.query = query
        if not query.strip():
            return await self.load(self.current_page)

        logger.info(f"=== SEARCH: query='{query}', page={page} ===")
        self.loading = True
        self.error = None
        try:
            result = await self.client.fetch_products(1, SEARCH_FETCH_LIMIT)
            if isinstance(result, ApiFailure):
                self.matches = []
                self.products = []
                self.error = "Failed to search products"
                return False
            self.matches = [p for p in result.data.items if matches_query(p, query.strip())]
            self.total_pages = max(1, math.ceil(len(self.matches) / SEARCH_RESULTS_PER_PAGE))
            self.current_page = min(max(page, 1), self.total_pages)
            start = (self.current_page - 1) * SEARCH_RESULTS_PER_PAGE
            self.products = self.matches[start:start + SEARCH_RESULTS_PER_PAGE]
            logger.info(f"Found {len(self.matches)} products")
            return True
        finally:
            self.loading = False


class SearchDebouncer:
    """
    Delay search until input settles.

    Each ``submit`` cancels the pending timer and starts a new one. Once a
    search has been dispatched it runs to completion.
    """

    def __init__(self, callback: Callable[[str], Awaitable[object]], delay: float = 0.5) -> None:
        self.callback = callback
        self.delay = delay
        self._timer: Optional[asyncio.Task] = None
        self._last: Optional[asyncio.Task] = None

    def submit(self, text: str) -> None:
        """Register a keystroke. Must be called from a running event loop."""
        self.cancel()
        self._timer = asyncio.ensure_future(self._fire_later(text))
        self._last = self._timer

    def cancel(self) -> None:
        """Cancel the pending timer, if any. Dispatched searches are unaffected."""
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
            if self._last is self._timer:
                self._last = None
        self._timer = None

    async def flush(self, text: str) -> None:
        """Search immediately (e.g. on Enter), dropping any pending timer."""
        self.cancel()
        await self._dispatch(text)

    async def wait(self) -> None:
        """Wait for the most recently scheduled search to finish."""
        task = self._last
        if task is None or task.cancelled():
            return
        await task

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    async def _fire_later(self, text: str) -> None:
        await asyncio.sleep(self.delay)
        # Detach before dispatching so later keystrokes cannot cancel the request.
        self._timer = None
        await self._dispatch(text)

    async def _dispatch(self, text: str) -> None:
        logger.info(f"Dispatching search for '{text}'")
        await self.callback(text)
