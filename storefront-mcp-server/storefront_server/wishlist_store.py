"""Page-scoped wishlist membership with optimistic toggles."""

import asyncio
import logging
from typing import Optional

from .auth import SessionHolder
from .cart_store import LOGIN_REQUIRED_MESSAGE
from .models import Product, Session, WishlistMembership
from .results import ApiFailure
from .storefront_client import StorefrontClient

logger = logging.getLogger(__name__)


class WishlistStore:
    """Holds the favorited product IDs for one page."""

    def __init__(self, client: StorefrontClient, session: SessionHolder) -> None:
        self.client = client
        self.session = session
        self.membership = WishlistMembership()
        self.loading = False
        self.error: Optional[str] = None
        self.requires_login = not session.is_authenticated
        self._lock = asyncio.Lock()
        self._unsubscribe = session.subscribe(self._on_session_change)

    def close(self) -> None:
        self._unsubscribe()

    def _on_session_change(self, session: Optional[Session]) -> None:
        if session is None:
            self.discard()
        self.requires_login = session is None

    def discard(self) -> None:
        self.membership = WishlistMembership()
        self.error = None

    def is_member(self, product_id: str) -> bool:
        return product_id in self.membership

    @property
    def count(self) -> int:
        return len(self.membership.member_ids)

    async def load(self) -> bool:
        """Fetch the wishlist from the server, replacing local membership."""
        if not self._check_session():
            return False

        self.loading = True
        try:
            result = await self.client.fetch_wishlist()
            if isinstance(result, ApiFailure):
                self._handle_failure(result, "Failed to load wishlist")
                return False
            self.membership = result.data
            self.error = None
            logger.info(f"Wishlist loaded: {self.count} item(s)")
            return True
        finally:
            self.loading = False

    async def toggle(self, product_id: str, product: Optional[Product] = None) -> bool:
        """
        Flip membership of ``product_id``.

        The local set changes immediately; if the server call fails the
        change is reverted and ``error`` is set.

        Args:
            product_id: Product to add or remove
            product: Product details to show in the listing when adding

        Returns:
            True if the server accepted the change
        """
        if not self._check_session():
            return False

        async with self._lock:
            previous = self.membership
            if product_id in previous:
                self.membership = previous.without_member(product_id)
                result = await self.client.remove_wishlist_item(product_id)
                action = "remove"
            else:
                self.membership = previous.with_member(product_id, product)
                result = await self.client.add_wishlist_item(product_id)
                action = "add"

            if isinstance(result, ApiFailure):
                logger.warning(f"Wishlist {action} {product_id} failed, reverting: {result.user_message}")
                self.membership = previous
                self._handle_failure(result, f"Failed to {action} wishlist item")
                return False

            logger.info(f"Wishlist {action} {product_id} confirmed")
            self.error = None
            return True

    def _check_session(self) -> bool:
        if self.session.is_authenticated:
            return True
        self.requires_login = True
        self.error = LOGIN_REQUIRED_MESSAGE
        return False

    def _handle_failure(self, failure: ApiFailure, message: str) -> None:
        if failure.is_auth_failure:
            logger.warning("Wishlist request rejected as unauthenticated, clearing session")
            self.session.clear()
            self.discard()
            self.requires_login = True
            self.error = LOGIN_REQUIRED_MESSAGE
            return
        self.error = f"{message}: {failure.user_message}"
