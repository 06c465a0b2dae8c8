"""Page-scoped cart state with optimistic updates."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .auth import SessionHolder
from .models import CartLine, CartSnapshot, Product, Session
from .results import ApiFailure, ApiResult, FailureKind
from .storefront_client import StorefrontClient

logger = logging.getLogger(__name__)

LOGIN_REQUIRED_MESSAGE = "Please log in to continue."


class CartStore:
    """
    Holds the cart snapshot for one page and keeps it in sync with the server.

    Mutations are applied to the local snapshot before the network call
    resolves. On failure the previous snapshot is restored and the cart is
    re-fetched; on an authentication failure the session is cleared instead.
    Mutations are serialized, so each one projects onto the state the
    previous one settled to.
    """

    def __init__(self, client: StorefrontClient, session: SessionHolder) -> None:
        self.client = client
        self.session = session
        self.snapshot = CartSnapshot()
        self.loading = False
        self.error: Optional[str] = None
        self.requires_login = not session.is_authenticated
        self._lock = asyncio.Lock()
        self._unsubscribe = session.subscribe(self._on_session_change)

    def close(self) -> None:
        """Stop listening to session changes."""
        self._unsubscribe()

    def _on_session_change(self, session: Optional[Session]) -> None:
        if session is None:
            self.discard()
            self.requires_login = True
        else:
            self.requires_login = False

    def discard(self) -> None:
        """Drop local cart state (logout, navigation away, completed checkout)."""
        self.snapshot = CartSnapshot()
        self.error = None

    @property
    def total_price(self):
        return self.snapshot.total_price

    @property
    def item_count(self) -> int:
        return self.snapshot.item_count

    async def load(self, enrich: bool = False) -> bool:
        """
        Fetch the cart from the server, replacing the local snapshot.

        Args:
            enrich: Also fetch each line's product to pick up discounted
                prices and titles missing from the cart payload

        Returns:
            True if the cart was loaded
        """
        if not self._check_session():
            return False

        self.loading = True
        try:
            result = await self.client.fetch_cart()
            if isinstance(result, ApiFailure) and result.kind == FailureKind.NOT_FOUND:
                logger.info("No cart exists for this user yet")
                self.snapshot = CartSnapshot()
                self.error = None
                return True
            if isinstance(result, ApiFailure):
                self._handle_failure(result, "Failed to load cart")
                return False

            snapshot = result.data
            if enrich and snapshot.items:
                snapshot = await self._enrich(snapshot)
            self.snapshot = snapshot
            self.error = None
            logger.info(f"Cart loaded: item_count={snapshot.item_count}, total={snapshot.total_price}")
            return True
        finally:
            self.loading = False

    async def _enrich(self, snapshot: CartSnapshot) -> CartSnapshot:
        results = await asyncio.gather(*(self.client.fetch_product(line.product_id) for line in snapshot.items))
        items = []
        for line, result in zip(snapshot.items, results):
            if isinstance(result, ApiFailure):
                logger.warning(f"Could not enrich cart line {line.product_id}: {result.user_message}")
                items.append(line)
                continue
            product: Product = result.data
            items.append(
                line.model_copy(
                    update={
                        "unit_price": product.unit_price,
                        "title": product.title,
                        "image_cover": product.image_cover,
                    }
                )
            )
        return snapshot.model_copy(update={"items": items})

    async def add(self, product: Product) -> bool:
        """Add one unit of ``product``; on success the server's lines and quantities replace the projection."""
        return await self._mutate(
            f"add {product.id}",
            lambda snapshot: snapshot.with_added(product),
            lambda: self.client.add_cart_item(product.id),
            accept_server=True,
            failure_message="Failed to add product to cart",
        )

    async def update_quantity(self, product_id: str, quantity: int) -> bool:
        """Set the quantity of a line. Quantities below 1 are ignored without a server call."""
        if quantity < 1:
            logger.info(f"Ignoring quantity update for {product_id}: {quantity} < 1")
            return False

        return await self._mutate(
            f"update {product_id} -> {quantity}",
            lambda snapshot: snapshot.with_quantity(product_id, quantity),
            lambda: self.client.update_cart_item_quantity(product_id, quantity),
            failure_message="Failed to update quantity",
            require_line=product_id,
        )

    async def remove(self, product_id: str) -> bool:
        return await self._mutate(
            f"remove {product_id}",
            lambda snapshot: snapshot.without(product_id),
            lambda: self.client.remove_cart_item(product_id),
            failure_message="Failed to remove item",
            require_line=product_id,
        )

    async def clear(self) -> bool:
        return await self._mutate(
            "clear",
            lambda snapshot: snapshot.cleared(),
            self.client.clear_cart,
            failure_message="Failed to clear cart",
        )

    def line(self, product_id: str) -> Optional[CartLine]:
        return self.snapshot.find(product_id)

    async def _mutate(
        self,
        label: str,
        project: Callable[[CartSnapshot], CartSnapshot],
        call: Callable[[], Awaitable[ApiResult]],
        failure_message: str,
        accept_server: bool = False,
        require_line: Optional[str] = None,
    ) -> bool:
        if not self._check_session():
            return False

        async with self._lock:
            if require_line is not None and self.snapshot.find(require_line) is None:
                logger.warning(f"Cart {label} rejected: product not in cart")
                self.error = "Product is not in your cart"
                return False

            previous = self.snapshot
            self.snapshot = project(previous)
            logger.info(f"Cart {label}: optimistic total={self.snapshot.total_price}")

            result = await call()
            if isinstance(result, ApiFailure):
                logger.warning(f"Cart {label} failed, rolling back: {result.user_message}")
                self.snapshot = previous
                self._handle_failure(result, failure_message)
                if not result.is_auth_failure:
                    await self._resync()
                return False

            if accept_server and result.data is not None:
                self.snapshot = _keep_known_details(result.data, self.snapshot)
            self.error = None
            return True

    async def _resync(self) -> None:
        # Keep the caller's error; a successful refetch only replaces the snapshot.
        result = await self.client.fetch_cart()
        if isinstance(result, ApiFailure) and result.kind == FailureKind.NOT_FOUND:
            self.snapshot = CartSnapshot()
            return
        if isinstance(result, ApiFailure):
            logger.warning(f"Cart resync failed: {result.user_message}")
            if result.is_auth_failure:
                self._handle_failure(result, self.error or "Failed to load cart")
            return
        self.snapshot = result.data

    def _check_session(self) -> bool:
        if self.session.is_authenticated:
            return True
        self.requires_login = True
        self.error = LOGIN_REQUIRED_MESSAGE
        return False

    def _handle_failure(self, failure: ApiFailure, message: str) -> None:
        if failure.is_auth_failure:
            logger.warning("Cart request rejected as unauthenticated, clearing session")
            self.session.clear()
            self.discard()
            self.requires_login = True
            self.error = LOGIN_REQUIRED_MESSAGE
            return
        self.error = f"{message}: {failure.user_message}"


def _keep_known_details(server: CartSnapshot, local: CartSnapshot) -> CartSnapshot:
    """
    Adopt the server's lines and quantities, keeping the price and display
    fields already known locally.

    Mutation responses reference products by ID only and carry the list
    price, so the discounted price and title of known lines come from
    ``local``.
    """
    items = []
    for line in server.items:
        known = local.find(line.product_id)
        if known is None:
            items.append(line)
            continue
        items.append(
            line.model_copy(
                update={
                    "unit_price": known.unit_price,
                    "title": known.title or line.title,
                    "image_cover": known.image_cover or line.image_cover,
                }
            )
        )
    return server.model_copy(update={"items": items})
