"""Page-level composition of cart and wishlist state."""

import asyncio
import logging

from .auth import SessionHolder
from .cart_store import CartStore
from .models import Product
from .storefront_client import StorefrontClient
from .wishlist_store import WishlistStore

logger = logging.getLogger(__name__)


class StorefrontPage:
    """
    State owned by a single page: a cart and a wishlist.

    Nothing is shared between pages. Each page re-fetches on mount.
    """

    def __init__(self, client: StorefrontClient, session: SessionHolder) -> None:
        self.client = client
        self.session = session
        self.cart = CartStore(client, session)
        self.wishlist = WishlistStore(client, session)

    async def __aenter__(self) -> "StorefrontPage":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()

    @property
    def requires_login(self) -> bool:
        return self.cart.requires_login or self.wishlist.requires_login

    async def load(self, cart: bool = True, wishlist: bool = True, enrich: bool = False) -> bool:
        """Mount the page: fetch the requested state concurrently."""
        tasks = []
        if cart:
            tasks.append(self.cart.load(enrich=enrich))
        if wishlist:
            tasks.append(self.wishlist.load())
        results = await asyncio.gather(*tasks)
        return all(results)

    async def add_to_cart_and_remove_from_wishlist(self, product: Product) -> bool:
        """
        Move a product from the wishlist into the cart.

        Two independent calls: the cart add, then the wishlist removal. If
        the removal fails the product stays in both until the next fetch.

        Returns:
            True if the cart addition succeeded
        """
        added = await self.cart.add(product)
        if not added:
            return False

        if self.wishlist.is_member(product.id):
            removed = await self.wishlist.toggle(product.id)
            if not removed:
                logger.warning(f"Product {product.id} added to cart but still in wishlist")
        return True

    def close(self) -> None:
        self.cart.close()
        self.wishlist.close()
