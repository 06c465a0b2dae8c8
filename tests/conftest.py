import asyncio
from typing import Optional

import httpx
import pytest

from storefront_server.auth import SessionHolder
from storefront_server.models import CartSnapshot, Product, ProductPage, Session, WishlistMembership
from storefront_server.results import ApiFailure, ApiSuccess, FailureKind
from storefront_server.storefront_client import StorefrontClient

SERVER_ERROR = ApiFailure(
    kind=FailureKind.SERVER,
    status=500,
    server_message="Internal error",
    message="Request failed with status 500",
)
UNAUTHORIZED = ApiFailure(
    kind=FailureKind.AUTH,
    status=401,
    server_message="Invalid Token. please login again",
    message="Request failed with status 401",
)
NETWORK_DOWN = ApiFailure(kind=FailureKind.NETWORK, message="Network error: connection refused")


def make_product(product_id: str, price: str = "100", discount: Optional[str] = None, **extra) -> Product:
    data = {"_id": product_id, "title": f"Product {product_id}", "price": price, **extra}
    if discount is not None:
        data["priceAfterDiscount"] = discount
    return Product.model_validate(data)


class FakeStorefrontClient:
    """In-memory stand-in for StorefrontClient that behaves like the API."""

    def __init__(self, products=()):
        self.products = {p.id: p for p in products}
        self.cart = CartSnapshot(cart_id="cart-1")
        self.wishlist: set[str] = set()
        self.calls: list[tuple] = []
        self.failures: dict[str, list[ApiFailure]] = {}
        self.gates: dict[str, asyncio.Event] = {}

    def fail(self, name: str, failure: ApiFailure = SERVER_ERROR, times: int = 1) -> None:
        self.failures.setdefault(name, []).extend([failure] * times)

    def hold(self, name: str) -> asyncio.Event:
        """Block calls to ``name`` until the returned event is set."""
        gate = asyncio.Event()
        self.gates[name] = gate
        return gate

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    async def _enter(self, name: str, *args) -> Optional[ApiFailure]:
        self.calls.append((name, *args))
        gate = self.gates.get(name)
        if gate is not None:
            await gate.wait()
        queue = self.failures.get(name)
        if queue:
            return queue.pop(0)
        return None

    async def fetch_cart(self):
        return await self._enter("fetch_cart") or ApiSuccess(data=self.cart)

    async def add_cart_item(self, product_id):
        failure = await self._enter("add_cart_item", product_id)
        if failure:
            return failure
        self.cart = self.cart.with_added(self.products[product_id])
        return ApiSuccess(data=self.cart)

    async def update_cart_item_quantity(self, product_id, quantity):
        failure = await self._enter("update_cart_item_quantity", product_id, quantity)
        if failure:
            return failure
        self.cart = self.cart.with_quantity(product_id, quantity)
        return ApiSuccess(data=self.cart)

    async def remove_cart_item(self, product_id):
        failure = await self._enter("remove_cart_item", product_id)
        if failure:
            return failure
        self.cart = self.cart.without(product_id)
        return ApiSuccess(data=self.cart)

    async def clear_cart(self):
        failure = await self._enter("clear_cart")
        if failure:
            return failure
        self.cart = CartSnapshot()
        return ApiSuccess(data=None)

    async def fetch_product(self, product_id):
        failure = await self._enter("fetch_product", product_id)
        if failure:
            return failure
        if product_id not in self.products:
            return ApiFailure(kind=FailureKind.NOT_FOUND, status=404, message="Request failed with status 404")
        return ApiSuccess(data=self.products[product_id])

    async def fetch_wishlist(self):
        failure = await self._enter("fetch_wishlist")
        if failure:
            return failure
        return ApiSuccess(
            data=WishlistMembership(
                member_ids=set(self.wishlist),
                products=[self.products[i] for i in sorted(self.wishlist)],
            )
        )

    async def add_wishlist_item(self, product_id):
        failure = await self._enter("add_wishlist_item", product_id)
        if failure:
            return failure
        self.wishlist.add(product_id)
        return ApiSuccess(data=None)

    async def remove_wishlist_item(self, product_id):
        failure = await self._enter("remove_wishlist_item", product_id)
        if failure:
            return failure
        self.wishlist.discard(product_id)
        return ApiSuccess(data=None)

    async def fetch_products(self, page=1, page_size=40):
        failure = await self._enter("fetch_products", page, page_size)
        if failure:
            return failure
        if page < 1 or page_size < 1:
            return ApiFailure(kind=FailureKind.VALIDATION, message="Page and page size must be positive")
        items = list(self.products.values())
        start = (page - 1) * page_size
        total_pages = max(1, -(-len(items) // page_size))
        return ApiSuccess(
            data=ProductPage(items=items[start:start + page_size], page=page, total_pages=total_pages, page_size=page_size)
        )

    async def fetch_categories(self):
        return await self._enter("fetch_categories") or ApiSuccess(data=[])

    async def fetch_brands(self):
        return await self._enter("fetch_brands") or ApiSuccess(data=[])

    async def fetch_orders(self):
        return await self._enter("fetch_orders") or ApiSuccess(data=[])

    async def pay_order(self, order_id, payment_method):
        failure = await self._enter("pay_order", order_id, payment_method)
        if failure:
            return failure
        self.cart = CartSnapshot()
        return ApiSuccess(data=None)

    async def aclose(self):
        pass


@pytest.fixture(autouse=True)
def no_env_token(monkeypatch):
    monkeypatch.delenv("STOREFRONT_TOKEN", raising=False)


@pytest.fixture()
def session():
    holder = SessionHolder(session_file=None)
    holder.set(Session(token="tok-123", user_email="user@example.com"))
    return holder


@pytest.fixture()
def anonymous_session():
    return SessionHolder(session_file=None)


@pytest.fixture()
def products():
    return [
        make_product("P1", "100"),
        make_product("P2", "250", discount="200"),
        make_product("P3", "40"),
    ]


@pytest.fixture()
def fake_client(products):
    return FakeStorefrontClient(products)


def mock_client(session: SessionHolder, handler) -> StorefrontClient:
    """StorefrontClient whose requests are answered by ``handler``."""
    return StorefrontClient(
        session,
        base_url="https://api.test/api/v1",
        transport=httpx.MockTransport(handler),
    )


def cart_body(*entries, cart_id="cart-1"):
    """Build a /cart response body from (product_id, count, price) tuples."""
    return {
        "status": "success",
        "numOfCartItems": len(entries),
        "cartId": cart_id,
        "data": {
            "_id": cart_id,
            "cartOwner": "user-1",
            "products": [
                {"count": count, "_id": f"line-{pid}", "product": pid, "price": price}
                for pid, count, price in entries
            ],
            "totalCartPrice": sum(count * price for _, count, price in entries),
        },
    }


def run(coro):
    return asyncio.run(coro)
