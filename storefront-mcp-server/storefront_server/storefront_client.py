"""Storefront commerce API client."""

import logging
from typing import Any, Optional, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from .auth import SessionHolder
from .models import (
    AuthEnvelope,
    BrandListEnvelope,
    CartEnvelope,
    CategoryListEnvelope,
    MessageEnvelope,
    OrderListEnvelope,
    ProductEnvelope,
    ProductListEnvelope,
    ProductPage,
    RegistrationFields,
    Session,
    WishlistEnvelope,
    WishlistMembership,
)
from .results import ApiFailure, ApiResult, ApiSuccess, FailureKind

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

# Header styles required by the API: cart/wishlist use a bare ``token``
# header, orders use a standard bearer token.
TOKEN_HEADER = "token"
BEARER = "bearer"


class StorefrontClient:
    """Client for the storefront commerce API. Every call returns an ApiResult."""

    BASE_URL = "https://ecommerce.routemisr.com/api/v1"

    def __init__(
        self,
        session: SessionHolder,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the storefront client.

        Args:
            session: Session holder providing the auth token
            base_url: API base URL (defaults to the public commerce API)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.session = session
        self.client = httpx.AsyncClient(
            base_url=base_url or self.BASE_URL,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> "StorefrontClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    def _auth_headers(self, auth: Optional[str]) -> Optional[dict[str, str]]:
        token = self.session.token
        if token is None:
            return None
        if auth == BEARER:
            return {"Authorization": f"Bearer {token}"}
        return {TOKEN_HEADER: token}

    async def _request(
        self,
        method: str,
        path: str,
        schema: type[M],
        auth: Optional[str] = None,
        json: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> ApiResult:
        """
        Issue a request and validate the response body against ``schema``.

        Transport errors, non-2xx statuses and shape mismatches all come back
        as ApiFailure.
        """
        headers: dict[str, str] = {}
        if auth is not None:
            auth_headers = self._auth_headers(auth)
            if auth_headers is None:
                logger.warning(f"{method} {path} skipped: no authentication token")
                return ApiFailure(
                    kind=FailureKind.AUTH,
                    status=401,
                    message="No authentication token found",
                )
            headers.update(auth_headers)

        try:
            response = await self.client.request(method, path, json=json, params=params, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} transport error: {e}")
            return ApiFailure(kind=FailureKind.NETWORK, message=f"Network error: {e}")

        logger.info(f"{method} {path}: status={response.status_code}")

        try:
            body = response.json()
        except ValueError:
            body = None

        if not response.is_success:
            failure = ApiFailure.from_status(response.status_code, body)
            logger.warning(f"{method} {path} failed: {failure.kind.value} ({failure.user_message})")
            return failure

        if body is None:
            return ApiFailure(
                kind=FailureKind.MALFORMED,
                status=response.status_code,
                message="Response body is not valid JSON",
            )

        try:
            return ApiSuccess(data=schema.model_validate(body))
        except ValidationError as e:
            logger.error(f"{method} {path} returned an unexpected shape: {e.error_count()} error(s)")
            return ApiFailure(
                kind=FailureKind.MALFORMED,
                status=response.status_code,
                message="Unexpected response from server",
            )

    @staticmethod
    def _map(result: ApiResult, fn: Any) -> ApiResult:
        if isinstance(result, ApiFailure):
            return result
        return ApiSuccess(data=fn(result.data))

    # Authentication

    async def login(self, email: str, password: str) -> ApiResult:
        """Sign in and return a Session (not stored; callers decide)."""
        logger.info(f"=== LOGIN: email={email.strip()} ===")
        result = await self._request(
            "POST",
            "/auth/signin",
            AuthEnvelope,
            json={"email": email.strip(), "password": password},
        )
        return self._map(result, _to_session)

    async def register(self, fields: RegistrationFields) -> ApiResult:
        """Create an account and return its Session."""
        logger.info(f"=== REGISTER: email={fields.email.strip()} ===")
        result = await self._request(
            "POST",
            "/auth/signup",
            AuthEnvelope,
            json={
                "name": fields.name.strip(),
                "email": fields.email.strip(),
                "password": fields.password,
                "rePassword": fields.re_password,
                "phone": fields.phone.strip(),
            },
        )
        return self._map(result, _to_session)

    async def request_password_reset(self, email: str) -> ApiResult:
        result = await self._request("POST", "/auth/forgotPasswords", MessageEnvelope, json={"email": email.strip()})
        return self._map(result, _empty)

    async def verify_reset_code(self, code: str) -> ApiResult:
        result = await self._request("POST", "/auth/verifyResetCode", MessageEnvelope, json={"resetCode": code.strip()})
        return self._map(result, _empty)

    async def reset_password(self, email: str, code: str, new_password: str) -> ApiResult:
        """Verify the reset code, then set the new password."""
        verified = await self.verify_reset_code(code)
        if isinstance(verified, ApiFailure):
            return verified
        result = await self._request(
            "PUT",
            "/auth/resetPassword",
            MessageEnvelope,
            json={"email": email.strip(), "newPassword": new_password},
        )
        return self._map(result, _empty)

    # Catalog

    async def fetch_products(self, page: int = 1, page_size: int = 40) -> ApiResult:
        """Fetch one page of products as a ProductPage."""
        if page < 1 or page_size < 1:
            return ApiFailure(kind=FailureKind.VALIDATION, message="Page and page size must be positive")
        result = await self._request(
            "GET",
            "/products",
            ProductListEnvelope,
            params={"page": page, "limit": page_size},
        )

        def to_page(envelope: ProductListEnvelope) -> ProductPage:
            total_pages = envelope.metadata.number_of_pages if envelope.metadata else 1
            return ProductPage(
                items=envelope.data,
                page=page,
                total_pages=max(total_pages, 1),
                page_size=page_size,
            )

        return self._map(result, to_page)

    async def fetch_product(self, product_id: str) -> ApiResult:
        result = await self._request("GET", f"/products/{product_id}", ProductEnvelope)
        return self._map(result, lambda envelope: envelope.data)

    async def fetch_categories(self) -> ApiResult:
        result = await self._request("GET", "/categories", CategoryListEnvelope)
        return self._map(result, lambda envelope: list(envelope.data))

    async def fetch_brands(self) -> ApiResult:
        result = await self._request("GET", "/brands", BrandListEnvelope)
        return self._map(result, lambda envelope: list(envelope.data))

    # Cart

    async def fetch_cart(self) -> ApiResult:
        result = await self._request("GET", "/cart", CartEnvelope, auth=TOKEN_HEADER)
        return self._map(result, CartEnvelope.to_snapshot)

    async def add_cart_item(self, product_id: str) -> ApiResult:
        logger.info(f"=== ADD TO CART: product_id={product_id} ===")
        result = await self._request(
            "POST", "/cart", CartEnvelope, auth=TOKEN_HEADER, json={"productId": product_id}
        )
        return self._map(result, CartEnvelope.to_snapshot)

    async def update_cart_item_quantity(self, product_id: str, quantity: int) -> ApiResult:
        logger.info(f"=== UPDATE CART: product_id={product_id}, quantity={quantity} ===")
        result = await self._request(
            "PUT", f"/cart/{product_id}", CartEnvelope, auth=TOKEN_HEADER, json={"count": quantity}
        )
        return self._map(result, CartEnvelope.to_snapshot)

    async def remove_cart_item(self, product_id: str) -> ApiResult:
        logger.info(f"=== REMOVE FROM CART: product_id={product_id} ===")
        result = await self._request("DELETE", f"/cart/{product_id}", CartEnvelope, auth=TOKEN_HEADER)
        return self._map(result, CartEnvelope.to_snapshot)

    async def clear_cart(self) -> ApiResult:
        logger.info("=== CLEAR CART ===")
        result = await self._request("DELETE", "/cart", MessageEnvelope, auth=TOKEN_HEADER)
        return self._map(result, _empty)

    # Wishlist

    async def fetch_wishlist(self) -> ApiResult:
        result = await self._request("GET", "/wishlist", WishlistEnvelope, auth=TOKEN_HEADER)
        return self._map(
            result,
            lambda envelope: WishlistMembership(
                member_ids={product.id for product in envelope.data},
                products=envelope.data,
            ),
        )

    async def add_wishlist_item(self, product_id: str) -> ApiResult:
        result = await self._request(
            "POST", "/wishlist", MessageEnvelope, auth=TOKEN_HEADER, json={"productId": product_id}
        )
        return self._map(result, _empty)

    async def remove_wishlist_item(self, product_id: str) -> ApiResult:
        result = await self._request("DELETE", f"/wishlist/{product_id}", MessageEnvelope, auth=TOKEN_HEADER)
        return self._map(result, _empty)

    # Orders

    async def fetch_orders(self) -> ApiResult:
        result = await self._request("GET", "/orders", OrderListEnvelope, auth=BEARER)
        return self._map(result, lambda envelope: list(envelope.data))

    async def pay_order(self, order_id: str, payment_method: str) -> ApiResult:
        logger.info(f"=== PAY ORDER: order_id={order_id}, method={payment_method} ===")
        result = await self._request(
            "POST",
            f"/orders/{order_id}/pay",
            MessageEnvelope,
            auth=BEARER,
            json={"paymentMethod": payment_method},
        )
        return self._map(result, _empty)


def _to_session(envelope: AuthEnvelope) -> Session:
    user = envelope.user
    return Session(
        token=envelope.token,
        user_email=user.email if user else None,
        user_name=user.name if user else None,
    )


def _empty(_: Any) -> None:
    return None
