"""Checkout flow."""

import logging

from pydantic import BaseModel, Field

from .auth import SessionHolder
from .cart_store import CartStore
from .models import ShippingAddress
from .results import ApiFailure
from .storefront_client import StorefrontClient
from .validation import validate_shipping

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ("cash", "card")


class CheckoutResult(BaseModel):
    success: bool
    message: str
    field_errors: dict[str, str] = Field(default_factory=dict)


class CheckoutFlow:
    """Validates shipping details and pays for the current cart."""

    def __init__(self, client: StorefrontClient, session: SessionHolder) -> None:
        self.client = client
        self.cart = CartStore(client, session)

    async def load(self) -> bool:
        return await self.cart.load()

    async def submit(self, address: ShippingAddress, payment_method: str = "cash") -> CheckoutResult:
        if payment_method not in PAYMENT_METHODS:
            raise ValueError(f"Unknown payment method: {payment_method}")

        errors = validate_shipping(address)
        if errors:
            return CheckoutResult(success=False, message="Please fix the highlighted fields", field_errors=errors)

        if self.cart.requires_login:
            return CheckoutResult(success=False, message=self.cart.error or "Please log in to continue.")

        snapshot = self.cart.snapshot
        if not snapshot.items or not snapshot.cart_id:
            return CheckoutResult(success=False, message="Your cart is empty")

        total = snapshot.total_price
        result = await self.client.pay_order(snapshot.cart_id, payment_method)
        if isinstance(result, ApiFailure):
            if result.is_auth_failure:
                self.cart.session.clear()
            return CheckoutResult(success=False, message=f"Payment failed: {result.user_message}")

        logger.info(f"Order paid: cart_id={snapshot.cart_id}, total={total}")
        self.cart.discard()
        return CheckoutResult(success=True, message=f"Order placed. Total paid: {total} EGP")

    def close(self) -> None:
        self.cart.close()
