"""Account flows: sign in, sign up, logout and password reset."""

import logging
from typing import Optional

from pydantic import BaseModel

from .auth import SessionHolder
from .models import RegistrationFields
from .results import ApiFailure
from .storefront_client import StorefrontClient
from .validation import is_valid_email, validate_registration

logger = logging.getLogger(__name__)


class AccountResult(BaseModel):
    """Outcome of an account flow, ready to show to the user."""

    success: bool
    message: str


class AccountService:
    """Runs account flows and stores the resulting session."""

    def __init__(self, client: StorefrontClient, session: SessionHolder) -> None:
        self.client = client
        self.session = session

    async def login(self, email: str, password: str) -> AccountResult:
        if not email.strip() or not password:
            return AccountResult(success=False, message="Email and password are required")

        result = await self.client.login(email, password)
        if isinstance(result, ApiFailure):
            logger.warning(f"Login failed for {email.strip()}: {result.user_message}")
            return AccountResult(success=False, message=result.user_message)

        self.session.set(result.data)
        logger.info(f"Logged in as {email.strip()}")
        return AccountResult(success=True, message=f"Successfully logged in as {email.strip()}")

    async def register(self, fields: RegistrationFields) -> AccountResult:
        """Validate locally, then create the account and sign in."""
        error = validate_registration(fields)
        if error:
            return AccountResult(success=False, message=error)

        result = await self.client.register(fields)
        if isinstance(result, ApiFailure):
            logger.warning(f"Registration failed for {fields.email.strip()}: {result.user_message}")
            return AccountResult(success=False, message=result.user_message)

        self.session.set(result.data)
        return AccountResult(success=True, message=f"Account created for {fields.email.strip()}")

    def logout(self) -> AccountResult:
        self.session.clear()
        return AccountResult(success=True, message="Successfully logged out")

    async def request_password_reset(self, email: str) -> AccountResult:
        if not is_valid_email(email.strip()):
            return AccountResult(success=False, message="Please enter a valid email address")

        result = await self.client.request_password_reset(email)
        if isinstance(result, ApiFailure):
            return AccountResult(success=False, message=_reset_error_message(result))
        return AccountResult(success=True, message=f"Reset code sent to {email.strip()}")

    async def reset_password(self, email: str, code: str, new_password: str) -> AccountResult:
        if not code.strip():
            return AccountResult(success=False, message="Reset code is required")
        if len(new_password) < 6:
            return AccountResult(success=False, message="Password must be at least 6 characters long")

        result = await self.client.reset_password(email, code, new_password)
        if isinstance(result, ApiFailure):
            return AccountResult(success=False, message=result.user_message)
        return AccountResult(success=True, message="Password has been reset. Please log in.")


def _reset_error_message(failure: ApiFailure) -> str:
    message: Optional[str] = failure.server_message
    if message and ("not found" in message or "doesn't exist" in message):
        return "No account found with this email address."
    return message or "Failed to send reset email"
