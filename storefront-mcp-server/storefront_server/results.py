"""Tagged results returned by the storefront API client."""

from enum import Enum
from typing import Any, Generic, Optional, TypeVar, Union

from pydantic import BaseModel, Field

T = TypeVar("T")


class FailureKind(str, Enum):
    """Classification of a failed API call."""

    NETWORK = "network"
    AUTH = "auth"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    SERVER = "server"
    MALFORMED = "malformed"


class ApiSuccess(BaseModel, Generic[T]):
    """Successful call carrying the parsed payload."""

    data: T = None

    @property
    def ok(self) -> bool:
        return True


class ApiFailure(BaseModel):
    """Failed call. Never raised, always returned."""

    kind: FailureKind
    status: Optional[int] = Field(None, description="HTTP status code when a response was received")
    server_message: Optional[str] = Field(None, description="Message provided by the API")
    message: str = Field(description="Generic fallback message")

    @property
    def ok(self) -> bool:
        return False

    @property
    def is_auth_failure(self) -> bool:
        return self.kind == FailureKind.AUTH

    @property
    def user_message(self) -> str:
        return self.server_message or self.message

    @classmethod
    def from_status(cls, status: int, body: Any = None) -> "ApiFailure":
        """Build a failure from a non-2xx response status and its (decoded) body."""
        if status == 401:
            kind = FailureKind.AUTH
        elif status == 404:
            kind = FailureKind.NOT_FOUND
        elif status >= 500:
            kind = FailureKind.SERVER
        else:
            kind = FailureKind.VALIDATION

        return cls(
            kind=kind,
            status=status,
            server_message=extract_server_message(body),
            message=f"Request failed with status {status}",
        )


ApiResult = Union[ApiSuccess[T], ApiFailure]


def extract_server_message(body: Any) -> Optional[str]:
    """Pull a human readable message out of an error body (``message`` or ``errors.msg``)."""
    if not isinstance(body, dict):
        return None
    message = body.get("message")
    if isinstance(message, str) and message:
        return message
    errors = body.get("errors")
    if isinstance(errors, dict) and isinstance(errors.get("msg"), str):
        return errors["msg"]
    return None
