"""Configuration loaded from environment variables."""

import os
from typing import Optional

from pydantic import BaseModel, Field

from .auth import DEFAULT_SESSION_FILE


class Settings(BaseModel):
    """Runtime settings for the storefront server."""

    base_url: str = Field("https://ecommerce.routemisr.com/api/v1", description="Commerce API base URL")
    timeout: float = Field(30.0, gt=0, description="HTTP timeout in seconds")
    session_file: Optional[str] = Field(DEFAULT_SESSION_FILE, description="Where the session token is kept")
    email: Optional[str] = Field(None, description="Account email for auto-login")
    password: Optional[str] = Field(None, description="Account password for auto-login")
    page_size: int = Field(40, ge=1, description="Products per catalog page")
    search_delay: float = Field(0.5, ge=0, description="Search debounce delay in seconds")
    log_level: str = Field("INFO")

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from STOREFRONT_* environment variables."""
        values = {
            "base_url": os.environ.get("STOREFRONT_BASE_URL"),
            "timeout": os.environ.get("STOREFRONT_TIMEOUT"),
            "session_file": os.environ.get("STOREFRONT_SESSION_FILE"),
            "email": os.environ.get("STOREFRONT_EMAIL"),
            "password": os.environ.get("STOREFRONT_PASSWORD"),
            "page_size": os.environ.get("STOREFRONT_PAGE_SIZE"),
            "search_delay": os.environ.get("STOREFRONT_SEARCH_DELAY"),
            "log_level": os.environ.get("STOREFRONT_LOG_LEVEL"),
        }
        return cls(**{key: value for key, value in values.items() if value})

    @property
    def has_credentials(self) -> bool:
        return bool(self.email and self.password)
