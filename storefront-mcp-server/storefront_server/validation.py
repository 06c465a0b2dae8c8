"""Client-side form validation."""

import re
from typing import Optional

from .models import RegistrationFields, ShippingAddress

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PASSWORD_SPECIALS_RE = re.compile(r"[@$!%*?&]")
REGISTRATION_PHONE_RE = re.compile(r"^\+?\d{10,15}$")
SHIPPING_PHONE_RE = re.compile(r"^[\d\s\-\+\(\)]{10,}$")
PHONE_NOISE_RE = re.compile(r"[\s\-\(\)]")

MIN_PASSWORD_LENGTH = 6


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email))


def validate_registration(fields: RegistrationFields) -> Optional[str]:
    """
    Check sign-up fields.

    Returns:
        The first validation error message, or None if the fields are valid
    """
    password = fields.password
    if password != fields.re_password:
        return "Passwords do not match"

    if len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"

    if not (
        re.search(r"[A-Z]", password)
        and re.search(r"[a-z]", password)
        and re.search(r"\d", password)
        and PASSWORD_SPECIALS_RE.search(password)
    ):
        return "Password must contain: uppercase letter, lowercase letter, number and special character (@$!%*?&)"

    if not is_valid_email(fields.email):
        return "Please enter a valid email address"

    if len(fields.name.strip()) < 2:
        return "Name must be at least 2 characters long"

    if not REGISTRATION_PHONE_RE.match(PHONE_NOISE_RE.sub("", fields.phone)):
        return "Please enter a valid phone number (10-15 digits, optionally starting with +)"

    return None


def validate_shipping(address: ShippingAddress) -> dict[str, str]:
    """Return field -> error message for the checkout form (empty when valid)."""
    errors: dict[str, str] = {}

    if not address.details.strip():
        errors["details"] = "Details are required"

    if not address.phone.strip():
        errors["phone"] = "Phone number is required"
    elif not SHIPPING_PHONE_RE.match(address.phone):
        errors["phone"] = "Please enter a valid phone number"

    if not address.city.strip():
        errors["city"] = "City is required"

    return errors
