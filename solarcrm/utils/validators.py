"""Deterministic input validation rules shared by services and schemas."""

from __future__ import annotations

import re

from solarcrm.core.exceptions import ValidationError

PHONE_PATTERN = re.compile(r"^\+?[\d\s\-()]{10,}$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
CATEGORY_PATTERN = re.compile(r"^[a-z][a-z0-9_]{1,63}$")

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
ADDRESS_MIN_LENGTH = 5


def is_valid_phone(phone: str | None) -> bool:
    return bool(phone) and PHONE_PATTERN.match(phone.strip()) is not None


def is_valid_email(email: str | None) -> bool:
    return bool(email) and EMAIL_PATTERN.match(email.strip()) is not None


def sanitize_text(value: str | None) -> str | None:
    """Trim surrounding whitespace and collapse blank strings to None."""
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


def validate_lead_fields(
    customer_name: str | None = None,
    phone: str | None = None,
    address: str | None = None,
    email: str | None = None,
) -> None:
    """Raise ValidationError listing every invalid lead field that was supplied."""
    errors: dict[str, str] = {}

    if customer_name is not None:
        length = len(customer_name.strip())
        if length < NAME_MIN_LENGTH or length > NAME_MAX_LENGTH:
            errors["customer_name"] = f"Name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters."
    if phone is not None and not is_valid_phone(phone):
        errors["phone"] = "Invalid phone number format."
    if address is not None and len(address.strip()) < ADDRESS_MIN_LENGTH:
        errors["address"] = f"Address must be at least {ADDRESS_MIN_LENGTH} characters."
    if email and not is_valid_email(email):
        errors["email"] = "Invalid email address."

    if errors:
        raise ValidationError("Invalid lead data.", details={"fields": errors})


def validate_document_category(category: str) -> str:
    if not category or CATEGORY_PATTERN.match(category) is None:
        raise ValidationError(f"Invalid document category: {category!r}")
    return category
