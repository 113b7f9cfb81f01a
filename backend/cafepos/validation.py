from __future__ import annotations

import re
from typing import Any


# Upper bound for a single price: ₦9,999,999.99 (999,999,999 kobo)
MAX_PRICE_KOBO = 999_999_999

# Upper bound for one line's quantity
MAX_LINE_QUANTITY = 999

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ValidationError(ValueError):
    """400-level input problem."""


def normalize_email(value: str | None) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError("email must be a string")
    return value.strip().lower()


def validate_email(value: str | None) -> str:
    """Return the normalized email or raise ValidationError."""
    email = normalize_email(value)
    if not email:
        raise ValidationError("Email is required")
    if len(email) > 255 or not EMAIL_RE.match(email):
        raise ValidationError("Enter a valid email address")
    return email


def parse_positive_int(value: Any, field: str, *, allow_none: bool = True, maximum: int | None = None) -> int | None:
    """
    Strict positive integer coercion for JSON payloads.

    Rejects bools, floats, decimals and scientific notation. Strings of plain
    digits are accepted.
    """
    if value is None or value == "":
        if allow_none:
            return None
        raise ValidationError(f"{field} is required")

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")

    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped.isdigit():
            raise ValidationError(f"{field} must be a positive integer")
        parsed = int(stripped)
    else:
        raise ValidationError(f"{field} must be an integer")

    if parsed <= 0:
        raise ValidationError(f"{field} must be a positive integer")
    if maximum is not None and parsed > maximum:
        raise ValidationError(f"{field} must be at most {maximum}")
    return parsed


def parse_price_kobo(value: Any, field: str = "unit_price_kobo") -> int:
    """Prices are integer kobo; zero is allowed (complimentary items), negatives are not."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer amount in kobo")
    if value < 0:
        raise ValidationError(f"{field} cannot be negative")
    if value > MAX_PRICE_KOBO:
        raise ValidationError(f"{field} exceeds the maximum allowed price")
    return value


def require_choice(value: Any, field: str, choices) -> str:
    if not isinstance(value, str) or value not in choices:
        raise ValidationError(f"{field} must be one of: {', '.join(choices)}")
    return value
