"""Input normalization and widget-level validation rules."""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

POSTAL_CODE_LENGTH = 7
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
NON_DIGIT_PATTERN = re.compile(r"[^\d]")

# Full-width digits and the dash variants people type in Japanese IMEs.
_HALF_WIDTH_TABLE = str.maketrans(
    {
        **{chr(0xFF10 + offset): str(offset) for offset in range(10)},
        "‐": "-",
        "－": "-",
        "―": "-",
        "ー": "-",
    }
)


def to_half_width(value: str) -> str:
    """Convert full-width digits and dash variants to ASCII."""
    return value.translate(_HALF_WIDTH_TABLE)


def normalize_postal_code(value: str) -> str:
    """Return the digits of a postal code, e.g. "１２３-4567" => "1234567"."""
    return NON_DIGIT_PATTERN.sub("", to_half_width(value or ""))


def is_complete_postal_code(value: str) -> bool:
    """Return True when a normalized code has exactly seven digits."""
    return len(value) == POSTAL_CODE_LENGTH and value.isdigit()


def validate_required_text(value: str, field_name: str) -> str:
    """Validate non-empty text fields."""
    normalized = (value or "").strip()
    if not normalized:
        raise ValueError(f"{field_name} is required.")
    return normalized


def validate_optional_email(value: str) -> str:
    normalized = (value or "").strip()
    if normalized and not EMAIL_PATTERN.match(normalized):
        raise ValueError("Email address is not valid.")
    return normalized


def parse_non_negative_decimal(value: str, field_name: str) -> Decimal:
    """Parse a numeric widget value; blank input means zero."""
    normalized = to_half_width((value or "").strip()).replace(",", "")
    if not normalized:
        return Decimal("0")
    try:
        amount = Decimal(normalized)
    except InvalidOperation as error:
        raise ValueError(f"{field_name} must be a number.") from error
    if not amount.is_finite():
        raise ValueError(f"{field_name} must be a number.")
    if amount < 0:
        raise ValueError(f"{field_name} must not be negative.")
    return amount


def parse_optional_date(value: str, field_name: str) -> date | None:
    """Parse YYYY-MM-DD; blank input means no date."""
    normalized = (value or "").strip()
    if not normalized:
        return None
    try:
        return datetime.strptime(normalized, "%Y-%m-%d").date()
    except ValueError as error:
        raise ValueError(f"{field_name} must be in YYYY-MM-DD format.") from error
