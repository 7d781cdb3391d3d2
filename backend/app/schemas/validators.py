"""Reusable Pydantic validators for request fields.

- Indian mobile numbers
- GSTIN
- Email addresses
- GST state codes
- Client timestamps (normalised to naive UTC)
"""

import re
from datetime import datetime, timezone

# Regex patterns
EMAIL_REGEX = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
MOBILE_REGEX = re.compile(r"^[6-9]\d{9}$")
# 2-digit state code, 10-char PAN, entity number, 'Z', checksum
GSTIN_REGEX = re.compile(r"^\d{2}[A-Z]{5}\d{4}[A-Z][1-9A-Z]Z[0-9A-Z]$")
STATE_CODE_REGEX = re.compile(r"^\d{2}$")


def validate_mobile(value: str) -> str:
    """Validate a 10-digit Indian mobile number.

    Accepts an optional +91 / 91 / 0 prefix and embedded spaces or dashes.

    Returns:
        The bare 10-digit number

    Raises:
        ValueError: If the number is invalid
    """
    if not value:
        raise ValueError("Mobile number is required")

    value = value.replace(" ", "").replace("-", "")
    if value.startswith("+91"):
        value = value[3:]
    elif len(value) == 12 and value.startswith("91"):
        value = value[2:]
    elif len(value) == 11 and value.startswith("0"):
        value = value[1:]

    if not MOBILE_REGEX.match(value):
        raise ValueError("Invalid mobile number (expected 10 digits)")

    return value


def validate_gstin(value: str | None) -> str | None:
    """Validate a GSTIN; blank values pass through as None."""
    if not value or not value.strip():
        return None

    value = value.strip().upper()
    if not GSTIN_REGEX.match(value):
        raise ValueError("Invalid GSTIN format")

    return value


def validate_email(value: str | None) -> str | None:
    if not value or not value.strip():
        return None

    value = value.strip().lower()

    if len(value) > 254:  # RFC 5321
        raise ValueError("Email address too long")

    if not EMAIL_REGEX.match(value):
        raise ValueError("Invalid email address format")

    return value


def validate_state_code(value: str | None) -> str | None:
    if not value:
        return None
    if not STATE_CODE_REGEX.match(value):
        raise ValueError("State code must be 2 digits")
    return value


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Normalise an incoming timestamp to naive UTC.

    Columns are ``TIMESTAMP WITHOUT TIME ZONE`` holding UTC, the same values
    ``datetime.utcnow()`` produces. Browser clients send ``...Z`` strings,
    which parse as aware datetimes.
    """
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
