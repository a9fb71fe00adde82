"""Phone, email and marketplace value validation."""

from __future__ import annotations

import re

from email_validator import EmailNotValidError, validate_email

from .errors import InvalidArgument

ALBANIAN_PHONE_RE = re.compile(r"^\+355[0-9]{8,9}$")
COUNTRY_PREFIX = "+355"

MIN_SEATS_PER_BOOKING = 1
MAX_SEATS_PER_BOOKING = 4
MAX_PRICE_PER_SEAT = 100_000


def format_phone_number(phone: str) -> str:
    """Normalise local, bare-country and international forms to ``+355…``."""
    if not phone:
        return ""
    cleaned = re.sub(r"[\s\-()]", "", phone)
    if cleaned.startswith(COUNTRY_PREFIX):
        return cleaned
    if cleaned.startswith("00355"):
        return "+" + cleaned[2:]
    if cleaned.startswith("355"):
        return "+" + cleaned
    if cleaned.startswith("0"):
        return COUNTRY_PREFIX + cleaned[1:]
    return COUNTRY_PREFIX + cleaned


def is_valid_albanian_phone(phone: str) -> bool:
    return bool(ALBANIAN_PHONE_RE.match(phone or ""))


def normalize_phone(phone: str) -> str:
    """Format and validate; raise ``InvalidArgument`` for non-Albanian numbers."""
    formatted = format_phone_number(phone)
    if not is_valid_albanian_phone(formatted):
        raise InvalidArgument("Invalid Albanian phone number")
    return formatted


def normalize_email(email: str) -> str:
    try:
        result = validate_email(email or "", check_deliverability=False)
    except EmailNotValidError as exc:
        raise InvalidArgument("Valid email address is required") from exc
    return result.normalized


def validate_seat_count(seats: int) -> bool:
    return MIN_SEATS_PER_BOOKING <= seats <= MAX_SEATS_PER_BOOKING


def validate_price(price: float) -> bool:
    return 0 < price <= MAX_PRICE_PER_SEAT


def format_currency(amount: float) -> str:
    return f"{amount:,.0f} ALL"
