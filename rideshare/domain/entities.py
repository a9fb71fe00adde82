"""
Domain rules shared by the services and the rating-reveal worker.

- Lifecycle guards: ``ensure_ride_transition`` and
  ``ensure_booking_transition`` enforce ACTIVE -> CANCELLED | COMPLETED and
  CONFIRMED -> CANCELLED | COMPLETED.
- Pure helpers for the cancellation window, departure and rating averages.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from .enums import BOOKING_TRANSITIONS, RIDE_TRANSITIONS, BookingStatus, RideStatus
from .errors import InvalidState


class InvalidStateTransition(InvalidState):
    """Raised when a status change violates a state machine."""


def ensure_ride_transition(current: RideStatus, new_status: RideStatus) -> None:
    if new_status not in RIDE_TRANSITIONS.get(RideStatus(current), set()):
        raise InvalidStateTransition(
            f"Cannot move ride from {RideStatus(current).value} to {new_status.value}"
        )


def ensure_booking_transition(
    current: BookingStatus, new_status: BookingStatus
) -> None:
    if new_status not in BOOKING_TRANSITIONS.get(BookingStatus(current), set()):
        raise InvalidStateTransition(
            f"Cannot move booking from {BookingStatus(current).value} "
            f"to {new_status.value}"
        )


# ── Rules ─────────────────────────────────────────────────────────────


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def booking_total(seats_count: int, price_per_seat: float) -> float:
    return seats_count * price_per_seat


def can_cancel(
    departure_time: datetime, now: Optional[datetime] = None, cutoff_hours: int = 2
) -> bool:
    """True while *now* is strictly more than *cutoff_hours* before departure."""
    now = now or utc_now()
    return as_utc(now) < as_utc(departure_time) - timedelta(hours=cutoff_hours)


def has_departed(departure_time: datetime, now: Optional[datetime] = None) -> bool:
    now = now or utc_now()
    return as_utc(departure_time) <= as_utc(now)


def average_rating(scores: Iterable[int]) -> Optional[float]:
    """Arithmetic mean rounded half-up to one decimal; None when empty."""
    scores = list(scores)
    if not scores:
        return None
    mean = sum(scores) / len(scores)
    return math.floor(mean * 10 + 0.5) / 10
