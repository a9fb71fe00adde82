"""
Booking / seat-inventory coordinator.

Keeps ``seats_total - seats_available`` equal to the seats held by the
ride's confirmed bookings:

* seats are taken with one conditional UPDATE (``seats_available >= n``),
  so two concurrent requests can never both take the last seat;
* every status change is a compare-and-swap on the current status;
* all writes happen in the caller's unit of work, which must roll back
  when any of these methods raises.

Notifications are queued on the :class:`Notifier` and only sent by the
caller after commit.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rideshare.config import settings
from rideshare.domain.cities import city_name
from rideshare.domain.entities import (
    booking_total,
    can_cancel,
    ensure_booking_transition,
    ensure_ride_transition,
    has_departed,
    utc_now,
)
from rideshare.domain.enums import BookingStatus, RideStatus
from rideshare.domain.errors import (
    Conflict,
    Forbidden,
    InvalidArgument,
    InvalidState,
    NotFound,
)
from rideshare.domain.validation import format_currency, validate_seat_count
from rideshare.infrastructure.models import BookingModel, MessageModel, RideModel
from rideshare.infrastructure.repositories import (
    BookingRepository,
    MessageRepository,
    RideRepository,
    UserRepository,
)
from rideshare.services.notifications import Notifier

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 1000


def _route(ride: RideModel) -> str:
    return f"{city_name(ride.origin_city)}-{city_name(ride.destination_city)}"


class BookingCoordinator:
    def __init__(
        self,
        session: AsyncSession,
        notifier: Optional[Notifier] = None,
        clock: Callable = utc_now,
        cutoff_hours: Optional[int] = None,
    ):
        self.session = session
        self.rides = RideRepository(session)
        self.bookings = BookingRepository(session)
        self.users = UserRepository(session)
        self.messages = MessageRepository(session)
        self.notifier = notifier or Notifier()
        self.clock = clock
        self.cutoff_hours = (
            settings.cancellation_cutoff_hours if cutoff_hours is None else cutoff_hours
        )

    # ── Create ────────────────────────────────────────────────────────

    async def create_booking(
        self,
        requester_id: int,
        ride_id: int,
        seats_count: int,
        message: Optional[str] = None,
    ) -> BookingModel:
        if not validate_seat_count(seats_count):
            raise InvalidArgument("seats_count must be between 1 and 4")
        if message is not None and len(message) > MAX_MESSAGE_LENGTH:
            raise InvalidArgument("Message content cannot exceed 1000 characters")

        ride = await self.rides.get_by_id(ride_id)
        if ride is None:
            raise NotFound("Ride not found")
        if ride.driver_id == requester_id:
            raise Forbidden("You cannot book your own ride")
        if ride.status != RideStatus.ACTIVE:
            raise Conflict("This ride is no longer available")
        if await self.bookings.get_confirmed(ride_id, requester_id):
            raise Conflict("You already have a booking for this ride")

        if not await self.rides.reserve_seats(ride_id, seats_count):
            raise Conflict("Not enough seats available")

        booking = BookingModel(
            ride_id=ride_id,
            passenger_id=requester_id,
            seats_count=seats_count,
            total_price=booking_total(seats_count, ride.price_per_seat),
            status=BookingStatus.CONFIRMED,
            created_at=self.clock(),
        )
        try:
            await self.bookings.create(booking)
        except IntegrityError as exc:
            # Lost a race with a concurrent request from the same passenger
            raise Conflict("You already have a booking for this ride") from exc

        if message and message.strip():
            await self.messages.create(
                MessageModel(
                    booking_id=booking.id,
                    sender_id=requester_id,
                    receiver_id=ride.driver_id,
                    content=message.strip(),
                    created_at=self.clock(),
                )
            )

        await self.session.refresh(booking)
        await self.rides.refresh(ride)
        passenger = await self.users.get_by_id(requester_id)
        driver = ride.driver
        logger.info(
            "Booking %s: user %s took %d seat(s) on ride %s (%d left)",
            booking.id,
            requester_id,
            seats_count,
            ride_id,
            ride.seats_available,
        )

        if passenger is not None and driver is not None:
            self.notifier.notify(
                driver,
                f"New booking! {passenger.name} booked {seats_count} seat(s) for "
                f"your {_route(ride)} ride. Contact: {{contact}}",
                contact=passenger,
            )
            self.notifier.notify(
                passenger,
                f"Booking confirmed! Driver {driver.name} will pick you up at "
                f"{ride.pickup_point}. Contact: {{contact}}. Payment: "
                f"{format_currency(booking.total_price)} cash.",
                contact=driver,
            )
        return booking

    # ── Cancel one booking ────────────────────────────────────────────

    async def cancel_booking(self, requester_id: int, booking_id: int) -> BookingModel:
        """Cancel a booking.

        A passenger cancelling releases their seats.  The driver cancelling
        a booking withdraws the whole ride: every confirmed booking on it is
        cancelled and every passenger is told.
        """
        booking = await self.bookings.get_by_id(booking_id)
        if booking is None:
            raise NotFound("Booking not found")
        ride = booking.ride
        is_passenger = booking.passenger_id == requester_id
        is_driver = ride.driver_id == requester_id
        if not (is_passenger or is_driver):
            raise Forbidden("You can only cancel your own bookings")

        ensure_booking_transition(booking.status, BookingStatus.CANCELLED)
        if not can_cancel(ride.departure_time, self.clock(), self.cutoff_hours):
            raise InvalidState(
                f"Cannot cancel less than {self.cutoff_hours} hours before departure"
            )

        if is_driver:
            await self._withdraw_ride(ride, requester_id)
            await self.session.refresh(booking)
            return booking

        if not await self.bookings.cancel(booking.id, requester_id, self.clock()):
            raise Conflict("Booking was changed by another request")
        if not await self.rides.release_seats(ride.id, booking.seats_count):
            logger.warning(
                "Ride %s already at capacity while releasing booking %s",
                ride.id,
                booking.id,
            )
        await self.session.refresh(booking)
        await self.rides.refresh(ride)
        logger.info(
            "Booking %s cancelled by passenger %s; ride %s has %d seat(s) free",
            booking.id,
            requester_id,
            ride.id,
            ride.seats_available,
        )

        passenger = booking.passenger
        self.notifier.notify(
            ride.driver,
            f"Booking cancelled: {passenger.name} cancelled {booking.seats_count} "
            f"seat(s) for your {_route(ride)} ride.",
        )
        self.notifier.notify(
            passenger,
            f"Your booking for {_route(ride)} has been cancelled.",
        )
        return booking

    # ── Ride lifecycle ────────────────────────────────────────────────

    async def cancel_ride(self, driver_id: int, ride_id: int) -> RideModel:
        ride = await self._owned_ride(driver_id, ride_id, "cancel")
        await self._withdraw_ride(ride, driver_id)
        return ride

    async def complete_ride(self, driver_id: int, ride_id: int) -> RideModel:
        ride = await self._owned_ride(driver_id, ride_id, "complete")
        ensure_ride_transition(ride.status, RideStatus.COMPLETED)
        now = self.clock()
        if not has_departed(ride.departure_time, now):
            raise InvalidState("Ride has not departed yet")

        confirmed = await self.bookings.list_confirmed_for_ride(ride.id)
        if not await self.rides.transition_status(
            ride.id, RideStatus.ACTIVE, RideStatus.COMPLETED, completed_at=now
        ):
            raise Conflict("Ride was changed by another request")
        await self.bookings.close_confirmed_for_ride(ride.id, BookingStatus.COMPLETED)
        await self.users.increment_total_rides(
            [driver_id] + [b.passenger_id for b in confirmed]
        )
        for b in confirmed:
            await self.session.refresh(b)
        await self.rides.refresh(ride)
        logger.info(
            "Ride %s completed with %d passenger booking(s)", ride.id, len(confirmed)
        )

        for b in confirmed:
            self.notifier.notify(
                b.passenger,
                f"Thanks for riding {_route(ride)} with {ride.driver.name}! "
                "Rate your trip in AlbaniaRides.",
            )
        return ride

    async def _owned_ride(self, driver_id: int, ride_id: int, verb: str) -> RideModel:
        ride = await self.rides.get_by_id(ride_id)
        if ride is None:
            raise NotFound("Ride not found")
        if ride.driver_id != driver_id:
            raise Forbidden(f"You can only {verb} your own rides")
        return ride

    async def _withdraw_ride(self, ride: RideModel, driver_id: int) -> None:
        """ACTIVE -> CANCELLED and cascade to every confirmed booking."""
        ensure_ride_transition(ride.status, RideStatus.CANCELLED)
        now = self.clock()
        affected = await self.bookings.list_confirmed_for_ride(ride.id)
        if not await self.rides.transition_status(
            ride.id, RideStatus.ACTIVE, RideStatus.CANCELLED, cancelled_at=now
        ):
            raise Conflict("Ride was changed by another request")
        cancelled = await self.bookings.close_confirmed_for_ride(
            ride.id,
            BookingStatus.CANCELLED,
            cancelled_at=now,
            cancelled_by=driver_id,
        )
        for b in affected:
            await self.session.refresh(b)
        await self.rides.refresh(ride)
        logger.info("Ride %s cancelled; %d booking(s) cancelled", ride.id, cancelled)

        for b in affected:
            self.notifier.notify(
                b.passenger,
                f"Ride cancelled: Driver {ride.driver.name} cancelled the "
                f"{_route(ride)} ride. Please find another ride.",
            )

    # ── Queries ───────────────────────────────────────────────────────

    async def list_bookings(
        self, user_id: int, role: str = "passenger", status: Optional[str] = None
    ) -> list[BookingModel]:
        status_filter = None
        if status and status != "all":
            try:
                status_filter = BookingStatus(status)
            except ValueError as exc:
                raise InvalidArgument(f"Unknown booking status: {status}") from exc
        if role == "driver":
            return await self.bookings.list_for_driver(user_id, status_filter)
        return await self.bookings.list_for_passenger(user_id, status_filter)
