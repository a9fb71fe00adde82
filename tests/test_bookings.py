"""
Booking / seat-inventory coordinator.

Covers:
1. Seat accounting: ``seats_total - seats_available`` always equals the seats
   held by confirmed bookings.
2. Guard rails: self-booking, duplicates, inactive rides, the 2-hour cutoff.
3. Ride cancellation cascades to every confirmed booking.
4. Both parties are told about every change, after the fact.
5. A stale read cannot oversubscribe a ride, nor lose a booking on resize.
"""

from __future__ import annotations

from datetime import timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from rideshare.domain.entities import utc_now
from rideshare.domain.enums import BookingStatus, RideStatus
from rideshare.domain.errors import (
    Conflict,
    Forbidden,
    InvalidArgument,
    InvalidState,
    NotFound,
)
from rideshare.infrastructure.database import Base
from rideshare.infrastructure.models import MessageModel, RideModel, UserModel
from rideshare.infrastructure.repositories import BookingRepository, MessageRepository
from rideshare.services.bookings import BookingCoordinator
from rideshare.services.notifications import Notifier
from rideshare.services.rides import RideService
from rideshare.security.crypto import encrypt_phone, hash_phone


@pytest_asyncio.fixture
async def driver(make_user):
    return await make_user("Arben Hoxha", is_driver=True)


@pytest_asyncio.fixture
async def passenger(make_user):
    return await make_user("Dritan Leka")


@pytest.fixture
def coordinator(db_session, notifier):
    return BookingCoordinator(db_session, notifier)


async def booked_seats(session, ride_id):
    return await BookingRepository(session).booked_seats(ride_id)


# ── CreateBooking ─────────────────────────────────────────────────────


class TestCreateBooking:
    @pytest.mark.asyncio
    async def test_books_seats_and_prices_them(self, coordinator, driver, passenger, make_ride):
        ride = await make_ride(driver, seats=3, price=500)

        booking = await coordinator.create_booking(passenger.id, ride.id, 2)

        assert booking.status == BookingStatus.CONFIRMED
        assert booking.total_price == 1000
        assert booking.ride.seats_available == 1

    @pytest.mark.asyncio
    async def test_inventory_matches_confirmed_bookings(
        self, db_session, coordinator, driver, make_user, make_ride
    ):
        ride = await make_ride(driver, seats=4)
        for seats in (1, 2):
            p = await make_user()
            await coordinator.create_booking(p.id, ride.id, seats)

        assert ride.seats_total - ride.seats_available == 3
        assert await booked_seats(db_session, ride.id) == 3

    @pytest.mark.asyncio
    async def test_last_seat_then_full(self, coordinator, driver, make_user, make_ride):
        ride = await make_ride(driver, seats=3)
        first, second = await make_user(), await make_user()

        await coordinator.create_booking(first.id, ride.id, 2)
        with pytest.raises(Conflict, match="Not enough seats"):
            await coordinator.create_booking(second.id, ride.id, 2)

        booking = await coordinator.create_booking(second.id, ride.id, 1)
        assert booking.ride.seats_available == 0

    @pytest.mark.asyncio
    async def test_cannot_book_own_ride(self, coordinator, driver, make_ride):
        ride = await make_ride(driver)
        with pytest.raises(Forbidden):
            await coordinator.create_booking(driver.id, ride.id, 1)

    @pytest.mark.asyncio
    async def test_duplicate_booking_is_conflict(self, coordinator, driver, passenger, make_ride):
        ride = await make_ride(driver, seats=4)
        await coordinator.create_booking(passenger.id, ride.id, 1)

        with pytest.raises(Conflict, match="already have a booking"):
            await coordinator.create_booking(passenger.id, ride.id, 1)
        assert ride.seats_available == 3

    @pytest.mark.asyncio
    async def test_can_rebook_after_cancelling(self, coordinator, driver, passenger, make_ride):
        ride = await make_ride(driver, seats=3)
        first = await coordinator.create_booking(passenger.id, ride.id, 1)
        await coordinator.cancel_booking(passenger.id, first.id)

        again = await coordinator.create_booking(passenger.id, ride.id, 2)
        assert again.id != first.id
        assert again.ride.seats_available == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("seats", [0, 5])
    async def test_seat_count_out_of_range(self, coordinator, driver, passenger, make_ride, seats):
        ride = await make_ride(driver)
        with pytest.raises(InvalidArgument):
            await coordinator.create_booking(passenger.id, ride.id, seats)

    @pytest.mark.asyncio
    async def test_unknown_ride(self, coordinator, passenger):
        with pytest.raises(NotFound):
            await coordinator.create_booking(passenger.id, 999, 1)

    @pytest.mark.asyncio
    async def test_inactive_ride_is_conflict(self, coordinator, driver, passenger, make_ride):
        ride = await make_ride(driver, status=RideStatus.CANCELLED)
        with pytest.raises(Conflict, match="no longer available"):
            await coordinator.create_booking(passenger.id, ride.id, 1)

    @pytest.mark.asyncio
    async def test_optional_first_message_goes_to_driver(
        self, db_session, coordinator, driver, passenger, make_ride
    ):
        ride = await make_ride(driver)
        booking = await coordinator.create_booking(
            passenger.id, ride.id, 1, message="  A mund të marr një valixhe?  "
        )

        messages = await MessageRepository(db_session).list_for_booking(booking.id)
        assert len(messages) == 1
        assert messages[0].receiver_id == driver.id
        assert messages[0].content == "A mund të marr një valixhe?"

    @pytest.mark.asyncio
    async def test_notifies_both_sides_with_each_others_phone(
        self, coordinator, notifier, sms, driver, passenger, make_ride
    ):
        ride = await make_ride(driver)
        await coordinator.create_booking(passenger.id, ride.id, 2)

        assert sms.sent == []  # nothing leaves before flush
        assert await notifier.flush() == 2

        to_driver = sms.bodies_for(driver.phone)
        to_passenger = sms.bodies_for(passenger.phone)
        assert "Dritan Leka booked 2 seat(s)" in to_driver[0]
        assert passenger.phone in to_driver[0]
        assert "Booking confirmed" in to_passenger[0]
        assert driver.phone in to_passenger[0]
        assert "1,000 ALL" in to_passenger[0]


# ── CancelBooking ─────────────────────────────────────────────────────


class TestCancelBooking:
    @pytest.mark.asyncio
    async def test_passenger_cancel_releases_seats(
        self, db_session, coordinator, driver, passenger, make_ride
    ):
        ride = await make_ride(driver, seats=3)
        booking = await coordinator.create_booking(passenger.id, ride.id, 2)

        cancelled = await coordinator.cancel_booking(passenger.id, booking.id)

        assert cancelled.status == BookingStatus.CANCELLED
        assert cancelled.cancelled_by == passenger.id
        assert cancelled.cancelled_at is not None
        assert cancelled.ride.seats_available == 3
        assert await booked_seats(db_session, ride.id) == 0

    @pytest.mark.asyncio
    async def test_cancel_twice_is_invalid_state(self, coordinator, driver, passenger, make_ride):
        ride = await make_ride(driver)
        booking = await coordinator.create_booking(passenger.id, ride.id, 1)
        await coordinator.cancel_booking(passenger.id, booking.id)

        with pytest.raises(InvalidState):
            await coordinator.cancel_booking(passenger.id, booking.id)
        assert ride.seats_available == ride.seats_total

    @pytest.mark.asyncio
    async def test_stranger_cannot_cancel(self, coordinator, driver, passenger, make_user, make_ride):
        ride = await make_ride(driver)
        booking = await coordinator.create_booking(passenger.id, ride.id, 1)
        stranger = await make_user("Stranger")

        with pytest.raises(Forbidden):
            await coordinator.cancel_booking(stranger.id, booking.id)

    @pytest.mark.asyncio
    async def test_unknown_booking(self, coordinator, passenger):
        with pytest.raises(NotFound):
            await coordinator.cancel_booking(passenger.id, 404)

    @pytest.mark.asyncio
    async def test_inside_cutoff_is_rejected(self, coordinator, driver, passenger, make_ride):
        ride = await make_ride(driver, departs_in=timedelta(hours=1, minutes=30))
        booking = await coordinator.create_booking(passenger.id, ride.id, 1)

        with pytest.raises(InvalidState, match="2 hours"):
            await coordinator.cancel_booking(passenger.id, booking.id)
        assert booking.status == BookingStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_just_outside_cutoff_is_allowed(self, coordinator, driver, passenger, make_ride):
        ride = await make_ride(driver, departs_in=timedelta(hours=2, minutes=5))
        booking = await coordinator.create_booking(passenger.id, ride.id, 1)

        cancelled = await coordinator.cancel_booking(passenger.id, booking.id)
        assert cancelled.status == BookingStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_passenger_cancel_notifies_both(
        self, coordinator, notifier, sms, driver, passenger, make_ride
    ):
        ride = await make_ride(driver)
        booking = await coordinator.create_booking(passenger.id, ride.id, 1)
        await notifier.flush()
        sms.sent.clear()

        await coordinator.cancel_booking(passenger.id, booking.id)
        await notifier.flush()

        assert "cancelled 1 seat(s)" in sms.bodies_for(driver.phone)[0]
        assert "has been cancelled" in sms.bodies_for(passenger.phone)[0]

    @pytest.mark.asyncio
    async def test_driver_cancelling_a_booking_withdraws_the_ride(
        self, coordinator, notifier, sms, driver, make_user, make_ride
    ):
        ride = await make_ride(driver, seats=4)
        a, b = await make_user("Anisa"), await make_user("Klajdi")
        booking_a = await coordinator.create_booking(a.id, ride.id, 1)
        booking_b = await coordinator.create_booking(b.id, ride.id, 2)
        await notifier.flush()
        sms.sent.clear()

        result = await coordinator.cancel_booking(driver.id, booking_a.id)

        assert result.status == BookingStatus.CANCELLED
        assert result.cancelled_by == driver.id
        assert booking_b.status == BookingStatus.CANCELLED
        assert ride.status == RideStatus.CANCELLED
        await notifier.flush()
        assert "Ride cancelled" in sms.bodies_for(a.phone)[0]
        assert "Ride cancelled" in sms.bodies_for(b.phone)[0]


# ── CancelRide / CompleteRide ─────────────────────────────────────────


class TestRideLifecycle:
    @pytest.mark.asyncio
    async def test_cancel_ride_cascades(
        self, db_session, coordinator, driver, make_user, make_ride
    ):
        ride = await make_ride(driver, seats=4)
        bookings = []
        for seats in (1, 2):
            p = await make_user()
            bookings.append(await coordinator.create_booking(p.id, ride.id, seats))

        result = await coordinator.cancel_ride(driver.id, ride.id)

        assert result.status == RideStatus.CANCELLED
        assert result.cancelled_at is not None
        for b in bookings:
            assert b.status == BookingStatus.CANCELLED
            assert b.cancelled_by == driver.id
        assert await booked_seats(db_session, ride.id) == 0

    @pytest.mark.asyncio
    async def test_cancel_ride_leaves_earlier_cancellations_alone(
        self, coordinator, driver, make_user, make_ride
    ):
        ride = await make_ride(driver, seats=4)
        early = await make_user()
        b = await coordinator.create_booking(early.id, ride.id, 1)
        await coordinator.cancel_booking(early.id, b.id)

        await coordinator.cancel_ride(driver.id, ride.id)
        assert b.cancelled_by == early.id

    @pytest.mark.asyncio
    async def test_cancel_ride_twice(self, coordinator, driver, make_ride):
        ride = await make_ride(driver)
        await coordinator.cancel_ride(driver.id, ride.id)
        with pytest.raises(InvalidState):
            await coordinator.cancel_ride(driver.id, ride.id)

    @pytest.mark.asyncio
    async def test_only_owner_cancels_ride(self, coordinator, driver, passenger, make_ride):
        ride = await make_ride(driver)
        with pytest.raises(Forbidden):
            await coordinator.cancel_ride(passenger.id, ride.id)

    @pytest.mark.asyncio
    async def test_complete_before_departure_rejected(self, coordinator, driver, make_ride):
        ride = await make_ride(driver)
        with pytest.raises(InvalidState, match="not departed"):
            await coordinator.complete_ride(driver.id, ride.id)

    @pytest.mark.asyncio
    async def test_complete_after_departure(
        self, db_session, driver, passenger, make_ride, notifier, sms
    ):
        ride = await make_ride(driver, departs_in=timedelta(hours=3))
        booking = await BookingCoordinator(db_session, notifier).create_booking(
            passenger.id, ride.id, 1
        )
        later = BookingCoordinator(
            db_session, notifier, clock=lambda: utc_now() + timedelta(hours=5)
        )

        result = await later.complete_ride(driver.id, ride.id)

        assert result.status == RideStatus.COMPLETED
        assert result.completed_at is not None
        assert booking.status == BookingStatus.COMPLETED
        await db_session.refresh(driver)
        await db_session.refresh(passenger)
        assert driver.total_rides == 1
        assert passenger.total_rides == 1
        await notifier.flush()
        assert "Rate your trip" in sms.bodies_for(passenger.phone)[-1]

    @pytest.mark.asyncio
    async def test_completed_ride_cannot_be_cancelled(self, db_session, driver, make_ride):
        ride = await make_ride(driver, departs_in=-timedelta(hours=1))
        coordinator = BookingCoordinator(db_session, Notifier())
        await coordinator.complete_ride(driver.id, ride.id)

        with pytest.raises(InvalidState):
            await coordinator.cancel_ride(driver.id, ride.id)


# ── ListBookings ──────────────────────────────────────────────────────


class TestListBookings:
    @pytest.mark.asyncio
    async def test_passenger_and_driver_views(self, coordinator, driver, passenger, make_ride):
        ride = await make_ride(driver, seats=3)
        other = await make_ride(driver, destination="VLO")
        keep = await coordinator.create_booking(passenger.id, ride.id, 1)
        gone = await coordinator.create_booking(passenger.id, other.id, 1)
        await coordinator.cancel_booking(passenger.id, gone.id)

        mine = await coordinator.list_bookings(passenger.id)
        assert {b.id for b in mine} == {keep.id, gone.id}

        confirmed = await coordinator.list_bookings(passenger.id, status="confirmed")
        assert [b.id for b in confirmed] == [keep.id]

        as_driver = await coordinator.list_bookings(driver.id, role="driver", status="all")
        assert {b.id for b in as_driver} == {keep.id, gone.id}

    @pytest.mark.asyncio
    async def test_unknown_status_filter(self, coordinator, passenger):
        with pytest.raises(InvalidArgument):
            await coordinator.list_bookings(passenger.id, status="pending")


# ── Notifications are best effort ─────────────────────────────────────


class TestNotifier:
    @pytest.mark.asyncio
    async def test_vendor_failure_is_swallowed(self, make_user, sms):
        broken = await make_user("Broken Phone")
        fine = await make_user("Fine Phone")
        sms.fail_for.add(broken.phone)
        notifier = Notifier(gateway=sms)
        notifier.notify(broken, "hello")
        notifier.notify(fine, "hello")

        assert await notifier.flush() == 1
        assert sms.bodies_for(fine.phone) == ["hello"]

    @pytest.mark.asyncio
    async def test_user_without_phone_is_skipped(self, make_user, sms):
        emailer = await make_user("Email Only", with_phone=False)
        notifier = Notifier(gateway=sms)
        notifier.notify(emailer, "hello")

        assert await notifier.flush() == 0
        assert sms.sent == []

    @pytest.mark.asyncio
    async def test_contact_placeholder_without_contact(self, make_user, sms):
        user = await make_user()
        notifier = Notifier(gateway=sms)
        notifier.notify(user, "Reach {contact}")
        await notifier.flush()
        assert sms.bodies_for(user.phone) == ["Reach via in-app messages"]

    @pytest.mark.asyncio
    async def test_braces_in_names_are_left_alone(self, make_user, sms):
        user = await make_user("{weird}")
        notifier = Notifier(gateway=sms)
        notifier.notify(user, "Hi {weird} {contact}")
        await notifier.flush()
        assert sms.bodies_for(user.phone) == ["Hi {weird} via in-app messages"]


# ── Stale reads ───────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def file_factory(tmp_path):
    """Two sessions on separate connections need a file-backed database."""
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(eng, class_=AsyncSession, expire_on_commit=False)
    await eng.dispose()


def _user(name, phone, is_driver=False):
    return UserModel(
        name=name,
        city="TIA",
        phone_hash=hash_phone(phone),
        phone_number_encrypted=encrypt_phone(phone),
        is_driver=is_driver,
    )


@pytest.mark.asyncio
async def test_stale_snapshot_cannot_oversubscribe(file_factory):
    async with file_factory() as setup:
        driver = _user("Driver", "+355690000001", is_driver=True)
        first = _user("First", "+355690000002")
        second = _user("Second", "+355690000003")
        setup.add_all([driver, first, second])
        await setup.flush()
        ride = RideModel(
            driver_id=driver.id,
            origin_city="TIA",
            destination_city="DUR",
            departure_time=utc_now() + timedelta(days=1),
            pickup_point="Sheshi Skënderbej",
            seats_total=1,
            seats_available=1,
            price_per_seat=400,
        )
        setup.add(ride)
        await setup.commit()

    async with file_factory() as slow, file_factory() as fast:
        # The slow request has already seen one free seat
        stale = await slow.get(RideModel, ride.id)
        assert stale.seats_available == 1

        await BookingCoordinator(fast, Notifier()).create_booking(first.id, ride.id, 1)
        await fast.commit()

        with pytest.raises(Conflict, match="Not enough seats"):
            await BookingCoordinator(slow, Notifier()).create_booking(
                second.id, ride.id, 1
            )
        await slow.rollback()

    async with file_factory() as check:
        fresh = await check.get(RideModel, ride.id)
        assert fresh.seats_available == 0
        assert await BookingRepository(check).booked_seats(ride.id) == 1


async def _seed_ride(factory, seats_total):
    async with factory() as setup:
        driver = _user("Driver", "+355690000011", is_driver=True)
        passenger = _user("Passenger", "+355690000012")
        setup.add_all([driver, passenger])
        await setup.flush()
        ride = RideModel(
            driver_id=driver.id,
            origin_city="TIA",
            destination_city="VLO",
            departure_time=utc_now() + timedelta(days=2),
            pickup_point="Pallati me Shigjeta",
            seats_total=seats_total,
            seats_available=seats_total,
            price_per_seat=1000,
        )
        setup.add(ride)
        await setup.commit()
        return driver, passenger, ride


@pytest.mark.asyncio
async def test_resize_counts_booking_made_after_editor_read(file_factory):
    driver, passenger, ride = await _seed_ride(file_factory, seats_total=2)

    async with file_factory() as editor, file_factory() as booker:
        stale = await editor.get(RideModel, ride.id)
        assert stale.seats_available == 2

        await BookingCoordinator(booker, Notifier()).create_booking(passenger.id, ride.id, 1)
        await booker.commit()

        updated = await RideService(editor).update(driver.id, ride.id, seats_total=3)
        await editor.commit()
        assert (updated.seats_total, updated.seats_available) == (3, 2)

    async with file_factory() as check:
        fresh = await check.get(RideModel, ride.id)
        booked = await BookingRepository(check).booked_seats(ride.id)
        assert booked == 1
        assert fresh.seats_total - fresh.seats_available == booked


@pytest.mark.asyncio
async def test_shrink_below_booking_made_after_editor_read(file_factory):
    driver, passenger, ride = await _seed_ride(file_factory, seats_total=3)

    async with file_factory() as editor, file_factory() as booker:
        stale = await editor.get(RideModel, ride.id)
        assert stale.seats_available == 3

        await BookingCoordinator(booker, Notifier()).create_booking(passenger.id, ride.id, 2)
        await booker.commit()

        with pytest.raises(InvalidArgument, match="below booked"):
            await RideService(editor).update(driver.id, ride.id, seats_total=1)
        await editor.rollback()

    async with file_factory() as check:
        fresh = await check.get(RideModel, ride.id)
        assert (fresh.seats_total, fresh.seats_available) == (3, 1)
