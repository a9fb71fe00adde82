"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Seat counters and rating visibility are
only ever changed through conditional ``UPDATE ... WHERE`` statements so
that concurrent requests cannot lose updates.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import extract, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import BookingModel, MessageModel, RatingModel, RideModel, UserModel
from rideshare.domain.enums import BookingStatus, RideStatus

TIME_PERIOD_HOURS = {
    "morning": (5, 12),
    "afternoon": (12, 18),
}


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, user: UserModel) -> UserModel:
        self.session.add(user)
        await self.session.flush()
        return user

    async def get_by_id(self, user_id: int) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)

    async def get_by_phone_hash(self, phone_hash: str) -> Optional[UserModel]:
        result = await self.session.execute(
            select(UserModel).where(UserModel.phone_hash == phone_hash)
        )
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[UserModel]:
        result = await self.session.execute(
            select(UserModel).where(func.lower(UserModel.email) == email.lower())
        )
        return result.scalar_one_or_none()

    async def set_rating(self, user_id: int, rating: float) -> None:
        await self.session.execute(
            update(UserModel).where(UserModel.id == user_id).values(rating=rating)
        )

    async def increment_total_rides(self, user_ids: Iterable[int]) -> None:
        ids = list(user_ids)
        if not ids:
            return
        await self.session.execute(
            update(UserModel)
            .where(UserModel.id.in_(ids))
            .values(total_rides=UserModel.total_rides + 1)
        )


class RideRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, ride: RideModel) -> RideModel:
        self.session.add(ride)
        await self.session.flush()
        return ride

    async def get_by_id(self, ride_id: int) -> Optional[RideModel]:
        return await self.session.get(RideModel, ride_id)

    async def get_for_update(self, ride_id: int) -> Optional[RideModel]:
        """Load the ride holding its row lock until the transaction ends."""
        result = await self.session.execute(
            select(RideModel)
            .where(RideModel.id == ride_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def refresh(self, ride: RideModel) -> RideModel:
        await self.session.refresh(ride)
        return ride

    async def reserve_seats(self, ride_id: int, seats: int) -> bool:
        """Atomically take *seats* from an active ride.

        Single conditional UPDATE: returns False when the ride is not active
        or has fewer than *seats* available, in which case nothing changed.
        """
        result = await self.session.execute(
            update(RideModel)
            .where(
                RideModel.id == ride_id,
                RideModel.status == RideStatus.ACTIVE,
                RideModel.seats_available >= seats,
            )
            .values(seats_available=RideModel.seats_available - seats)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def release_seats(self, ride_id: int, seats: int) -> bool:
        """Atomically give *seats* back, never exceeding ``seats_total``."""
        result = await self.session.execute(
            update(RideModel)
            .where(
                RideModel.id == ride_id,
                RideModel.seats_available + seats <= RideModel.seats_total,
            )
            .values(seats_available=RideModel.seats_available + seats)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def resize_seats(self, ride_id: int, seats_total: int) -> bool:
        """Change capacity and shift ``seats_available`` by the same delta.

        Booked seats are taken from the row itself, so a booking committed
        concurrently is never lost.  False when the ride is not active or
        the new capacity is below the seats already booked.
        """
        result = await self.session.execute(
            update(RideModel)
            .where(
                RideModel.id == ride_id,
                RideModel.status == RideStatus.ACTIVE,
                RideModel.seats_total - RideModel.seats_available <= seats_total,
            )
            .values(
                seats_total=seats_total,
                seats_available=RideModel.seats_available
                + (seats_total - RideModel.seats_total),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def transition_status(
        self, ride_id: int, current: RideStatus, new: RideStatus, **values
    ) -> bool:
        """Compare-and-swap on status; False if someone else moved it first."""
        result = await self.session.execute(
            update(RideModel)
            .where(RideModel.id == ride_id, RideModel.status == current)
            .values(status=new, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def search(
        self,
        *,
        origin: str,
        destination: str,
        now: datetime,
        day_start: Optional[datetime] = None,
        day_end: Optional[datetime] = None,
        time_period: Optional[str] = None,
        sort: str = "departure",
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[RideModel], int]:
        conditions = [
            RideModel.origin_city == origin,
            RideModel.destination_city == destination,
            RideModel.status == RideStatus.ACTIVE,
            RideModel.departure_time > now,
            RideModel.seats_available > 0,
        ]
        if day_start is not None and day_end is not None:
            conditions.append(RideModel.departure_time >= day_start)
            conditions.append(RideModel.departure_time < day_end)
        if time_period:
            hour = extract("hour", RideModel.departure_time)
            if time_period in TIME_PERIOD_HOURS:
                lo, hi = TIME_PERIOD_HOURS[time_period]
                conditions.append(hour >= lo)
                conditions.append(hour < hi)
            else:
                conditions.append(or_(hour >= 18, hour < 5))

        total = (
            await self.session.execute(
                select(func.count()).select_from(RideModel).where(*conditions)
            )
        ).scalar() or 0

        query = select(RideModel).where(*conditions)
        if sort == "price":
            query = query.order_by(
                RideModel.price_per_seat.asc(), RideModel.departure_time.asc()
            )
        elif sort == "rating":
            query = query.join(UserModel, UserModel.id == RideModel.driver_id).order_by(
                UserModel.rating.desc(), RideModel.departure_time.asc()
            )
        else:
            query = query.order_by(RideModel.departure_time.asc())

        result = await self.session.execute(query.offset(offset).limit(limit))
        return list(result.scalars().all()), total

    async def list_for_driver(self, driver_id: int) -> list[RideModel]:
        result = await self.session.execute(
            select(RideModel)
            .where(RideModel.driver_id == driver_id)
            .order_by(RideModel.departure_time.desc())
        )
        return list(result.scalars().all())


class BookingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, booking: BookingModel) -> BookingModel:
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def get_by_id(self, booking_id: int) -> Optional[BookingModel]:
        return await self.session.get(BookingModel, booking_id)

    async def get_confirmed(
        self, ride_id: int, passenger_id: int
    ) -> Optional[BookingModel]:
        result = await self.session.execute(
            select(BookingModel).where(
                BookingModel.ride_id == ride_id,
                BookingModel.passenger_id == passenger_id,
                BookingModel.status == BookingStatus.CONFIRMED,
            )
        )
        return result.scalar_one_or_none()

    async def has_any(self, ride_id: int, passenger_id: int) -> bool:
        result = await self.session.execute(
            select(func.count())
            .select_from(BookingModel)
            .where(
                BookingModel.ride_id == ride_id,
                BookingModel.passenger_id == passenger_id,
            )
        )
        return (result.scalar() or 0) > 0

    async def list_confirmed_for_ride(self, ride_id: int) -> list[BookingModel]:
        result = await self.session.execute(
            select(BookingModel)
            .where(
                BookingModel.ride_id == ride_id,
                BookingModel.status == BookingStatus.CONFIRMED,
            )
            .order_by(BookingModel.created_at)
        )
        return list(result.scalars().all())

    async def booked_seats(self, ride_id: int) -> int:
        result = await self.session.execute(
            select(func.coalesce(func.sum(BookingModel.seats_count), 0)).where(
                BookingModel.ride_id == ride_id,
                BookingModel.status == BookingStatus.CONFIRMED,
            )
        )
        return int(result.scalar() or 0)

    async def cancel(
        self, booking_id: int, cancelled_by: int, cancelled_at: datetime
    ) -> bool:
        """Compare-and-swap CONFIRMED -> CANCELLED for one booking."""
        result = await self.session.execute(
            update(BookingModel)
            .where(
                BookingModel.id == booking_id,
                BookingModel.status == BookingStatus.CONFIRMED,
            )
            .values(
                status=BookingStatus.CANCELLED,
                cancelled_at=cancelled_at,
                cancelled_by=cancelled_by,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def close_confirmed_for_ride(
        self,
        ride_id: int,
        new_status: BookingStatus,
        **values,
    ) -> int:
        """Move every confirmed booking on a ride to *new_status*."""
        result = await self.session.execute(
            update(BookingModel)
            .where(
                BookingModel.ride_id == ride_id,
                BookingModel.status == BookingStatus.CONFIRMED,
            )
            .values(status=new_status, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def list_for_passenger(
        self, passenger_id: int, status: Optional[BookingStatus] = None
    ) -> list[BookingModel]:
        query = select(BookingModel).where(BookingModel.passenger_id == passenger_id)
        if status is not None:
            query = query.where(BookingModel.status == status)
        result = await self.session.execute(
            query.order_by(BookingModel.created_at.desc(), BookingModel.id.desc())
        )
        return list(result.scalars().all())

    async def list_for_driver(
        self, driver_id: int, status: Optional[BookingStatus] = None
    ) -> list[BookingModel]:
        query = (
            select(BookingModel)
            .join(RideModel, RideModel.id == BookingModel.ride_id)
            .where(RideModel.driver_id == driver_id)
        )
        if status is not None:
            query = query.where(BookingModel.status == status)
        result = await self.session.execute(
            query.order_by(BookingModel.created_at.desc(), BookingModel.id.desc())
        )
        return list(result.scalars().all())


class MessageRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, message: MessageModel) -> MessageModel:
        self.session.add(message)
        await self.session.flush()
        return message

    async def list_for_booking(self, booking_id: int) -> list[MessageModel]:
        result = await self.session.execute(
            select(MessageModel)
            .where(MessageModel.booking_id == booking_id)
            .order_by(MessageModel.created_at.asc(), MessageModel.id.asc())
        )
        return list(result.scalars().all())


class RatingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, rating: RatingModel) -> RatingModel:
        self.session.add(rating)
        await self.session.flush()
        return rating

    async def get_triple(
        self, ride_id: int, rater_id: int, rated_user_id: int
    ) -> Optional[RatingModel]:
        result = await self.session.execute(
            select(RatingModel).where(
                RatingModel.ride_id == ride_id,
                RatingModel.rater_id == rater_id,
                RatingModel.rated_user_id == rated_user_id,
            )
        )
        return result.scalar_one_or_none()

    async def reveal(self, rating_ids: Iterable[int]) -> int:
        """Flip a set of ratings visible in one statement."""
        ids = list(rating_ids)
        result = await self.session.execute(
            update(RatingModel)
            .where(RatingModel.id.in_(ids), RatingModel.is_visible.is_(False))
            .values(is_visible=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def reveal_older_than(self, cutoff: datetime) -> list[int]:
        """Reveal unpaired ratings created before *cutoff*.

        Returns the ids of the users whose visible set changed.
        """
        stale = await self.session.execute(
            select(RatingModel.id, RatingModel.rated_user_id).where(
                RatingModel.is_visible.is_(False),
                RatingModel.created_at < cutoff,
            )
        )
        rows = stale.all()
        if not rows:
            return []
        await self.reveal(row.id for row in rows)
        return sorted({row.rated_user_id for row in rows})

    async def visible_scores(self, user_id: int) -> list[int]:
        result = await self.session.execute(
            select(RatingModel.rating).where(
                RatingModel.rated_user_id == user_id,
                RatingModel.is_visible.is_(True),
            )
        )
        return list(result.scalars().all())

    async def list_visible(self, user_id: int, limit: int = 50) -> list[RatingModel]:
        result = await self.session.execute(
            select(RatingModel)
            .where(
                RatingModel.rated_user_id == user_id,
                RatingModel.is_visible.is_(True),
            )
            .order_by(RatingModel.created_at.desc(), RatingModel.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
