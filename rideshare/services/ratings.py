"""
Rating aggregator.

Ratings are blind: each one is stored invisible and only revealed when
the other participant rates back (both flip in one UPDATE), or by the
rating-reveal worker once it has waited ``rating_reveal_after_days``.
Submissions for one ride are serialised on the ride row, so a pair sent
at the same moment still finds each other.
Whenever the visible set of a user changes, their ``users.rating`` is
recomputed from scratch as the mean of visible scores.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Callable, Iterable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rideshare.config import settings
from rideshare.domain.entities import average_rating, has_departed, utc_now
from rideshare.domain.enums import RideStatus
from rideshare.domain.errors import Conflict, Forbidden, InvalidArgument, NotFound
from rideshare.infrastructure.models import RatingModel
from rideshare.infrastructure.repositories import (
    BookingRepository,
    RatingRepository,
    RideRepository,
    UserRepository,
)

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 500
DEFAULT_RATING = 5.0


class RatingAggregator:
    def __init__(self, session: AsyncSession, clock: Callable = utc_now):
        self.session = session
        self.ratings = RatingRepository(session)
        self.rides = RideRepository(session)
        self.bookings = BookingRepository(session)
        self.users = UserRepository(session)
        self.clock = clock

    async def submit_rating(
        self,
        rater_id: int,
        ride_id: int,
        rated_user_id: int,
        score: int,
        comment: Optional[str] = None,
    ) -> RatingModel:
        if not 1 <= score <= 5:
            raise InvalidArgument("Rating must be between 1 and 5")
        if comment and len(comment) > MAX_COMMENT_LENGTH:
            raise InvalidArgument("Comment cannot exceed 500 characters")
        if rated_user_id == rater_id:
            raise InvalidArgument("You cannot rate yourself")

        # Row lock: the two sides of a ride rate one after the other, so the
        # second always sees the first and reveals both
        ride = await self.rides.get_for_update(ride_id)
        if ride is None:
            raise NotFound("Ride not found")
        if not await self._participated(ride.driver_id, ride_id, rater_id):
            raise Forbidden("You can only rate users from rides you participated in")
        if not await self._participated(ride.driver_id, ride_id, rated_user_id):
            raise InvalidArgument("Rated user was not part of this ride")
        if ride.status != RideStatus.COMPLETED and not has_departed(
            ride.departure_time, self.clock()
        ):
            raise InvalidArgument("You can only rate after the ride is completed")
        if await self.ratings.get_triple(ride_id, rater_id, rated_user_id):
            raise Conflict("You have already rated this user for this ride")

        rating = RatingModel(
            ride_id=ride_id,
            rater_id=rater_id,
            rated_user_id=rated_user_id,
            rating=score,
            comment=comment or None,
            is_visible=False,
            created_at=self.clock(),
        )
        try:
            await self.ratings.create(rating)
        except IntegrityError as exc:
            raise Conflict("You have already rated this user for this ride") from exc
        await self.session.refresh(rating)

        counterpart = await self.ratings.get_triple(ride_id, rated_user_id, rater_id)
        if counterpart is not None:
            await self.ratings.reveal([rating.id, counterpart.id])
            await self.session.refresh(rating)
            await self.session.refresh(counterpart)
            await self.recompute([rated_user_id, rater_id])
            logger.info(
                "Ratings %s and %s on ride %s revealed", rating.id, counterpart.id, ride_id
            )
        return rating

    async def _participated(self, driver_id: int, ride_id: int, user_id: int) -> bool:
        return driver_id == user_id or await self.bookings.has_any(ride_id, user_id)

    async def recompute(self, user_ids: Iterable[int]) -> None:
        for user_id in user_ids:
            scores = await self.ratings.visible_scores(user_id)
            value = average_rating(scores)
            await self.users.set_rating(
                user_id, DEFAULT_RATING if value is None else value
            )

    async def reveal_stale(self, after_days: Optional[int] = None) -> list[int]:
        """Reveal one-sided ratings older than *after_days*.

        Returns the ids of users whose average was recomputed.
        """
        days = settings.rating_reveal_after_days if after_days is None else after_days
        cutoff = self.clock() - timedelta(days=days)
        user_ids = await self.ratings.reveal_older_than(cutoff)
        await self.recompute(user_ids)
        return user_ids

    async def list_visible(self, user_id: int, limit: int = 50) -> list[RatingModel]:
        return await self.ratings.list_visible(user_id, limit)
