"""Ride publishing, search and editing."""

from __future__ import annotations

import math
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from rideshare.config import settings
from rideshare.domain.cities import is_known_city
from rideshare.domain.entities import as_utc, utc_now
from rideshare.domain.enums import RideStatus
from rideshare.domain.errors import Forbidden, InvalidArgument, InvalidState, NotFound
from rideshare.domain.validation import validate_price
from rideshare.infrastructure.models import RideModel, UserModel
from rideshare.infrastructure.repositories import RideRepository

SORT_OPTIONS = {"departure", "price", "rating"}
TIME_PERIODS = {"morning", "afternoon", "evening"}
MAX_SEATS_TOTAL = 8
UPDATABLE_FIELDS = (
    "departure_time",
    "pickup_point",
    "seats_total",
    "price_per_seat",
    "stops",
    "luggage_space",
    "smoking_allowed",
)


class RideService:
    def __init__(self, session: AsyncSession, clock: Callable = utc_now):
        self.session = session
        self.rides = RideRepository(session)
        self.clock = clock

    async def search(
        self,
        origin: str,
        destination: str,
        on_date: Optional[date] = None,
        time_period: Optional[str] = None,
        sort: str = "departure",
        page: int = 1,
        limit: int = 20,
    ) -> dict[str, Any]:
        if not origin or not destination:
            raise InvalidArgument("Origin and destination are required")
        if sort not in SORT_OPTIONS:
            raise InvalidArgument(f"sort must be one of {sorted(SORT_OPTIONS)}")
        if time_period and time_period not in TIME_PERIODS:
            raise InvalidArgument(f"time_period must be one of {sorted(TIME_PERIODS)}")
        page = max(page, 1)
        limit = max(1, min(limit, settings.search_page_size))

        day_start = day_end = None
        if on_date is not None:
            day_start = datetime.combine(on_date, time.min, tzinfo=timezone.utc)
            day_end = day_start + timedelta(days=1)

        rides, total = await self.rides.search(
            origin=origin.upper(),
            destination=destination.upper(),
            now=self.clock(),
            day_start=day_start,
            day_end=day_end,
            time_period=time_period,
            sort=sort,
            offset=(page - 1) * limit,
            limit=limit,
        )
        return {
            "rides": rides,
            "total": total,
            "page": page,
            "pages": math.ceil(total / limit) if total else 0,
        }

    async def get(self, ride_id: int) -> RideModel:
        ride = await self.rides.get_by_id(ride_id)
        if ride is None:
            raise NotFound("Ride not found")
        return ride

    async def create(self, driver: UserModel, **fields: Any) -> RideModel:
        if not driver.is_driver:
            raise Forbidden("Only drivers can publish rides; update your profile first")
        self._validate(fields)
        if fields["origin_city"] == fields["destination_city"]:
            raise InvalidArgument("Origin and destination must be different")
        seats_total = fields["seats_total"]
        ride = RideModel(
            driver_id=driver.id,
            origin_city=fields["origin_city"],
            destination_city=fields["destination_city"],
            departure_time=fields["departure_time"],
            pickup_point=fields["pickup_point"],
            stops=fields.get("stops") or [],
            seats_total=seats_total,
            seats_available=seats_total,
            price_per_seat=fields["price_per_seat"],
            luggage_space=bool(fields.get("luggage_space")),
            smoking_allowed=bool(fields.get("smoking_allowed")),
            is_recurring=bool(fields.get("is_recurring")),
            recurrence_pattern=fields.get("recurrence_pattern"),
            status=RideStatus.ACTIVE,
            created_at=self.clock(),
        )
        await self.rides.create(ride)
        await self.rides.refresh(ride)
        return ride

    async def update(self, driver_id: int, ride_id: int, **changes: Any) -> RideModel:
        ride = await self.get(ride_id)
        if ride.driver_id != driver_id:
            raise Forbidden("You can only update your own rides")
        if ride.status != RideStatus.ACTIVE:
            raise InvalidState("Only active rides can be edited")
        updates = {
            k: v for k, v in changes.items() if k in UPDATABLE_FIELDS and v is not None
        }
        self._validate(updates)

        seats_total = updates.pop("seats_total", None)
        if seats_total is not None and not await self.rides.resize_seats(
            ride.id, seats_total
        ):
            await self.rides.refresh(ride)
            if ride.status != RideStatus.ACTIVE:
                raise InvalidState("Only active rides can be edited")
            raise InvalidArgument("Cannot reduce seats below booked amount")

        for key, value in updates.items():
            setattr(ride, key, value)
        await self.session.flush()
        await self.rides.refresh(ride)
        return ride

    async def list_for_driver(self, driver_id: int) -> list[RideModel]:
        return await self.rides.list_for_driver(driver_id)

    def _validate(self, fields: dict[str, Any]) -> None:
        for key in ("origin_city", "destination_city"):
            if key in fields:
                fields[key] = (fields[key] or "").upper()
                if not is_known_city(fields[key]):
                    raise InvalidArgument(f"Unknown city code: {fields[key]}")
        if "departure_time" in fields:
            departure = as_utc(fields["departure_time"])
            if departure <= self.clock():
                raise InvalidArgument("Departure time must be in the future")
            fields["departure_time"] = departure
        if "seats_total" in fields and not 1 <= fields["seats_total"] <= MAX_SEATS_TOTAL:
            raise InvalidArgument(f"seats_total must be between 1 and {MAX_SEATS_TOTAL}")
        if "price_per_seat" in fields and not validate_price(fields["price_per_seat"]):
            raise InvalidArgument("price_per_seat must be between 1 and 100000")
        if "pickup_point" in fields and not (fields["pickup_point"] or "").strip():
            raise InvalidArgument("pickup_point is required")
