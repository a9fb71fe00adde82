"""Profile reads and edits."""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from rideshare.domain.cities import is_known_city
from rideshare.domain.errors import InvalidArgument, NotFound
from rideshare.infrastructure.models import UserModel
from rideshare.infrastructure.repositories import UserRepository

PROFILE_FIELDS = (
    "name",
    "city",
    "bio",
    "photo_url",
    "is_driver",
    "car_model",
    "car_color",
    "driving_years",
)


class UserService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.users = UserRepository(session)

    async def get(self, user_id: int) -> UserModel:
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    async def update_profile(self, user: UserModel, **changes: Any) -> UserModel:
        updates = {
            k: v for k, v in changes.items() if k in PROFILE_FIELDS and v is not None
        }

        if "name" in updates:
            updates["name"] = updates["name"].strip()
            if not 2 <= len(updates["name"]) <= 100:
                raise InvalidArgument("Name must be between 2 and 100 characters")
        if "bio" in updates and len(updates["bio"]) > 500:
            raise InvalidArgument("Bio cannot exceed 500 characters")
        if "driving_years" in updates and updates["driving_years"] < 0:
            raise InvalidArgument("Driving years cannot be negative")
        if "city" in updates:
            updates["city"] = updates["city"].upper()
            if not is_known_city(updates["city"]):
                raise InvalidArgument(f"Unknown city code: {updates['city']}")
        if updates.get("is_driver") is True:
            car_model = updates.get("car_model", user.car_model)
            car_color = updates.get("car_color", user.car_color)
            if not car_model or not car_color:
                raise InvalidArgument("Car model and color are required for drivers")

        for key, value in updates.items():
            setattr(user, key, value)
        await self.session.flush()
        return user
