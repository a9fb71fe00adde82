"""
User endpoints
==============

GET /api/v1/users/profile    -- my full profile
PUT /api/v1/users/profile    -- edit my profile / become a driver
GET /api/v1/users/{user_id}  -- public profile with visible ratings
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from rideshare.api.dependencies import get_current_user, get_db
from rideshare.api.middleware import READ_LIMIT, WRITE_LIMIT, limiter
from rideshare.api.schemas import (
    ProfileUpdateRequest,
    PublicProfileResponse,
    RatingResponse,
    RideResponse,
    UserProfile,
    UserPublic,
)
from rideshare.domain.enums import RideStatus
from rideshare.infrastructure.models import UserModel
from rideshare.services.ratings import RatingAggregator
from rideshare.services.rides import RideService
from rideshare.services.users import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/profile", response_model=UserProfile, summary="My profile")
@limiter.limit(READ_LIMIT)
async def get_profile(
    request: Request,
    user: UserModel = Depends(get_current_user),
):
    return user


@router.put("/profile", response_model=UserProfile, summary="Update my profile")
@limiter.limit(WRITE_LIMIT)
async def update_profile(
    request: Request,
    body: ProfileUpdateRequest,
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await UserService(db).update_profile(user, **body.model_dump(exclude_unset=True))


@router.get(
    "/{user_id}",
    response_model=PublicProfileResponse,
    summary="Public profile",
)
@limiter.limit(READ_LIMIT)
async def get_user(
    request: Request,
    user_id: int,
    db: AsyncSession = Depends(get_db),
):
    user = await UserService(db).get(user_id)
    ratings = await RatingAggregator(db).list_visible(user_id)
    rides = []
    if user.is_driver:
        rides = [
            r
            for r in await RideService(db).list_for_driver(user_id)
            if r.status == RideStatus.ACTIVE
        ]
    return PublicProfileResponse(
        user=UserPublic.model_validate(user),
        ratings=[RatingResponse.model_validate(r) for r in ratings],
        rides=[RideResponse.model_validate(r) for r in rides],
    )
