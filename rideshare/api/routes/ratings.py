"""
Rating endpoints
================

GET  /api/v1/ratings?user_id=  -- visible ratings received by a user
POST /api/v1/ratings           -- rate the other party of a ride
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from rideshare.api.dependencies import get_current_user, get_db
from rideshare.api.middleware import READ_LIMIT, WRITE_LIMIT, limiter
from rideshare.api.schemas import RatingCreateRequest, RatingResponse
from rideshare.infrastructure.models import UserModel
from rideshare.services.ratings import RatingAggregator

router = APIRouter(prefix="/ratings", tags=["ratings"])


@router.get("", response_model=list[RatingResponse], summary="List visible ratings")
@limiter.limit(READ_LIMIT)
async def list_ratings(
    request: Request,
    user_id: int = Query(...),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    return await RatingAggregator(db).list_visible(user_id, limit)


@router.post(
    "",
    status_code=201,
    response_model=RatingResponse,
    summary="Submit a rating",
    description=(
        "Ratings stay hidden until the other participant rates back, or "
        "until the reveal delay passes."
    ),
)
@limiter.limit(WRITE_LIMIT)
async def submit_rating(
    request: Request,
    body: RatingCreateRequest,
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await RatingAggregator(db).submit_rating(
        user.id, body.ride_id, body.rated_user_id, body.rating, body.comment
    )
