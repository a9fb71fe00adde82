"""
Ride endpoints
==============

GET    /api/v1/rides                  -- search upcoming rides between two cities
POST   /api/v1/rides                  -- publish a ride (drivers only)
GET    /api/v1/rides/mine             -- rides published by the current driver
GET    /api/v1/rides/{ride_id}        -- ride details with the driver's profile
PUT    /api/v1/rides/{ride_id}        -- edit an active ride
DELETE /api/v1/rides/{ride_id}        -- cancel a ride and all its bookings
POST   /api/v1/rides/{ride_id}/complete -- mark a departed ride completed
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from rideshare.api.dependencies import get_current_user, get_db, get_notifier
from rideshare.api.middleware import READ_LIMIT, WRITE_LIMIT, limiter
from rideshare.api.schemas import (
    RideCreateRequest,
    RideResponse,
    RideUpdateRequest,
    SearchResponse,
)
from rideshare.infrastructure.models import UserModel
from rideshare.services.bookings import BookingCoordinator
from rideshare.services.notifications import Notifier
from rideshare.services.rides import RideService

router = APIRouter(prefix="/rides", tags=["rides"])


@router.get("", response_model=SearchResponse, summary="Search rides")
@limiter.limit(READ_LIMIT)
async def search_rides(
    request: Request,
    origin: str = Query(..., min_length=1, description="Origin city code"),
    destination: str = Query(..., min_length=1, description="Destination city code"),
    on_date: Optional[date] = Query(None, alias="date"),
    time_period: Optional[str] = Query(None, description="morning | afternoon | evening"),
    sort: str = Query("departure", description="departure | price | rating"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=20),
    db: AsyncSession = Depends(get_db),
):
    return await RideService(db).search(
        origin,
        destination,
        on_date=on_date,
        time_period=time_period,
        sort=sort,
        page=page,
        limit=limit,
    )


@router.post(
    "",
    status_code=201,
    response_model=RideResponse,
    summary="Publish a ride",
)
@limiter.limit(WRITE_LIMIT)
async def create_ride(
    request: Request,
    body: RideCreateRequest,
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await RideService(db).create(user, **body.model_dump())


@router.get("/mine", response_model=list[RideResponse], summary="My published rides")
@limiter.limit(READ_LIMIT)
async def my_rides(
    request: Request,
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await RideService(db).list_for_driver(user.id)


@router.get("/{ride_id}", response_model=RideResponse, summary="Get a ride")
@limiter.limit(READ_LIMIT)
async def get_ride(
    request: Request,
    ride_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await RideService(db).get(ride_id)


@router.put("/{ride_id}", response_model=RideResponse, summary="Edit a ride")
@limiter.limit(WRITE_LIMIT)
async def update_ride(
    request: Request,
    ride_id: int,
    body: RideUpdateRequest,
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await RideService(db).update(
        user.id, ride_id, **body.model_dump(exclude_unset=True)
    )


@router.delete(
    "/{ride_id}",
    response_model=RideResponse,
    summary="Cancel a ride",
    description=(
        "Transitions an ACTIVE ride to CANCELLED.  Every confirmed booking "
        "is cancelled and its passenger notified by SMS."
    ),
)
@limiter.limit(WRITE_LIMIT)
async def cancel_ride(
    request: Request,
    ride_id: int,
    background_tasks: BackgroundTasks,
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    ride = await BookingCoordinator(db, notifier).cancel_ride(user.id, ride_id)
    await db.commit()
    background_tasks.add_task(notifier.flush)
    return ride


@router.post(
    "/{ride_id}/complete",
    response_model=RideResponse,
    summary="Complete a ride",
    description="Only after departure.  Confirmed bookings become COMPLETED.",
)
@limiter.limit(WRITE_LIMIT)
async def complete_ride(
    request: Request,
    ride_id: int,
    background_tasks: BackgroundTasks,
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    ride = await BookingCoordinator(db, notifier).complete_ride(user.id, ride_id)
    await db.commit()
    background_tasks.add_task(notifier.flush)
    return ride
