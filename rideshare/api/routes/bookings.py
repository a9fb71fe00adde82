"""
Booking endpoints
=================

GET    /api/v1/bookings              -- my bookings as passenger or driver
POST   /api/v1/bookings              -- book seats on a ride
DELETE /api/v1/bookings/{booking_id} -- cancel a booking
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from rideshare.api.dependencies import get_current_user, get_db, get_notifier
from rideshare.api.middleware import READ_LIMIT, WRITE_LIMIT, limiter
from rideshare.api.schemas import BookingCreateRequest, BookingResponse
from rideshare.infrastructure.models import UserModel
from rideshare.services.bookings import BookingCoordinator
from rideshare.services.notifications import Notifier

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.get("", response_model=list[BookingResponse], summary="List my bookings")
@limiter.limit(READ_LIMIT)
async def list_bookings(
    request: Request,
    role: str = Query("passenger", pattern="^(passenger|driver)$"),
    status: Optional[str] = Query(None, description="confirmed | cancelled | completed | all"),
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await BookingCoordinator(db).list_bookings(user.id, role=role, status=status)


@router.post(
    "",
    status_code=201,
    response_model=BookingResponse,
    summary="Book seats on a ride",
    responses={409: {"description": "Ride full, inactive or already booked."}},
)
@limiter.limit(WRITE_LIMIT)
async def create_booking(
    request: Request,
    body: BookingCreateRequest,
    background_tasks: BackgroundTasks,
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    booking = await BookingCoordinator(db, notifier).create_booking(
        user.id, body.ride_id, body.seats_count, body.message
    )
    await db.commit()
    background_tasks.add_task(notifier.flush)
    return booking


@router.delete(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Cancel a booking",
    description=(
        "Allowed until 2 hours before departure.  A passenger cancelling "
        "frees their seats; the driver cancelling withdraws the whole ride."
    ),
)
@limiter.limit(WRITE_LIMIT)
async def cancel_booking(
    request: Request,
    booking_id: int,
    background_tasks: BackgroundTasks,
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    booking = await BookingCoordinator(db, notifier).cancel_booking(user.id, booking_id)
    await db.commit()
    background_tasks.add_task(notifier.flush)
    return booking
