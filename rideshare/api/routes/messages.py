"""
Message endpoints
=================

GET  /api/v1/messages?booking_id=  -- chat history for a booking
POST /api/v1/messages              -- send a message to the other party
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from rideshare.api.dependencies import get_current_user, get_db
from rideshare.api.middleware import READ_LIMIT, WRITE_LIMIT, limiter
from rideshare.api.schemas import MessageCreateRequest, MessageResponse
from rideshare.infrastructure.models import UserModel
from rideshare.services.messages import MessageService

router = APIRouter(prefix="/messages", tags=["messages"])


@router.get("", response_model=list[MessageResponse], summary="List messages")
@limiter.limit(READ_LIMIT)
async def list_messages(
    request: Request,
    booking_id: int = Query(...),
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await MessageService(db).list_messages(user.id, booking_id)


@router.post(
    "",
    status_code=201,
    response_model=MessageResponse,
    summary="Send a message",
)
@limiter.limit(WRITE_LIMIT)
async def send_message(
    request: Request,
    body: MessageCreateRequest,
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await MessageService(db).send_message(user.id, body.booking_id, body.content)
