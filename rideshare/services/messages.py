"""Per-booking chat between a passenger and the driver."""

from __future__ import annotations

from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from rideshare.domain.entities import utc_now
from rideshare.domain.errors import Forbidden, InvalidArgument, NotFound
from rideshare.infrastructure.models import BookingModel, MessageModel
from rideshare.infrastructure.repositories import BookingRepository, MessageRepository

MAX_MESSAGE_LENGTH = 1000


class MessageService:
    def __init__(self, session: AsyncSession, clock: Callable = utc_now):
        self.session = session
        self.bookings = BookingRepository(session)
        self.messages = MessageRepository(session)
        self.clock = clock

    async def _booking_for(self, user_id: int, booking_id: int, verb: str) -> BookingModel:
        booking = await self.bookings.get_by_id(booking_id)
        if booking is None:
            raise NotFound("Booking not found")
        if user_id not in (booking.passenger_id, booking.ride.driver_id):
            raise Forbidden(f"You can only {verb} messages for your own bookings")
        return booking

    async def list_messages(self, user_id: int, booking_id: int) -> list[MessageModel]:
        await self._booking_for(user_id, booking_id, "view")
        return await self.messages.list_for_booking(booking_id)

    async def send_message(self, user_id: int, booking_id: int, content: str) -> MessageModel:
        content = (content or "").strip()
        if not content:
            raise InvalidArgument("booking_id and content are required")
        if len(content) > MAX_MESSAGE_LENGTH:
            raise InvalidArgument("Message content cannot exceed 1000 characters")

        booking = await self._booking_for(user_id, booking_id, "send")
        receiver_id = (
            booking.ride.driver_id
            if user_id == booking.passenger_id
            else booking.passenger_id
        )
        message = await self.messages.create(
            MessageModel(
                booking_id=booking_id,
                sender_id=user_id,
                receiver_id=receiver_id,
                content=content,
                created_at=self.clock(),
            )
        )
        await self.session.refresh(message)
        return message
