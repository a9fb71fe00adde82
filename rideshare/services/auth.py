"""
Phone OTP and email magic-link authentication.

Phone flow:  register/login -> OTP by SMS -> verify -> bearer token.
Email flow:  email-login -> magic link by email -> callback -> bearer token.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional
from urllib.parse import urlencode

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rideshare.config import settings
from rideshare.domain.cities import is_known_city
from rideshare.domain.entities import utc_now
from rideshare.domain.enums import AuthMethod
from rideshare.domain.errors import Conflict, Forbidden, InvalidArgument, NotFound
from rideshare.domain.validation import normalize_email, normalize_phone
from rideshare.infrastructure.email import EmailGateway, email_gateway
from rideshare.infrastructure.models import UserModel
from rideshare.infrastructure.repositories import UserRepository
from rideshare.infrastructure.sms import SmsGateway, sms_gateway
from rideshare.security.crypto import encrypt_phone, hash_phone
from rideshare.security.tokens import (
    create_access_token,
    create_magic_link_token,
    decode_magic_link_token,
)

logger = logging.getLogger(__name__)

DEFAULT_CITY = "TIA"


def _validate_profile(name: str, city: str) -> tuple[str, str]:
    name = (name or "").strip()
    if not 2 <= len(name) <= 100:
        raise InvalidArgument("Name must be between 2 and 100 characters")
    city = (city or "").upper()
    if not is_known_city(city):
        raise InvalidArgument(f"Unknown city code: {city}")
    return name, city


class AuthService:
    def __init__(
        self,
        session: AsyncSession,
        sms: Optional[SmsGateway] = None,
        email: Optional[EmailGateway] = None,
        clock: Callable = utc_now,
    ):
        self.session = session
        self.users = UserRepository(session)
        self.sms = sms or sms_gateway
        self.email = email or email_gateway
        self.clock = clock

    # ── Phone ─────────────────────────────────────────────────────────

    async def register(self, phone: str, name: str, city: str) -> UserModel:
        formatted = normalize_phone(phone)
        name, city = _validate_profile(name, city)
        phone_hash = hash_phone(formatted)
        if await self.users.get_by_phone_hash(phone_hash):
            raise Conflict("Phone number already registered")

        user = UserModel(
            name=name,
            city=city,
            phone_hash=phone_hash,
            phone_number_encrypted=encrypt_phone(formatted),
            auth_method=AuthMethod.PHONE,
            is_driver=False,
            rating=5.0,
            total_rides=0,
            created_at=self.clock(),
        )
        try:
            await self.users.create(user)
        except IntegrityError as exc:
            raise Conflict("Phone number already registered") from exc
        logger.info("Registered user %s", user.id)

        await self.sms.send_verification(formatted)
        return user

    async def login(self, phone: str) -> None:
        formatted = normalize_phone(phone)
        user = await self.users.get_by_phone_hash(hash_phone(formatted))
        if user is None:
            raise NotFound("User not found. Please register first.")
        if user.suspended_at is not None:
            raise Forbidden("Account suspended. Contact support.")
        await self.sms.send_verification(formatted)

    async def verify(self, phone: str, otp: str) -> tuple[str, UserModel]:
        formatted = normalize_phone(phone)
        if not await self.sms.check_verification(formatted, otp):
            raise InvalidArgument("Invalid verification code")
        user = await self.users.get_by_phone_hash(hash_phone(formatted))
        if user is None:
            raise NotFound("User not found")
        if user.suspended_at is not None:
            raise Forbidden("Account suspended. Contact support.")
        user.verified_at = self.clock()
        await self.session.flush()
        token = create_access_token(user.id, user.name, phone=formatted)
        return token, user

    # ── Email ─────────────────────────────────────────────────────────

    async def email_login(
        self, email: str, name: Optional[str] = None, city: Optional[str] = None
    ) -> dict[str, Any]:
        email = normalize_email(email)
        registering = bool(name and city)
        if registering:
            name, city = _validate_profile(name, city)
            if await self.users.get_by_email(email):
                raise Conflict("Email already registered. Please login instead.")

        token = create_magic_link_token(email, name, city)
        link = f"{settings.app_url}/api/v1/auth/callback?{urlencode({'token': token})}"
        await self.email.send_magic_link(email, link, registering)
        action = "complete registration" if registering else "login"
        return {"message": f"Check your email for the magic link to {action}", "email": email}

    async def email_callback(self, token: str) -> tuple[str, UserModel]:
        claims = decode_magic_link_token(token)
        email = claims["email"]
        user = await self.users.get_by_email(email)
        if user is None:
            user = UserModel(
                email=email,
                name=claims.get("name") or email.split("@")[0],
                city=claims.get("city") or DEFAULT_CITY,
                auth_method=AuthMethod.EMAIL,
                is_driver=False,
                rating=5.0,
                total_rides=0,
                created_at=self.clock(),
            )
            await self.users.create(user)
            logger.info("Created profile %s from magic link", user.id)
        if user.suspended_at is not None:
            raise Forbidden("Account suspended. Contact support.")
        user.verified_at = self.clock()
        await self.session.flush()
        return create_access_token(user.id, user.name), user
