"""
Authentication endpoints
========================

POST   /api/v1/auth/register     -- create a phone account and send an OTP
POST   /api/v1/auth/login        -- send an OTP to a registered phone
POST   /api/v1/auth/verify       -- exchange phone + OTP for a bearer token
POST   /api/v1/auth/email-login  -- email a magic link (login or registration)
GET    /api/v1/auth/callback     -- exchange a magic-link token for a bearer token
GET    /api/v1/auth/session      -- current user
DELETE /api/v1/auth/session      -- log out
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from rideshare.api.dependencies import ACCESS_COOKIE, get_current_user, get_db
from rideshare.api.middleware import AUTH_LIMIT, READ_LIMIT, limiter
from rideshare.api.schemas import (
    AuthTokenResponse,
    EmailLoginRequest,
    EmailLoginResponse,
    LoginRequest,
    MessageOnlyResponse,
    OtpSentResponse,
    RegisterRequest,
    UserProfile,
    VerifyRequest,
)
from rideshare.config import settings
from rideshare.domain.validation import normalize_phone
from rideshare.infrastructure.models import UserModel
from rideshare.services.auth import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        ACCESS_COOKIE,
        token,
        max_age=settings.access_token_expire_days * 24 * 3600,
        httponly=True,
        samesite="lax",
    )


@router.post(
    "/register",
    status_code=201,
    response_model=OtpSentResponse,
    summary="Register with an Albanian phone number",
)
@limiter.limit(AUTH_LIMIT)
async def register(
    request: Request,
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db),
):
    await AuthService(db).register(body.phone, body.name, body.city)
    return OtpSentResponse(
        message="Verification code sent", phone=normalize_phone(body.phone)
    )


@router.post("/login", response_model=OtpSentResponse, summary="Request a login OTP")
@limiter.limit(AUTH_LIMIT)
async def login(
    request: Request,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    await AuthService(db).login(body.phone)
    return OtpSentResponse(
        message="Verification code sent", phone=normalize_phone(body.phone)
    )


@router.post(
    "/verify",
    response_model=AuthTokenResponse,
    summary="Verify an OTP and receive a bearer token",
)
@limiter.limit(AUTH_LIMIT)
async def verify(
    request: Request,
    response: Response,
    body: VerifyRequest,
    db: AsyncSession = Depends(get_db),
):
    token, user = await AuthService(db).verify(body.phone, body.otp)
    set_session_cookie(response, token)
    return AuthTokenResponse(token=token, user=UserProfile.model_validate(user))


@router.post(
    "/email-login",
    response_model=EmailLoginResponse,
    summary="Send a magic link",
    description=(
        "With only ``email`` this logs in an existing account.  With ``name`` "
        "and ``city`` as well it registers a new one."
    ),
)
@limiter.limit(AUTH_LIMIT)
async def email_login(
    request: Request,
    body: EmailLoginRequest,
    db: AsyncSession = Depends(get_db),
):
    return await AuthService(db).email_login(body.email, body.name, body.city)


@router.get(
    "/callback",
    response_model=AuthTokenResponse,
    summary="Complete a magic-link login",
)
@limiter.limit(AUTH_LIMIT)
async def email_callback(
    request: Request,
    response: Response,
    token: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
):
    access_token, user = await AuthService(db).email_callback(token)
    set_session_cookie(response, access_token)
    return AuthTokenResponse(token=access_token, user=UserProfile.model_validate(user))


@router.get("/session", response_model=UserProfile, summary="Current user")
@limiter.limit(READ_LIMIT)
async def get_session(
    request: Request,
    user: UserModel = Depends(get_current_user),
):
    return user


@router.delete("/session", response_model=MessageOnlyResponse, summary="Log out")
async def logout(response: Response):
    # Tokens are stateless; dropping the cookie is all there is to do
    response.delete_cookie(ACCESS_COOKIE)
    return MessageOnlyResponse(message="Logged out")
