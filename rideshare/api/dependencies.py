"""FastAPI dependency injection helpers."""

from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from rideshare.domain.errors import Forbidden, Unauthorized
from rideshare.infrastructure.database import async_session_factory
from rideshare.infrastructure.models import UserModel
from rideshare.infrastructure.repositories import UserRepository
from rideshare.security.tokens import decode_access_token, extract_bearer
from rideshare.services.notifications import Notifier

ACCESS_COOKIE = "access_token"


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_notifier() -> Notifier:
    """A fresh notice queue per request; flushed by the route after commit."""
    return Notifier()


async def _load_user(db: AsyncSession, token: str) -> UserModel:
    user = await UserRepository(db).get_by_id(decode_access_token(token))
    if user is None:
        raise Unauthorized("User not found")
    if user.suspended_at is not None:
        raise Forbidden("Account suspended. Contact support.")
    return user


async def get_current_user(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> UserModel:
    token = extract_bearer(authorization)
    if token is None:
        raise Unauthorized("Missing bearer token")
    return await _load_user(db, token)


async def get_optional_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Optional[UserModel]:
    """Header or ``access_token`` cookie; ``None`` when absent or invalid."""
    token = extract_bearer(request.headers.get("authorization")) or request.cookies.get(
        ACCESS_COOKIE
    )
    if not token:
        return None
    try:
        return await _load_user(db, token)
    except (Unauthorized, Forbidden):
        return None
