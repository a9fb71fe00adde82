"""
Bearer token issuer.

Two kinds of HS256 JWT share the secret but not the ``typ`` claim:

* ``access``      -- 7-day session token, ``sub`` is the user id.
* ``magic_link``  -- short-lived email login token carrying the email and,
  for registrations, the profile fields to create.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Optional

import jwt

from rideshare.config import settings
from rideshare.domain.entities import utc_now
from rideshare.domain.errors import Unauthorized

ACCESS = "access"
MAGIC_LINK = "magic_link"


def _encode(claims: dict[str, Any], lifetime: timedelta) -> str:
    now = utc_now()
    payload = {**claims, "iat": now, "exp": now + lifetime}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def _decode(token: str, expected_type: str) -> dict[str, Any]:
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError as exc:
        raise Unauthorized("Token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise Unauthorized("Invalid token") from exc
    if payload.get("typ") != expected_type:
        raise Unauthorized("Invalid token")
    return payload


def create_access_token(
    user_id: int, name: str, phone: Optional[str] = None
) -> str:
    claims = {"sub": str(user_id), "name": name, "typ": ACCESS}
    if phone:
        claims["phone"] = phone
    return _encode(claims, timedelta(days=settings.access_token_expire_days))


def decode_access_token(token: str) -> int:
    """Return the user id the token was issued to."""
    payload = _decode(token, ACCESS)
    try:
        return int(payload["sub"])
    except (KeyError, ValueError) as exc:
        raise Unauthorized("Invalid token") from exc


def create_magic_link_token(
    email: str, name: Optional[str] = None, city: Optional[str] = None
) -> str:
    claims: dict[str, Any] = {"email": email, "typ": MAGIC_LINK}
    if name and city:
        claims["name"] = name
        claims["city"] = city
    return _encode(claims, timedelta(minutes=settings.magic_link_expire_minutes))


def decode_magic_link_token(token: str) -> dict[str, Any]:
    return _decode(token, MAGIC_LINK)


def extract_bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization[len("Bearer "):].strip() or None
