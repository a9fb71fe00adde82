"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  The production models are used as-is: the
partial unique index and CHECK constraints are created on SQLite too.
"""

from __future__ import annotations

import itertools
from datetime import timedelta
from typing import AsyncGenerator, Optional
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from rideshare.domain.entities import utc_now
from rideshare.domain.enums import AuthMethod, RideStatus
from rideshare.infrastructure.database import Base
from rideshare.infrastructure.models import RideModel, UserModel
from rideshare.security.crypto import encrypt_phone, hash_phone
from rideshare.services.notifications import Notifier

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

_phones = itertools.count(1)


class RecordingSmsGateway:
    """Stands in for Twilio: keeps every SMS and accepts the test OTP."""

    def __init__(self, fail_for: Optional[set[str]] = None):
        self.sent: list[tuple[str, str]] = []
        self.verifications: list[str] = []
        self.fail_for = fail_for or set()

    async def send_verification(self, phone: str) -> None:
        self.verifications.append(phone)

    async def check_verification(self, phone: str, code: str) -> bool:
        return code == "123456"

    async def send_sms(self, to: str, body: str) -> None:
        if to in self.fail_for:
            raise RuntimeError("vendor down")
        self.sent.append((to, body))

    def bodies_for(self, phone: str) -> list[str]:
        return [body for to, body in self.sent if to == phone]


class RecordingEmailGateway:
    def __init__(self):
        self.links: list[tuple[str, str, bool]] = []

    async def send_magic_link(self, email: str, link: str, registering: bool) -> None:
        self.links.append((email, link, registering))


def next_phone() -> str:
    return f"+35569{next(_phones):07d}"


# ── Database ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database per test."""
    eng = create_async_engine(
        TEST_DB_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ── Collaborators ─────────────────────────────────────────────────────


@pytest.fixture
def sms():
    return RecordingSmsGateway()


@pytest.fixture
def email():
    return RecordingEmailGateway()


@pytest.fixture
def notifier(sms):
    return Notifier(gateway=sms)


# ── Factories ─────────────────────────────────────────────────────────


@pytest.fixture
def make_user(db_session):
    async def _make(
        name: str = "Dritan Leka",
        *,
        phone: Optional[str] = None,
        city: str = "TIA",
        is_driver: bool = False,
        rating: float = 5.0,
        with_phone: bool = True,
    ) -> UserModel:
        phone = phone or next_phone()
        user = UserModel(
            name=name,
            city=city,
            phone_hash=hash_phone(phone) if with_phone else None,
            phone_number_encrypted=encrypt_phone(phone) if with_phone else None,
            auth_method=AuthMethod.PHONE,
            is_driver=is_driver,
            car_model="Volkswagen Golf" if is_driver else None,
            car_color="Gray" if is_driver else None,
            rating=rating,
            total_rides=0,
        )
        user.phone = phone  # plain attribute, handy for asserting on SMS
        db_session.add(user)
        await db_session.flush()
        return user

    return _make


@pytest.fixture
def make_ride(db_session):
    async def _make(
        driver: UserModel,
        *,
        origin: str = "TIA",
        destination: str = "DUR",
        departs_in: timedelta = timedelta(days=1),
        seats: int = 3,
        price: float = 500,
        status: RideStatus = RideStatus.ACTIVE,
    ) -> RideModel:
        ride = RideModel(
            driver_id=driver.id,
            origin_city=origin,
            destination_city=destination,
            departure_time=utc_now() + departs_in,
            pickup_point="Sheshi Skënderbej",
            stops=[],
            seats_total=seats,
            seats_available=seats,
            price_per_seat=price,
            status=status,
        )
        db_session.add(ride)
        await db_session.flush()
        await db_session.refresh(ride)
        return ride

    return _make


# ── App ───────────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def app_ctx(session_factory):
    """HTTP client for the real app plus the recording SMS / email gateways."""
    sms = RecordingSmsGateway()
    email = RecordingEmailGateway()

    with (
        patch(
            "rideshare.workers.rating_reveal.start_reveal_loop",
            new_callable=AsyncMock,
        ),
        patch(
            "rideshare.workers.rating_reveal.stop_reveal_loop",
            new_callable=AsyncMock,
        ),
        patch("rideshare.services.auth.sms_gateway", sms),
        patch("rideshare.services.auth.email_gateway", email),
    ):
        # DB session dependency
        async def _test_db():
            async with session_factory() as session:
                try:
                    yield session
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise

        from rideshare.api.app import create_app
        from rideshare.api.dependencies import get_db, get_notifier
        from rideshare.api.middleware import limiter

        app = create_app()
        app.dependency_overrides[get_db] = _test_db
        app.dependency_overrides[get_notifier] = lambda: Notifier(gateway=sms)
        limiter.enabled = False

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac, sms, email

        limiter.enabled = True


@pytest.fixture
def client(app_ctx):
    return app_ctx[0]
