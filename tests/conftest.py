"""
Shared test fixtures.

Each test gets its own SQLite database file (via aiosqlite) built with the
production engine factory, so the ``BEGIN IMMEDIATE`` transaction setup is
the one under test.  Redis and Telegram are never contacted.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from carpool.config import Settings
from carpool.domain.timeutil import utcnow
from carpool.infrastructure.database import Base, build_engine, build_session_factory
from carpool.infrastructure.models import (
    BookingModel,
    PassengerPlanModel,
    TripModel,
    UserModel,
)

ADMIN_ID = 999


# ── Database ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Create tables in a fresh database file, dispose afterwards."""
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'carpool-test.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        service_fee_pct=10.0,
        admin_telegram_id=ADMIN_ID,
        local_timezone="UTC",
        receipts_dir=str(tmp_path / "receipts"),
    )


# ── Seeding helpers ───────────────────────────────────────────────────


@pytest.fixture
def make_user(session_factory):
    async def _make(telegram_id: int, **fields) -> UserModel:
        async with session_factory() as session:
            user = UserModel(
                telegram_id=telegram_id,
                first_name=fields.pop("first_name", f"User{telegram_id}"),
                no_show_count=fields.pop("no_show_count", 0),
                is_blocked=fields.pop("is_blocked", False),
                **fields,
            )
            session.add(user)
            await session.commit()
            return user

    return _make


@pytest.fixture
def make_trip(session_factory):
    async def _make(
        driver: UserModel,
        *,
        seats_total: int = 3,
        price: Decimal = Decimal("500.00"),
        departure: datetime | None = None,
    ) -> TripModel:
        async with session_factory() as session:
            trip = TripModel(
                driver_id=driver.id,
                from_city="Kazan",
                to_city="Samara",
                departure_time=departure or utcnow() + timedelta(days=1),
                seats_total=seats_total,
                seats_available=seats_total,
                price_per_seat=price,
            )
            session.add(trip)
            await session.commit()
            return trip

    return _make


@pytest.fixture
def make_plan(session_factory):
    async def _make(
        passenger: UserModel,
        *,
        desired_time: datetime | None = None,
        seats_needed: int = 1,
    ) -> PassengerPlanModel:
        async with session_factory() as session:
            plan = PassengerPlanModel(
                passenger_id=passenger.id,
                from_city="Kazan",
                to_city="Ufa",
                desired_time=desired_time or utcnow() + timedelta(hours=6),
                seats_needed=seats_needed,
            )
            session.add(plan)
            await session.commit()
            return plan

    return _make


@pytest.fixture
def fetch(session_factory):
    """Read a committed row through a fresh session."""

    async def _fetch(model, pk):
        async with session_factory() as session:
            return await session.get(model, pk)

    return _fetch


@pytest.fixture
def count_bookings(session_factory):
    from sqlalchemy import func, select

    async def _count(trip_id: int) -> int:
        async with session_factory() as session:
            result = await session.execute(
                select(func.count())
                .select_from(BookingModel)
                .where(BookingModel.trip_id == trip_id)
            )
            return result.scalar() or 0

    return _count
