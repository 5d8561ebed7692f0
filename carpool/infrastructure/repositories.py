"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Mutations that guard an invariant are single
conditional statements whose affected-row count tells the caller whether
the guard held; callers run them inside ``session.begin()``.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import delete, exists, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    AppSettingsModel,
    BookingModel,
    PassengerPlanModel,
    PaymentProofModel,
    TripModel,
    UserModel,
)
from carpool.domain.enums import (
    BOOKING_TRANSITIONS,
    PLAN_TRANSITIONS,
    BookingStatus,
    PlanStatus,
    can_transition,
)
from carpool.domain.monetization import AppSettingsSnapshot, DailyDriverStats
from carpool.domain.pricing import MoneyBreakdown, to_money
from carpool.domain.timeutil import utcnow


def _money(value) -> Decimal:
    return to_money(value if value is not None else 0)


def _insert_for(session: AsyncSession):
    """Dialect ``insert`` construct that supports ``on_conflict_do_update``."""
    if session.get_bind().dialect.name == "postgresql":
        return postgresql.insert
    return sqlite.insert


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: int) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)

    async def get_by_telegram_id(self, telegram_id: int) -> Optional[UserModel]:
        result = await self.session.execute(
            select(UserModel).where(UserModel.telegram_id == telegram_id)
        )
        return result.scalar_one_or_none()

    async def upsert(
        self,
        *,
        telegram_id: int,
        first_name: str | None = None,
        last_name: str | None = None,
        username: str | None = None,
    ) -> UserModel:
        """Create on first contact, refresh display fields afterwards.

        A single ``INSERT ... ON CONFLICT (telegram_id) DO UPDATE`` so two
        first contacts for the same account cannot both insert.
        """
        now = utcnow()
        display = {"first_name": first_name, "last_name": last_name, "username": username}
        stmt = _insert_for(self.session)(UserModel).values(
            telegram_id=telegram_id,
            no_show_count=0,
            is_blocked=False,
            created_at=now,
            updated_at=now,
            **display,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[UserModel.telegram_id],
            set_={**display, "updated_at": now},
        )
        await self.session.execute(stmt)

        result = await self.session.execute(
            select(UserModel)
            .where(UserModel.telegram_id == telegram_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def increment_no_show(self, user_id: int) -> None:
        await self.session.execute(
            update(UserModel)
            .where(UserModel.id == user_id)
            .values(no_show_count=UserModel.no_show_count + 1)
            .execution_options(synchronize_session=False)
        )


class TripRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        *,
        driver_id: int,
        from_city: str,
        to_city: str,
        departure_time: datetime,
        seats_total: int,
        price_per_seat: Decimal,
        note: str | None = None,
    ) -> TripModel:
        trip = TripModel(
            driver_id=driver_id,
            from_city=from_city,
            to_city=to_city,
            departure_time=departure_time,
            seats_total=seats_total,
            seats_available=seats_total,
            price_per_seat=price_per_seat,
            note=note,
        )
        self.session.add(trip)
        await self.session.flush()
        await self.session.refresh(trip)
        return trip

    async def get_by_id(self, trip_id: int) -> Optional[TripModel]:
        return await self.session.get(TripModel, trip_id)

    async def get_for_update(self, trip_id: int) -> Optional[TripModel]:
        """SELECT ... FOR UPDATE on the trip row (no-op clause on SQLite)."""
        result = await self.session.execute(
            select(TripModel)
            .where(TripModel.id == trip_id)
            .with_for_update(of=TripModel)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def reserve_seats(self, trip_id: int, seats: int) -> bool:
        """Decrement availability only if enough seats remain."""
        result = await self.session.execute(
            update(TripModel)
            .where(TripModel.id == trip_id, TripModel.seats_available >= seats)
            .values(seats_available=TripModel.seats_available - seats)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def release_seats(self, trip_id: int, seats: int) -> bool:
        result = await self.session.execute(
            update(TripModel)
            .where(
                TripModel.id == trip_id,
                TripModel.seats_available + seats <= TripModel.seats_total,
            )
            .values(seats_available=TripModel.seats_available + seats)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def count_bookings(self, trip_id: int) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(BookingModel)
            .where(BookingModel.trip_id == trip_id)
        )
        return result.scalar() or 0

    async def delete_if_unbooked(self, trip_id: int) -> bool:
        """Remove the trip unless any booking row (any status) references it."""
        result = await self.session.execute(
            delete(TripModel)
            .where(
                TripModel.id == trip_id,
                ~exists().where(BookingModel.trip_id == TripModel.id),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def get_latest(self, limit: int = 20) -> list[TripModel]:
        result = await self.session.execute(
            select(TripModel)
            .order_by(TripModel.created_at.desc(), TripModel.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_for_driver_with_counts(
        self, driver_id: int
    ) -> list[tuple[TripModel, int]]:
        bookings_count = (
            select(func.count(BookingModel.id))
            .where(BookingModel.trip_id == TripModel.id)
            .correlate(TripModel)
            .scalar_subquery()
        )
        result = await self.session.execute(
            select(TripModel, bookings_count)
            .where(TripModel.driver_id == driver_id)
            .order_by(TripModel.departure_time.desc())
        )
        return [(trip, count or 0) for trip, count in result.all()]


class BookingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        *,
        trip_id: int,
        passenger_id: int,
        seats_booked: int,
        money: MoneyBreakdown,
    ) -> BookingModel:
        booking = BookingModel(
            trip_id=trip_id,
            passenger_id=passenger_id,
            seats_booked=seats_booked,
            status=BookingStatus.BOOKED,
            amount_total=money.amount_total,
            app_fee=money.app_fee,
            driver_amount=money.driver_amount,
        )
        self.session.add(booking)
        await self.session.flush()
        await self.session.refresh(booking)
        return booking

    async def get_by_id(self, booking_id: int) -> Optional[BookingModel]:
        return await self.session.get(BookingModel, booking_id)

    async def get_for_update(self, booking_id: int) -> Optional[BookingModel]:
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.id == booking_id)
            .with_for_update(of=BookingModel)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def transition(
        self,
        booking_id: int,
        from_status: BookingStatus,
        to_status: BookingStatus,
    ) -> bool:
        """Conditional status flip; False when the row is no longer in *from_status*."""
        if not can_transition(from_status, to_status, BOOKING_TRANSITIONS):
            raise ValueError(f"Illegal booking transition {from_status} -> {to_status}")
        result = await self.session.execute(
            update(BookingModel)
            .where(BookingModel.id == booking_id, BookingModel.status == from_status)
            .values(status=to_status, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def get_for_trip(self, trip_id: int) -> list[BookingModel]:
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.trip_id == trip_id)
            .order_by(BookingModel.created_at.desc(), BookingModel.id.desc())
        )
        return list(result.scalars().all())

    async def get_for_passenger(self, passenger_id: int) -> list[BookingModel]:
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.passenger_id == passenger_id)
            .order_by(BookingModel.created_at.desc(), BookingModel.id.desc())
        )
        return list(result.scalars().all())

    async def driver_daily_stats(
        self, driver_id: int, start: datetime, end: datetime
    ) -> DailyDriverStats:
        """Aggregate ``booked`` bookings on the driver's trips created in [start, end)."""
        result = await self.session.execute(
            select(
                func.count(func.distinct(TripModel.id)),
                func.count(BookingModel.id),
                func.coalesce(func.sum(BookingModel.seats_booked), 0),
                func.coalesce(func.sum(BookingModel.app_fee), 0),
            )
            .select_from(BookingModel)
            .join(TripModel, TripModel.id == BookingModel.trip_id)
            .where(
                TripModel.driver_id == driver_id,
                BookingModel.status == BookingStatus.BOOKED,
                BookingModel.created_at >= start,
                BookingModel.created_at < end,
            )
        )
        trips_count, bookings_count, seats_count, fee_total = result.one()
        return DailyDriverStats(
            trips_count=trips_count or 0,
            bookings_count=bookings_count or 0,
            seats_count=int(seats_count or 0),
            app_fee_total=_money(fee_total),
        )

    async def totals(self) -> dict:
        result = await self.session.execute(
            select(
                func.count(func.distinct(BookingModel.trip_id)),
                func.count(BookingModel.id),
                func.coalesce(func.sum(BookingModel.seats_booked), 0),
                func.coalesce(func.sum(BookingModel.amount_total), 0),
                func.coalesce(func.sum(BookingModel.app_fee), 0),
                func.coalesce(func.sum(BookingModel.driver_amount), 0),
            ).where(BookingModel.status == BookingStatus.BOOKED)
        )
        trips, bookings, seats, turnover, fee, payout = result.one()
        return {
            "trips_count": trips or 0,
            "bookings_count": bookings or 0,
            "seats_booked_total": int(seats or 0),
            "total_turnover": _money(turnover),
            "total_app_fee": _money(fee),
            "total_driver_amount": _money(payout),
        }

    async def daily_fee_by_driver(self, start: datetime, end: datetime) -> list[dict]:
        result = await self.session.execute(
            select(
                UserModel,
                func.count(func.distinct(TripModel.id)),
                func.count(BookingModel.id),
                func.coalesce(func.sum(BookingModel.seats_booked), 0),
                func.coalesce(func.sum(BookingModel.app_fee), 0).label("fee"),
            )
            .select_from(BookingModel)
            .join(TripModel, TripModel.id == BookingModel.trip_id)
            .join(UserModel, UserModel.id == TripModel.driver_id)
            .where(
                BookingModel.status == BookingStatus.BOOKED,
                BookingModel.created_at >= start,
                BookingModel.created_at < end,
            )
            .group_by(UserModel.id)
            .order_by(func.coalesce(func.sum(BookingModel.app_fee), 0).desc())
        )
        rows = []
        for driver, trips, bookings, seats, fee in result.all():
            rows.append(
                {
                    "driver": driver,
                    "stats": DailyDriverStats(
                        trips_count=trips or 0,
                        bookings_count=bookings or 0,
                        seats_count=int(seats or 0),
                        app_fee_total=_money(fee),
                    ),
                }
            )
        return rows


class PlanRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        *,
        passenger_id: int,
        from_city: str,
        to_city: str,
        desired_time: datetime,
        seats_needed: int,
        note: str | None = None,
    ) -> PassengerPlanModel:
        plan = PassengerPlanModel(
            passenger_id=passenger_id,
            from_city=from_city,
            to_city=to_city,
            desired_time=desired_time,
            seats_needed=seats_needed,
            note=note,
            status=PlanStatus.ACTIVE,
        )
        self.session.add(plan)
        await self.session.flush()
        await self.session.refresh(plan)
        return plan

    async def get_by_id(self, plan_id: int) -> Optional[PassengerPlanModel]:
        return await self.session.get(
            PassengerPlanModel, plan_id, populate_existing=True
        )

    async def _leave_active(self, plan_id: int, to_status: PlanStatus, **values) -> bool:
        if not can_transition(PlanStatus.ACTIVE, to_status, PLAN_TRANSITIONS):
            raise ValueError(f"Illegal plan transition active -> {to_status}")
        result = await self.session.execute(
            update(PassengerPlanModel)
            .where(
                PassengerPlanModel.id == plan_id,
                PassengerPlanModel.status == PlanStatus.ACTIVE,
            )
            .values(status=to_status, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def claim(self, plan_id: int, driver_id: int, taken_at: datetime) -> bool:
        """Compare-and-set ``active -> taken``; True only for the winning driver."""
        return await self._leave_active(
            plan_id, PlanStatus.TAKEN, driver_id=driver_id, taken_at=taken_at
        )

    async def cancel(self, plan_id: int) -> bool:
        return await self._leave_active(plan_id, PlanStatus.CANCELLED)

    async def expire_lapsed(self, now: datetime) -> int:
        result = await self.session.execute(
            update(PassengerPlanModel)
            .where(
                PassengerPlanModel.status == PlanStatus.ACTIVE,
                PassengerPlanModel.desired_time <= now,
            )
            .values(status=PlanStatus.EXPIRED)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def get_active(self, limit: int = 50) -> list[PassengerPlanModel]:
        result = await self.session.execute(
            select(PassengerPlanModel)
            .where(PassengerPlanModel.status == PlanStatus.ACTIVE)
            .order_by(PassengerPlanModel.desired_time)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_for_passenger(self, passenger_id: int) -> list[PassengerPlanModel]:
        result = await self.session.execute(
            select(PassengerPlanModel)
            .where(PassengerPlanModel.passenger_id == passenger_id)
            .order_by(PassengerPlanModel.desired_time.desc())
        )
        return list(result.scalars().all())


class SettingsRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_or_create(self) -> AppSettingsModel:
        row = await self.session.get(AppSettingsModel, 1)
        if row is None:
            row = AppSettingsModel(id=1, monetization_enabled=False, payment_details="")
            self.session.add(row)
            await self.session.flush()
        return row

    async def load(self) -> AppSettingsSnapshot:
        row = await self.session.get(AppSettingsModel, 1)
        if row is None:
            return AppSettingsSnapshot()
        return AppSettingsSnapshot(
            monetization_enabled=bool(row.monetization_enabled),
            payment_details=row.payment_details or "",
        )

    async def save(self, snapshot: AppSettingsSnapshot) -> AppSettingsSnapshot:
        row = await self._get_or_create()
        row.monetization_enabled = snapshot.monetization_enabled
        row.payment_details = snapshot.payment_details or ""
        await self.session.flush()
        return snapshot


class PaymentProofRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(
        self, *, driver_id: int, original_name: str | None, stored_name: str
    ) -> PaymentProofModel:
        proof = PaymentProofModel(
            driver_id=driver_id,
            original_name=original_name,
            stored_name=stored_name,
        )
        self.session.add(proof)
        await self.session.flush()
        return proof

    async def exists_between(
        self, driver_id: int, start: datetime, end: datetime
    ) -> bool:
        result = await self.session.execute(
            select(PaymentProofModel.id)
            .where(
                PaymentProofModel.driver_id == driver_id,
                PaymentProofModel.created_at >= start,
                PaymentProofModel.created_at < end,
            )
            .limit(1)
        )
        return result.first() is not None

    async def latest_between(
        self, driver_id: int, start: datetime, end: datetime
    ) -> Optional[PaymentProofModel]:
        result = await self.session.execute(
            select(PaymentProofModel)
            .where(
                PaymentProofModel.driver_id == driver_id,
                PaymentProofModel.created_at >= start,
                PaymentProofModel.created_at < end,
            )
            .order_by(PaymentProofModel.created_at.desc(), PaymentProofModel.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()
