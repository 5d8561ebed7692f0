"""Driver monetization gate: pure policy, store-backed evaluation and admin views."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import update

from carpool.domain import errors
from carpool.domain.monetization import (
    AppSettingsSnapshot,
    DailyDriverStats,
    evaluate_gate,
)
from carpool.domain.timeutil import local_day_bounds, utcnow
from carpool.infrastructure.models import BookingModel
from carpool.infrastructure.repositories import SettingsRepository
from carpool.services.booking_engine import BookingEngine
from carpool.services.monetization import MonetizationService
from carpool.services.trips import TripService
from tests.conftest import ADMIN_ID

DRIVER, PASSENGER = 100, 201

ENABLED = AppSettingsSnapshot(monetization_enabled=True, payment_details="card 0000")
ACTIVE_DAY = DailyDriverStats(
    trips_count=1, bookings_count=1, seats_count=1, app_fee_total=Decimal("50.00")
)


# ── Pure policy ───────────────────────────────────────────────────────


class TestEvaluateGate:
    def test_disabled_always_allows(self):
        decision = evaluate_gate(AppSettingsSnapshot(), ACTIVE_DAY, False)
        assert decision.allowed
        assert decision.reason == "disabled"

    def test_no_trips_today(self):
        decision = evaluate_gate(ENABLED, DailyDriverStats(), False)
        assert decision.allowed
        assert decision.reason == "no_activity"

    def test_zero_fee(self):
        stats = DailyDriverStats(trips_count=2, bookings_count=3, seats_count=4)
        decision = evaluate_gate(ENABLED, stats, False)
        assert decision.allowed
        assert decision.reason == "no_fee"

    def test_proof_uploaded(self):
        decision = evaluate_gate(ENABLED, ACTIVE_DAY, True)
        assert decision.allowed
        assert decision.reason == "proof_uploaded"

    def test_payment_required(self):
        decision = evaluate_gate(ENABLED, ACTIVE_DAY, False)
        assert not decision.allowed
        assert decision.reason == "payment_required"
        assert decision.stats.app_fee_total == Decimal("50.00")


class TestLocalDayBounds:
    def test_moscow_day_window(self):
        # 22:30 UTC is already the next day in Moscow (UTC+3)
        now = datetime(2024, 3, 10, 22, 30, tzinfo=timezone.utc)
        start, end = local_day_bounds(now, "Europe/Moscow")
        assert start == datetime(2024, 3, 10, 21, 0, tzinfo=timezone.utc)
        assert end == datetime(2024, 3, 11, 21, 0, tzinfo=timezone.utc)

    def test_utc_day_window(self):
        now = datetime(2024, 3, 10, 0, 0, tzinfo=timezone.utc)
        start, end = local_day_bounds(now, "UTC")
        assert start == now
        assert end - start == timedelta(days=1)


# ── Store-backed gate ─────────────────────────────────────────────────


@pytest.fixture
def enable_monetization(session_factory):
    async def _enable(enabled: bool = True):
        async with session_factory() as session:
            async with session.begin():
                await SettingsRepository(session).save(
                    AppSettingsSnapshot(monetization_enabled=enabled, payment_details="card 0000")
                )

    return _enable


@pytest.fixture
def service(session_factory, settings):
    async def _call(cls, operation: str, *args, **kwargs):
        async with session_factory() as session:
            return await getattr(cls(session, settings), operation)(*args, **kwargs)

    return _call


async def _new_trip(service):
    return await service(
        TripService,
        "create_trip",
        DRIVER,
        from_city="Kazan",
        to_city="Samara",
        departure_time=utcnow() + timedelta(days=1),
        seats_total=3,
        price_per_seat=Decimal("500.00"),
    )


class TestGateOnTripCreation:
    @pytest.mark.asyncio
    async def test_unpaid_fee_blocks_second_trip(
        self, service, make_user, enable_monetization
    ):
        await make_user(DRIVER)
        await make_user(PASSENGER)
        await enable_monetization()

        trip = await _new_trip(service)
        await service(BookingEngine, "create_booking", trip.id, PASSENGER, 1)

        decision = await service(MonetizationService, "check_gate", DRIVER)
        assert not decision.allowed
        assert decision.stats.app_fee_total == Decimal("50.00")

        with pytest.raises(errors.MonetizationRequired):
            await _new_trip(service)

    @pytest.mark.asyncio
    async def test_payment_proof_unblocks(self, service, make_user, enable_monetization):
        await make_user(DRIVER)
        await make_user(PASSENGER)
        await enable_monetization()
        trip = await _new_trip(service)
        await service(BookingEngine, "create_booking", trip.id, PASSENGER, 1)

        await service(
            MonetizationService, "record_payment_proof", DRIVER, "receipt.png", "100_x.png"
        )

        decision = await service(MonetizationService, "check_gate", DRIVER)
        assert decision.allowed
        assert decision.reason == "proof_uploaded"
        assert (await _new_trip(service)).id != trip.id

    @pytest.mark.asyncio
    async def test_cancelled_bookings_do_not_count(
        self, service, make_user, enable_monetization
    ):
        await make_user(DRIVER)
        await make_user(PASSENGER)
        await enable_monetization()
        trip = await _new_trip(service)
        booking = (
            await service(BookingEngine, "create_booking", trip.id, PASSENGER, 1)
        ).booking
        await service(BookingEngine, "cancel_booking_by_passenger", booking.id, PASSENGER)

        decision = await service(MonetizationService, "check_gate", DRIVER)
        assert decision.allowed
        assert decision.reason == "no_activity"

    @pytest.mark.asyncio
    async def test_yesterdays_fee_does_not_block_today(
        self, service, session_factory, make_user, enable_monetization
    ):
        await make_user(DRIVER)
        await make_user(PASSENGER)
        await enable_monetization()
        trip = await _new_trip(service)
        booking = (
            await service(BookingEngine, "create_booking", trip.id, PASSENGER, 1)
        ).booking

        async with session_factory() as session:
            async with session.begin():
                await session.execute(
                    update(BookingModel)
                    .where(BookingModel.id == booking.id)
                    .values(created_at=utcnow() - timedelta(days=1))
                )

        decision = await service(MonetizationService, "check_gate", DRIVER)
        assert decision.allowed
        assert decision.reason == "no_activity"

    @pytest.mark.asyncio
    async def test_disabled_never_blocks(self, service, make_user):
        await make_user(DRIVER)
        await make_user(PASSENGER)
        trip = await _new_trip(service)
        await service(BookingEngine, "create_booking", trip.id, PASSENGER, 2)

        decision = await service(MonetizationService, "check_gate", DRIVER)
        assert decision.allowed
        assert decision.reason == "disabled"

    @pytest.mark.asyncio
    async def test_unknown_driver_allowed(self, service, enable_monetization):
        await enable_monetization()
        decision = await service(MonetizationService, "check_gate", 55555)
        assert decision.allowed
        assert decision.reason == "no_activity"

    @pytest.mark.asyncio
    async def test_blocked_driver_rejected_before_gate(self, service, make_user):
        await make_user(DRIVER, is_blocked=True)
        with pytest.raises(errors.DriverBlocked):
            await _new_trip(service)

    @pytest.mark.asyncio
    async def test_past_departure_rejected(self, service, make_user):
        await make_user(DRIVER)
        with pytest.raises(errors.TooLate):
            await service(
                TripService,
                "create_trip",
                DRIVER,
                from_city="Kazan",
                to_city="Samara",
                departure_time=utcnow() - timedelta(hours=1),
                seats_total=2,
                price_per_seat=300,
            )


# ── Administrator ─────────────────────────────────────────────────────


class TestAdminViews:
    @pytest.mark.asyncio
    async def test_non_admin_forbidden(self, service):
        with pytest.raises(errors.Forbidden):
            await service(MonetizationService, "admin_stats", DRIVER)
        with pytest.raises(errors.Forbidden):
            await service(MonetizationService, "update_app_settings", DRIVER, True, "x")

    @pytest.mark.asyncio
    async def test_settings_round_trip(self, service):
        saved = await service(
            MonetizationService, "update_app_settings", ADMIN_ID, True, "pay to card 1234"
        )
        loaded = await service(MonetizationService, "get_app_settings", ADMIN_ID)
        assert saved == loaded
        assert loaded.monetization_enabled is True
        assert loaded.payment_details == "pay to card 1234"

    @pytest.mark.asyncio
    async def test_totals_count_booked_only(self, service, make_user):
        await make_user(DRIVER)
        await make_user(PASSENGER)
        await make_user(PASSENGER + 1)
        trip = await _new_trip(service)
        await service(BookingEngine, "create_booking", trip.id, PASSENGER, 2)
        cancelled = (
            await service(BookingEngine, "create_booking", trip.id, PASSENGER + 1, 1)
        ).booking
        await service(
            BookingEngine, "cancel_booking_by_passenger", cancelled.id, PASSENGER + 1
        )

        stats = await service(MonetizationService, "admin_stats", ADMIN_ID)

        assert stats["bookings_count"] == 1
        assert stats["seats_booked_total"] == 2
        assert stats["total_turnover"] == Decimal("1000.00")
        assert stats["total_app_fee"] == Decimal("100.00")
        assert stats["total_driver_amount"] == Decimal("900.00")

    @pytest.mark.asyncio
    async def test_daily_drivers_lists_fee_and_last_proof(self, service, make_user):
        await make_user(DRIVER)
        await make_user(PASSENGER)
        trip = await _new_trip(service)
        await service(BookingEngine, "create_booking", trip.id, PASSENGER, 1)
        await service(
            MonetizationService, "record_payment_proof", DRIVER, "r.pdf", "100_a.pdf"
        )

        rows = await service(MonetizationService, "admin_daily_drivers", ADMIN_ID)

        assert len(rows) == 1
        assert rows[0].driver.telegram_id == DRIVER
        assert rows[0].stats.app_fee_total == Decimal("50.00")
        assert rows[0].last_proof.stored_name == "100_a.pdf"
