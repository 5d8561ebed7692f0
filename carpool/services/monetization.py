"""
Monetization gate, payment proofs and the administrator's money views.

The gate policy itself lives in ``carpool.domain.monetization``; this module
loads its inputs (settings snapshot, today's stats, proof presence) from the
store and hands them over explicitly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from carpool.config import Settings
from carpool.domain import errors
from carpool.domain.monetization import (
    AppSettingsSnapshot,
    DailyDriverStats,
    GateDecision,
    evaluate_gate,
)
from carpool.domain.timeutil import as_utc, local_day_bounds, utcnow
from carpool.infrastructure.models import PaymentProofModel, UserModel
from carpool.infrastructure.repositories import (
    BookingRepository,
    PaymentProofRepository,
    SettingsRepository,
    UserRepository,
)

logger = logging.getLogger(__name__)


@dataclass
class PaymentStatus:
    decision: GateDecision
    payment_details: str


@dataclass
class DriverDailyRow:
    driver: UserModel
    stats: DailyDriverStats
    last_proof: Optional[PaymentProofModel]


def require_admin(settings: Settings, caller_telegram_id: int) -> None:
    if settings.admin_telegram_id is None or caller_telegram_id != settings.admin_telegram_id:
        logger.warning("Rejected admin call from telegram_id=%s", caller_telegram_id)
        raise errors.Forbidden("Administrator access required")


class MonetizationService:
    def __init__(self, session: AsyncSession, settings: Settings):
        self.session = session
        self.settings = settings
        self.users = UserRepository(session)
        self.bookings = BookingRepository(session)
        self.proofs = PaymentProofRepository(session)
        self.app_settings = SettingsRepository(session)

    # ── Gate ──────────────────────────────────────────────────────────

    async def evaluate_for_driver(
        self, driver: Optional[UserModel], now: datetime
    ) -> GateDecision:
        """Gate decision for *driver*; expects to run inside an open transaction."""
        snapshot = await self.app_settings.load()
        if driver is None:
            return evaluate_gate(snapshot, DailyDriverStats(), False)

        start, end = local_day_bounds(now, self.settings.local_timezone)
        stats = await self.bookings.driver_daily_stats(driver.id, start, end)
        has_proof = await self.proofs.exists_between(driver.id, start, end)
        return evaluate_gate(snapshot, stats, has_proof)

    async def check_gate(
        self, driver_telegram_id: int, now: datetime | None = None
    ) -> GateDecision:
        now = as_utc(now) if now else utcnow()
        async with self.session.begin():
            driver = await self.users.get_by_telegram_id(driver_telegram_id)
            return await self.evaluate_for_driver(driver, now)

    async def payment_status(
        self, driver_telegram_id: int, now: datetime | None = None
    ) -> PaymentStatus:
        now = as_utc(now) if now else utcnow()
        async with self.session.begin():
            driver = await self.users.get_by_telegram_id(driver_telegram_id)
            if driver is None:
                raise errors.UserNotFound()
            decision = await self.evaluate_for_driver(driver, now)
            snapshot = await self.app_settings.load()
        return PaymentStatus(decision=decision, payment_details=snapshot.payment_details)

    # ── Proofs ────────────────────────────────────────────────────────

    async def record_payment_proof(
        self,
        driver_telegram_id: int,
        original_name: str | None,
        stored_name: str,
    ) -> PaymentProofModel:
        async with self.session.begin():
            driver = await self.users.get_by_telegram_id(driver_telegram_id)
            if driver is None:
                raise errors.UserNotFound()
            proof = await self.proofs.add(
                driver_id=driver.id,
                original_name=original_name,
                stored_name=stored_name,
            )
        logger.info("Payment proof %d recorded for driver %d", proof.id, driver.id)
        return proof

    # ── Administrator ─────────────────────────────────────────────────

    async def get_app_settings(self, caller_telegram_id: int) -> AppSettingsSnapshot:
        require_admin(self.settings, caller_telegram_id)
        async with self.session.begin():
            return await self.app_settings.load()

    async def update_app_settings(
        self,
        caller_telegram_id: int,
        monetization_enabled: bool,
        payment_details: str | None,
    ) -> AppSettingsSnapshot:
        require_admin(self.settings, caller_telegram_id)
        snapshot = AppSettingsSnapshot(
            monetization_enabled=bool(monetization_enabled),
            payment_details=payment_details or "",
        )
        async with self.session.begin():
            saved = await self.app_settings.save(snapshot)
        logger.info("Monetization set to %s", saved.monetization_enabled)
        return saved

    async def admin_stats(self, caller_telegram_id: int) -> dict:
        require_admin(self.settings, caller_telegram_id)
        async with self.session.begin():
            return await self.bookings.totals()

    async def admin_daily_drivers(
        self, caller_telegram_id: int, now: datetime | None = None
    ) -> list[DriverDailyRow]:
        require_admin(self.settings, caller_telegram_id)
        now = as_utc(now) if now else utcnow()
        start, end = local_day_bounds(now, self.settings.local_timezone)
        async with self.session.begin():
            rows = await self.bookings.daily_fee_by_driver(start, end)
            result = []
            for row in rows:
                driver = row["driver"]
                proof = await self.proofs.latest_between(driver.id, start, end)
                result.append(
                    DriverDailyRow(driver=driver, stats=row["stats"], last_proof=proof)
                )
        return result
