"""
Passenger-Plan Matching
=======================

A passenger posts a plan; any driver may claim it.  The claim is a
compare-and-set UPDATE (``... WHERE id = :id AND status = 'active'``): the
precondition read may be stale, but only one UPDATE can match the active
row, so at most one driver ever wins.  A driver whose read saw an active
plan but whose UPDATE matched nothing gets ``AlreadyTaken``; there is no
retry.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from carpool.config import Settings
from carpool.domain import errors
from carpool.domain.enums import PlanStatus
from carpool.domain.timeutil import as_utc, utcnow
from carpool.infrastructure.models import PassengerPlanModel
from carpool.infrastructure.repositories import PlanRepository, UserRepository
from carpool.services.booking_engine import validate_seat_count

logger = logging.getLogger(__name__)


class PlanService:
    def __init__(self, session: AsyncSession, settings: Settings):
        self.session = session
        self.settings = settings
        self.plans = PlanRepository(session)
        self.users = UserRepository(session)

    async def create_plan(
        self,
        passenger_telegram_id: int,
        *,
        from_city: str,
        to_city: str,
        desired_time: datetime,
        seats_needed: int,
        note: str | None = None,
        now: datetime | None = None,
    ) -> PassengerPlanModel:
        seats_needed = validate_seat_count(seats_needed)
        now = as_utc(now) if now else utcnow()
        desired_time = as_utc(desired_time)

        async with self.session.begin():
            passenger = await self.users.get_by_telegram_id(passenger_telegram_id)
            if passenger is None:
                raise errors.UserNotFound()
            if desired_time <= now:
                raise errors.TooLate("Desired time must be in the future")
            plan = await self.plans.create(
                passenger_id=passenger.id,
                from_city=from_city,
                to_city=to_city,
                desired_time=desired_time,
                seats_needed=seats_needed,
                note=note or None,
            )

        logger.info("Plan %d created by passenger %d", plan.id, passenger.id)
        return plan

    async def list_plans(
        self, now: datetime | None = None, limit: int = 50
    ) -> list[PassengerPlanModel]:
        now = as_utc(now) if now else utcnow()
        async with self.session.begin():
            expired = await self.plans.expire_lapsed(now)
            if expired:
                logger.info("Expired %d lapsed plans", expired)
            return await self.plans.get_active(limit)

    async def list_passenger_plans(
        self, passenger_telegram_id: int
    ) -> list[PassengerPlanModel]:
        async with self.session.begin():
            passenger = await self.users.get_by_telegram_id(passenger_telegram_id)
            if passenger is None:
                raise errors.UserNotFound()
            return await self.plans.get_for_passenger(passenger.id)

    async def cancel_plan(
        self,
        plan_id: int,
        passenger_telegram_id: int,
        now: datetime | None = None,
    ) -> PassengerPlanModel:
        now = as_utc(now) if now else utcnow()

        async with self.session.begin():
            plan = await self.plans.get_by_id(plan_id)
            if plan is None:
                raise errors.PlanNotFound()
            if plan.passenger.telegram_id != passenger_telegram_id:
                raise errors.Forbidden()
            if plan.status != PlanStatus.ACTIVE:
                raise errors.InvalidStatus(
                    f"Plan is {plan.status.value}, only active plans can be cancelled"
                )
            if now >= as_utc(plan.desired_time):
                raise errors.TooLate()
            if not await self.plans.cancel(plan.id):
                raise errors.InvalidStatus("Plan was taken or cancelled meanwhile")
            await self.session.refresh(plan)

        logger.info("Plan %d cancelled by passenger", plan.id)
        return plan

    async def take_plan(
        self,
        plan_id: int,
        driver_telegram_id: int,
        now: datetime | None = None,
    ) -> PassengerPlanModel:
        now = as_utc(now) if now else utcnow()

        async with self.session.begin():
            plan = await self.plans.get_by_id(plan_id)
            if plan is None:
                raise errors.PlanNotFound()
            driver = await self.users.get_by_telegram_id(driver_telegram_id)
            if driver is None:
                raise errors.UserNotFound()
            if plan.status != PlanStatus.ACTIVE:
                raise errors.PlanUnavailable()
            if now >= as_utc(plan.desired_time):
                raise errors.TooLate()

        # the claim's own WHERE clause is the guard; no lock is held between
        # the read above and this write
        async with self.session.begin():
            if not await self.plans.claim(plan.id, driver.id, now):
                raise errors.AlreadyTaken()
            await self.session.refresh(plan)

        logger.info("Plan %d taken by driver %d", plan.id, driver.id)
        return plan
