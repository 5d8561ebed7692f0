"""User registration, driver car profile and administrator blocking."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from carpool.config import Settings
from carpool.domain import errors
from carpool.infrastructure.models import UserModel
from carpool.infrastructure.repositories import UserRepository
from carpool.services.monetization import require_admin

logger = logging.getLogger(__name__)


class AccountService:
    def __init__(self, session: AsyncSession, settings: Settings):
        self.session = session
        self.settings = settings
        self.users = UserRepository(session)

    async def upsert_user(
        self,
        telegram_id: int,
        first_name: str | None = None,
        last_name: str | None = None,
        username: str | None = None,
    ) -> UserModel:
        async with self.session.begin():
            return await self.users.upsert(
                telegram_id=telegram_id,
                first_name=first_name,
                last_name=last_name,
                username=username,
            )

    async def get_profile(self, telegram_id: int) -> UserModel:
        async with self.session.begin():
            user = await self.users.get_by_telegram_id(telegram_id)
        if user is None:
            raise errors.UserNotFound()
        return user

    async def update_car_profile(
        self,
        telegram_id: int,
        car_make: str | None,
        car_color: str | None,
        car_plate: str | None,
    ) -> UserModel:
        async with self.session.begin():
            user = await self.users.get_by_telegram_id(telegram_id)
            if user is None:
                raise errors.UserNotFound()
            user.car_make = car_make or None
            user.car_color = car_color or None
            user.car_plate = car_plate or None
        return user

    async def set_driver_blocked(
        self, caller_telegram_id: int, driver_telegram_id: int, blocked: bool
    ) -> UserModel:
        require_admin(self.settings, caller_telegram_id)
        async with self.session.begin():
            driver = await self.users.get_by_telegram_id(driver_telegram_id)
            if driver is None:
                raise errors.UserNotFound()
            driver.is_blocked = bool(blocked)
        logger.info("Driver %d blocked=%s", driver.id, driver.is_blocked)
        return driver
