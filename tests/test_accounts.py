"""User registration, car profile and administrator blocking."""

import asyncio

import pytest
from sqlalchemy import func, select

from carpool.domain import errors
from carpool.infrastructure.models import UserModel
from carpool.services.accounts import AccountService
from tests.conftest import ADMIN_ID

DRIVER = 100


@pytest.fixture
def accounts(session_factory, settings):
    async def _call(operation: str, *args, **kwargs):
        async with session_factory() as session:
            return await getattr(AccountService(session, settings), operation)(*args, **kwargs)

    return _call


async def _count_users(session_factory, telegram_id: int) -> int:
    async with session_factory() as session:
        return await session.scalar(
            select(func.count()).select_from(UserModel).where(UserModel.telegram_id == telegram_id)
        )


class TestUpsertUser:
    @pytest.mark.asyncio
    async def test_first_contact_creates_user(self, accounts):
        user = await accounts("upsert_user", DRIVER, first_name="Ivan", username="ivan")
        assert user.id is not None
        assert user.telegram_id == DRIVER
        assert user.no_show_count == 0
        assert user.is_blocked is False

    @pytest.mark.asyncio
    async def test_refresh_keeps_driver_fields(self, accounts, make_user):
        existing = await make_user(
            DRIVER, car_make="Lada", car_plate="A123BC", no_show_count=2, is_blocked=True
        )

        user = await accounts("upsert_user", DRIVER, first_name="Ivan", username="ivan_new")

        assert user.id == existing.id
        assert user.username == "ivan_new"
        assert user.car_make == "Lada"
        assert user.car_plate == "A123BC"
        assert user.no_show_count == 2
        assert user.is_blocked is True

    @pytest.mark.asyncio
    async def test_simultaneous_first_contacts_make_one_row(
        self, accounts, session_factory
    ):
        results = await asyncio.gather(
            *(accounts("upsert_user", DRIVER, first_name=f"N{i}") for i in range(5))
        )

        assert len({u.id for u in results}) == 1
        assert await _count_users(session_factory, DRIVER) == 1


class TestProfile:
    @pytest.mark.asyncio
    async def test_unknown_user(self, accounts):
        with pytest.raises(errors.UserNotFound):
            await accounts("get_profile", 31337)

    @pytest.mark.asyncio
    async def test_car_profile_blank_values_cleared(self, accounts, make_user):
        await make_user(DRIVER, car_make="Lada", car_color="red")
        user = await accounts("update_car_profile", DRIVER, "Kia", "", None)
        assert user.car_make == "Kia"
        assert user.car_color is None
        assert user.car_plate is None


class TestBlocking:
    @pytest.mark.asyncio
    async def test_admin_blocks_and_unblocks(self, accounts, make_user):
        await make_user(DRIVER)
        assert (await accounts("set_driver_blocked", ADMIN_ID, DRIVER, True)).is_blocked
        assert not (await accounts("set_driver_blocked", ADMIN_ID, DRIVER, False)).is_blocked

    @pytest.mark.asyncio
    async def test_non_admin_forbidden(self, accounts, make_user):
        await make_user(DRIVER)
        with pytest.raises(errors.Forbidden):
            await accounts("set_driver_blocked", DRIVER, DRIVER, True)

    @pytest.mark.asyncio
    async def test_unknown_driver(self, accounts):
        with pytest.raises(errors.UserNotFound):
            await accounts("set_driver_blocked", ADMIN_ID, 31337, True)
