"""FastAPI dependency injection helpers."""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from carpool.config import Settings, settings
from carpool.infrastructure.database import async_session_factory
from carpool.infrastructure.redis_client import get_redis
from carpool.notifications.dispatcher import NotificationDispatcher


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async DB session; services open their own transactions on it."""
    async with async_session_factory() as session:
        yield session


def get_settings() -> Settings:
    return settings


_dispatcher = NotificationDispatcher(get_redis, settings.notification_queue_key)


def get_dispatcher() -> NotificationDispatcher:
    return _dispatcher
