"""
Fire-and-forget notification dispatch.

``emit`` is scheduled by the API layer after the core operation committed.
It pushes the event onto a Redis list consumed by the notification worker.
Nothing here is allowed to raise: a failed push is logged and dropped, the
triggering operation has already succeeded.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

import redis.asyncio as aioredis

from .events import NotificationEvent

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    def __init__(
        self,
        redis_factory: Callable[[], Awaitable[aioredis.Redis]],
        queue_key: str,
    ):
        self.redis_factory = redis_factory
        self.queue_key = queue_key

    async def emit(self, event: NotificationEvent) -> bool:
        if not event.recipients:
            return False
        try:
            redis = await self.redis_factory()
            await redis.rpush(self.queue_key, event.to_json())
        except Exception:
            logger.exception("Failed to enqueue %s notification", event.kind)
            return False
        logger.debug("Enqueued %s for %s", event.kind, event.recipients)
        return True
