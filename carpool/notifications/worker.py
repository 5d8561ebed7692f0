"""
Background Notification Worker
==============================

Started and stopped by the API lifespan.  Each iteration blocks on
``BLPOP`` for up to ``notification_poll_seconds``, renders the event and
sends one Telegram message per recipient.

Failure policy
--------------
* A malformed event or a failed delivery is logged and skipped.
* Redis errors are logged; the loop waits one poll interval and goes on.
* Nothing is re-queued; notifications are best effort.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from carpool.config import settings
from carpool.infrastructure.redis_client import get_redis

from .events import NotificationEvent, render_text

logger = logging.getLogger(__name__)

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


class TelegramNotifier:
    """Minimal Bot API client: only ``sendMessage`` is needed."""

    def __init__(self, token: str, api_url: str, client: httpx.AsyncClient):
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.client = client

    async def send_message(self, chat_id: int, text: str) -> bool:
        if not self.token:
            logger.debug("Bot token not configured, dropping message to %s", chat_id)
            return False
        resp = await self.client.post(
            f"{self.api_url}/bot{self.token}/sendMessage",
            json={"chat_id": chat_id, "text": text},
        )
        if resp.status_code != 200:
            logger.warning(
                "sendMessage to %s failed: %s %s", chat_id, resp.status_code, resp.text
            )
            return False
        return True


async def deliver(event: NotificationEvent, notifier: TelegramNotifier) -> int:
    """Send *event* to every recipient; returns the number of successful sends."""
    text = render_text(event)
    sent = 0
    for chat_id in event.recipients:
        try:
            if await notifier.send_message(chat_id, text):
                sent += 1
        except httpx.HTTPError:
            logger.exception("Delivery of %s to %s failed", event.kind, chat_id)
    return sent


async def process_next(redis, notifier: TelegramNotifier, timeout: int) -> bool:
    """Pop and deliver one event.  Returns False when the queue was empty."""
    item = await redis.blpop([settings.notification_queue_key], timeout=timeout)
    if item is None:
        return False
    _, raw = item
    try:
        event = NotificationEvent.from_json(raw)
    except (ValueError, KeyError, TypeError):
        logger.exception("Dropping malformed notification: %r", raw)
        return True
    await deliver(event, notifier)
    return True


# ── Public API ────────────────────────────────────────────────────────


async def start_notification_loop() -> None:
    global _task, _stop_event
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop())
    logger.info(
        "Notification worker started (poll=%ds)", settings.notification_poll_seconds
    )


async def stop_notification_loop() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    logger.info("Notification worker stopped")


# ── Internals ─────────────────────────────────────────────────────────


async def _loop() -> None:
    assert _stop_event is not None
    async with httpx.AsyncClient(timeout=10.0) as client:
        notifier = TelegramNotifier(settings.bot_token, settings.telegram_api_url, client)
        while not _stop_event.is_set():
            try:
                redis = await get_redis()
                await process_next(redis, notifier, settings.notification_poll_seconds)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Unhandled error in notification loop")
                try:
                    await asyncio.wait_for(
                        _stop_event.wait(), timeout=settings.notification_poll_seconds
                    )
                    break
                except asyncio.TimeoutError:
                    pass  # retry after the pause
