"""Centralised application settings loaded from environment / .env file."""

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite+aiosqlite:///./carpool.db"
    db_echo: bool = False
    sqlite_busy_timeout: float = 30.0  # seconds a writer waits for the lock

    # Redis (notification queue)
    redis_url: str = "redis://localhost:6379/0"
    notification_queue_key: str = "carpool:notifications"
    notification_poll_seconds: int = 5

    # Telegram delivery
    bot_token: str = ""
    telegram_api_url: str = "https://api.telegram.org"

    # Money
    service_fee_pct: float = 10.0  # share of a booking kept by the platform

    # Calendar day used by the monetization gate
    local_timezone: str = "Europe/Moscow"

    # Administration
    admin_telegram_id: Optional[int] = None
    receipts_dir: str = "./receipts"

    # API
    latest_trips_limit: int = 20
    rate_limit: str = "100/minute"
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
