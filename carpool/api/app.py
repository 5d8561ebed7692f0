"""
FastAPI application factory.

* Registers routes for users, trips, bookings, plans, payments and admin.
* Creates tables and starts / stops the notification worker via lifespan events.
* Maps core failure signals to HTTP responses.
* Applies rate limiting.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from carpool.api.errors import register_error_handlers
from carpool.api.middleware import limiter
from carpool.api.routes import admin, bookings, payments, plans, trips, users
from carpool.config import settings
from carpool.infrastructure import database, redis_client
from carpool.logging_setup import configure_logging
from carpool.notifications import worker as _worker

configure_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and start the notification worker; stop it and release Redis on shutdown."""
    await database.create_tables()
    await _worker.start_notification_loop()
    yield
    await _worker.stop_notification_loop()
    await redis_client.close_redis()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Carpool API",
        description=(
            "Drivers post trips, passengers book seats or post ride requests. "
            "Seat accounting is transactional; counterparties are notified "
            "through the Telegram bot after each change."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    register_error_handlers(app)

    # Routers
    for module in (users, trips, bookings, plans, payments, admin):
        app.include_router(module.router, prefix="/api/v1")

    return app
