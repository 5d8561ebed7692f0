"""
Admin endpoints
===============

GET  /api/v1/admin/settings?telegram_id=              -- monetization switch and instructions
PUT  /api/v1/admin/settings                           -- update them
GET  /api/v1/admin/stats?telegram_id=                 -- turnover / fee / payouts
GET  /api/v1/admin/daily-drivers?telegram_id=         -- today's fee per driver with proofs
POST /api/v1/admin/drivers/{telegram_id}/block        -- block or unblock a driver
GET  /api/v1/admin/health                             -- simple health check

The caller's ``telegram_id`` must be the configured administrator.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from carpool.api.dependencies import get_db, get_dispatcher, get_settings
from carpool.api.middleware import limiter
from carpool.api.schemas import (
    AdminDailyDriverResponse,
    AdminStatsResponse,
    AppSettingsResponse,
    AppSettingsUpdateRequest,
    BlockDriverRequest,
    HealthResponse,
    UserResponse,
)
from carpool.config import Settings, settings as app_settings
from carpool.notifications import events
from carpool.notifications.dispatcher import NotificationDispatcher
from carpool.services.accounts import AccountService
from carpool.services.monetization import MonetizationService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/settings", response_model=AppSettingsResponse, summary="App settings")
@limiter.limit(app_settings.rate_limit)
async def get_app_settings(
    request: Request,
    telegram_id: int = Query(...),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return await MonetizationService(db, settings).get_app_settings(telegram_id)


@router.put("/settings", response_model=AppSettingsResponse, summary="Update app settings")
@limiter.limit(app_settings.rate_limit)
async def update_app_settings(
    request: Request,
    body: AppSettingsUpdateRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return await MonetizationService(db, settings).update_app_settings(
        body.telegram_id, body.monetization_enabled, body.payment_details
    )


@router.get("/stats", response_model=AdminStatsResponse, summary="Overall money stats")
@limiter.limit(app_settings.rate_limit)
async def admin_stats(
    request: Request,
    telegram_id: int = Query(...),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return await MonetizationService(db, settings).admin_stats(telegram_id)


@router.get(
    "/daily-drivers",
    response_model=list[AdminDailyDriverResponse],
    summary="Today's platform fee per driver",
)
@limiter.limit(app_settings.rate_limit)
async def daily_drivers(
    request: Request,
    telegram_id: int = Query(...),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    rows = await MonetizationService(db, settings).admin_daily_drivers(telegram_id)
    return [AdminDailyDriverResponse.model_validate(row) for row in rows]


@router.post(
    "/drivers/{driver_telegram_id}/block",
    response_model=UserResponse,
    summary="Block or unblock a driver",
)
@limiter.limit(app_settings.rate_limit)
async def block_driver(
    request: Request,
    driver_telegram_id: int,
    body: BlockDriverRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    driver = await AccountService(db, settings).set_driver_blocked(
        body.telegram_id, driver_telegram_id, body.blocked
    )
    background_tasks.add_task(dispatcher.emit, events.driver_blocked(driver))
    return driver


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
