"""
User endpoints
==============

POST /api/v1/users/init                  -- register / refresh a Telegram user
GET  /api/v1/users/{telegram_id}         -- profile (incl. no-show counter)
PUT  /api/v1/users/{telegram_id}/car     -- update the driver's car details
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from carpool.api.dependencies import get_db, get_settings
from carpool.api.middleware import limiter
from carpool.api.schemas import CarProfileRequest, InitUserRequest, UserResponse
from carpool.config import Settings, settings as app_settings
from carpool.services.accounts import AccountService

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/init", response_model=UserResponse, summary="Register or refresh a user")
@limiter.limit(app_settings.rate_limit)
async def init_user(
    request: Request,
    body: InitUserRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return await AccountService(db, settings).upsert_user(
        telegram_id=body.user.id,
        first_name=body.user.first_name,
        last_name=body.user.last_name,
        username=body.user.username,
    )


@router.get("/{telegram_id}", response_model=UserResponse, summary="User profile")
@limiter.limit(app_settings.rate_limit)
async def get_profile(
    request: Request,
    telegram_id: int,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return await AccountService(db, settings).get_profile(telegram_id)


@router.put(
    "/{telegram_id}/car", response_model=UserResponse, summary="Update car details"
)
@limiter.limit(app_settings.rate_limit)
async def update_car(
    request: Request,
    telegram_id: int,
    body: CarProfileRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return await AccountService(db, settings).update_car_profile(
        telegram_id, body.car_make, body.car_color, body.car_plate
    )
