"""
Passenger plan endpoints
========================

POST /api/v1/plans                          -- passenger posts a ride request
GET  /api/v1/plans                          -- active plans for drivers
GET  /api/v1/passengers/{telegram_id}/plans -- passenger's own plans
POST /api/v1/plans/{plan_id}/cancel         -- passenger withdraws a plan
POST /api/v1/plans/{plan_id}/take           -- driver claims a plan (first claim wins)
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from carpool.api.dependencies import get_db, get_dispatcher, get_settings
from carpool.api.middleware import limiter
from carpool.api.schemas import CallerRequest, PlanCreateRequest, PlanResponse
from carpool.config import Settings, settings as app_settings
from carpool.notifications import events
from carpool.notifications.dispatcher import NotificationDispatcher
from carpool.services.plans import PlanService

router = APIRouter(tags=["plans"])


@router.post(
    "/plans", status_code=201, response_model=PlanResponse, summary="Post a ride request"
)
@limiter.limit(app_settings.rate_limit)
async def create_plan(
    request: Request,
    body: PlanCreateRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return await PlanService(db, settings).create_plan(
        body.telegram_id,
        from_city=body.from_city,
        to_city=body.to_city,
        desired_time=body.desired_time,
        seats_needed=body.seats_needed,
        note=body.note,
    )


@router.get("/plans", response_model=list[PlanResponse], summary="Active ride requests")
@limiter.limit(app_settings.rate_limit)
async def list_plans(
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return await PlanService(db, settings).list_plans()


@router.get(
    "/passengers/{telegram_id}/plans",
    response_model=list[PlanResponse],
    summary="Passenger's ride requests",
)
@limiter.limit(app_settings.rate_limit)
async def passenger_plans(
    request: Request,
    telegram_id: int,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return await PlanService(db, settings).list_passenger_plans(telegram_id)


@router.post(
    "/plans/{plan_id}/cancel", response_model=PlanResponse, summary="Cancel a ride request"
)
@limiter.limit(app_settings.rate_limit)
async def cancel_plan(
    request: Request,
    plan_id: int,
    body: CallerRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return await PlanService(db, settings).cancel_plan(plan_id, body.telegram_id)


@router.post(
    "/plans/{plan_id}/take", response_model=PlanResponse, summary="Take a ride request"
)
@limiter.limit(app_settings.rate_limit)
async def take_plan(
    request: Request,
    plan_id: int,
    body: CallerRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    plan = await PlanService(db, settings).take_plan(plan_id, body.telegram_id)
    background_tasks.add_task(dispatcher.emit, events.plan_taken(plan))
    return plan
