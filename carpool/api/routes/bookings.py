"""
Booking endpoints
=================

POST /api/v1/bookings                           -- book seats on a trip
POST /api/v1/bookings/{booking_id}/cancel       -- passenger cancels (before departure)
POST /api/v1/bookings/{booking_id}/no-show      -- driver marks a no-show
GET  /api/v1/passengers/{telegram_id}/bookings  -- passenger's bookings

Counterparties are notified after the operation committed; a failed
notification never changes the response.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from carpool.api.dependencies import get_db, get_dispatcher, get_settings
from carpool.api.middleware import limiter
from carpool.api.schemas import (
    BookingCreatedResponse,
    BookingCreateRequest,
    BookingResponse,
    CallerRequest,
    TripBookingResponse,
    TripResponse,
    UserResponse,
)
from carpool.config import Settings, settings as app_settings
from carpool.notifications import events
from carpool.notifications.dispatcher import NotificationDispatcher
from carpool.services.booking_engine import BookingEngine
from carpool.services.trips import TripService

router = APIRouter(tags=["bookings"])


@router.post(
    "/bookings",
    status_code=201,
    response_model=BookingCreatedResponse,
    summary="Book seats on a trip",
)
@limiter.limit(app_settings.rate_limit)
async def create_booking(
    request: Request,
    body: BookingCreateRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    result = await BookingEngine(db, settings).create_booking(
        body.trip_id, body.telegram_id, body.seats
    )
    background_tasks.add_task(
        dispatcher.emit,
        events.booking_created(result.booking, result.trip, result.passenger),
    )
    return BookingCreatedResponse(
        booking=BookingResponse.model_validate(result.booking),
        trip=TripResponse.model_validate(result.trip),
        passenger=UserResponse.model_validate(result.passenger),
    )


@router.post(
    "/bookings/{booking_id}/cancel",
    response_model=BookingResponse,
    summary="Cancel a booking",
)
@limiter.limit(app_settings.rate_limit)
async def cancel_booking(
    request: Request,
    booking_id: int,
    body: CallerRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    booking = await BookingEngine(db, settings).cancel_booking_by_passenger(
        booking_id, body.telegram_id
    )
    background_tasks.add_task(dispatcher.emit, events.booking_cancelled(booking))
    return booking


@router.post(
    "/bookings/{booking_id}/no-show",
    response_model=BookingResponse,
    summary="Mark a passenger as no-show",
)
@limiter.limit(app_settings.rate_limit)
async def mark_no_show(
    request: Request,
    booking_id: int,
    body: CallerRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    result = await BookingEngine(db, settings).mark_booking_no_show(
        booking_id, body.telegram_id
    )
    if result.changed:
        background_tasks.add_task(dispatcher.emit, events.no_show_marked(result.booking))
    return result.booking


@router.get(
    "/passengers/{telegram_id}/bookings",
    response_model=list[TripBookingResponse],
    summary="Passenger's bookings",
)
@limiter.limit(app_settings.rate_limit)
async def passenger_bookings(
    request: Request,
    telegram_id: int,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return await TripService(db, settings).list_passenger_bookings(telegram_id)
