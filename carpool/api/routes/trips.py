"""
Trip endpoints
==============

POST   /api/v1/trips                         -- driver creates a trip (monetization gate)
GET    /api/v1/trips                         -- latest trips for passengers
GET    /api/v1/trips/{trip_id}               -- trip with driver
DELETE /api/v1/trips/{trip_id}?telegram_id=  -- driver deletes a never-booked trip
GET    /api/v1/trips/{trip_id}/bookings      -- driver's passenger list
GET    /api/v1/drivers/{telegram_id}/trips   -- driver's trips with booking counts
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from carpool.api.dependencies import get_db, get_settings
from carpool.api.middleware import limiter
from carpool.api.schemas import (
    DriverTripResponse,
    TripBookingResponse,
    TripCreateRequest,
    TripResponse,
)
from carpool.config import Settings, settings as app_settings
from carpool.services.booking_engine import BookingEngine
from carpool.services.trips import TripService

router = APIRouter(tags=["trips"])


@router.post(
    "/trips", status_code=201, response_model=TripResponse, summary="Create a trip"
)
@limiter.limit(app_settings.rate_limit)
async def create_trip(
    request: Request,
    body: TripCreateRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return await TripService(db, settings).create_trip(
        body.telegram_id,
        from_city=body.from_city,
        to_city=body.to_city,
        departure_time=body.departure_time,
        seats_total=body.seats_total,
        price_per_seat=body.price_per_seat,
        note=body.note,
    )


@router.get("/trips", response_model=list[TripResponse], summary="Latest trips")
@limiter.limit(app_settings.rate_limit)
async def list_trips(
    request: Request,
    limit: Optional[int] = Query(None, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return await TripService(db, settings).list_latest_trips(limit)


@router.get("/trips/{trip_id}", response_model=TripResponse, summary="Trip details")
@limiter.limit(app_settings.rate_limit)
async def get_trip(
    request: Request,
    trip_id: int,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return await TripService(db, settings).get_trip(trip_id)


@router.delete(
    "/trips/{trip_id}",
    response_model=TripResponse,
    summary="Delete a trip",
    description=(
        "Only the owning driver, only before departure, and only while the "
        "trip has never had a booking (cancelled ones included)."
    ),
)
@limiter.limit(app_settings.rate_limit)
async def delete_trip(
    request: Request,
    trip_id: int,
    telegram_id: int = Query(...),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return await BookingEngine(db, settings).delete_trip_by_driver(trip_id, telegram_id)


@router.get(
    "/trips/{trip_id}/bookings",
    response_model=list[TripBookingResponse],
    summary="Bookings on a driver's trip",
)
@limiter.limit(app_settings.rate_limit)
async def trip_bookings(
    request: Request,
    trip_id: int,
    telegram_id: int = Query(...),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return await TripService(db, settings).list_trip_bookings(trip_id, telegram_id)


@router.get(
    "/drivers/{telegram_id}/trips",
    response_model=list[DriverTripResponse],
    summary="Driver's trips with booking counts",
)
@limiter.limit(app_settings.rate_limit)
async def driver_trips(
    request: Request,
    telegram_id: int,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    rows = await TripService(db, settings).list_driver_trips(telegram_id)
    return [
        DriverTripResponse.model_validate(row.trip).model_copy(
            update={"bookings_count": row.bookings_count}
        )
        for row in rows
    ]
