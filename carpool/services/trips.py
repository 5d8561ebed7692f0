"""Trip creation (behind the monetization gate) and trip / booking listings."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from carpool.config import Settings
from carpool.domain import errors
from carpool.domain.pricing import to_money
from carpool.domain.timeutil import as_utc, utcnow
from carpool.infrastructure.models import BookingModel, TripModel
from carpool.infrastructure.repositories import (
    BookingRepository,
    TripRepository,
    UserRepository,
)
from carpool.services.booking_engine import validate_seat_count
from carpool.services.monetization import MonetizationService

logger = logging.getLogger(__name__)


@dataclass
class DriverTrip:
    trip: TripModel
    bookings_count: int


class TripService:
    def __init__(self, session: AsyncSession, settings: Settings):
        self.session = session
        self.settings = settings
        self.trips = TripRepository(session)
        self.bookings = BookingRepository(session)
        self.users = UserRepository(session)
        self.monetization = MonetizationService(session, settings)

    async def create_trip(
        self,
        driver_telegram_id: int,
        *,
        from_city: str,
        to_city: str,
        departure_time: datetime,
        seats_total: int,
        price_per_seat: Decimal | float,
        note: str | None = None,
        now: datetime | None = None,
    ) -> TripModel:
        seats_total = validate_seat_count(seats_total)
        now = as_utc(now) if now else utcnow()
        departure_time = as_utc(departure_time)

        async with self.session.begin():
            driver = await self.users.get_by_telegram_id(driver_telegram_id)
            if driver is None:
                raise errors.UserNotFound()
            if driver.is_blocked:
                raise errors.DriverBlocked()
            if departure_time <= now:
                raise errors.TooLate("Departure time must be in the future")

            decision = await self.monetization.evaluate_for_driver(driver, now)
            if not decision.allowed:
                raise errors.MonetizationRequired()

            trip = await self.trips.create(
                driver_id=driver.id,
                from_city=from_city,
                to_city=to_city,
                departure_time=departure_time,
                seats_total=seats_total,
                price_per_seat=to_money(price_per_seat),
                note=note or None,
            )

        logger.info(
            "Trip %d created by driver %d: %s -> %s, %d seats",
            trip.id, driver.id, from_city, to_city, seats_total,
        )
        return trip

    async def get_trip(self, trip_id: int) -> TripModel:
        async with self.session.begin():
            trip = await self.trips.get_by_id(trip_id)
        if trip is None:
            raise errors.TripNotFound()
        return trip

    async def list_latest_trips(self, limit: int | None = None) -> list[TripModel]:
        async with self.session.begin():
            return await self.trips.get_latest(limit or self.settings.latest_trips_limit)

    async def list_driver_trips(self, driver_telegram_id: int) -> list[DriverTrip]:
        async with self.session.begin():
            driver = await self.users.get_by_telegram_id(driver_telegram_id)
            if driver is None:
                raise errors.UserNotFound()
            rows = await self.trips.get_for_driver_with_counts(driver.id)
        return [DriverTrip(trip=trip, bookings_count=count) for trip, count in rows]

    async def list_trip_bookings(
        self, trip_id: int, driver_telegram_id: int
    ) -> list[BookingModel]:
        async with self.session.begin():
            trip = await self.trips.get_by_id(trip_id)
            if trip is None:
                raise errors.TripNotFound()
            if trip.driver.telegram_id != driver_telegram_id:
                raise errors.Forbidden()
            return await self.bookings.get_for_trip(trip.id)

    async def list_passenger_bookings(
        self, passenger_telegram_id: int
    ) -> list[BookingModel]:
        async with self.session.begin():
            passenger = await self.users.get_by_telegram_id(passenger_telegram_id)
            if passenger is None:
                raise errors.PassengerNotFound()
            return await self.bookings.get_for_passenger(passenger.id)
