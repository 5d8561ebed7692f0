"""
Seat-Accounting Engine
======================

Every operation below runs as one unit of work (``session.begin()``):
commit on normal exit, rollback on any exception, so a rejected call never
leaves partial state behind.

Concurrency safety
------------------
* SQLite: transactions open with ``BEGIN IMMEDIATE`` (see
  ``infrastructure.database``), so writers are serialized.
* PostgreSQL: the trip / booking row is read ``FOR UPDATE``.
* On both, every seat mutation is a conditional UPDATE whose affected-row
  count is re-checked; a stale read can never overbook a trip or restore
  seats twice.

Failure order per operation follows the documented precondition order;
each failure is a distinct ``carpool.domain.errors`` type.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from carpool.config import Settings
from carpool.domain import errors
from carpool.domain.enums import BookingStatus
from carpool.domain.pricing import FeePolicy
from carpool.domain.timeutil import as_utc, utcnow
from carpool.infrastructure.models import BookingModel, TripModel, UserModel
from carpool.infrastructure.repositories import (
    BookingRepository,
    TripRepository,
    UserRepository,
)

logger = logging.getLogger(__name__)


@dataclass
class BookingResult:
    booking: BookingModel
    trip: TripModel
    passenger: UserModel


@dataclass
class NoShowResult:
    booking: BookingModel
    changed: bool


def validate_seat_count(seats) -> int:
    if isinstance(seats, bool) or not isinstance(seats, int) or seats <= 0:
        raise errors.InvalidSeatCount()
    return seats


class BookingEngine:
    def __init__(self, session: AsyncSession, settings: Settings):
        self.session = session
        self.fees = FeePolicy(settings.service_fee_pct)
        self.trips = TripRepository(session)
        self.bookings = BookingRepository(session)
        self.users = UserRepository(session)

    async def create_booking(
        self,
        trip_id: int,
        passenger_telegram_id: int,
        seats_requested: int,
    ) -> BookingResult:
        seats = validate_seat_count(seats_requested)

        async with self.session.begin():
            trip = await self.trips.get_for_update(trip_id)
            if trip is None:
                raise errors.TripNotFound()

            passenger = await self.users.get_by_telegram_id(passenger_telegram_id)
            if passenger is None:
                raise errors.PassengerNotFound()

            if trip.seats_available < seats:
                raise errors.InsufficientSeats()

            if not await self.trips.reserve_seats(trip.id, seats):
                # availability moved between the read and the write
                raise errors.InsufficientSeats()
            await self.session.refresh(trip)

            money = self.fees.breakdown(trip.price_per_seat, seats)
            booking = await self.bookings.create(
                trip_id=trip.id,
                passenger_id=passenger.id,
                seats_booked=seats,
                money=money,
            )

        logger.info(
            "Booking %d created: trip=%d passenger=%d seats=%d (left %d)",
            booking.id, trip.id, passenger.id, seats, trip.seats_available,
        )
        return BookingResult(booking=booking, trip=trip, passenger=passenger)

    async def cancel_booking_by_passenger(
        self,
        booking_id: int,
        passenger_telegram_id: int,
        now: datetime | None = None,
    ) -> BookingModel:
        now = as_utc(now) if now else utcnow()

        async with self.session.begin():
            booking = await self.bookings.get_for_update(booking_id)
            if booking is None:
                raise errors.BookingNotFound()

            if booking.passenger.telegram_id != passenger_telegram_id:
                raise errors.Forbidden()

            if booking.status != BookingStatus.BOOKED:
                raise errors.InvalidStatus(
                    f"Booking is {booking.status.value}, only booked can be cancelled"
                )

            trip = await self.trips.get_for_update(booking.trip_id)
            if now >= as_utc(trip.departure_time):
                raise errors.TooLate()

            if not await self.bookings.transition(
                booking.id, BookingStatus.BOOKED, BookingStatus.CANCELLED
            ):
                raise errors.InvalidStatus()
            if not await self.trips.release_seats(trip.id, booking.seats_booked):
                raise errors.SeatRestoreFailed(
                    f"Seat restore for booking {booking.id} would exceed trip capacity"
                )

            await self.session.refresh(trip)
            await self.session.refresh(booking)

        logger.info(
            "Booking %d cancelled by passenger: trip=%d seats restored=%d",
            booking.id, trip.id, booking.seats_booked,
        )
        return booking

    async def mark_booking_no_show(
        self, booking_id: int, driver_telegram_id: int
    ) -> NoShowResult:
        async with self.session.begin():
            booking = await self.bookings.get_for_update(booking_id)
            if booking is None:
                raise errors.BookingNotFound()

            if booking.trip.driver.telegram_id != driver_telegram_id:
                raise errors.Forbidden()

            if booking.status == BookingStatus.NO_SHOW:
                return NoShowResult(booking=booking, changed=False)

            if not await self.bookings.transition(
                booking.id, BookingStatus.BOOKED, BookingStatus.NO_SHOW
            ):
                raise errors.InvalidStatus(
                    f"Booking is {booking.status.value}, only booked can be marked no-show"
                )
            await self.users.increment_no_show(booking.passenger_id)

            await self.session.refresh(booking)
            await self.session.refresh(booking.passenger)

        logger.info(
            "Booking %d marked no-show: passenger=%d no_show_count=%d",
            booking.id, booking.passenger_id, booking.passenger.no_show_count,
        )
        return NoShowResult(booking=booking, changed=True)

    async def delete_trip_by_driver(
        self,
        trip_id: int,
        driver_telegram_id: int,
        now: datetime | None = None,
    ) -> TripModel:
        now = as_utc(now) if now else utcnow()

        async with self.session.begin():
            trip = await self.trips.get_for_update(trip_id)
            if trip is None:
                raise errors.TripNotFound()

            if trip.driver.telegram_id != driver_telegram_id:
                raise errors.Forbidden()

            if now >= as_utc(trip.departure_time):
                raise errors.TooLate()

            if await self.trips.count_bookings(trip.id) > 0:
                raise errors.HasBookings()

            if not await self.trips.delete_if_unbooked(trip.id):
                raise errors.HasBookings()
            self.session.expunge(trip)

        logger.info("Trip %d deleted by driver %d", trip.id, trip.driver_id)
        return trip
