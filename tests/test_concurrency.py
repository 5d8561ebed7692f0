"""
Concurrency safety tests.

Demonstrates:
1. Concurrent bookings never overbook a trip nor drive seats negative.
2. Concurrent cancellations of one booking restore its seats once.
3. Concurrent claims of one plan produce exactly one winner.

Every concurrent caller gets its own session (and therefore its own SQLite
connection), the same way separate HTTP requests would.
"""

from __future__ import annotations

import asyncio

import pytest
from sqlalchemy import func, select

from carpool.domain import errors
from carpool.domain.enums import BookingStatus, PlanStatus
from carpool.infrastructure.models import BookingModel, PassengerPlanModel, TripModel
from carpool.infrastructure.repositories import PlanRepository
from carpool.services.booking_engine import BookingEngine
from carpool.services.plans import PlanService

DRIVER = 100


class TestConcurrentBookings:
    @pytest.mark.asyncio
    async def test_ten_passengers_five_seats(
        self, session_factory, settings, make_user, make_trip, fetch, count_bookings
    ):
        trip = await make_trip(await make_user(DRIVER), seats_total=5)
        passengers = [300 + i for i in range(10)]
        for tg in passengers:
            await make_user(tg)

        async def book(tg: int):
            async with session_factory() as session:
                return await BookingEngine(session, settings).create_booking(trip.id, tg, 1)

        results = await asyncio.gather(
            *(book(tg) for tg in passengers), return_exceptions=True
        )

        succeeded = [r for r in results if not isinstance(r, Exception)]
        rejected = [r for r in results if isinstance(r, Exception)]
        assert len(succeeded) == 5
        assert all(isinstance(r, errors.InsufficientSeats) for r in rejected)
        assert all(r.trip.seats_available >= 0 for r in succeeded)
        assert (await fetch(TripModel, trip.id)).seats_available == 0
        assert await count_bookings(trip.id) == 5

    @pytest.mark.asyncio
    async def test_mixed_seat_counts_conserve_seats(
        self, session_factory, settings, make_user, make_trip, fetch
    ):
        trip = await make_trip(await make_user(DRIVER), seats_total=4)
        requests = {401: 3, 402: 2, 403: 1, 404: 2}
        for tg in requests:
            await make_user(tg)

        async def book(tg: int, seats: int):
            async with session_factory() as session:
                return await BookingEngine(session, settings).create_booking(
                    trip.id, tg, seats
                )

        await asyncio.gather(
            *(book(tg, seats) for tg, seats in requests.items()),
            return_exceptions=True,
        )

        async with session_factory() as session:
            booked = await session.scalar(
                select(func.coalesce(func.sum(BookingModel.seats_booked), 0)).where(
                    BookingModel.trip_id == trip.id,
                    BookingModel.status == BookingStatus.BOOKED,
                )
            )
        stored = await fetch(TripModel, trip.id)
        assert 0 <= stored.seats_available <= stored.seats_total
        assert stored.seats_available + booked == stored.seats_total


class TestConcurrentCancellations:
    @pytest.mark.asyncio
    async def test_double_cancel_restores_seats_once(
        self, session_factory, settings, make_user, make_trip, fetch
    ):
        trip = await make_trip(await make_user(DRIVER), seats_total=3)
        await make_user(501)
        async with session_factory() as session:
            booking = (
                await BookingEngine(session, settings).create_booking(trip.id, 501, 2)
            ).booking

        async def cancel():
            async with session_factory() as session:
                return await BookingEngine(session, settings).cancel_booking_by_passenger(
                    booking.id, 501
                )

        results = await asyncio.gather(*(cancel() for _ in range(4)), return_exceptions=True)

        succeeded = [r for r in results if not isinstance(r, Exception)]
        assert len(succeeded) == 1
        assert all(
            isinstance(r, errors.InvalidStatus)
            for r in results
            if isinstance(r, Exception)
        )
        assert (await fetch(TripModel, trip.id)).seats_available == 3


class TestConcurrentPlanClaims:
    @pytest.mark.asyncio
    async def test_exactly_one_driver_wins_after_shared_read(
        self, session_factory, settings, make_user, make_plan, fetch, monkeypatch
    ):
        """All drivers pass the precondition read before any of them claims."""
        plan = await make_plan(await make_user(600))
        drivers = [700 + i for i in range(5)]
        for tg in drivers:
            await make_user(tg)

        barrier = asyncio.Barrier(len(drivers))
        original_claim = PlanRepository.claim

        async def claim_after_everyone_read(self, *args, **kwargs):
            await barrier.wait()
            return await original_claim(self, *args, **kwargs)

        monkeypatch.setattr(PlanRepository, "claim", claim_after_everyone_read)

        async def take(tg: int):
            async with session_factory() as session:
                return await PlanService(session, settings).take_plan(plan.id, tg)

        results = await asyncio.gather(*(take(tg) for tg in drivers), return_exceptions=True)

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert len(losers) == len(drivers) - 1
        assert all(isinstance(r, errors.AlreadyTaken) for r in losers)

        stored = await fetch(PassengerPlanModel, plan.id)
        assert stored.status == PlanStatus.TAKEN
        assert stored.driver_id == winners[0].driver_id

    @pytest.mark.asyncio
    async def test_unsynchronised_claims_single_winner(
        self, session_factory, settings, make_user, make_plan, fetch
    ):
        plan = await make_plan(await make_user(610))
        drivers = [800 + i for i in range(6)]
        for tg in drivers:
            await make_user(tg)

        async def take(tg: int):
            async with session_factory() as session:
                return await PlanService(session, settings).take_plan(plan.id, tg)

        results = await asyncio.gather(*(take(tg) for tg in drivers), return_exceptions=True)

        winners = [r for r in results if not isinstance(r, Exception)]
        assert len(winners) == 1
        assert all(
            isinstance(r, (errors.AlreadyTaken, errors.PlanUnavailable))
            for r in results
            if isinstance(r, Exception)
        )
        assert (await fetch(PassengerPlanModel, plan.id)).status == PlanStatus.TAKEN
