"""
Post-commit notification events.

An event is a plain description of what happened (who should hear about it
and a snapshot of the entities involved).  The worker decides the wording
and delivery.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field

from carpool.infrastructure.models import (
    BookingModel,
    PassengerPlanModel,
    TripModel,
    UserModel,
)

BOOKING_CREATED = "booking_created"
BOOKING_CANCELLED = "booking_cancelled"
NO_SHOW_MARKED = "no_show_marked"
PLAN_TAKEN = "plan_taken"
DRIVER_BLOCKED = "driver_blocked"


@dataclass
class NotificationEvent:
    kind: str
    recipients: list[int]
    payload: dict = field(default_factory=dict)

    def to_json(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False, default=str)

    @classmethod
    def from_json(cls, raw: str | bytes) -> "NotificationEvent":
        data = json.loads(raw)
        return cls(
            kind=data["kind"],
            recipients=[int(r) for r in data.get("recipients", [])],
            payload=data.get("payload") or {},
        )


def _display_name(user: UserModel) -> str:
    if user.username:
        return f"@{user.username}"
    parts = [p for p in (user.first_name, user.last_name) if p]
    return " ".join(parts) or f"id{user.telegram_id}"


def _trip_snapshot(trip: TripModel) -> dict:
    return {
        "trip_id": trip.id,
        "from_city": trip.from_city,
        "to_city": trip.to_city,
        "departure_time": trip.departure_time.isoformat(),
        "seats_available": trip.seats_available,
        "seats_total": trip.seats_total,
    }


def booking_created(
    booking: BookingModel, trip: TripModel, passenger: UserModel
) -> NotificationEvent:
    return NotificationEvent(
        kind=BOOKING_CREATED,
        recipients=[trip.driver.telegram_id],
        payload={
            **_trip_snapshot(trip),
            "booking_id": booking.id,
            "seats_booked": booking.seats_booked,
            "amount_total": str(booking.amount_total),
            "driver_amount": str(booking.driver_amount),
            "passenger": _display_name(passenger),
        },
    )


def booking_cancelled(booking: BookingModel) -> NotificationEvent:
    trip = booking.trip
    return NotificationEvent(
        kind=BOOKING_CANCELLED,
        recipients=[trip.driver.telegram_id],
        payload={
            **_trip_snapshot(trip),
            "booking_id": booking.id,
            "seats_booked": booking.seats_booked,
            "passenger": _display_name(booking.passenger),
        },
    )


def no_show_marked(booking: BookingModel) -> NotificationEvent:
    return NotificationEvent(
        kind=NO_SHOW_MARKED,
        recipients=[booking.passenger.telegram_id],
        payload={
            **_trip_snapshot(booking.trip),
            "booking_id": booking.id,
            "no_show_count": booking.passenger.no_show_count,
        },
    )


def plan_taken(plan: PassengerPlanModel) -> NotificationEvent:
    driver = plan.driver
    return NotificationEvent(
        kind=PLAN_TAKEN,
        recipients=[plan.passenger.telegram_id],
        payload={
            "plan_id": plan.id,
            "from_city": plan.from_city,
            "to_city": plan.to_city,
            "desired_time": plan.desired_time.isoformat(),
            "driver": _display_name(driver) if driver else None,
            "car": " ".join(
                p for p in (driver.car_make, driver.car_color, driver.car_plate) if p
            )
            if driver
            else None,
        },
    )


def driver_blocked(driver: UserModel) -> NotificationEvent:
    return NotificationEvent(
        kind=DRIVER_BLOCKED,
        recipients=[driver.telegram_id],
        payload={"blocked": bool(driver.is_blocked)},
    )


def render_text(event: NotificationEvent) -> str:
    p = event.payload
    route = f"{p.get('from_city')} → {p.get('to_city')}"
    if event.kind == BOOKING_CREATED:
        return (
            f"New booking on {route} ({p['departure_time']}): "
            f"{p['passenger']} booked {p['seats_booked']} seat(s), "
            f"{p['seats_available']} left. Your payout: {p['driver_amount']}."
        )
    if event.kind == BOOKING_CANCELLED:
        return (
            f"{p['passenger']} cancelled {p['seats_booked']} seat(s) on {route} "
            f"({p['departure_time']}). Seats available: {p['seats_available']}."
        )
    if event.kind == NO_SHOW_MARKED:
        return f"The driver of {route} ({p['departure_time']}) marked you as a no-show."
    if event.kind == PLAN_TAKEN:
        car = f" ({p['car']})" if p.get("car") else ""
        return f"Driver {p['driver']}{car} will take you on {route} at {p['desired_time']}."
    if event.kind == DRIVER_BLOCKED:
        if p.get("blocked"):
            return "Your account was blocked from creating trips by the administrator."
        return "Your account was unblocked; you can create trips again."
    return f"Update: {event.kind}"
