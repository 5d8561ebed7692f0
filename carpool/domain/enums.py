"""Domain enumerations and state-transition rules."""

import enum


class BookingStatus(str, enum.Enum):
    BOOKED = "booked"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


# State machine: maps current status -> set of valid next statuses
BOOKING_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.BOOKED: {BookingStatus.CANCELLED, BookingStatus.NO_SHOW},
    BookingStatus.CANCELLED: set(),
    BookingStatus.NO_SHOW: set(),
}


class PlanStatus(str, enum.Enum):
    ACTIVE = "active"
    TAKEN = "taken"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


PLAN_TRANSITIONS: dict[PlanStatus, set[PlanStatus]] = {
    PlanStatus.ACTIVE: {PlanStatus.TAKEN, PlanStatus.CANCELLED, PlanStatus.EXPIRED},
    PlanStatus.TAKEN: set(),
    PlanStatus.CANCELLED: set(),
    PlanStatus.EXPIRED: set(),
}


def can_transition(current, target, table) -> bool:
    return target in table.get(current, set())
