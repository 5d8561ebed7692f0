"""
Typed failure signals of the core operations.

Every expected failure is a subclass of one of four categories so the API
boundary can map it to a response without inspecting messages:

* ``ValidationError``    -- malformed input, raised before touching the store
* ``NotFoundError``      -- a referenced entity does not exist
* ``AuthorizationError`` -- the caller does not own the resource
* ``ConflictError``      -- status / time / capacity precondition not met,
  including a lost race on a conditional claim

Database and Redis failures are not wrapped; they propagate as-is.
"""

from __future__ import annotations


class CarpoolError(Exception):
    code = "error"
    default_message = "Operation failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ── Categories ────────────────────────────────────────────────────────


class ValidationError(CarpoolError):
    code = "validation_error"


class NotFoundError(CarpoolError):
    code = "not_found"


class AuthorizationError(CarpoolError):
    code = "forbidden"


class ConflictError(CarpoolError):
    code = "conflict"


# ── Validation ────────────────────────────────────────────────────────


class InvalidSeatCount(ValidationError):
    code = "bad_seat_count"
    default_message = "Seat count must be a positive integer"


# ── Not found ─────────────────────────────────────────────────────────


class TripNotFound(NotFoundError):
    code = "trip_not_found"
    default_message = "Trip not found"


class PassengerNotFound(NotFoundError):
    code = "passenger_not_found"
    default_message = "Passenger not found"


class UserNotFound(NotFoundError):
    code = "user_not_found"
    default_message = "User not found"


class BookingNotFound(NotFoundError):
    code = "booking_not_found"
    default_message = "Booking not found"


class PlanNotFound(NotFoundError):
    code = "plan_not_found"
    default_message = "Plan not found"


# ── Authorization ─────────────────────────────────────────────────────


class Forbidden(AuthorizationError):
    code = "forbidden"
    default_message = "Not allowed to modify this resource"


# ── Conflicts ─────────────────────────────────────────────────────────


class InsufficientSeats(ConflictError):
    code = "insufficient_seats"
    default_message = "Not enough seats available"


class InvalidStatus(ConflictError):
    code = "invalid_status"
    default_message = "Operation not allowed in the current status"


class TooLate(ConflictError):
    code = "too_late"
    default_message = "The departure time has already passed"


class HasBookings(ConflictError):
    code = "has_bookings"
    default_message = "Trip already has bookings and cannot be deleted"


class PlanUnavailable(ConflictError):
    code = "plan_unavailable"
    default_message = "Plan is no longer active"


class AlreadyTaken(ConflictError):
    code = "already_taken"
    default_message = "Plan was taken by another driver"


class DriverBlocked(ConflictError):
    code = "driver_blocked"
    default_message = "Driver is blocked by the administrator"


class MonetizationRequired(ConflictError):
    code = "payment_required"
    default_message = "Upload today's payment proof before creating new trips"


class SeatRestoreFailed(ConflictError):
    code = "seat_restore_failed"
    default_message = "Released seats would exceed the trip capacity"
