"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from carpool.domain.enums import BookingStatus, PlanStatus


# ── Requests ──────────────────────────────────────────────────────────


class TelegramUserPayload(BaseModel):
    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None


class InitUserRequest(BaseModel):
    user: TelegramUserPayload


class CarProfileRequest(BaseModel):
    car_make: Optional[str] = Field(None, max_length=60)
    car_color: Optional[str] = Field(None, max_length=40)
    car_plate: Optional[str] = Field(None, max_length=20)


class TripCreateRequest(BaseModel):
    telegram_id: int
    from_city: str = Field(..., min_length=1, max_length=120)
    to_city: str = Field(..., min_length=1, max_length=120)
    departure_time: datetime
    seats_total: int = Field(..., ge=1, le=8)
    price_per_seat: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    note: Optional[str] = Field(None, max_length=500)


class CallerRequest(BaseModel):
    telegram_id: int


class BookingCreateRequest(BaseModel):
    trip_id: int
    telegram_id: int
    seats: int = Field(1, ge=1, le=8)


class PlanCreateRequest(BaseModel):
    telegram_id: int
    from_city: str = Field(..., min_length=1, max_length=120)
    to_city: str = Field(..., min_length=1, max_length=120)
    desired_time: datetime
    seats_needed: int = Field(1, ge=1, le=8)
    note: Optional[str] = Field(None, max_length=500)


class AppSettingsUpdateRequest(BaseModel):
    telegram_id: int
    monetization_enabled: bool
    payment_details: Optional[str] = Field(None, max_length=1000)


class BlockDriverRequest(BaseModel):
    telegram_id: int
    blocked: bool = True


# ── Responses ─────────────────────────────────────────────────────────


class UserResponse(BaseModel):
    id: int
    telegram_id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None
    no_show_count: int = 0
    car_make: Optional[str] = None
    car_color: Optional[str] = None
    car_plate: Optional[str] = None
    is_blocked: bool = False

    model_config = {"from_attributes": True}


class TripResponse(BaseModel):
    id: int
    driver_id: int
    from_city: str
    to_city: str
    departure_time: datetime
    seats_total: int
    seats_available: int
    price_per_seat: Decimal
    note: Optional[str] = None
    created_at: Optional[datetime] = None
    driver: Optional[UserResponse] = None

    model_config = {"from_attributes": True}


class DriverTripResponse(TripResponse):
    bookings_count: int = 0


class BookingResponse(BaseModel):
    id: int
    trip_id: int
    passenger_id: int
    seats_booked: int
    status: BookingStatus
    amount_total: Decimal
    app_fee: Decimal
    driver_amount: Decimal
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class TripBookingResponse(BookingResponse):
    passenger: Optional[UserResponse] = None


class BookingCreatedResponse(BaseModel):
    booking: BookingResponse
    trip: TripResponse
    passenger: UserResponse


class PlanResponse(BaseModel):
    id: int
    passenger_id: int
    driver_id: Optional[int] = None
    from_city: str
    to_city: str
    desired_time: datetime
    seats_needed: int
    note: Optional[str] = None
    status: PlanStatus
    created_at: Optional[datetime] = None
    taken_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class DailyStatsResponse(BaseModel):
    trips_count: int
    bookings_count: int
    seats_count: int
    app_fee_total: Decimal

    model_config = {"from_attributes": True}


class GateResponse(BaseModel):
    allowed: bool
    reason: str
    has_proof_today: bool
    stats: DailyStatsResponse

    model_config = {"from_attributes": True}


class PaymentStatusResponse(BaseModel):
    gate: GateResponse
    payment_details: str


class PaymentProofResponse(BaseModel):
    id: int
    driver_id: int
    original_name: Optional[str] = None
    stored_name: str
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class AppSettingsResponse(BaseModel):
    monetization_enabled: bool
    payment_details: str

    model_config = {"from_attributes": True}


class AdminStatsResponse(BaseModel):
    trips_count: int
    bookings_count: int
    seats_booked_total: int
    total_turnover: Decimal
    total_app_fee: Decimal
    total_driver_amount: Decimal


class AdminDailyDriverResponse(BaseModel):
    driver: UserResponse
    stats: DailyStatsResponse
    last_proof: Optional[PaymentProofResponse] = None

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
    code: str
