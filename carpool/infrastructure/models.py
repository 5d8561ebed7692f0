"""
SQLAlchemy ORM models.

Tables
------
* ``users``                  -- anyone who opened the bot (drivers and passengers)
* ``trips``                  -- driver-posted journeys with seat accounting
* ``bookings``               -- passenger reservations on a trip
* ``passenger_plans``        -- passenger ride requests a driver can claim
* ``app_settings``           -- single global row (monetization switch)
* ``driver_payment_proofs``  -- append-only log of uploaded receipts

Seat capacity is also guarded at the database level by a CHECK constraint
on ``trips``.
"""

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .database import Base
from carpool.domain.enums import BookingStatus, PlanStatus
from carpool.domain.timeutil import utcnow


def _enum_column(enum_cls):
    return Enum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        length=20,
    )


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    telegram_id = Column(BigInteger, unique=True, nullable=False)
    first_name = Column(String(120), nullable=True)
    last_name = Column(String(120), nullable=True)
    username = Column(String(120), nullable=True)
    no_show_count = Column(Integer, default=0, nullable=False)
    car_make = Column(String(60), nullable=True)
    car_color = Column(String(40), nullable=True)
    car_plate = Column(String(20), nullable=True)
    is_blocked = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class TripModel(Base):
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    from_city = Column(String(120), nullable=False)
    to_city = Column(String(120), nullable=False)
    departure_time = Column(DateTime(timezone=True), nullable=False)
    seats_total = Column(Integer, nullable=False)
    seats_available = Column(Integer, nullable=False)
    price_per_seat = Column(Numeric(10, 2), nullable=False)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    driver = relationship(UserModel, lazy="joined")

    __table_args__ = (
        CheckConstraint("seats_total > 0", name="ck_trips_seats_total_positive"),
        CheckConstraint(
            "seats_available >= 0 AND seats_available <= seats_total",
            name="ck_trips_seats_available_range",
        ),
        Index("idx_trips_driver", "driver_id"),
        Index("idx_trips_departure", "departure_time"),
    )


class BookingModel(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False)
    passenger_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    seats_booked = Column(Integer, nullable=False)
    status = Column(
        _enum_column(BookingStatus), default=BookingStatus.BOOKED, nullable=False
    )
    amount_total = Column(Numeric(10, 2), nullable=False)
    app_fee = Column(Numeric(10, 2), nullable=False)
    driver_amount = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    trip = relationship(TripModel, lazy="joined")
    passenger = relationship(UserModel, lazy="joined")

    __table_args__ = (
        Index("idx_bookings_trip", "trip_id"),
        Index("idx_bookings_passenger", "passenger_id"),
        Index("idx_bookings_status_created", "status", "created_at"),
    )


class PassengerPlanModel(Base):
    __tablename__ = "passenger_plans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    passenger_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    from_city = Column(String(120), nullable=False)
    to_city = Column(String(120), nullable=False)
    desired_time = Column(DateTime(timezone=True), nullable=False)
    seats_needed = Column(Integer, nullable=False)
    note = Column(Text, nullable=True)
    status = Column(_enum_column(PlanStatus), default=PlanStatus.ACTIVE, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    taken_at = Column(DateTime(timezone=True), nullable=True)

    passenger = relationship(UserModel, foreign_keys=[passenger_id], lazy="joined")
    driver = relationship(UserModel, foreign_keys=[driver_id], lazy="joined")

    __table_args__ = (
        CheckConstraint("seats_needed > 0", name="ck_plans_seats_positive"),
        Index("idx_plans_status_time", "status", "desired_time"),
        Index("idx_plans_passenger", "passenger_id"),
    )


class AppSettingsModel(Base):
    __tablename__ = "app_settings"

    id = Column(Integer, primary_key=True, default=1)
    monetization_enabled = Column(Boolean, default=False, nullable=False)
    payment_details = Column(Text, default="", nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (CheckConstraint("id = 1", name="ck_app_settings_single_row"),)


class PaymentProofModel(Base):
    __tablename__ = "driver_payment_proofs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    original_name = Column(String(255), nullable=True)
    stored_name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (Index("idx_proofs_driver_created", "driver_id", "created_at"),)
