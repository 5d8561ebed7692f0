"""
Driver monetization gate
========================

Pure policy consulted before a driver creates a trip.

* Monetization disabled -> always allowed.
* Otherwise a driver is blocked only when, for the current local calendar
  day, they already have trips with ``booked`` bookings, those bookings
  accrued a non-zero platform fee, and no payment proof was uploaded today.

The check resets at local midnight: fees accrued on a previous day do not
block the current one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class AppSettingsSnapshot:
    monetization_enabled: bool = False
    payment_details: str = ""


@dataclass(frozen=True)
class DailyDriverStats:
    trips_count: int = 0
    bookings_count: int = 0
    seats_count: int = 0
    app_fee_total: Decimal = field(default_factory=lambda: Decimal("0"))


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    reason: str
    stats: DailyDriverStats
    has_proof_today: bool


def evaluate_gate(
    app_settings: AppSettingsSnapshot,
    stats: DailyDriverStats,
    has_proof_today: bool,
) -> GateDecision:
    if not app_settings.monetization_enabled:
        return GateDecision(True, "disabled", stats, has_proof_today)
    if stats.trips_count <= 0:
        return GateDecision(True, "no_activity", stats, has_proof_today)
    if stats.app_fee_total <= 0:
        return GateDecision(True, "no_fee", stats, has_proof_today)
    if has_proof_today:
        return GateDecision(True, "proof_uploaded", stats, has_proof_today)
    return GateDecision(False, "payment_required", stats, has_proof_today)
