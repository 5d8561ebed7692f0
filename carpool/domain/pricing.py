"""
Booking money breakdown
=======================

Formula
-------
Total  = Price_Per_Seat x Seats
Fee    = round(Total x Fee_Pct / 100, 2)
Payout = Total - Fee

Amounts are ``Decimal`` quantized to the minor currency unit (0.01) with
half-up rounding. Nothing is charged; the numbers are stored on the booking
and shown to the driver and the administrator.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class MoneyBreakdown:
    amount_total: Decimal
    app_fee: Decimal
    driver_amount: Decimal


class FeePolicy:
    """Percentage platform fee applied to every booking."""

    def __init__(self, fee_pct: float = 0.0):
        if fee_pct < 0 or fee_pct > 100:
            raise ValueError(f"fee_pct must be within [0, 100], got {fee_pct}")
        self.fee_pct = Decimal(str(fee_pct))

    def breakdown(self, price_per_seat, seats: int) -> MoneyBreakdown:
        total = to_money(to_money(price_per_seat) * seats)
        fee = to_money(total * self.fee_pct / 100)
        return MoneyBreakdown(
            amount_total=total,
            app_fee=fee,
            driver_amount=total - fee,
        )
