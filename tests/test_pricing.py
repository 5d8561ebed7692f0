"""Unit tests for the booking money breakdown."""

from decimal import Decimal

import pytest

from carpool.domain.pricing import FeePolicy, MoneyBreakdown, to_money


class TestToMoney:
    def test_quantizes_to_cents(self):
        assert to_money(500) == Decimal("500.00")
        assert to_money("12.3") == Decimal("12.30")

    def test_rounds_half_up(self):
        assert to_money("0.005") == Decimal("0.01")
        assert to_money("2.675") == Decimal("2.68")  # float 2.675 would round down

    def test_float_input_goes_through_str(self):
        assert to_money(0.1 + 0.2) == Decimal("0.30")


class TestFeePolicy:
    def test_ten_percent_of_two_seats(self):
        money = FeePolicy(10).breakdown(Decimal("500.00"), 2)
        assert money == MoneyBreakdown(
            amount_total=Decimal("1000.00"),
            app_fee=Decimal("100.00"),
            driver_amount=Decimal("900.00"),
        )

    def test_fee_rounded_to_cents(self):
        money = FeePolicy(7.5).breakdown(Decimal("333.33"), 1)
        assert money.app_fee == Decimal("25.00")  # 24.99975
        assert money.driver_amount == Decimal("308.33")

    def test_parts_always_sum_to_total(self):
        policy = FeePolicy(12.5)
        for price in ("99.99", "150.10", "1.01", "0.03"):
            for seats in (1, 2, 3, 7):
                money = policy.breakdown(Decimal(price), seats)
                assert money.app_fee + money.driver_amount == money.amount_total

    def test_zero_fee(self):
        money = FeePolicy(0).breakdown(Decimal("250"), 3)
        assert money.app_fee == Decimal("0.00")
        assert money.driver_amount == Decimal("750.00")

    def test_full_fee(self):
        money = FeePolicy(100).breakdown(Decimal("250"), 1)
        assert money.driver_amount == Decimal("0.00")

    def test_free_trip(self):
        money = FeePolicy(10).breakdown(0, 2)
        assert money.amount_total == money.app_fee == money.driver_amount == Decimal("0.00")

    @pytest.mark.parametrize("pct", [-1, 100.01, 250])
    def test_rejects_out_of_range_percentage(self, pct):
        with pytest.raises(ValueError):
            FeePolicy(pct)
