"""
Unit tests for the earnings calculation: gross from bookings, fees and net derived on read.
"""
from decimal import Decimal

from carpool.models.booking import Booking
from carpool.services.earnings import (
    Earnings,
    FeeModel,
    gross_earnings,
    net_earnings,
    sum_earnings,
    to_money,
)

FEES = FeeModel(
    processing_fee_percentage=Decimal("0.029"),
    processing_fee_fixed=Decimal("0.30"),
    commission_per_ride=Decimal("2.00"),
)


def _booking(seats: int, status: str = "confirmed", price=None) -> Booking:
    return Booking(number_of_seats=seats, status=status, price_per_seat=price)


class TestGrossEarnings:
    def test_sums_seats_times_price(self):
        gross = gross_earnings(Decimal("15.00"), [_booking(2), _booking(1)])
        assert gross == Decimal("45.00")

    def test_ignores_non_billable_bookings(self):
        bookings = [
            _booking(1),
            _booking(2, status="pending"),
            _booking(1, status="cancelled"),
            _booking(1, status="rejected"),
            _booking(1, status="completed"),
        ]
        assert gross_earnings(Decimal("10.00"), bookings) == Decimal("20.00")

    def test_locked_booking_price_wins(self):
        gross = gross_earnings(Decimal("20.00"), [_booking(2, price=Decimal("12.50"))])
        assert gross == Decimal("25.00")

    def test_no_bookings_is_zero(self):
        assert gross_earnings(Decimal("15.00"), []) == Decimal("0.00")


class TestNetEarnings:
    def test_fee_breakdown(self):
        e = net_earnings(Decimal("45.00"), FEES)
        # 45 * 0.029 + 0.30 = 1.605
        assert e.processing_fee == Decimal("1.61")
        assert e.commission == Decimal("2.00")
        assert e.total_fees == Decimal("3.61")
        assert e.net_earnings == Decimal("41.40")
        assert e.gross_earnings == Decimal("45.00")

    def test_net_floored_at_zero(self):
        e = net_earnings(Decimal("1.00"), FEES)
        assert e.net_earnings == Decimal("0.00")
        assert e.total_fees > e.gross_earnings

    def test_zero_gross(self):
        e = net_earnings(0, FEES)
        assert e.net_earnings == Decimal("0.00")
        assert e.total_fees == Decimal("2.30")

    def test_default_fee_model_from_settings(self):
        assert FeeModel.from_settings() == FEES

    def test_as_floats(self):
        data = net_earnings(Decimal("100.00"), FEES).as_floats()
        assert data["gross_earnings"] == 100.0
        assert data["processing_fee"] == 3.2
        assert data["net_earnings"] == 94.8


class TestSumEarnings:
    def test_totals(self):
        total = sum_earnings([net_earnings(Decimal("45.00"), FEES), net_earnings(Decimal("100.00"), FEES)])
        assert total.gross_earnings == Decimal("145.00")
        assert total.commission == Decimal("4.00")
        assert total.net_earnings == Decimal("136.20")

    def test_empty(self):
        total = sum_earnings([])
        assert isinstance(total, Earnings)
        assert total.net_earnings == Decimal("0.00")


def test_to_money_rounds_half_up():
    assert to_money("2.675") == Decimal("2.68")
    assert to_money(1.005) == Decimal("1.01")
