"""
Earnings calculation.

Only the gross amount is persisted (as `Ride.total_earnings` at completion);
fees and net are derived on read so a fee-model change never needs a backfill.
"""
from dataclasses import asdict, dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from carpool.config import get_settings
from carpool.models.booking import Booking
from carpool.services.state_machine import SEAT_HOLDING

settings = get_settings()

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class FeeModel:
    processing_fee_percentage: Decimal
    processing_fee_fixed: Decimal
    commission_per_ride: Decimal

    @classmethod
    def from_settings(cls) -> "FeeModel":
        return cls(
            processing_fee_percentage=Decimal(str(settings.processing_fee_percentage)),
            processing_fee_fixed=Decimal(str(settings.processing_fee_fixed)),
            commission_per_ride=Decimal(str(settings.commission_per_ride)),
        )


@dataclass(frozen=True)
class Earnings:
    gross_earnings: Decimal
    processing_fee: Decimal
    commission: Decimal
    total_fees: Decimal
    net_earnings: Decimal

    def as_floats(self) -> dict:
        return {k: float(v) for k, v in asdict(self).items()}


def gross_earnings(price_per_seat, bookings: Iterable[Booking]) -> Decimal:
    """
    Σ(seats × price) over billable (confirmed/completed) bookings.
    A booking's locked-in price wins over the ride's current price.
    """
    total = Decimal("0")
    for booking in bookings:
        if booking.status not in SEAT_HOLDING:
            continue
        price = booking.price_per_seat if booking.price_per_seat is not None else price_per_seat
        total += Decimal(booking.number_of_seats) * Decimal(str(price))
    return to_money(total)


def processing_fee(gross: Decimal, fees: FeeModel) -> Decimal:
    return gross * fees.processing_fee_percentage + fees.processing_fee_fixed


def net_earnings(gross, fees: Optional[FeeModel] = None) -> Earnings:
    """Fee breakdown for one ride's gross amount; commission is charged per ride."""
    fees = fees or FeeModel.from_settings()
    gross = Decimal(str(gross))
    proc = processing_fee(gross, fees)
    commission = fees.commission_per_ride
    total_fees = proc + commission
    net = max(Decimal("0"), gross - total_fees)
    return Earnings(
        gross_earnings=to_money(gross),
        processing_fee=to_money(proc),
        commission=to_money(commission),
        total_fees=to_money(total_fees),
        net_earnings=to_money(net),
    )


def sum_earnings(items: Iterable[Earnings]) -> Earnings:
    zero = Decimal("0.00")
    totals = dict(gross_earnings=zero, processing_fee=zero, commission=zero, total_fees=zero, net_earnings=zero)
    for item in items:
        for key in totals:
            totals[key] += getattr(item, key)
    return Earnings(**totals)
