"""
Ride scheduling rules: departure parsing, route validation, and the
per-driver conflict / duplicate checks run before a ride is scheduled.
"""
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from carpool.config import get_settings
from carpool.models.ride import Ride
from carpool.schemas.schemas import RideStatusEnum as RideStatus
from carpool.services.exceptions import ConflictingSchedule, DuplicateRide, ValidationError
from carpool.services.state_machine import ACTIVE_RIDE
from carpool.utils.geo import within_tolerance
from carpool.utils.time import ensure_utc

logger = logging.getLogger(__name__)
settings = get_settings()

DATE_FORMATS = ("%m/%d/%Y", "%Y-%m-%d")
TIME_FORMATS = ("%I:%M %p", "%I:%M%p", "%H:%M")


def parse_departure(date_str: str, time_str: str, tz_name: Optional[str] = None) -> datetime:
    """
    "12/09/2025" + "05:10 PM" (or "2025-12-09" + "17:10"), read in the
    configured timezone, returned as an aware UTC datetime.
    """
    day = None
    for fmt in DATE_FORMATS:
        try:
            day = datetime.strptime(date_str.strip(), fmt).date()
            break
        except ValueError:
            continue
    if day is None:
        raise ValidationError(f"Unrecognised departure date: {date_str!r}", field="departure_date")

    clock = None
    normalized = " ".join(time_str.strip().upper().split())
    for fmt in TIME_FORMATS:
        try:
            clock = datetime.strptime(normalized, fmt).time()
            break
        except ValueError:
            continue
    if clock is None:
        raise ValidationError(f"Unrecognised departure time: {time_str!r}", field="departure_time")

    local = datetime.combine(day, clock, tzinfo=ZoneInfo(tz_name or settings.default_timezone))
    return local.astimezone(timezone.utc)


def local_date(instant: datetime) -> date:
    """Calendar date of an instant in the configured timezone."""
    return ensure_utc(instant).astimezone(ZoneInfo(settings.default_timezone)).date()


def validate_ride_fields(
    total_seats: int,
    price_per_seat,
    departure_at: datetime,
    recurrence_pattern: Optional[str] = None,
    recurrence_end_date: Optional[date] = None,
) -> None:
    if not 1 <= total_seats <= settings.max_seats:
        raise ValidationError(
            f"Total seats must be between 1 and {settings.max_seats}", field="total_seats"
        )
    if price_per_seat is None or price_per_seat < 0:
        raise ValidationError("Price per seat must be a non-negative number", field="price_per_seat")
    if recurrence_end_date is not None:
        if recurrence_pattern is None:
            raise ValidationError("Recurrence end date given without a pattern", field="recurrence_pattern")
        if recurrence_end_date < local_date(departure_at):
            raise ValidationError(
                "Recurrence end date is before the first departure", field="recurrence_end_date"
            )


async def check_duplicate(db: AsyncSession, ride: Ride) -> None:
    """Same driver, same route (±tolerance), same date, within the time window: a double submit."""
    window = timedelta(minutes=settings.duplicate_time_window_minutes)
    departure = ensure_utc(ride.departure_at)
    result = await db.execute(
        select(Ride).where(
            Ride.driver_id == ride.driver_id,
            Ride.id != ride.id,
            Ride.status != RideStatus.cancelled.value,
            Ride.departure_at >= departure - window,
            Ride.departure_at <= departure + window,
        )
    )
    tol = settings.duplicate_coord_tolerance_deg
    for other in result.scalars():
        same_route = within_tolerance(
            ride.from_lat, ride.from_lng, other.from_lat, other.from_lng, tol
        ) and within_tolerance(ride.to_lat, ride.to_lng, other.to_lat, other.to_lng, tol)
        if same_route and local_date(other.departure_at) == local_date(departure):
            raise DuplicateRide(
                "You already posted this ride",
                conflicting_ride_id=other.id,
            )


async def check_schedule_conflict(db: AsyncSession, ride: Ride) -> None:
    """No other scheduled/in-progress ride of the driver within the separation window."""
    window = timedelta(hours=settings.min_ride_separation_hours)
    departure = ensure_utc(ride.departure_at)
    result = await db.execute(
        select(Ride)
        .where(
            Ride.driver_id == ride.driver_id,
            Ride.id != ride.id,
            Ride.status.in_(list(ACTIVE_RIDE)),
            Ride.departure_at > departure - window,
            Ride.departure_at < departure + window,
        )
        .order_by(Ride.departure_at)
        .limit(1)
    )
    other = result.scalar_one_or_none()
    if other is not None:
        raise ConflictingSchedule(
            f"You have another ride within {settings.min_ride_separation_hours:g} hours of this departure",
            conflicting_ride_id=other.id,
            conflicting_departure_at=ensure_utc(other.departure_at).isoformat(),
        )
