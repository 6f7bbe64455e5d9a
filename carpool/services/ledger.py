"""
Capacity ledger. The only writer of `Ride.available_seats`.

Callers must hold the ride row (see `lock_ride`) inside the same transaction
as the booking status change the reservation or release belongs to.
"""
import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from carpool.models.booking import Booking
from carpool.models.ride import Ride
from carpool.services.exceptions import InsufficientCapacity, NotFound
from carpool.services.state_machine import SEAT_HOLDING

logger = logging.getLogger(__name__)


async def lock_ride(db: AsyncSession, ride_id: str) -> Ride:
    """SELECT ... FOR UPDATE the ride, refreshing any stale copy in the session."""
    result = await db.execute(
        select(Ride)
        .where(Ride.id == ride_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    ride = result.scalar_one_or_none()
    if ride is None:
        raise NotFound("Ride not found", ride_id=ride_id)
    return ride


def reserve(ride: Ride, seats: int) -> None:
    if seats < 1:
        raise ValueError("seats must be >= 1")
    if ride.available_seats < seats:
        raise InsufficientCapacity(
            f"Not enough available seats. Only {ride.available_seats} "
            f"seat{'s' if ride.available_seats != 1 else ''} available.",
            ride_id=ride.id,
            available_seats=ride.available_seats,
            requested_seats=seats,
        )
    ride.available_seats -= seats


def release(ride: Ride, seats: int) -> None:
    if seats < 1:
        raise ValueError("seats must be >= 1")
    restored = ride.available_seats + seats
    if restored > ride.total_seats:
        logger.warning(
            "Seat release overflow on ride=%s (available=%s + %s > total=%s); capping",
            ride.id, ride.available_seats, seats, ride.total_seats,
        )
        restored = ride.total_seats
    ride.available_seats = restored


async def held_seats(db: AsyncSession, ride_id: str) -> int:
    """Seats held by confirmed/completed bookings."""
    result = await db.execute(
        select(func.coalesce(func.sum(Booking.number_of_seats), 0)).where(
            Booking.ride_id == ride_id,
            Booking.status.in_(list(SEAT_HOLDING)),
        )
    )
    return int(result.scalar_one())


async def reconcile_available_seats(db: AsyncSession, ride_id: str) -> tuple[int, int]:
    """
    Recompute the cached counter from bookings. Returns (before, after).
    Runs on the locked ride; the caller owns the transaction.
    """
    ride = await lock_ride(db, ride_id)
    before = ride.available_seats
    after = max(ride.total_seats - await held_seats(db, ride_id), 0)
    if before != after:
        logger.warning("Reconciled ride=%s available_seats %s -> %s", ride_id, before, after)
        ride.available_seats = after
    return before, after
