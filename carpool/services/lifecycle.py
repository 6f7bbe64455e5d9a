"""
Ride / booking lifecycle.

Each public coroutine is one atomic unit: it takes the row locks it needs
(ride before booking, always in that order), validates through the state
machines, mutates rides, bookings and the seat ledger, and writes any side
effect it wants as an outbox row. Nothing leaves the process before commit.

Lock order:
  1. advisory "driver-schedule" lock (schedule checks only)
  2. ride row (ledger.lock_ride)
  3. booking rows
"""
import logging
import secrets
import string
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from carpool.config import get_settings
from carpool.database import advisory_lock, transaction
from carpool.models.booking import Booking
from carpool.models.ride import Ride
from carpool.schemas.schemas import (
    BookingCreateRequest,
    BookingStatusEnum as BookingStatus,
    PaymentStatusEnum,
    PickupStatusEnum,
    RideCreateRequest,
    RideStatusEnum as RideStatus,
)
from carpool.services import earnings, ledger, notifications, outbox, pickup_pin, scheduling
from carpool.services.exceptions import (
    AlreadyPickedUp,
    ConflictingActiveRide,
    DuplicateBooking,
    Expired,
    Forbidden,
    InsufficientCapacity,
    InvalidPIN,
    InvalidState,
    Locked,
    NoConfirmedBookings,
    NotFound,
    PassengersNotPickedUp,
    TooFarFromDestination,
    ValidationError,
)
from carpool.services.state_machine import (
    ACTIVE_RIDE,
    is_valid_ride_transition,
    transition_booking,
    transition_ride,
)
from carpool.utils.geo import haversine_m
from carpool.utils.time import ensure_utc, utcnow

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass
class AcceptResult:
    booking: Booking
    available_seats: int
    pickup_pin: pickup_pin.PickupPIN


@dataclass
class PickupResult:
    booking: Booking
    already_picked_up: bool = False


@dataclass
class CompletionResult:
    ride: Ride
    total_earnings: Decimal
    earnings: earnings.Earnings
    completed_bookings: int


@dataclass
class CancellationResult:
    ride: Ride
    cancelled_bookings: int
    released_seats: int


@dataclass
class EarningsSummary:
    driver_id: str
    rides: list[tuple[Ride, earnings.Earnings]]
    totals: earnings.Earnings


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _schedule_lock_key(driver_id: str) -> str:
    return f"driver-schedule:{driver_id}"


def _ensure_driver(ride: Ride, driver_id: str, action: str) -> None:
    if ride.driver_id != driver_id:
        raise Forbidden(f"You do not have permission to {action}", ride_id=ride.id)


def make_confirmation_number(now: datetime) -> str:
    """WP-YYYYMMDD-XXXXXX"""
    alphabet = string.ascii_uppercase + string.digits
    suffix = "".join(secrets.choice(alphabet) for _ in range(6))
    return f"WP-{now:%Y%m%d}-{suffix}"


async def _ride_id_for_booking(db: AsyncSession, booking_id: str) -> str:
    result = await db.execute(select(Booking.ride_id).where(Booking.id == booking_id))
    ride_id = result.scalar_one_or_none()
    if ride_id is None:
        raise NotFound("Booking not found", booking_id=booking_id)
    return ride_id


async def _lock_booking(db: AsyncSession, booking_id: str) -> Booking:
    result = await db.execute(
        select(Booking)
        .where(Booking.id == booking_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if booking is None:
        raise NotFound("Booking not found", booking_id=booking_id)
    return booking


async def _lock_ride_bookings(db: AsyncSession, ride_id: str, statuses: list[str]) -> list[Booking]:
    result = await db.execute(
        select(Booking)
        .where(Booking.ride_id == ride_id, Booking.status.in_(statuses))
        .order_by(Booking.created_at, Booking.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return list(result.scalars())


# ---------------------------------------------------------------------------
# Rides
# ---------------------------------------------------------------------------

async def create_ride(
    db: AsyncSession,
    driver_id: str,
    payload: RideCreateRequest,
    now: Optional[datetime] = None,
) -> Ride:
    now = now or utcnow()
    departure_at = scheduling.parse_departure(payload.departure_date, payload.departure_time)
    recurrence = payload.recurrence_pattern.value if payload.recurrence_pattern else None
    scheduling.validate_ride_fields(
        payload.total_seats,
        payload.price_per_seat,
        departure_at,
        recurrence,
        payload.recurrence_end_date,
    )
    if not payload.draft and departure_at <= now:
        raise ValidationError("Departure must be in the future", field="departure_date")

    ride = Ride(
        id=str(uuid.uuid4()),
        driver_id=driver_id,
        from_address=payload.from_address,
        from_city=payload.from_city,
        from_state=payload.from_state,
        from_lat=payload.from_lat,
        from_lng=payload.from_lng,
        to_address=payload.to_address,
        to_city=payload.to_city,
        to_state=payload.to_state,
        to_lat=payload.to_lat,
        to_lng=payload.to_lng,
        distance_miles=payload.distance_miles,
        departure_date=payload.departure_date,
        departure_time=payload.departure_time,
        departure_at=departure_at,
        recurrence_pattern=recurrence,
        recurrence_end_date=payload.recurrence_end_date,
        total_seats=payload.total_seats,
        available_seats=payload.total_seats,
        price_per_seat=payload.price_per_seat,
        status=(RideStatus.draft if payload.draft else RideStatus.scheduled).value,
    )

    async with transaction(db):
        await advisory_lock(db, _schedule_lock_key(driver_id))
        await scheduling.check_duplicate(db, ride)
        if not payload.draft:
            await scheduling.check_schedule_conflict(db, ride)
        db.add(ride)

    logger.info(
        "Ride %s created by driver=%s (%s -> %s, %s seats, %s)",
        ride.id, driver_id, ride.from_city, ride.to_city, ride.total_seats, ride.status,
    )
    return ride


async def publish_ride(db: AsyncSession, ride_id: str, driver_id: str) -> Ride:
    """draft -> scheduled, running the same checks as a non-draft create."""
    async with transaction(db):
        await advisory_lock(db, _schedule_lock_key(driver_id))
        ride = await ledger.lock_ride(db, ride_id)
        _ensure_driver(ride, driver_id, "publish this ride")
        if ride.status != RideStatus.draft:
            raise InvalidState(f"Only draft rides can be published (ride is {ride.status})", ride_id=ride.id)
        if ensure_utc(ride.departure_at) <= utcnow():
            raise ValidationError("Departure must be in the future", field="departure_date")
        await scheduling.check_duplicate(db, ride)
        await scheduling.check_schedule_conflict(db, ride)
        transition_ride(ride, RideStatus.scheduled)

    logger.info("Ride %s published by driver=%s", ride.id, driver_id)
    return ride


async def get_ride(db: AsyncSession, ride_id: str) -> Ride:
    async with transaction(db):
        ride = await db.get(Ride, ride_id, populate_existing=True)
    if ride is None:
        raise NotFound("Ride not found", ride_id=ride_id)
    return ride


async def delete_ride(db: AsyncSession, ride_id: str, driver_id: str) -> None:
    async with transaction(db):
        ride = await ledger.lock_ride(db, ride_id)
        _ensure_driver(ride, driver_id, "delete this ride")
        if ride.status not in (RideStatus.draft, RideStatus.scheduled, RideStatus.cancelled):
            raise InvalidState(f"Cannot delete a ride that is {ride.status}", ride_id=ride.id)
        if await ledger.held_seats(db, ride.id) > 0:
            raise InvalidState(
                "Cannot delete ride with confirmed bookings. Cancel the ride instead.",
                ride_id=ride.id,
            )
        for booking in await _lock_ride_bookings(db, ride.id, [BookingStatus.pending.value]):
            outbox.notify_later(
                db, booking.rider_id, notifications.RIDE_DELETED,
                {"ride_id": ride.id, "booking_id": booking.id},
            )
            outbox.void_later(db, booking)
        await db.execute(delete(Booking).where(Booking.ride_id == ride.id))
        await db.delete(ride)

    logger.info("Ride %s deleted by driver=%s", ride_id, driver_id)


async def start_ride(
    db: AsyncSession,
    ride_id: str,
    driver_id: str,
    now: Optional[datetime] = None,
) -> Ride:
    now = now or utcnow()
    async with transaction(db):
        await advisory_lock(db, _schedule_lock_key(driver_id))
        ride = await ledger.lock_ride(db, ride_id)
        _ensure_driver(ride, driver_id, "start this ride")
        if not is_valid_ride_transition(ride.status, RideStatus.in_progress):
            raise InvalidState(f"Cannot start a ride that is {ride.status}", ride_id=ride.id, status=ride.status)

        active = await db.execute(
            select(Ride.id)
            .where(
                Ride.driver_id == driver_id,
                Ride.id != ride.id,
                Ride.status == RideStatus.in_progress.value,
            )
            .limit(1)
        )
        conflicting_id = active.scalar_one_or_none()
        if conflicting_id is not None:
            raise ConflictingActiveRide(
                "You already have a ride in progress. Complete it before starting another.",
                conflicting_ride_id=conflicting_id,
            )

        confirmed = await _lock_ride_bookings(db, ride.id, [BookingStatus.confirmed.value])
        if settings.require_confirmed_booking_to_start and not confirmed:
            raise NoConfirmedBookings("A ride needs at least one confirmed passenger to start", ride_id=ride.id)

        transition_ride(ride, RideStatus.in_progress)
        ride.started_at = now
        for booking in confirmed:
            outbox.notify_later(
                db, booking.rider_id, notifications.RIDE_STARTED,
                {"ride_id": ride.id, "booking_id": booking.id},
            )

    logger.info("Ride %s started by driver=%s with %s confirmed bookings", ride.id, driver_id, len(confirmed))
    return ride


async def complete_ride(
    db: AsyncSession,
    ride_id: str,
    driver_id: str,
    lat: float,
    lng: float,
    now: Optional[datetime] = None,
) -> CompletionResult:
    now = now or utcnow()
    async with transaction(db):
        ride = await ledger.lock_ride(db, ride_id)
        _ensure_driver(ride, driver_id, "complete this ride")
        if not is_valid_ride_transition(ride.status, RideStatus.completed) or ride.total_earnings is not None:
            raise InvalidState(f"Cannot complete a ride that is {ride.status}", ride_id=ride.id, status=ride.status)

        open_bookings = await _lock_ride_bookings(
            db, ride.id, [BookingStatus.confirmed.value, BookingStatus.pending.value]
        )
        confirmed = [b for b in open_bookings if b.status == BookingStatus.confirmed]
        waiting = [b for b in confirmed if b.pickup_status != PickupStatusEnum.picked_up]
        if waiting:
            raise PassengersNotPickedUp(
                f"{len(waiting)} passenger{'s' if len(waiting) != 1 else ''} not picked up yet",
                ride_id=ride.id,
                outstanding=len(waiting),
                booking_ids=[b.id for b in waiting],
            )

        if settings.geofence_enforced:
            distance = haversine_m(lat, lng, ride.to_lat, ride.to_lng)
            if distance > settings.geofence_radius_m:
                raise TooFarFromDestination(
                    f"You are {distance:.0f}m from the destination; "
                    f"rides can be completed within {settings.geofence_radius_m:g}m",
                    ride_id=ride.id,
                    distance_m=round(distance, 1),
                    radius_m=settings.geofence_radius_m,
                )
        else:
            logger.warning("Test mode: skipping destination geofence for ride=%s", ride.id)

        gross = earnings.gross_earnings(ride.price_per_seat, confirmed)
        ride.total_earnings = gross
        transition_ride(ride, RideStatus.completed)
        ride.completed_at = now

        for booking in confirmed:
            transition_booking(booking, BookingStatus.completed)
            outbox.capture_later(db, booking)
            outbox.notify_later(
                db, booking.rider_id, notifications.RIDE_COMPLETED,
                {"ride_id": ride.id, "booking_id": booking.id},
            )
        for booking in open_bookings:
            if booking.status == BookingStatus.pending:
                transition_booking(booking, BookingStatus.rejected)
                booking.rejection_reason = "Ride completed"
                outbox.void_later(db, booking)
                outbox.notify_later(
                    db, booking.rider_id, notifications.BOOKING_REJECTED,
                    {"ride_id": ride.id, "booking_id": booking.id, "reason": booking.rejection_reason},
                )

    logger.info("Ride %s completed by driver=%s, gross=%s", ride.id, driver_id, gross)
    return CompletionResult(
        ride=ride,
        total_earnings=gross,
        earnings=earnings.net_earnings(gross),
        completed_bookings=len(confirmed),
    )


async def cancel_ride(
    db: AsyncSession,
    ride_id: str,
    driver_id: str,
    now: Optional[datetime] = None,
) -> CancellationResult:
    now = now or utcnow()
    async with transaction(db):
        ride = await ledger.lock_ride(db, ride_id)
        _ensure_driver(ride, driver_id, "cancel this ride")
        if ride.status == RideStatus.cancelled:
            raise InvalidState("Ride is already cancelled", ride_id=ride.id, status=ride.status)
        if not is_valid_ride_transition(ride.status, RideStatus.cancelled):
            raise InvalidState(f"Cannot cancel a ride that is {ride.status}", ride_id=ride.id, status=ride.status)

        bookings = await _lock_ride_bookings(
            db, ride.id, [BookingStatus.confirmed.value, BookingStatus.pending.value]
        )
        released = 0
        for booking in bookings:
            if booking.status == BookingStatus.confirmed:
                ledger.release(ride, booking.number_of_seats)
                released += booking.number_of_seats
            transition_booking(booking, BookingStatus.cancelled)
            outbox.void_later(db, booking)
            outbox.notify_later(
                db, booking.rider_id, notifications.RIDE_CANCELLED,
                {"ride_id": ride.id, "booking_id": booking.id},
            )
        transition_ride(ride, RideStatus.cancelled)
        ride.cancelled_at = now

    logger.info(
        "Ride %s cancelled by driver=%s (%s bookings, %s seats released)",
        ride.id, driver_id, len(bookings), released,
    )
    return CancellationResult(ride=ride, cancelled_bookings=len(bookings), released_seats=released)


# ---------------------------------------------------------------------------
# Bookings
# ---------------------------------------------------------------------------

async def request_booking(
    db: AsyncSession,
    rider_id: str,
    payload: BookingCreateRequest,
    payment_reference: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Booking:
    """Rider asks for seats. Nothing is reserved until the driver accepts."""
    now = now or utcnow()
    async with transaction(db):
        ride = await ledger.lock_ride(db, payload.ride_id)
        if ride.driver_id == rider_id:
            raise ValidationError("You cannot book your own ride", ride_id=ride.id)
        if ride.status != RideStatus.scheduled:
            raise InvalidState(f"Ride is {ride.status} and not open for booking", ride_id=ride.id)
        seats = payload.number_of_seats
        if not 1 <= seats <= ride.total_seats:
            raise ValidationError(
                f"Number of seats must be between 1 and {ride.total_seats}", field="number_of_seats"
            )
        if seats > ride.available_seats:
            raise InsufficientCapacity(
                f"Only {ride.available_seats} seat{'s' if ride.available_seats != 1 else ''} available on this ride",
                ride_id=ride.id,
                available_seats=ride.available_seats,
                requested_seats=seats,
            )

        existing = await db.execute(
            select(Booking).where(
                Booking.ride_id == ride.id,
                Booking.rider_id == rider_id,
                Booking.status.in_([BookingStatus.pending.value, BookingStatus.confirmed.value]),
            )
        )
        duplicate = existing.scalars().first()
        if duplicate is not None:
            raise DuplicateBooking(
                "You already have a pending request for this ride"
                if duplicate.status == BookingStatus.pending
                else "You already have a confirmed booking for this ride",
                booking_id=duplicate.id,
            )

        booking = Booking(
            id=str(uuid.uuid4()),
            ride_id=ride.id,
            rider_id=rider_id,
            confirmation_number=make_confirmation_number(now),
            pickup_address=payload.pickup_address,
            pickup_lat=payload.pickup_lat,
            pickup_lng=payload.pickup_lng,
            number_of_seats=seats,
            price_per_seat=ride.price_per_seat,
            status=BookingStatus.pending.value,
            pickup_status=PickupStatusEnum.pending.value,
            pickup_pin_attempts=0,
            payment_reference=payment_reference,
            payment_status=(
                PaymentStatusEnum.authorized if payment_reference else PaymentStatusEnum.none
            ).value,
        )
        db.add(booking)
        outbox.notify_later(
            db, ride.driver_id, notifications.BOOKING_REQUESTED,
            {"ride_id": ride.id, "booking_id": booking.id, "number_of_seats": seats},
        )

    logger.info("Booking %s requested by rider=%s on ride=%s (%s seats)", booking.id, rider_id, ride.id, seats)
    return booking


async def get_booking(db: AsyncSession, booking_id: str, user_id: str) -> Booking:
    """Visible to the rider who made it and the driver of its ride."""
    async with transaction(db):
        booking = await db.get(Booking, booking_id, populate_existing=True)
        if booking is None:
            raise NotFound("Booking not found", booking_id=booking_id)
        if booking.rider_id != user_id:
            ride = await db.get(Ride, booking.ride_id, populate_existing=True)
            if ride is None or ride.driver_id != user_id:
                raise Forbidden("You do not have permission to view this booking", booking_id=booking_id)
    return booking


async def accept_booking(
    db: AsyncSession,
    booking_id: str,
    driver_id: str,
    now: Optional[datetime] = None,
) -> AcceptResult:
    now = now or utcnow()
    async with transaction(db):
        ride_id = await _ride_id_for_booking(db, booking_id)
        ride = await ledger.lock_ride(db, ride_id)
        booking = await _lock_booking(db, booking_id)
        _ensure_driver(ride, driver_id, "accept this booking")
        if ride.status not in ACTIVE_RIDE:
            raise InvalidState(f"Cannot accept bookings on a ride that is {ride.status}", ride_id=ride.id)

        transition_booking(booking, BookingStatus.confirmed)
        ledger.reserve(ride, booking.number_of_seats)
        pin = pickup_pin.issue(booking, now)
        if settings.capture_on_accept:
            outbox.capture_later(db, booking)
        outbox.notify_later(
            db, booking.rider_id, notifications.BOOKING_ACCEPTED,
            {
                "ride_id": ride.id,
                "booking_id": booking.id,
                "pin_expires_at": pin.expires_at.isoformat(),
            },
        )

    logger.info(
        "Booking %s accepted by driver=%s (ride=%s, available_seats=%s)",
        booking.id, driver_id, ride.id, ride.available_seats,
    )
    return AcceptResult(booking=booking, available_seats=ride.available_seats, pickup_pin=pin)


async def reject_booking(
    db: AsyncSession,
    booking_id: str,
    driver_id: str,
    reason: Optional[str] = None,
) -> Booking:
    async with transaction(db):
        ride_id = await _ride_id_for_booking(db, booking_id)
        ride = await ledger.lock_ride(db, ride_id)
        booking = await _lock_booking(db, booking_id)
        _ensure_driver(ride, driver_id, "reject this booking")

        transition_booking(booking, BookingStatus.rejected)
        booking.rejection_reason = reason
        outbox.void_later(db, booking)
        outbox.notify_later(
            db, booking.rider_id, notifications.BOOKING_REJECTED,
            {"ride_id": ride.id, "booking_id": booking.id, "reason": reason},
        )

    logger.info("Booking %s rejected by driver=%s", booking.id, driver_id)
    return booking


async def cancel_booking(db: AsyncSession, booking_id: str, rider_id: str) -> Booking:
    """Rider withdraws a pending request or a confirmed seat before pickup."""
    async with transaction(db):
        ride_id = await _ride_id_for_booking(db, booking_id)
        ride = await ledger.lock_ride(db, ride_id)
        booking = await _lock_booking(db, booking_id)
        if booking.rider_id != rider_id:
            raise Forbidden("You do not have permission to cancel this booking", booking_id=booking.id)
        if ride.status in (RideStatus.cancelled, RideStatus.completed):
            raise InvalidState(
                "Cannot cancel booking for a cancelled or completed ride", booking_id=booking.id
            )
        if booking.pickup_status == PickupStatusEnum.picked_up:
            raise InvalidState("Passenger has already been picked up", booking_id=booking.id)

        held = booking.status == BookingStatus.confirmed
        transition_booking(booking, BookingStatus.cancelled)
        if held:
            ledger.release(ride, booking.number_of_seats)
        outbox.void_later(db, booking)
        outbox.notify_later(
            db, ride.driver_id, notifications.BOOKING_CANCELLED,
            {"ride_id": ride.id, "booking_id": booking.id, "number_of_seats": booking.number_of_seats},
        )

    logger.info("Booking %s cancelled by rider=%s (seats released: %s)", booking.id, rider_id, held)
    return booking


# ---------------------------------------------------------------------------
# Pickup verification
# ---------------------------------------------------------------------------

async def verify_pickup_pin(
    db: AsyncSession,
    booking_id: str,
    driver_id: str,
    candidate: str,
    now: Optional[datetime] = None,
) -> PickupResult:
    """
    Runs on the locked booking row; a failed attempt is committed (it moves
    the attempt counter / lockout) and then re-raised.
    """
    if not (isinstance(candidate, str) and len(candidate) == pickup_pin.PIN_LENGTH and candidate.isdigit()):
        raise ValidationError("PIN must be exactly 4 digits", field="pin")
    now = now or utcnow()

    failure = None
    already = False
    async with transaction(db):
        booking = await _lock_booking(db, booking_id)
        ride = await db.get(Ride, booking.ride_id, populate_existing=True)
        _ensure_driver(ride, driver_id, "mark this passenger as picked up")
        if booking.status != BookingStatus.confirmed:
            raise InvalidState(f"Booking is {booking.status}", booking_id=booking.id)
        if ride.status != RideStatus.in_progress:
            raise InvalidState(
                "Ride must be started before marking passengers as picked up", ride_id=ride.id
            )
        try:
            pickup_pin.verify(booking, candidate, now)
        except AlreadyPickedUp:
            already = True
        except (Expired, Locked, InvalidPIN) as exc:
            failure = exc
        else:
            outbox.notify_later(
                db, booking.rider_id, notifications.PASSENGER_PICKED_UP,
                {"ride_id": ride.id, "booking_id": booking.id},
            )

    if failure is not None:
        logger.warning("Pickup PIN check failed for booking=%s: %s", booking_id, failure.code)
        raise failure
    if not already:
        logger.info("Booking %s picked up (driver=%s)", booking_id, driver_id)
    return PickupResult(booking=booking, already_picked_up=already)


async def get_pickup_pin(
    db: AsyncSession,
    booking_id: str,
    rider_id: str,
    now: Optional[datetime] = None,
) -> pickup_pin.PickupPIN:
    """Rider-side redisplay of the PIN from its cipher."""
    now = now or utcnow()
    async with transaction(db):
        booking = await db.get(Booking, booking_id, populate_existing=True)
    if booking is None:
        raise NotFound("Booking not found", booking_id=booking_id)
    if booking.rider_id != rider_id:
        raise Forbidden("You do not have permission to view this PIN", booking_id=booking_id)
    if booking.status != BookingStatus.confirmed or not booking.pickup_pin_encrypted:
        raise InvalidState("Pickup PIN is only available for confirmed bookings", booking_id=booking_id)
    if booking.pickup_status == PickupStatusEnum.picked_up:
        raise AlreadyPickedUp("Passenger already picked up", booking_id=booking_id)
    expires_at = ensure_utc(booking.pickup_pin_expires_at)
    if expires_at is None or now > expires_at:
        raise Expired("Pickup PIN has expired", booking_id=booking_id)
    return pickup_pin.PickupPIN(pin=pickup_pin.decrypt_pin(booking.pickup_pin_encrypted), expires_at=expires_at)


# ---------------------------------------------------------------------------
# Earnings / maintenance
# ---------------------------------------------------------------------------

async def earnings_summary(db: AsyncSession, driver_id: str) -> EarningsSummary:
    async with transaction(db):
        result = await db.execute(
            select(Ride)
            .where(
                Ride.driver_id == driver_id,
                Ride.status == RideStatus.completed.value,
                Ride.total_earnings.is_not(None),
            )
            .order_by(Ride.completed_at.desc())
        )
        rides = list(result.scalars())
    fees = earnings.FeeModel.from_settings()
    per_ride = [(ride, earnings.net_earnings(ride.total_earnings, fees)) for ride in rides]
    return EarningsSummary(
        driver_id=driver_id,
        rides=per_ride,
        totals=earnings.sum_earnings(e for _, e in per_ride),
    )


async def reconcile_available_seats(db: AsyncSession, ride_id: str) -> tuple[int, int]:
    async with transaction(db):
        return await ledger.reconcile_available_seats(db, ride_id)


async def seat_invariant_holds(db: AsyncSession, ride_id: str) -> bool:
    """available_seats + seats held by confirmed/completed bookings == total_seats"""
    async with transaction(db):
        ride = await db.get(Ride, ride_id, populate_existing=True)
        if ride is None:
            raise NotFound("Ride not found", ride_id=ride_id)
        return ride.available_seats + await ledger.held_seats(db, ride_id) == ride.total_seats
