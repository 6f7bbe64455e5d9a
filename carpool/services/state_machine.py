"""
Ride and booking state machines.

Statuses are the enums from `carpool.schemas.schemas`; every status write in the
service layer goes through `transition_ride` / `transition_booking`, so an edge
that is not in the table below cannot be reached.
"""
from carpool.models.booking import Booking
from carpool.models.ride import Ride
from carpool.schemas.schemas import BookingStatusEnum as BookingStatus
from carpool.schemas.schemas import RideStatusEnum as RideStatus
from carpool.services.exceptions import AlreadyConfirmed, AlreadyRejected, InvalidState

RIDE_TRANSITIONS: dict[RideStatus, set[RideStatus]] = {
    RideStatus.draft: {RideStatus.scheduled, RideStatus.cancelled},
    RideStatus.scheduled: {RideStatus.in_progress, RideStatus.cancelled},
    RideStatus.in_progress: {RideStatus.completed, RideStatus.cancelled},
    RideStatus.completed: set(),
    RideStatus.cancelled: set(),
}

BOOKING_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.pending: {BookingStatus.confirmed, BookingStatus.rejected, BookingStatus.cancelled},
    BookingStatus.confirmed: {BookingStatus.cancelled, BookingStatus.completed},
    BookingStatus.rejected: set(),
    BookingStatus.cancelled: set(),
    BookingStatus.completed: set(),
}

# Bookings whose seats are held in the ledger
SEAT_HOLDING = frozenset({BookingStatus.confirmed.value, BookingStatus.completed.value})
ACTIVE_RIDE = frozenset({RideStatus.scheduled.value, RideStatus.in_progress.value})


def is_valid_ride_transition(current: str, target: str) -> bool:
    return RideStatus(target) in RIDE_TRANSITIONS.get(RideStatus(current), set())


def is_valid_booking_transition(current: str, target: str) -> bool:
    return BookingStatus(target) in BOOKING_TRANSITIONS.get(BookingStatus(current), set())


def transition_ride(ride: Ride, target: RideStatus) -> None:
    if not is_valid_ride_transition(ride.status, target):
        raise InvalidState(
            f"Ride is {ride.status}; cannot move to {target.value}",
            ride_id=ride.id,
            status=ride.status,
        )
    ride.status = target.value


def transition_booking(booking: Booking, target: BookingStatus) -> None:
    if is_valid_booking_transition(booking.status, target):
        booking.status = target.value
        return

    context = {"booking_id": booking.id, "status": booking.status}
    if booking.status == BookingStatus.confirmed and target in (BookingStatus.confirmed, BookingStatus.rejected):
        raise AlreadyConfirmed("Booking is already confirmed", **context)
    if booking.status == BookingStatus.rejected:
        raise AlreadyRejected("Booking is already rejected", **context)
    raise InvalidState(f"Booking is {booking.status}; cannot move to {target.value}", **context)
