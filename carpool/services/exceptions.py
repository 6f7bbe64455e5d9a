"""Domain errors raised by the ride/booking lifecycle."""


class LifecycleError(Exception):
    """Base class. `context` is surfaced to the caller alongside the message."""

    status_code = 400
    code = "lifecycle_error"

    def __init__(self, message: str = "", **context):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or (self.__class__.__doc__ or self.code).strip()
        self.context = context

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code, **self.context}


# ---------------------------------------------------------------------------
# Validation / lookup / authorization
# ---------------------------------------------------------------------------

class ValidationError(LifecycleError):
    """Malformed input."""
    status_code = 422
    code = "validation_error"


class NotFound(LifecycleError):
    """Resource not found."""
    status_code = 404
    code = "not_found"


class Forbidden(LifecycleError):
    """Actor does not own this ride or booking."""
    status_code = 403
    code = "forbidden"


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------

class InvalidState(LifecycleError):
    """Operation not allowed in the current state."""
    status_code = 409
    code = "invalid_state"


class AlreadyConfirmed(InvalidState):
    """Booking is already confirmed."""
    code = "already_confirmed"


class AlreadyRejected(InvalidState):
    """Booking is already rejected."""
    code = "already_rejected"


class InsufficientCapacity(LifecycleError):
    """Not enough available seats."""
    status_code = 409
    code = "insufficient_capacity"


class ConflictingActiveRide(LifecycleError):
    """Driver already has a ride in progress."""
    status_code = 409
    code = "conflicting_active_ride"


class ConflictingSchedule(LifecycleError):
    """Driver has another ride too close to this departure."""
    status_code = 409
    code = "conflicting_schedule"


class DuplicateRide(LifecycleError):
    """An identical ride was already posted."""
    status_code = 409
    code = "duplicate_ride"


class DuplicateBooking(LifecycleError):
    """Rider already has an active booking on this ride."""
    status_code = 409
    code = "duplicate_booking"


class NoConfirmedBookings(LifecycleError):
    """Ride has no confirmed passengers."""
    status_code = 409
    code = "no_confirmed_bookings"


class PassengersNotPickedUp(LifecycleError):
    """Some confirmed passengers have not been picked up."""
    status_code = 409
    code = "passengers_not_picked_up"


class TooFarFromDestination(LifecycleError):
    """Driver is not at the destination."""
    status_code = 422
    code = "too_far_from_destination"


class AlreadyPickedUp(LifecycleError):
    """Passenger already picked up."""
    status_code = 409
    code = "already_picked_up"


# ---------------------------------------------------------------------------
# Pickup PIN
# ---------------------------------------------------------------------------

class Expired(LifecycleError):
    """Pickup PIN has expired."""
    status_code = 410
    code = "pin_expired"


class Locked(LifecycleError):
    """Too many failed attempts."""
    status_code = 429
    code = "pin_locked"


class InvalidPIN(LifecycleError):
    """Invalid PIN."""
    status_code = 400
    code = "invalid_pin"


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------

class PSPError(LifecycleError):
    """Payment gateway error."""
    status_code = 502
    code = "payment_gateway_error"
