"""
Unit tests for the ride and booking state machines.
"""
import pytest

from carpool.models.booking import Booking
from carpool.models.ride import Ride
from carpool.schemas.schemas import BookingStatusEnum as BookingStatus
from carpool.schemas.schemas import RideStatusEnum as RideStatus
from carpool.services.exceptions import AlreadyConfirmed, AlreadyRejected, InvalidState
from carpool.services.state_machine import (
    ACTIVE_RIDE,
    SEAT_HOLDING,
    is_valid_booking_transition,
    is_valid_ride_transition,
    transition_booking,
    transition_ride,
)


class TestRideStateMachine:
    def test_draft_to_scheduled(self):
        assert is_valid_ride_transition("draft", "scheduled")

    def test_scheduled_to_in_progress(self):
        assert is_valid_ride_transition("scheduled", "in-progress")

    def test_in_progress_to_completed(self):
        assert is_valid_ride_transition("in-progress", "completed")

    def test_any_live_state_can_cancel(self):
        for state in ("draft", "scheduled", "in-progress"):
            assert is_valid_ride_transition(state, "cancelled")

    def test_cannot_skip_start(self):
        assert not is_valid_ride_transition("scheduled", "completed")

    def test_draft_cannot_start(self):
        assert not is_valid_ride_transition("draft", "in-progress")

    def test_terminal_states(self):
        for terminal in ("completed", "cancelled"):
            for target in RideStatus:
                assert not is_valid_ride_transition(terminal, target.value)

    def test_unknown_state_raises(self):
        with pytest.raises(ValueError):
            is_valid_ride_transition("FLYING", "completed")

    def test_transition_ride_writes_value(self):
        ride = Ride(id="r1", status="scheduled")
        transition_ride(ride, RideStatus.in_progress)
        assert ride.status == "in-progress"

    def test_transition_ride_rejects_illegal_edge(self):
        ride = Ride(id="r1", status="completed")
        with pytest.raises(InvalidState):
            transition_ride(ride, RideStatus.completed)
        assert ride.status == "completed"


class TestBookingStateMachine:
    def test_pending_edges(self):
        assert is_valid_booking_transition("pending", "confirmed")
        assert is_valid_booking_transition("pending", "rejected")
        assert is_valid_booking_transition("pending", "cancelled")
        assert not is_valid_booking_transition("pending", "completed")

    def test_confirmed_edges(self):
        assert is_valid_booking_transition("confirmed", "cancelled")
        assert is_valid_booking_transition("confirmed", "completed")
        assert not is_valid_booking_transition("confirmed", "pending")

    def test_terminal_states(self):
        for terminal in ("rejected", "cancelled", "completed"):
            for target in BookingStatus:
                assert not is_valid_booking_transition(terminal, target.value)

    def test_accept_twice_is_already_confirmed(self):
        booking = Booking(id="b1", status="confirmed")
        with pytest.raises(AlreadyConfirmed):
            transition_booking(booking, BookingStatus.confirmed)

    def test_reject_after_accept_is_already_confirmed(self):
        booking = Booking(id="b1", status="confirmed")
        with pytest.raises(AlreadyConfirmed):
            transition_booking(booking, BookingStatus.rejected)

    def test_accept_after_reject_is_already_rejected(self):
        booking = Booking(id="b1", status="rejected")
        with pytest.raises(AlreadyRejected) as exc_info:
            transition_booking(booking, BookingStatus.confirmed)
        assert exc_info.value.status_code == 409

    def test_cancelled_booking_is_plain_invalid_state(self):
        booking = Booking(id="b1", status="cancelled")
        with pytest.raises(InvalidState) as exc_info:
            transition_booking(booking, BookingStatus.confirmed)
        assert not isinstance(exc_info.value, (AlreadyConfirmed, AlreadyRejected))


class TestStatusGroups:
    def test_seat_holding(self):
        assert SEAT_HOLDING == {"confirmed", "completed"}

    def test_active_ride(self):
        assert ACTIVE_RIDE == {"scheduled", "in-progress"}
