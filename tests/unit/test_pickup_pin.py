"""
Unit tests for pickup PIN generation, storage and the attempt / lockout rules.
"""
from datetime import datetime, timedelta, timezone

import pytest

from carpool.models.booking import Booking
from carpool.services import pickup_pin
from carpool.services.exceptions import AlreadyPickedUp, Expired, InvalidPIN, Locked

NOW = datetime(2025, 12, 9, 17, 0, tzinfo=timezone.utc)


def _issued_booking():
    booking = Booking(id="b1", status="confirmed", pickup_status="pending", pickup_pin_attempts=0)
    pin = pickup_pin.issue(booking, NOW)
    return booking, pin.pin


def _wrong(pin: str) -> str:
    return "0000" if pin != "0000" else "1111"


class TestPINGeneration:
    @pytest.mark.parametrize("pin", ["0000", "7777", "1234", "4567", "9876", "3210"])
    def test_weak_pins(self, pin):
        assert pickup_pin.is_weak_pin(pin)

    @pytest.mark.parametrize("pin", ["1357", "2024", "9182", "1243"])
    def test_acceptable_pins(self, pin):
        assert not pickup_pin.is_weak_pin(pin)

    def test_generated_pins_are_four_strong_digits(self):
        for _ in range(50):
            pin = pickup_pin.generate_pin()
            assert len(pin) == 4 and pin.isdigit()
            assert not pickup_pin.is_weak_pin(pin)

    def test_hash_is_not_the_pin(self):
        hashed = pickup_pin.hash_pin("2468")
        assert hashed.startswith("$pbkdf2-sha256$")
        assert pickup_pin.pin_context.verify("2468", hashed)

    def test_cipher_round_trip_and_wrong_key(self):
        token = pickup_pin.encrypt_pin("2468")
        assert token != "2468"
        assert pickup_pin.decrypt_pin(token) == "2468"
        with pytest.raises(ValueError):
            pickup_pin.decrypt_pin(token, secret="another-secret")


class TestIssue:
    def test_sets_expiry_and_resets_state(self):
        booking = Booking(
            id="b1",
            status="confirmed",
            pickup_pin_attempts=4,
            pickup_pin_locked_until=NOW + timedelta(minutes=5),
        )
        pin = pickup_pin.issue(booking, NOW)
        assert pin.expires_at == NOW + timedelta(hours=24)
        assert booking.pickup_pin_expires_at == pin.expires_at
        assert booking.pickup_pin_attempts == 0
        assert booking.pickup_pin_locked_until is None
        assert booking.pickup_status == "pending"
        assert pickup_pin.decrypt_pin(booking.pickup_pin_encrypted) == pin.pin


class TestVerify:
    def test_correct_pin_marks_picked_up(self):
        booking, pin = _issued_booking()
        pickup_pin.verify(booking, pin, NOW + timedelta(minutes=30))
        assert booking.pickup_status == "picked_up"
        assert booking.picked_up_at == NOW + timedelta(minutes=30)

    def test_wrong_pin_counts_attempts(self):
        booking, pin = _issued_booking()
        with pytest.raises(InvalidPIN) as exc_info:
            pickup_pin.verify(booking, _wrong(pin), NOW)
        assert booking.pickup_pin_attempts == 1
        assert exc_info.value.context["attempts_remaining"] == 4
        assert booking.pickup_status == "pending"

    def test_fifth_failure_locks_even_the_correct_pin(self):
        booking, pin = _issued_booking()
        for _ in range(5):
            with pytest.raises(InvalidPIN):
                pickup_pin.verify(booking, _wrong(pin), NOW)
        assert booking.pickup_pin_locked_until == NOW + timedelta(minutes=10)

        with pytest.raises(Locked) as exc_info:
            pickup_pin.verify(booking, pin, NOW + timedelta(minutes=1))
        assert exc_info.value.context["retry_after_seconds"] == 540
        assert booking.pickup_status == "pending"

    def test_lockout_expiry_starts_fresh_window(self):
        booking, pin = _issued_booking()
        for _ in range(5):
            with pytest.raises(InvalidPIN):
                pickup_pin.verify(booking, _wrong(pin), NOW)

        later = NOW + timedelta(minutes=11)
        with pytest.raises(InvalidPIN) as exc_info:
            pickup_pin.verify(booking, _wrong(pin), later)
        assert booking.pickup_pin_attempts == 1
        assert exc_info.value.context["attempts_remaining"] == 4

        pickup_pin.verify(booking, pin, later)
        assert booking.pickup_status == "picked_up"

    def test_expired_pin(self):
        booking, pin = _issued_booking()
        with pytest.raises(Expired):
            pickup_pin.verify(booking, pin, NOW + timedelta(hours=24, seconds=1))
        assert booking.pickup_pin_attempts == 0

    def test_already_picked_up(self):
        booking, pin = _issued_booking()
        pickup_pin.verify(booking, pin, NOW)
        with pytest.raises(AlreadyPickedUp):
            pickup_pin.verify(booking, pin, NOW)

    def test_no_pin_issued(self):
        booking = Booking(id="b1", status="confirmed", pickup_status="pending", pickup_pin_attempts=0)
        with pytest.raises(InvalidPIN):
            pickup_pin.verify(booking, "2468", NOW)

    def test_naive_stored_timestamps_are_treated_as_utc(self):
        booking, pin = _issued_booking()
        booking.pickup_pin_expires_at = booking.pickup_pin_expires_at.replace(tzinfo=None)
        pickup_pin.verify(booking, pin, NOW)
        assert booking.pickup_status == "picked_up"
