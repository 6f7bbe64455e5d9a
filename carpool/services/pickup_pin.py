"""
Pickup PIN issuance and verification.

A PIN is stored twice: a one-way hash used for verification, and a Fernet
token (authenticated encryption keyed from the server secret) so the rider
can be shown the plain value again without it being stored in clear text.
"""
import base64
import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from math import ceil

from cryptography.fernet import Fernet, InvalidToken
from passlib.context import CryptContext

from carpool.config import get_settings
from carpool.models.booking import Booking
from carpool.schemas.schemas import PickupStatusEnum
from carpool.services.exceptions import AlreadyPickedUp, Expired, InvalidPIN, Locked
from carpool.utils.time import ensure_utc

settings = get_settings()

pin_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

PIN_LENGTH = 4


@dataclass
class PickupPIN:
    pin: str
    expires_at: datetime


def is_weak_pin(pin: str) -> bool:
    """Repeated digits (0000, 1111) and straight runs (1234, 9876)."""
    digits = [int(c) for c in pin]
    if len(set(digits)) == 1:
        return True
    steps = {b - a for a, b in zip(digits, digits[1:])}
    return steps in ({1}, {-1})


def generate_pin() -> str:
    while True:
        pin = f"{secrets.randbelow(10 ** PIN_LENGTH):0{PIN_LENGTH}d}"
        if not is_weak_pin(pin):
            return pin


def hash_pin(pin: str) -> str:
    return pin_context.hash(pin)


def _fernet(secret: str | None = None) -> Fernet:
    key = hashlib.sha256((secret or settings.pin_encryption_secret).encode()).digest()
    return Fernet(base64.urlsafe_b64encode(key))


def encrypt_pin(pin: str, secret: str | None = None) -> str:
    return _fernet(secret).encrypt(pin.encode()).decode()


def decrypt_pin(token: str, secret: str | None = None) -> str:
    try:
        return _fernet(secret).decrypt(token.encode()).decode()
    except InvalidToken as exc:
        raise ValueError("PIN cipher could not be decrypted") from exc


def issue(booking: Booking, now: datetime) -> PickupPIN:
    """Attach a fresh PIN to the booking and reset the verification state."""
    pin = generate_pin()
    expires_at = now + timedelta(hours=settings.pin_ttl_hours)
    booking.pickup_status = PickupStatusEnum.pending.value
    booking.picked_up_at = None
    booking.pickup_pin_hash = hash_pin(pin)
    booking.pickup_pin_encrypted = encrypt_pin(pin)
    booking.pickup_pin_expires_at = expires_at
    booking.pickup_pin_attempts = 0
    booking.pickup_pin_locked_until = None
    return PickupPIN(pin=pin, expires_at=expires_at)


def verify(booking: Booking, candidate: str, now: datetime) -> None:
    """
    Check `candidate` against the booking's PIN, mutating the attempt
    counter / lockout / pickup fields in place. The caller holds the
    booking row and commits whatever this leaves behind, failures included.
    """
    if booking.pickup_status == PickupStatusEnum.picked_up:
        raise AlreadyPickedUp("Passenger already marked as picked up", booking_id=booking.id)

    expires_at = ensure_utc(booking.pickup_pin_expires_at)
    if expires_at is None or booking.pickup_pin_hash is None:
        raise InvalidPIN("No pickup PIN set for this booking", booking_id=booking.id, attempts_remaining=0)
    if now > expires_at:
        raise Expired("Pickup PIN has expired", booking_id=booking.id)

    locked_until = ensure_utc(booking.pickup_pin_locked_until)
    if locked_until is not None:
        if locked_until > now:
            remaining = (locked_until - now).total_seconds()
            minutes = ceil(remaining / 60)
            raise Locked(
                f"Too many failed attempts. Please try again in {minutes} minute{'s' if minutes != 1 else ''}",
                booking_id=booking.id,
                retry_after_seconds=ceil(remaining),
            )
        # lockout served; start a fresh window
        booking.pickup_pin_locked_until = None
        booking.pickup_pin_attempts = 0

    if not pin_context.verify(candidate, booking.pickup_pin_hash):
        attempts = booking.pickup_pin_attempts + 1
        booking.pickup_pin_attempts = attempts
        if attempts >= settings.pin_max_attempts:
            booking.pickup_pin_locked_until = now + timedelta(minutes=settings.pin_lockout_minutes)
        raise InvalidPIN(
            "Invalid PIN",
            booking_id=booking.id,
            attempts_remaining=max(0, settings.pin_max_attempts - attempts),
        )

    booking.pickup_status = PickupStatusEnum.picked_up.value
    booking.picked_up_at = now
    booking.pickup_pin_attempts = 0
    booking.pickup_pin_locked_until = None
