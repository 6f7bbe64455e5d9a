"""
Bookings router.

Rider:  POST /v1/bookings, POST /v1/bookings/{id}/cancel, GET /v1/bookings/{id}/pickup-pin
Driver: POST /v1/bookings/{id}/accept | /reject | /pickup
"""
import logging
import uuid

from fastapi import APIRouter, Depends, Header, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from carpool.database import get_db
from carpool.middleware.auth import get_current_driver, get_current_rider, get_current_user_id
from carpool.middleware.idempotency import check_idempotency, store_idempotency_result
from carpool.redis_client import cache_delete, get_redis, ride_cache_key
from carpool.schemas.schemas import (
    BookingAcceptResponse,
    BookingCreateRequest,
    BookingRejectRequest,
    BookingResponse,
    PickupPINResponse,
    PickupVerifyRequest,
    PickupVerifyResponse,
)
from carpool.services import lifecycle, outbox, payment
from carpool.services.exceptions import PSPError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/v1/bookings", tags=["Bookings"])


async def _after_commit(ride_id: str) -> None:
    redis = await get_redis()
    await cache_delete(redis, ride_cache_key(ride_id))
    outbox.kick()


@router.post("", status_code=status.HTTP_201_CREATED, response_model=BookingResponse)
async def request_booking(
    payload: BookingCreateRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    rider_id: str = Depends(get_current_rider),
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
):
    """
    Request seats on a scheduled ride:
      1. Idempotency check
      2. Authorize the fare with the PSP (hold only, captured on completion)
      3. Create the pending booking; void the hold if that fails
    """
    if idempotency_key:
        cached = await check_idempotency(request, rider_id)
        if cached:
            return cached

    psp_ref = None
    if payload.payment_method:
        ride = await lifecycle.get_ride(db, payload.ride_id)
        amount = ride.price_per_seat * payload.number_of_seats
        if amount > 0:
            auth = await payment.authorize(
                rider_id,
                amount,
                payload.payment_method,
                idempotency_key=f"auth-{idempotency_key or uuid.uuid4().hex}",
            )
            psp_ref = auth["psp_ref"]

    try:
        booking = await lifecycle.request_booking(db, rider_id, payload, payment_reference=psp_ref)
    except Exception:
        if psp_ref:
            try:
                await payment.void(psp_ref)
            except PSPError as e:
                logger.error("Could not void hold %s after failed booking: %s", psp_ref, e)
        raise

    outbox.kick()
    resp = BookingResponse.model_validate(booking)
    if idempotency_key:
        await store_idempotency_result(rider_id, idempotency_key, 201, resp.model_dump(mode="json"))
    return resp


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    booking = await lifecycle.get_booking(db, booking_id, user_id)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/accept", response_model=BookingAcceptResponse)
async def accept_booking(
    booking_id: str,
    db: AsyncSession = Depends(get_db),
    driver_id: str = Depends(get_current_driver),
):
    # The PIN itself only goes to the rider (GET .../pickup-pin).
    result = await lifecycle.accept_booking(db, booking_id, driver_id)
    await _after_commit(result.booking.ride_id)
    return BookingAcceptResponse(
        booking_id=result.booking.id,
        status=result.booking.status,
        available_seats=result.available_seats,
        pin_expires_at=result.pickup_pin.expires_at,
    )


@router.post("/{booking_id}/reject", response_model=BookingResponse)
async def reject_booking(
    booking_id: str,
    payload: BookingRejectRequest,
    db: AsyncSession = Depends(get_db),
    driver_id: str = Depends(get_current_driver),
):
    booking = await lifecycle.reject_booking(db, booking_id, driver_id, reason=payload.reason)
    await _after_commit(booking.ride_id)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: str,
    db: AsyncSession = Depends(get_db),
    rider_id: str = Depends(get_current_rider),
):
    booking = await lifecycle.cancel_booking(db, booking_id, rider_id)
    await _after_commit(booking.ride_id)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/pickup", response_model=PickupVerifyResponse)
async def verify_pickup(
    booking_id: str,
    payload: PickupVerifyRequest,
    db: AsyncSession = Depends(get_db),
    driver_id: str = Depends(get_current_driver),
):
    result = await lifecycle.verify_pickup_pin(db, booking_id, driver_id, payload.pin)
    outbox.kick()
    return PickupVerifyResponse(
        booking_id=result.booking.id,
        pickup_status=result.booking.pickup_status,
        picked_up_at=result.booking.picked_up_at,
        already_picked_up=result.already_picked_up,
    )


@router.get("/{booking_id}/pickup-pin", response_model=PickupPINResponse)
async def get_pickup_pin(
    booking_id: str,
    db: AsyncSession = Depends(get_db),
    rider_id: str = Depends(get_current_rider),
):
    pin = await lifecycle.get_pickup_pin(db, booking_id, rider_id)
    return PickupPINResponse(booking_id=booking_id, pin=pin.pin, expires_at=pin.expires_at)
