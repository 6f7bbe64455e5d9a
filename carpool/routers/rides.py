"""
Rides router (driver side): create / publish / start / complete / cancel /
delete, plus GET /v1/rides/{id}.
"""
import logging

from fastapi import APIRouter, Depends, Header, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from carpool.config import get_settings
from carpool.database import get_db
from carpool.middleware.auth import get_current_driver, get_current_user_id
from carpool.middleware.idempotency import check_idempotency, store_idempotency_result
from carpool.redis_client import cache_delete, cache_get, cache_set, get_redis, ride_cache_key
from carpool.schemas.schemas import (
    EarningsBreakdown,
    RideCancelResponse,
    RideCompleteRequest,
    RideCompleteResponse,
    RideCreateRequest,
    RideResponse,
)
from carpool.services import lifecycle, outbox

logger = logging.getLogger(__name__)
settings = get_settings()
router = APIRouter(prefix="/v1/rides", tags=["Rides"])

RIDE_CACHE_TTL = 60


async def _invalidate(ride_id: str) -> None:
    redis = await get_redis()
    await cache_delete(redis, ride_cache_key(ride_id))


async def _after_commit(ride_id: str) -> None:
    await _invalidate(ride_id)
    outbox.kick()


@router.post("", status_code=status.HTTP_201_CREATED, response_model=RideResponse)
async def create_ride(
    payload: RideCreateRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    driver_id: str = Depends(get_current_driver),
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
):
    if idempotency_key:
        cached = await check_idempotency(request, driver_id)
        if cached:
            return cached

    ride = await lifecycle.create_ride(db, driver_id, payload)
    resp = RideResponse.model_validate(ride)

    if idempotency_key:
        await store_idempotency_result(driver_id, idempotency_key, 201, resp.model_dump(mode="json"))
    return resp


@router.get("/{ride_id}", response_model=RideResponse)
async def get_ride(
    ride_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    redis = await get_redis()

    # Cache-aside
    cached = await cache_get(redis, ride_cache_key(ride_id))
    if cached:
        return RideResponse.model_validate_json(cached)

    ride = await lifecycle.get_ride(db, ride_id)
    resp = RideResponse.model_validate(ride)
    await cache_set(redis, ride_cache_key(ride_id), resp.model_dump_json(), ttl=RIDE_CACHE_TTL)
    return resp


@router.post("/{ride_id}/publish", response_model=RideResponse)
async def publish_ride(
    ride_id: str,
    db: AsyncSession = Depends(get_db),
    driver_id: str = Depends(get_current_driver),
):
    ride = await lifecycle.publish_ride(db, ride_id, driver_id)
    await _invalidate(ride_id)
    return RideResponse.model_validate(ride)


@router.post("/{ride_id}/start", response_model=RideResponse)
async def start_ride(
    ride_id: str,
    db: AsyncSession = Depends(get_db),
    driver_id: str = Depends(get_current_driver),
):
    ride = await lifecycle.start_ride(db, ride_id, driver_id)
    await _after_commit(ride_id)
    return RideResponse.model_validate(ride)


@router.post("/{ride_id}/complete", response_model=RideCompleteResponse)
async def complete_ride(
    ride_id: str,
    payload: RideCompleteRequest,
    db: AsyncSession = Depends(get_db),
    driver_id: str = Depends(get_current_driver),
):
    """
    Complete an in-progress ride:
      1. every confirmed passenger must have been picked up
      2. the driver must be within the destination geofence
      3. earnings are fixed on the ride; payment capture is queued
    """
    result = await lifecycle.complete_ride(db, ride_id, driver_id, payload.lat, payload.lng)
    await _after_commit(ride_id)
    return RideCompleteResponse(
        ride_id=result.ride.id,
        status=result.ride.status,
        total_earnings=float(result.total_earnings),
        earnings=EarningsBreakdown(**result.earnings.as_floats(), currency=settings.currency),
        completed_bookings=result.completed_bookings,
    )


@router.post("/{ride_id}/cancel", response_model=RideCancelResponse)
async def cancel_ride(
    ride_id: str,
    db: AsyncSession = Depends(get_db),
    driver_id: str = Depends(get_current_driver),
):
    result = await lifecycle.cancel_ride(db, ride_id, driver_id)
    await _after_commit(ride_id)
    return RideCancelResponse(
        ride_id=result.ride.id,
        status=result.ride.status,
        cancelled_bookings=result.cancelled_bookings,
        released_seats=result.released_seats,
        available_seats=result.ride.available_seats,
    )


@router.delete("/{ride_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_ride(
    ride_id: str,
    db: AsyncSession = Depends(get_db),
    driver_id: str = Depends(get_current_driver),
):
    await lifecycle.delete_ride(db, ride_id, driver_id)
    await _after_commit(ride_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
