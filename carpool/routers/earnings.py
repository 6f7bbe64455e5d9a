"""
Earnings router: GET /v1/earnings (completed rides of the calling driver)
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from carpool.config import get_settings
from carpool.database import get_db
from carpool.middleware.auth import get_current_driver
from carpool.schemas.schemas import EarningsBreakdown, EarningsSummaryResponse, RideEarnings
from carpool.services import lifecycle

settings = get_settings()
router = APIRouter(prefix="/v1/earnings", tags=["Earnings"])


@router.get("", response_model=EarningsSummaryResponse)
async def earnings_summary(
    db: AsyncSession = Depends(get_db),
    driver_id: str = Depends(get_current_driver),
):
    summary = await lifecycle.earnings_summary(db, driver_id)
    return EarningsSummaryResponse(
        driver_id=driver_id,
        rides=[
            RideEarnings(
                ride_id=ride.id,
                completed_at=ride.completed_at,
                earnings=EarningsBreakdown(**e.as_floats(), currency=settings.currency),
            )
            for ride, e in summary.rides
        ],
        totals=EarningsBreakdown(**summary.totals.as_floats(), currency=settings.currency),
    )
