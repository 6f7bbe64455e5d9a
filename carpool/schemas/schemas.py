from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class RideStatusEnum(str, Enum):
    draft = "draft"
    scheduled = "scheduled"
    in_progress = "in-progress"
    completed = "completed"
    cancelled = "cancelled"


class BookingStatusEnum(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    rejected = "rejected"
    cancelled = "cancelled"
    completed = "completed"


class PickupStatusEnum(str, Enum):
    pending = "pending"
    picked_up = "picked_up"


class PaymentStatusEnum(str, Enum):
    none = "none"
    authorized = "authorized"
    captured = "captured"
    refunded = "refunded"


class RecurrencePatternEnum(str, Enum):
    daily = "daily"
    weekdays = "weekdays"
    weekly = "weekly"


# ---------------------------------------------------------------------------
# Ride schemas
# ---------------------------------------------------------------------------

class RideCreateRequest(BaseModel):
    from_address: str = Field(..., min_length=1, max_length=255)
    from_city: str = Field(..., min_length=1, max_length=120)
    from_state: str = Field(..., min_length=1, max_length=60)
    from_lat: float = Field(..., ge=-90, le=90)
    from_lng: float = Field(..., ge=-180, le=180)
    to_address: str = Field(..., min_length=1, max_length=255)
    to_city: str = Field(..., min_length=1, max_length=120)
    to_state: str = Field(..., min_length=1, max_length=60)
    to_lat: float = Field(..., ge=-90, le=90)
    to_lng: float = Field(..., ge=-180, le=180)
    departure_date: str = Field(..., examples=["12/09/2025"])
    departure_time: str = Field(..., examples=["05:10 PM"])
    total_seats: int = Field(..., ge=1, le=8)
    price_per_seat: Decimal = Field(..., ge=0)
    distance_miles: Optional[float] = Field(default=None, ge=0)
    recurrence_pattern: Optional[RecurrencePatternEnum] = None
    recurrence_end_date: Optional[date] = None
    draft: bool = False

    @field_validator("from_address", "to_address", "from_city", "to_city", "from_state", "to_state")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class RideResponse(BaseModel):
    id: str
    driver_id: str
    from_address: str
    to_address: str
    from_lat: float
    from_lng: float
    to_lat: float
    to_lng: float
    departure_at: datetime
    recurrence_pattern: Optional[str] = None
    recurrence_end_date: Optional[date] = None
    total_seats: int
    available_seats: int
    price_per_seat: float
    status: RideStatusEnum
    total_earnings: Optional[float] = None

    model_config = {"from_attributes": True}


class RideCompleteRequest(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class EarningsBreakdown(BaseModel):
    gross_earnings: float
    processing_fee: float
    commission: float
    total_fees: float
    net_earnings: float
    currency: str = "USD"


class RideCompleteResponse(BaseModel):
    ride_id: str
    status: RideStatusEnum
    total_earnings: float
    earnings: EarningsBreakdown
    completed_bookings: int


class RideCancelResponse(BaseModel):
    ride_id: str
    status: RideStatusEnum
    cancelled_bookings: int
    released_seats: int
    available_seats: int


# ---------------------------------------------------------------------------
# Booking schemas
# ---------------------------------------------------------------------------

class BookingCreateRequest(BaseModel):
    ride_id: str
    pickup_address: str = Field(..., min_length=1, max_length=255)
    pickup_lat: float = Field(..., ge=-90, le=90)
    pickup_lng: float = Field(..., ge=-180, le=180)
    number_of_seats: int = Field(default=1, ge=1, le=8)
    payment_method: Optional[str] = None


class BookingResponse(BaseModel):
    id: str
    ride_id: str
    rider_id: str
    confirmation_number: str
    number_of_seats: int
    status: BookingStatusEnum
    pickup_status: PickupStatusEnum
    payment_status: PaymentStatusEnum
    rejection_reason: Optional[str] = None

    model_config = {"from_attributes": True}


class BookingRejectRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class BookingAcceptResponse(BaseModel):
    booking_id: str
    status: BookingStatusEnum
    available_seats: int
    pin_expires_at: datetime


class PickupVerifyRequest(BaseModel):
    pin: str = Field(..., pattern=r"^\d{4}$")


class PickupVerifyResponse(BaseModel):
    booking_id: str
    pickup_status: PickupStatusEnum
    picked_up_at: Optional[datetime] = None
    already_picked_up: bool = False


class PickupPINResponse(BaseModel):
    booking_id: str
    pin: str
    expires_at: datetime


# ---------------------------------------------------------------------------
# Earnings schemas
# ---------------------------------------------------------------------------

class RideEarnings(BaseModel):
    ride_id: str
    completed_at: Optional[datetime] = None
    earnings: EarningsBreakdown


class EarningsSummaryResponse(BaseModel):
    driver_id: str
    rides: list[RideEarnings]
    totals: EarningsBreakdown
