import uuid
from datetime import date, datetime
from decimal import Decimal
from sqlalchemy import CheckConstraint, Date, String, Float, Integer, Numeric, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column
from carpool.database import Base


class Ride(Base):
    __tablename__ = "rides"
    __table_args__ = (
        CheckConstraint("total_seats BETWEEN 1 AND 8", name="ck_rides_total_seats"),
        CheckConstraint(
            "available_seats >= 0 AND available_seats <= total_seats", name="ck_rides_available_seats"
        ),
        CheckConstraint("price_per_seat >= 0", name="ck_rides_price_per_seat"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    driver_id: Mapped[str] = mapped_column(String, nullable=False, index=True)

    from_address: Mapped[str] = mapped_column(String(255), nullable=False)
    from_city: Mapped[str] = mapped_column(String(120), nullable=False)
    from_state: Mapped[str] = mapped_column(String(60), nullable=False)
    from_lat: Mapped[float] = mapped_column(Float, nullable=False)
    from_lng: Mapped[float] = mapped_column(Float, nullable=False)
    to_address: Mapped[str] = mapped_column(String(255), nullable=False)
    to_city: Mapped[str] = mapped_column(String(120), nullable=False)
    to_state: Mapped[str] = mapped_column(String(60), nullable=False)
    to_lat: Mapped[float] = mapped_column(Float, nullable=False)
    to_lng: Mapped[float] = mapped_column(Float, nullable=False)
    distance_miles: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Raw driver input ("12/09/2025", "05:10 PM") and the parsed UTC instant
    departure_date: Mapped[str] = mapped_column(String(20), nullable=False)
    departure_time: Mapped[str] = mapped_column(String(20), nullable=False)
    departure_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    # daily | weekdays | weekly
    recurrence_pattern: Mapped[str | None] = mapped_column(String(20), nullable=True)
    recurrence_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    total_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    # Cached counter, written only by services.ledger
    available_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    price_per_seat: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    # draft | scheduled | in-progress | completed | cancelled
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="scheduled", index=True)
    # Gross snapshot, written once at completion
    total_earnings: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
