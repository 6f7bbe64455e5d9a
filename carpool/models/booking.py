import uuid
from datetime import datetime
from decimal import Decimal
from sqlalchemy import CheckConstraint, Index, String, Float, Integer, Numeric, DateTime, ForeignKey, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column
from carpool.database import Base


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("number_of_seats >= 1", name="ck_bookings_number_of_seats"),
        # one open request per rider per ride
        Index(
            "uq_bookings_open_rider_ride",
            "ride_id",
            "rider_id",
            unique=True,
            postgresql_where=text("status IN ('pending', 'confirmed')"),
            sqlite_where=text("status IN ('pending', 'confirmed')"),
        ),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    ride_id: Mapped[str] = mapped_column(String, ForeignKey("rides.id", ondelete="CASCADE"), nullable=False, index=True)
    rider_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    confirmation_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)

    pickup_address: Mapped[str] = mapped_column(String(255), nullable=False)
    pickup_lat: Mapped[float] = mapped_column(Float, nullable=False)
    pickup_lng: Mapped[float] = mapped_column(Float, nullable=False)

    # Immutable after creation
    number_of_seats: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # Locked in at request time
    price_per_seat: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    # pending | confirmed | rejected | cancelled | completed
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # pending | picked_up
    pickup_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    picked_up_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    pickup_pin_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    pickup_pin_encrypted: Mapped[str | None] = mapped_column(String(255), nullable=True)
    pickup_pin_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    pickup_pin_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pickup_pin_locked_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    payment_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # none | authorized | captured | refunded
    payment_status: Mapped[str] = mapped_column(String(20), nullable=False, default="none")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
