"""Initial schema: rides, bookings, outbox_events"""
from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "rides",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("driver_id", sa.String, nullable=False),
        sa.Column("from_address", sa.String(255), nullable=False),
        sa.Column("from_city", sa.String(120), nullable=False),
        sa.Column("from_state", sa.String(60), nullable=False),
        sa.Column("from_lat", sa.Float, nullable=False),
        sa.Column("from_lng", sa.Float, nullable=False),
        sa.Column("to_address", sa.String(255), nullable=False),
        sa.Column("to_city", sa.String(120), nullable=False),
        sa.Column("to_state", sa.String(60), nullable=False),
        sa.Column("to_lat", sa.Float, nullable=False),
        sa.Column("to_lng", sa.Float, nullable=False),
        sa.Column("distance_miles", sa.Float, nullable=True),
        sa.Column("departure_date", sa.String(20), nullable=False),
        sa.Column("departure_time", sa.String(20), nullable=False),
        sa.Column("departure_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("recurrence_pattern", sa.String(20), nullable=True),
        sa.Column("recurrence_end_date", sa.Date, nullable=True),
        sa.Column("total_seats", sa.Integer, nullable=False),
        sa.Column("available_seats", sa.Integer, nullable=False),
        sa.Column("price_per_seat", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="scheduled"),
        sa.Column("total_earnings", sa.Numeric(10, 2), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("total_seats BETWEEN 1 AND 8", name="ck_rides_total_seats"),
        sa.CheckConstraint(
            "available_seats >= 0 AND available_seats <= total_seats", name="ck_rides_available_seats"
        ),
        sa.CheckConstraint("price_per_seat >= 0", name="ck_rides_price_per_seat"),
    )
    op.create_index("idx_rides_driver", "rides", ["driver_id"])
    op.create_index("idx_rides_status", "rides", ["status"])
    op.create_index("idx_rides_departure", "rides", ["departure_at"])
    op.create_index("idx_rides_driver_status_departure", "rides", ["driver_id", "status", "departure_at"])
    op.create_index("idx_rides_created", "rides", ["created_at"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("ride_id", sa.String, sa.ForeignKey("rides.id", ondelete="CASCADE"), nullable=False),
        sa.Column("rider_id", sa.String, nullable=False),
        sa.Column("confirmation_number", sa.String(32), unique=True, nullable=False),
        sa.Column("pickup_address", sa.String(255), nullable=False),
        sa.Column("pickup_lat", sa.Float, nullable=False),
        sa.Column("pickup_lng", sa.Float, nullable=False),
        sa.Column("number_of_seats", sa.Integer, nullable=False, server_default="1"),
        sa.Column("price_per_seat", sa.Numeric(10, 2), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("rejection_reason", sa.Text, nullable=True),
        sa.Column("pickup_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("picked_up_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("pickup_pin_hash", sa.String(255), nullable=True),
        sa.Column("pickup_pin_encrypted", sa.String(255), nullable=True),
        sa.Column("pickup_pin_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("pickup_pin_attempts", sa.Integer, nullable=False, server_default="0"),
        sa.Column("pickup_pin_locked_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_reference", sa.String(255), nullable=True),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="none"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("number_of_seats >= 1", name="ck_bookings_number_of_seats"),
    )
    op.create_index("idx_bookings_ride", "bookings", ["ride_id"])
    op.create_index("idx_bookings_rider", "bookings", ["rider_id"])
    op.create_index("idx_bookings_ride_status", "bookings", ["ride_id", "status"])
    op.create_index(
        "uq_bookings_open_rider_ride",
        "bookings",
        ["ride_id", "rider_id"],
        unique=True,
        postgresql_where=sa.text("status IN ('pending', 'confirmed')"),
    )

    op.create_table(
        "outbox_events",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("kind", sa.String(30), nullable=False),
        sa.Column("user_id", sa.String, nullable=True),
        sa.Column("event_type", sa.String(60), nullable=False),
        sa.Column("payload", sa.JSON, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("attempts", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("idx_outbox_status_created", "outbox_events", ["status", "created_at"])


def downgrade() -> None:
    op.drop_table("outbox_events")
    op.drop_table("bookings")
    op.drop_table("rides")
