"""
Notification delivery. Events are published on the user's Redis channel,
where the push / socket gateways pick them up.
"""
import logging
from datetime import datetime, timezone

from carpool.redis_client import get_redis, publish_user_event

logger = logging.getLogger(__name__)

# event types
BOOKING_REQUESTED = "booking.requested"
BOOKING_ACCEPTED = "booking.accepted"
BOOKING_REJECTED = "booking.rejected"
BOOKING_CANCELLED = "booking.cancelled"
PASSENGER_PICKED_UP = "booking.picked_up"
RIDE_STARTED = "ride.started"
RIDE_COMPLETED = "ride.completed"
RIDE_CANCELLED = "ride.cancelled"
RIDE_DELETED = "ride.deleted"


async def notify(user_id: str, event_type: str, payload: dict) -> None:
    redis = await get_redis()
    receivers = await publish_user_event(
        redis,
        user_id,
        {
            "type": event_type,
            "payload": payload,
            "sent_at": datetime.now(timezone.utc).isoformat(),
        },
    )
    logger.info("Notified user=%s event=%s receivers=%s", user_id, event_type, receivers)
