from carpool.models.ride import Ride
from carpool.models.booking import Booking
from carpool.models.outbox import OutboxEvent

__all__ = ["Ride", "Booking", "OutboxEvent"]
