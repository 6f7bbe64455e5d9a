"""
Transactional outbox for side effects.

Lifecycle operations add `OutboxEvent` rows inside their own transaction, so
a side-effect request exists if and only if the transition committed. The
rows are drained after commit (right away by the request handler, and by the
background worker as a safety net). Handler failures are logged and retried
up to `outbox_max_attempts`; they never touch the committed transition.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from carpool.config import get_settings
from carpool.models.booking import Booking
from carpool.models.outbox import OutboxEvent
from carpool.schemas.schemas import PaymentStatusEnum
from carpool.services import notifications, payment

logger = logging.getLogger(__name__)
settings = get_settings()

NOTIFY = "notify"
PAYMENT_CAPTURE = "payment.capture"
PAYMENT_VOID = "payment.void"

# in-flight drains started by kick()
_background_tasks: set[asyncio.Task] = set()

Handler = Callable[[AsyncSession, OutboxEvent], Awaitable[None]]


# ---------------------------------------------------------------------------
# Enqueue (inside the caller's transaction)
# ---------------------------------------------------------------------------

def enqueue(
    db: AsyncSession,
    kind: str,
    event_type: str,
    payload: dict,
    user_id: Optional[str] = None,
) -> OutboxEvent:
    event = OutboxEvent(kind=kind, event_type=event_type, payload=payload, user_id=user_id)
    db.add(event)
    return event


def notify_later(db: AsyncSession, user_id: str, event_type: str, payload: dict) -> OutboxEvent:
    return enqueue(db, NOTIFY, event_type, payload, user_id=user_id)


def capture_later(db: AsyncSession, booking: Booking) -> Optional[OutboxEvent]:
    if booking.payment_status != PaymentStatusEnum.authorized or not booking.payment_reference:
        return None
    return enqueue(db, PAYMENT_CAPTURE, "booking.capture", {"booking_id": booking.id}, user_id=booking.rider_id)


def void_later(db: AsyncSession, booking: Booking) -> Optional[OutboxEvent]:
    if booking.payment_status not in (PaymentStatusEnum.authorized, PaymentStatusEnum.captured):
        return None
    if not booking.payment_reference:
        return None
    return enqueue(db, PAYMENT_VOID, "booking.void", {"booking_id": booking.id}, user_id=booking.rider_id)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

async def _handle_notify(db: AsyncSession, event: OutboxEvent) -> None:
    await notifications.notify(event.user_id, event.event_type, event.payload)


async def _handle_capture(db: AsyncSession, event: OutboxEvent) -> None:
    booking = await db.get(Booking, event.payload["booking_id"])
    if booking is None or booking.payment_status != PaymentStatusEnum.authorized:
        return
    await payment.capture(booking.payment_reference, idempotency_key=f"capture-{booking.id}")
    booking.payment_status = PaymentStatusEnum.captured.value


async def _handle_void(db: AsyncSession, event: OutboxEvent) -> None:
    booking = await db.get(Booking, event.payload["booking_id"])
    if booking is None:
        return
    if booking.payment_status == PaymentStatusEnum.authorized:
        await payment.void(booking.payment_reference, idempotency_key=f"void-{booking.id}")
    elif booking.payment_status == PaymentStatusEnum.captured:
        await payment.refund(booking.payment_reference, idempotency_key=f"refund-{booking.id}")
    else:
        return
    booking.payment_status = PaymentStatusEnum.refunded.value


DEFAULT_HANDLERS: dict[str, Handler] = {
    NOTIFY: _handle_notify,
    PAYMENT_CAPTURE: _handle_capture,
    PAYMENT_VOID: _handle_void,
}


# ---------------------------------------------------------------------------
# Drain
# ---------------------------------------------------------------------------

async def drain(
    db: AsyncSession,
    handlers: Optional[dict[str, Handler]] = None,
    limit: Optional[int] = None,
) -> int:
    """Dispatch pending events oldest-first. Returns how many were sent."""
    handlers = handlers or DEFAULT_HANDLERS
    result = await db.execute(
        select(OutboxEvent.id)
        .where(OutboxEvent.status == "pending")
        .order_by(OutboxEvent.created_at)
        .limit(limit or settings.outbox_batch_size)
    )
    event_ids = list(result.scalars())
    await db.commit()

    sent = 0
    for event_id in event_ids:
        claimed = await db.execute(
            select(OutboxEvent)
            .where(OutboxEvent.id == event_id, OutboxEvent.status == "pending")
            .with_for_update(skip_locked=True)
            .execution_options(populate_existing=True)
        )
        event = claimed.scalar_one_or_none()
        if event is None:
            # taken by another drainer
            await db.commit()
            continue

        handler = handlers.get(event.kind)
        try:
            if handler is None:
                raise LookupError(f"no handler for outbox kind {event.kind!r}")
            await handler(db, event)
        except Exception as exc:
            await db.rollback()
            await _record_failure(db, event_id, exc)
            continue

        event.status = "sent"
        event.attempts += 1
        event.processed_at = datetime.now(timezone.utc)
        await db.commit()
        sent += 1
    return sent


async def _record_failure(db: AsyncSession, event_id: str, exc: Exception) -> None:
    event = await db.get(OutboxEvent, event_id, populate_existing=True)
    if event is None:
        return
    event.attempts += 1
    event.last_error = str(exc)[:1000]
    if event.attempts >= settings.outbox_max_attempts:
        event.status = "failed"
        logger.error(
            "Outbox event %s (%s/%s) failed permanently: %s",
            event.id, event.kind, event.event_type, exc,
        )
    else:
        logger.warning(
            "Outbox event %s (%s/%s) attempt %s failed: %s",
            event.id, event.kind, event.event_type, event.attempts, exc,
        )
    await db.commit()


async def drain_pending(session_factory: Optional[async_sessionmaker] = None) -> int:
    """Drain in a fresh session; used as a fire-and-forget task after commit."""
    if session_factory is None:
        from carpool.database import AsyncSessionLocal as session_factory
    try:
        async with session_factory() as db:
            return await drain(db)
    except Exception as exc:
        logger.error("Outbox drain failed: %s", exc, exc_info=True)
        return 0


def kick() -> None:
    """Schedule a drain without waiting for it."""
    task = asyncio.create_task(drain_pending())
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)


async def run_worker(stop: asyncio.Event, interval: Optional[float] = None) -> None:
    interval = interval or settings.outbox_poll_interval_seconds
    logger.info("Outbox worker started (interval=%ss)", interval)
    while not stop.is_set():
        sent = await drain_pending()
        if sent:
            logger.info("Outbox worker dispatched %s events", sent)
        try:
            await asyncio.wait_for(stop.wait(), timeout=interval)
        except asyncio.TimeoutError:
            pass
    logger.info("Outbox worker stopped")
