"""
PSP payment adapter: authorize / capture / void / refund.

Bookings carry an authorization reference taken when the seat is requested;
the amount is captured when the ride completes (or on acceptance, when
`capture_on_accept` is set) and voided when the booking is cancelled.
Without a PSP API key the adapter runs as a local stub.
"""
import asyncio
import logging
import uuid
from decimal import Decimal

import httpx

from carpool.config import get_settings
from carpool.services.exceptions import PSPError

logger = logging.getLogger(__name__)
settings = get_settings()


async def authorize(
    rider_id: str,
    amount: Decimal,
    payment_method: str,
    idempotency_key: str,
) -> dict:
    """Place a hold. Returns {"psp_ref": str, "status": "authorized"}; raises PSPError."""
    if amount <= 0:
        raise PSPError("Amount must be positive")
    return await _with_retries(
        "authorize",
        "/payment_intents",
        {
            "amount": int(amount * 100),
            "currency": settings.currency.lower(),
            "payment_method": payment_method,
            "capture_method": "manual",
            "confirm": "true",
            "metadata[rider_id]": rider_id,
        },
        idempotency_key,
        stub_status="authorized",
    )


async def capture(psp_ref: str, idempotency_key: str | None = None) -> dict:
    return await _with_retries(
        "capture",
        f"/payment_intents/{psp_ref}/capture",
        {},
        idempotency_key or f"capture-{psp_ref}",
        stub_status="captured",
        psp_ref=psp_ref,
    )


async def void(psp_ref: str, idempotency_key: str | None = None) -> dict:
    """Release an uncaptured hold."""
    return await _with_retries(
        "void",
        f"/payment_intents/{psp_ref}/cancel",
        {},
        idempotency_key or f"void-{psp_ref}",
        stub_status="refunded",
        psp_ref=psp_ref,
    )


async def refund(psp_ref: str, amount: Decimal | None = None, idempotency_key: str | None = None) -> dict:
    data = {"payment_intent": psp_ref}
    if amount is not None:
        data["amount"] = int(amount * 100)
    return await _with_retries(
        "refund",
        "/refunds",
        data,
        idempotency_key or f"refund-{psp_ref}",
        stub_status="refunded",
        psp_ref=psp_ref,
    )


async def _with_retries(
    operation: str,
    path: str,
    data: dict,
    idempotency_key: str,
    stub_status: str,
    psp_ref: str | None = None,
) -> dict:
    """
    Up to `psp_max_attempts` tries with exponential backoff. The idempotency
    key makes a retried call safe on the PSP side.
    """
    attempts = settings.psp_max_attempts
    for attempt in range(1, attempts + 1):
        try:
            result = await _call_psp(path, data, idempotency_key, stub_status, psp_ref)
            logger.info("PSP %s success: ref=%s", operation, result["psp_ref"])
            return result
        except PSPError as e:
            if attempt == attempts:
                logger.error("PSP %s failed after %s attempts: %s", operation, attempts, e)
                raise
            await asyncio.sleep(2 ** attempt)
    raise PSPError(f"PSP {operation} failed")


async def _call_psp(
    path: str,
    data: dict,
    idempotency_key: str,
    stub_status: str,
    psp_ref: str | None,
) -> dict:
    if not settings.psp_api_key:
        # Local stub: always succeeds
        return {
            "psp_ref": psp_ref or f"PSP-{uuid.uuid4().hex[:12].upper()}",
            "status": stub_status,
        }

    try:
        async with httpx.AsyncClient(timeout=settings.psp_timeout_seconds) as client:
            resp = await client.post(
                f"{settings.psp_base_url}{path}",
                headers={
                    "Authorization": f"Bearer {settings.psp_api_key}",
                    "Idempotency-Key": idempotency_key,
                },
                data=data,
            )
    except httpx.HTTPError as exc:
        raise PSPError(f"PSP transport error: {exc}") from exc
    if resp.status_code >= 400:
        raise PSPError(f"PSP error {resp.status_code}: {resp.text}")
    body = resp.json()
    return {"psp_ref": psp_ref or body["id"], "status": stub_status}
