"""
End-to-end smoke run against a live server (uvicorn carpool.main:app).

Walks one ride through its whole lifecycle: post, request, accept, start,
pickup PIN, complete, earnings.
"""
import asyncio
import uuid
from datetime import datetime, timedelta, timezone

import httpx

from carpool.middleware.auth import create_access_token


BASE_URL = "http://localhost:8000"
DEST = {"lat": 37.3382, "lng": -121.8863}


async def safe_request(resp: httpx.Response, step: str):
    """Print response + fail loudly if error"""
    print(f"{step}: {resp.status_code}")

    try:
        print(resp.json())
    except ValueError:
        print(resp.text)

    resp.raise_for_status()


async def main():

    driver_id = f"driver-{uuid.uuid4().hex[:8]}"
    rider_id = f"rider-{uuid.uuid4().hex[:8]}"
    driver_headers = {"Authorization": f"Bearer {create_access_token(driver_id, role='driver')}"}
    rider_headers = {"Authorization": f"Bearer {create_access_token(rider_id, role='rider')}"}
    departure = datetime.now(timezone.utc) + timedelta(days=1)

    async with httpx.AsyncClient(base_url=BASE_URL, timeout=30.0) as client:

        # ---------------------------------------------------
        print("\n1. Checking Health...")
        await safe_request(await client.get("/health"), "Health")

        # ---------------------------------------------------
        print("\n2. Driver posts a ride...")
        resp = await client.post(
            "/v1/rides",
            headers={**driver_headers, "Idempotency-Key": str(uuid.uuid4())},
            json={
                "from_address": "1 Market St",
                "from_city": "San Francisco",
                "from_state": "CA",
                "from_lat": 37.7749,
                "from_lng": -122.4194,
                "to_address": "200 E Santa Clara St",
                "to_city": "San Jose",
                "to_state": "CA",
                "to_lat": DEST["lat"],
                "to_lng": DEST["lng"],
                "departure_date": departure.strftime("%m/%d/%Y"),
                "departure_time": departure.strftime("%I:%M %p"),
                "total_seats": 3,
                "price_per_seat": "15.00",
            },
        )
        await safe_request(resp, "Create Ride")
        ride_id = resp.json()["id"]

        # ---------------------------------------------------
        print("\n3. Rider requests two seats...")
        resp = await client.post(
            "/v1/bookings",
            headers={**rider_headers, "Idempotency-Key": str(uuid.uuid4())},
            json={
                "ride_id": ride_id,
                "pickup_address": "500 Castro St",
                "pickup_lat": 37.3861,
                "pickup_lng": -122.0839,
                "number_of_seats": 2,
                "payment_method": "pm_card_visa",
            },
        )
        await safe_request(resp, "Request Booking")
        booking_id = resp.json()["id"]

        # ---------------------------------------------------
        print("\n4. Driver accepts...")
        resp = await client.post(f"/v1/bookings/{booking_id}/accept", headers=driver_headers)
        await safe_request(resp, "Accept Booking")

        resp = await client.get(f"/v1/bookings/{booking_id}/pickup-pin", headers=rider_headers)
        await safe_request(resp, "Rider PIN")
        pin = resp.json()["pin"]

        # ---------------------------------------------------
        print("\n5. Driver starts the ride and picks the rider up...")
        await safe_request(await client.post(f"/v1/rides/{ride_id}/start", headers=driver_headers), "Start Ride")
        resp = await client.post(f"/v1/bookings/{booking_id}/pickup", headers=driver_headers, json={"pin": pin})
        await safe_request(resp, "Pickup")

        # ---------------------------------------------------
        print("\n6. Driver completes at the destination...")
        resp = await client.post(f"/v1/rides/{ride_id}/complete", headers=driver_headers, json=DEST)
        await safe_request(resp, "Complete Ride")

        resp = await client.get("/v1/earnings", headers=driver_headers)
        await safe_request(resp, "Earnings")

        print("\nFLOW COMPLETED SUCCESSFULLY")


if __name__ == "__main__":
    asyncio.run(main())
