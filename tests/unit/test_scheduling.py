"""
Unit tests for departure parsing, ride field validation, geo helpers and the seat ledger.
"""
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from carpool.models.ride import Ride
from carpool.services import ledger
from carpool.services.exceptions import InsufficientCapacity, ValidationError
from carpool.config import get_settings
from carpool.services.scheduling import local_date, parse_departure, validate_ride_fields
from carpool.utils.geo import haversine_m, within_tolerance
from carpool.utils.time import ensure_utc

settings = get_settings()

DEPARTURE = datetime(2025, 12, 9, 17, 10, tzinfo=timezone.utc)


class TestParseDeparture:
    def test_us_date_and_12h_clock(self):
        assert parse_departure("12/09/2025", "05:10 PM") == DEPARTURE

    def test_iso_date_and_24h_clock(self):
        assert parse_departure("2025-12-09", "17:10") == DEPARTURE

    def test_lowercase_meridiem_without_space(self):
        assert parse_departure("12/09/2025", "5:10pm") == DEPARTURE

    def test_midnight_and_noon(self):
        assert parse_departure("12/09/2025", "12:00 AM").hour == 0
        assert parse_departure("12/09/2025", "12:00 PM").hour == 12

    def test_converts_from_local_timezone(self):
        # PST is UTC-8 in December
        parsed = parse_departure("12/09/2025", "09:10 AM", tz_name="America/Los_Angeles")
        assert parsed == DEPARTURE

    @pytest.mark.parametrize("day", ["13/45/2025", "tomorrow", "", "2025/12/09"])
    def test_bad_date(self, day):
        with pytest.raises(ValidationError) as exc_info:
            parse_departure(day, "05:10 PM")
        assert exc_info.value.context["field"] == "departure_date"

    @pytest.mark.parametrize("clock", ["25:00", "5 o'clock", "13:10 PM"])
    def test_bad_time(self, clock):
        with pytest.raises(ValidationError) as exc_info:
            parse_departure("12/09/2025", clock)
        assert exc_info.value.context["field"] == "departure_time"


class TestValidateRideFields:
    def test_valid(self):
        validate_ride_fields(3, Decimal("15.00"), DEPARTURE, "weekdays", date(2026, 1, 31))

    @pytest.mark.parametrize("seats", [0, 9, -1])
    def test_seat_bounds(self, seats):
        with pytest.raises(ValidationError):
            validate_ride_fields(seats, Decimal("15.00"), DEPARTURE)

    def test_negative_price(self):
        with pytest.raises(ValidationError):
            validate_ride_fields(3, Decimal("-1"), DEPARTURE)

    def test_free_ride_allowed(self):
        validate_ride_fields(3, Decimal("0"), DEPARTURE)

    def test_recurrence_end_needs_pattern(self):
        with pytest.raises(ValidationError):
            validate_ride_fields(3, Decimal("15.00"), DEPARTURE, None, date(2026, 1, 31))

    def test_recurrence_end_before_departure(self):
        with pytest.raises(ValidationError):
            validate_ride_fields(3, Decimal("15.00"), DEPARTURE, "daily", date(2025, 12, 1))

    def test_recurrence_end_compared_to_local_date(self, monkeypatch):
        monkeypatch.setattr(settings, "default_timezone", "America/Los_Angeles")
        # 10:10 PM on Dec 8 in Los Angeles is already Dec 9 in UTC
        evening = parse_departure("12/08/2025", "10:10 PM")
        assert evening.date() == date(2025, 12, 9)
        validate_ride_fields(3, Decimal("15.00"), evening, "daily", date(2025, 12, 8))


class TestLocalDate:
    def test_utc_by_default(self):
        assert local_date(DEPARTURE) == date(2025, 12, 9)

    def test_follows_configured_timezone(self, monkeypatch):
        monkeypatch.setattr(settings, "default_timezone", "America/Los_Angeles")
        assert local_date(datetime(2025, 12, 10, 1, 0, tzinfo=timezone.utc)) == date(2025, 12, 9)

    def test_naive_values_are_utc(self, monkeypatch):
        monkeypatch.setattr(settings, "default_timezone", "Asia/Tokyo")
        assert local_date(datetime(2025, 12, 9, 20, 0)) == date(2025, 12, 10)


class TestGeo:
    def test_zero_distance(self):
        assert haversine_m(37.3382, -121.8863, 37.3382, -121.8863) == 0

    def test_known_distance(self):
        # SF -> San Jose is roughly 68 km as the crow flies
        d = haversine_m(37.7749, -122.4194, 37.3382, -121.8863)
        assert 66_000 < d < 70_000

    def test_small_offset_inside_geofence(self):
        # 0.0005 deg latitude is ~55 m
        assert haversine_m(37.3382, -121.8863, 37.3387, -121.8863) < 100

    def test_within_tolerance(self):
        assert within_tolerance(37.7749, -122.4194, 37.7800, -122.4150, 0.01)
        assert not within_tolerance(37.7749, -122.4194, 37.8000, -122.4194, 0.01)

    def test_ensure_utc(self):
        naive = datetime(2025, 12, 9, 17, 10)
        assert ensure_utc(naive) == DEPARTURE
        assert ensure_utc(None) is None


class TestLedger:
    def _ride(self, total=3, available=3):
        return Ride(id="r1", total_seats=total, available_seats=available)

    def test_reserve(self):
        ride = self._ride()
        ledger.reserve(ride, 2)
        assert ride.available_seats == 1

    def test_reserve_exact_remaining(self):
        ride = self._ride(available=2)
        ledger.reserve(ride, 2)
        assert ride.available_seats == 0

    def test_reserve_over_capacity_leaves_counter(self):
        ride = self._ride(available=1)
        with pytest.raises(InsufficientCapacity) as exc_info:
            ledger.reserve(ride, 2)
        assert ride.available_seats == 1
        assert exc_info.value.context == {"ride_id": "r1", "available_seats": 1, "requested_seats": 2}
        assert "Only 1 seat available" in exc_info.value.message

    def test_release(self):
        ride = self._ride(available=0)
        ledger.release(ride, 2)
        assert ride.available_seats == 2

    def test_release_caps_at_total(self):
        ride = self._ride(available=2)
        ledger.release(ride, 2)
        assert ride.available_seats == 3

    def test_non_positive_seats(self):
        with pytest.raises(ValueError):
            ledger.reserve(self._ride(), 0)
        with pytest.raises(ValueError):
            ledger.release(self._ride(), 0)
