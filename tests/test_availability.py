from __future__ import annotations

from datetime import datetime

import pytest

from matching_engine.domain.constraints import AvailabilityValidationError
from matching_engine.domain.models import (
    ContractorProfile,
    DayAvailability,
    GeoPoint,
    ServiceRequest,
    Urgency,
)
from matching_engine.services.availability_service import (
    is_available_for_request,
    is_within_declared_hours,
    weekday_key,
)


WEDNESDAY_2PM = datetime(2026, 6, 24, 14, 0)
SATURDAY_2PM = datetime(2026, 6, 27, 14, 0)

WEEKDAY_HOURS = {
    "wednesday": DayAvailability(available=True, start="09:00", end="17:00"),
    "saturday": DayAvailability(available=False, start="00:00", end="23:59"),
}


def _contractor(emergency_available: bool) -> ContractorProfile:
    return ContractorProfile(
        contractor_id="c-1",
        location=GeoPoint(lat=40.0, lng=-74.0),
        services=frozenset({"plumbing"}),
        rating=4.5,
        completed_jobs=10,
        response_time_minutes=15.0,
        acceptance_rate=0.9,
        hourly_rate=80.0,
        emergency_available=emergency_available,
        availability=WEEKDAY_HOURS,
    )


def _request(when: datetime, urgency: Urgency) -> ServiceRequest:
    return ServiceRequest(
        request_id="r-1",
        service="plumbing",
        location=GeoPoint(lat=40.0, lng=-74.0),
        requested_at=when,
        urgency=urgency,
    )


def test_weekday_key_uses_lowercase_english_names() -> None:
    assert weekday_key(WEDNESDAY_2PM) == "wednesday"
    assert weekday_key(SATURDAY_2PM) == "saturday"


def test_time_inside_declared_window() -> None:
    assert is_within_declared_hours(WEEKDAY_HOURS, WEDNESDAY_2PM)


def test_window_boundaries_are_inclusive() -> None:
    assert is_within_declared_hours(WEEKDAY_HOURS, datetime(2026, 6, 24, 9, 0))
    assert is_within_declared_hours(WEEKDAY_HOURS, datetime(2026, 6, 24, 17, 0))
    assert not is_within_declared_hours(WEEKDAY_HOURS, datetime(2026, 6, 24, 17, 1))
    assert not is_within_declared_hours(WEEKDAY_HOURS, datetime(2026, 6, 24, 8, 59))


def test_unavailable_day_is_never_covered() -> None:
    assert not is_within_declared_hours(WEEKDAY_HOURS, SATURDAY_2PM)


def test_missing_day_is_not_covered() -> None:
    assert not is_within_declared_hours(WEEKDAY_HOURS, datetime(2026, 6, 22, 12, 0))


def test_overnight_window_is_rejected() -> None:
    overnight = {"wednesday": DayAvailability(available=True, start="22:00", end="06:00")}
    with pytest.raises(AvailabilityValidationError):
        is_within_declared_hours(overnight, WEDNESDAY_2PM)


def test_malformed_clock_is_rejected() -> None:
    broken = {"wednesday": DayAvailability(available=True, start="9am", end="17:00")}
    with pytest.raises(AvailabilityValidationError):
        is_within_declared_hours(broken, WEDNESDAY_2PM)


def test_emergency_bypasses_hours_for_emergency_contractors() -> None:
    request = _request(SATURDAY_2PM, Urgency.EMERGENCY)
    assert is_available_for_request(_contractor(emergency_available=True), request)


def test_emergency_without_emergency_flag_uses_normal_check() -> None:
    request = _request(SATURDAY_2PM, Urgency.EMERGENCY)
    assert not is_available_for_request(_contractor(emergency_available=False), request)


def test_urgent_does_not_bypass_hours() -> None:
    request = _request(SATURDAY_2PM, Urgency.URGENT)
    assert not is_available_for_request(_contractor(emergency_available=True), request)
