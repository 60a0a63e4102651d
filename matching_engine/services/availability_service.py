"""Weekly availability checks against a contractor's declared hours."""

from __future__ import annotations

from datetime import datetime
from typing import Mapping

from matching_engine.domain.constraints import parse_clock, validate_day_window
from matching_engine.domain.models import (
    WEEKDAYS,
    ContractorProfile,
    DayAvailability,
    ServiceRequest,
    Urgency,
)


def weekday_key(moment: datetime) -> str:
    return WEEKDAYS[moment.weekday()]


def is_within_declared_hours(
    availability: Mapping[str, DayAvailability],
    moment: datetime,
) -> bool:
    """Return whether the weekday window for ``moment`` covers its clock time.

    Both window boundaries are inclusive. Overnight windows raise
    ``AvailabilityValidationError`` instead of guessing a wraparound.
    """
    day = weekday_key(moment)
    window = availability.get(day)
    if window is None or not window.available:
        return False

    validate_day_window(day, window)
    requested_minute = moment.hour * 60 + moment.minute
    return parse_clock(window.start) <= requested_minute <= parse_clock(window.end)


def is_available_for_request(contractor: ContractorProfile, request: ServiceRequest) -> bool:
    if request.urgency is Urgency.EMERGENCY and contractor.emergency_available:
        return True
    return is_within_declared_hours(contractor.availability, request.requested_at)
