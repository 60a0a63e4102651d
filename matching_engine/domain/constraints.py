"""Domain-level validation rules for matching inputs and configuration."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Mapping

from matching_engine.domain.models import (
    WEEKDAYS,
    ContractorProfile,
    DayAvailability,
    ServiceRequest,
)


_CLOCK_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

WEIGHT_FACTORS = (
    "distance",
    "availability",
    "rating",
    "experience",
    "price",
    "response_time",
    "certifications",
)
WEIGHT_SUM_TOLERANCE = 1e-9


class ContractorValidationError(ValueError):
    """Raised when a contractor profile violates its invariants."""


class RequestValidationError(ValueError):
    """Raised when a service request is malformed."""


class WeightTableError(ValueError):
    """Raised when a weight table is incomplete or does not sum to 1."""


class AvailabilityValidationError(ValueError):
    """Raised when a declared availability window cannot be interpreted."""


class CoordinateError(ValueError):
    """Raised when a distance cannot be computed from the supplied coordinates."""


@dataclass(frozen=True)
class MatchingConfig:
    standard_radius_miles: float = 25.0
    priority_radius_miles: float = 50.0
    premium_min_acceptance_rate: float = 0.85
    default_limit: int = 10
    batch_max_workers: int = 4


def validate_matching_config(config: MatchingConfig) -> None:
    if config.standard_radius_miles <= 0:
        raise ValueError("standard_radius_miles must be > 0")
    if config.priority_radius_miles < config.standard_radius_miles:
        raise ValueError("priority_radius_miles must be >= standard_radius_miles")
    if not 0.0 <= config.premium_min_acceptance_rate <= 1.0:
        raise ValueError("premium_min_acceptance_rate must be between 0 and 1")
    if config.default_limit <= 0:
        raise ValueError("default_limit must be > 0")
    if config.batch_max_workers <= 0:
        raise ValueError("batch_max_workers must be > 0")


def validate_weight_table(weights: Mapping[str, float]) -> None:
    missing = [name for name in WEIGHT_FACTORS if name not in weights]
    if missing:
        raise WeightTableError(f"weight table is missing factors: {missing}")
    unknown = sorted(set(weights) - set(WEIGHT_FACTORS))
    if unknown:
        raise WeightTableError(f"weight table has unknown factors: {unknown}")
    if any(weight < 0.0 for weight in weights.values()):
        raise WeightTableError("weights must be non-negative")
    total = math.fsum(weights.values())
    if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
        raise WeightTableError(f"weights must sum to 1.0, got {total:.6f}")


def parse_clock(value: str) -> int:
    """Convert an ``HH:MM`` string to minutes since midnight."""
    match = _CLOCK_PATTERN.fullmatch(value or "")
    if match is None:
        raise AvailabilityValidationError(f"time must follow HH:MM format, got {value!r}")
    return int(match.group(1)) * 60 + int(match.group(2))


def validate_day_window(day: str, window: DayAvailability) -> None:
    start = parse_clock(window.start)
    end = parse_clock(window.end)
    if start > end:
        raise AvailabilityValidationError(
            f"overnight window on {day} ({window.start}-{window.end}) is not supported; "
            "split it across two days"
        )


def validate_contractor_profile(contractor: ContractorProfile) -> None:
    if not contractor.contractor_id:
        raise ContractorValidationError("contractor_id must be non-empty")
    if not 0.0 <= contractor.rating <= 5.0:
        raise ContractorValidationError(
            f"rating must be between 0 and 5 | contractor_id={contractor.contractor_id}"
        )
    if not 0.0 <= contractor.acceptance_rate <= 1.0:
        raise ContractorValidationError(
            f"acceptance_rate must be between 0 and 1 | contractor_id={contractor.contractor_id}"
        )
    if contractor.completed_jobs < 0:
        raise ContractorValidationError("completed_jobs must be >= 0")
    if contractor.response_time_minutes < 0:
        raise ContractorValidationError("response_time_minutes must be >= 0")
    if contractor.hourly_rate <= 0:
        raise ContractorValidationError("hourly_rate must be > 0")
    if contractor.max_concurrent_jobs < 1:
        raise ContractorValidationError("max_concurrent_jobs must be >= 1")
    if not 0 <= contractor.current_jobs <= contractor.max_concurrent_jobs:
        raise ContractorValidationError(
            "current_jobs must be between 0 and max_concurrent_jobs "
            f"| contractor_id={contractor.contractor_id}"
        )
    for day, window in contractor.availability.items():
        if day not in WEEKDAYS:
            raise ContractorValidationError(f"unknown weekday key {day!r}")
        try:
            validate_day_window(day, window)
        except AvailabilityValidationError as exc:
            raise ContractorValidationError(str(exc)) from exc


def validate_service_request(request: ServiceRequest) -> None:
    if not request.request_id:
        raise RequestValidationError("request_id must be non-empty")
    if not request.service:
        raise RequestValidationError("service must be non-empty")
    if request.estimated_duration_hours <= 0:
        raise RequestValidationError("estimated_duration_hours must be > 0")
    if request.price_range.min < 0 or request.price_range.min > request.price_range.max:
        raise RequestValidationError("price_range must satisfy 0 <= min <= max")
    min_rating = request.preferences.min_rating
    if min_rating is not None and not 0.0 <= min_rating <= 5.0:
        raise RequestValidationError("preferences.min_rating must be between 0 and 5")
