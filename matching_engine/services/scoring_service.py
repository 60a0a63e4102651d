"""Multi-factor contractor scoring.

Every factor is normalised to [0, 1] before weighting. Two canonical weight
tables exist: ``STANDARD_WEIGHTS`` for ordinary bookings and
``PRIORITY_WEIGHTS`` for urgent, emergency and premium ("Service X") jobs,
which shifts weight toward response time and proximity.
"""

from __future__ import annotations

import math
from types import MappingProxyType
from typing import Mapping, Optional

from matching_engine.domain.constraints import CoordinateError, validate_weight_table
from matching_engine.domain.models import (
    ContractorProfile,
    FactorBreakdown,
    MatchScore,
    ServiceRequest,
    Urgency,
)
from matching_engine.services.availability_service import (
    is_available_for_request,
    is_within_declared_hours,
)
from matching_engine.utils.geo import haversine_distance


STANDARD_WEIGHTS: Mapping[str, float] = MappingProxyType(
    {
        "distance": 0.25,
        "availability": 0.15,
        "rating": 0.20,
        "experience": 0.15,
        "price": 0.10,
        "response_time": 0.10,
        "certifications": 0.05,
    }
)

PRIORITY_WEIGHTS: Mapping[str, float] = MappingProxyType(
    {
        "distance": 0.30,
        "availability": 0.10,
        "rating": 0.15,
        "experience": 0.10,
        "price": 0.05,
        "response_time": 0.25,
        "certifications": 0.05,
    }
)

validate_weight_table(STANDARD_WEIGHTS)
validate_weight_table(PRIORITY_WEIGHTS)

DISTANCE_DECAY_MILES = 10.0
RESPONSE_DECAY_MINUTES = 30.0
RATING_FLOOR = 3.0
EXPERIENCE_SATURATION_JOBS = 100
CERTIFICATION_SATURATION = 5
EMERGENCY_ONLY_AVAILABILITY = 0.7
PRICE_MISMATCH_SCORE = 0.5

PREMIUM_BOOST = 1.2
PREMIUM_RATING_THRESHOLD = 4.8
PREMIUM_RESPONSE_THRESHOLD_MINUTES = 10.0

CITY_SPEED_MPH = 30.0
OFF_HOURS_SURCHARGE = 1.5


def select_weights(request: ServiceRequest) -> Mapping[str, float]:
    return PRIORITY_WEIGHTS if request.is_priority else STANDARD_WEIGHTS


def distance_factor(distance_miles: float) -> float:
    return math.exp(-distance_miles / DISTANCE_DECAY_MILES)


def rating_factor(rating: float) -> float:
    """Rewards ratings above 3.0 only: 4.0 scores 0.5, 5.0 scores 1.0."""
    return max(0.0, (rating - RATING_FLOOR) / (5.0 - RATING_FLOOR))


def experience_factor(completed_jobs: int) -> float:
    return min(1.0, math.log(completed_jobs + 1) / math.log(EXPERIENCE_SATURATION_JOBS))


def response_time_factor(response_time_minutes: float) -> float:
    return math.exp(-response_time_minutes / RESPONSE_DECAY_MINUTES)


def certification_factor(certifications: frozenset[str]) -> float:
    return min(1.0, len(certifications) / CERTIFICATION_SATURATION)


def availability_factor(available: bool, emergency_available: bool) -> float:
    if available:
        return 1.0
    if emergency_available:
        return EMERGENCY_ONLY_AVAILABILITY
    return 0.0


def compute_factors(
    request: ServiceRequest,
    contractor: ContractorProfile,
    distance_miles: float,
    available: bool,
) -> FactorBreakdown:
    rating = rating_factor(contractor.rating)
    response_time = response_time_factor(contractor.response_time_minutes)

    if request.is_premium:
        if contractor.rating >= PREMIUM_RATING_THRESHOLD:
            rating = min(1.0, rating * PREMIUM_BOOST)
        if contractor.response_time_minutes < PREMIUM_RESPONSE_THRESHOLD_MINUTES:
            response_time = min(1.0, response_time * PREMIUM_BOOST)

    return FactorBreakdown(
        distance=distance_factor(distance_miles),
        availability=availability_factor(available, contractor.emergency_available),
        rating=rating,
        experience=experience_factor(contractor.completed_jobs),
        price=1.0 if request.price_range.contains(contractor.hourly_rate) else PRICE_MISMATCH_SCORE,
        response_time=response_time,
        certifications=certification_factor(contractor.certifications),
    )


def weighted_score(factors: FactorBreakdown, weights: Mapping[str, float]) -> float:
    values = factors.as_dict()
    return math.fsum(values[name] * weight for name, weight in weights.items())


def estimate_arrival_minutes(distance_miles: float) -> int:
    return int(round(distance_miles / CITY_SPEED_MPH * 60))


def quote_price(
    contractor: ContractorProfile,
    request: ServiceRequest,
    within_declared_hours: bool,
) -> float:
    price = contractor.hourly_rate * request.estimated_duration_hours
    if request.urgency is not Urgency.STANDARD and not within_declared_hours:
        price *= OFF_HOURS_SURCHARGE
    return round(price, 2)


def score_contractor(
    request: ServiceRequest,
    contractor: ContractorProfile,
    *,
    distance_miles: Optional[float] = None,
    weights: Optional[Mapping[str, float]] = None,
) -> MatchScore:
    """Score one contractor already known to offer the requested service."""
    if distance_miles is None:
        distance_miles = haversine_distance(request.location, contractor.location)
    if math.isnan(distance_miles):
        raise CoordinateError(
            "distance is NaN | request_id="
            f"{request.request_id} | contractor_id={contractor.contractor_id}"
        )
    resolved_weights = weights if weights is not None else select_weights(request)

    within_hours = is_within_declared_hours(contractor.availability, request.requested_at)
    available = within_hours or is_available_for_request(contractor, request)
    factors = compute_factors(request, contractor, distance_miles, available)

    return MatchScore(
        contractor=contractor,
        score=weighted_score(factors, resolved_weights),
        factors=factors,
        distance_miles=distance_miles,
        estimated_arrival_minutes=estimate_arrival_minutes(distance_miles),
        quoted_price=quote_price(contractor, request, within_hours),
        within_declared_hours=within_hours,
    )
