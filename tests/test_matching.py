from __future__ import annotations

import math
from dataclasses import replace
from datetime import datetime

import pytest

from matching_engine.domain.constraints import (
    ContractorValidationError,
    CoordinateError,
    MatchingConfig,
    RequestValidationError,
)
from matching_engine.domain.models import (
    ContractorProfile,
    CustomerPreferences,
    DayAvailability,
    GeoPoint,
    PriceRange,
    ServiceRequest,
    Urgency,
)
from matching_engine.services.matching_service import (
    MatchingService,
    MatchingValidationError,
    batch_match,
    emergency_match,
    find_best_matches,
    get_contractors_in_radius,
)
from matching_engine.utils.config import get_settings


ORIGIN = GeoPoint(lat=40.7128, lng=-74.0060)
MILES_PER_DEGREE_LAT = 3959.0 * math.pi / 180.0
WEEKDAY_HOURS = {
    day: DayAvailability(available=True, start="08:00", end="18:00")
    for day in ("monday", "tuesday", "wednesday", "thursday", "friday")
}


def _north_of_origin(miles: float) -> GeoPoint:
    return GeoPoint(lat=ORIGIN.lat + miles / MILES_PER_DEGREE_LAT, lng=ORIGIN.lng)


def _contractor(contractor_id: str, miles: float = 5.0, **overrides) -> ContractorProfile:
    defaults = {
        "contractor_id": contractor_id,
        "location": _north_of_origin(miles),
        "services": frozenset({"plumbing"}),
        "rating": 4.5,
        "completed_jobs": 50,
        "response_time_minutes": 15.0,
        "acceptance_rate": 0.9,
        "hourly_rate": 90.0,
        "max_concurrent_jobs": 3,
        "availability": WEEKDAY_HOURS,
    }
    defaults.update(overrides)
    return ContractorProfile(**defaults)


def _request(**overrides) -> ServiceRequest:
    defaults = {
        "request_id": "job-1",
        "service": "plumbing",
        "location": ORIGIN,
        "requested_at": datetime(2026, 6, 25, 14, 0),
        "price_range": PriceRange(min=50.0, max=150.0),
    }
    defaults.update(overrides)
    return ServiceRequest(**defaults)


def _pool() -> list[ContractorProfile]:
    return [
        _contractor("c-01", 2.0, rating=4.9, completed_jobs=300),
        _contractor("c-02", 8.0, rating=4.1),
        _contractor("c-03", 12.0, rating=4.6, response_time_minutes=5.0),
        _contractor("c-04", 3.0, rating=3.8, hourly_rate=220.0),
        _contractor("c-05", 18.0, rating=4.95, completed_jobs=900),
        _contractor("c-06", 6.0, services=frozenset({"electrical"})),
        _contractor("c-07", 9.0, services=frozenset({"electrical", "hvac"}), rating=4.7),
        _contractor("c-08", 4.0, services=frozenset({"hvac"}), completed_jobs=5),
        _contractor("c-09", 1.0, current_jobs=3),
        _contractor("c-10", 40.0, rating=5.0),
    ]


def test_matches_are_sorted_by_descending_score() -> None:
    matches = find_best_matches(_request(), _pool(), limit=10)

    assert matches
    scores = [match.score for match in matches]
    assert all(scores[i] >= scores[i + 1] for i in range(len(scores) - 1))


@pytest.mark.parametrize("limit", [1, 2, 3, 20])
def test_limit_is_respected(limit: int) -> None:
    assert len(find_best_matches(_request(), _pool(), limit=limit)) <= limit


def test_default_limit_comes_from_config() -> None:
    pool = [_contractor(f"c-{index}", 1.0 + index * 0.1) for index in range(12)]
    assert len(find_best_matches(_request(), pool)) == 10
    assert len(find_best_matches(_request(), pool, config=MatchingConfig(default_limit=4))) == 4


def test_invalid_limit_raises() -> None:
    with pytest.raises(MatchingValidationError):
        find_best_matches(_request(), _pool(), limit=0)


def test_all_factor_values_are_normalised() -> None:
    for urgency in Urgency:
        for is_premium in (False, True):
            request = _request(urgency=urgency, is_premium=is_premium)
            for match in find_best_matches(request, _pool(), limit=20):
                for value in match.factors.as_dict().values():
                    assert 0.0 <= value <= 1.0


def test_service_capacity_and_radius_filters() -> None:
    matched_ids = {match.contractor_id for match in find_best_matches(_request(), _pool(), limit=20)}

    assert matched_ids == {"c-01", "c-02", "c-03", "c-04", "c-05"}
    assert "c-06" not in matched_ids  # wrong service
    assert "c-09" not in matched_ids  # at capacity
    assert "c-10" not in matched_ids  # 40 miles, beyond standard radius


def test_min_rating_preference_filters_results() -> None:
    request = _request(preferences=CustomerPreferences(min_rating=4.5))
    matches = find_best_matches(request, _pool(), limit=20)

    assert matches
    assert all(match.contractor.rating >= 4.5 for match in matches)


def test_excluded_contractors_are_skipped() -> None:
    request = _request(preferences=CustomerPreferences(excluded_contractor_ids=frozenset({"c-01"})))
    matched_ids = [match.contractor_id for match in find_best_matches(request, _pool(), limit=20)]

    assert "c-01" not in matched_ids


def test_emergency_radius_includes_contractor_at_thirty_miles() -> None:
    pool = [_contractor("far", 30.0, emergency_available=True)]

    assert find_best_matches(_request(), pool) == []
    emergency = find_best_matches(_request(urgency=Urgency.EMERGENCY), pool)
    assert [match.contractor_id for match in emergency] == ["far"]


def test_urgent_requests_share_the_wider_radius() -> None:
    pool = [_contractor("far", 30.0)]
    assert len(find_best_matches(_request(urgency=Urgency.URGENT), pool)) == 1


def test_premium_requires_high_acceptance_rate() -> None:
    pool = [
        _contractor("reliable", 5.0, acceptance_rate=0.85),
        _contractor("flaky", 2.0, acceptance_rate=0.84),
    ]
    premium_ids = [
        match.contractor_id
        for match in find_best_matches(_request(is_premium=True), pool)
    ]
    standard_ids = [match.contractor_id for match in find_best_matches(_request(), pool)]

    assert premium_ids == ["reliable"]
    assert set(standard_ids) == {"reliable", "flaky"}


def test_equal_scores_keep_input_order() -> None:
    twins = [_contractor("first"), _contractor("second"), _contractor("third")]

    forward = [match.contractor_id for match in find_best_matches(_request(), twins)]
    backward = [match.contractor_id for match in find_best_matches(_request(), twins[::-1])]

    assert forward == ["first", "second", "third"]
    assert backward == ["third", "second", "first"]


def test_no_survivors_returns_empty_list() -> None:
    assert find_best_matches(_request(service="roofing"), _pool()) == []
    assert find_best_matches(_request(), []) == []


def test_nan_contractor_coordinates_raise() -> None:
    pool = [_contractor("ok"), replace(_contractor("broken"), location=GeoPoint(float("nan"), 0.0))]
    with pytest.raises(CoordinateError):
        find_best_matches(_request(), pool)


def test_nan_request_coordinates_raise() -> None:
    with pytest.raises(CoordinateError):
        find_best_matches(_request(location=GeoPoint(lat=float("nan"), lng=-74.0)), _pool())


def test_invalid_contractor_profile_raises() -> None:
    with pytest.raises(ContractorValidationError):
        find_best_matches(_request(), [_contractor("busy", current_jobs=4, max_concurrent_jobs=3)])


def test_invalid_request_raises() -> None:
    with pytest.raises(RequestValidationError):
        find_best_matches(_request(price_range=PriceRange(min=200.0, max=100.0)), _pool())


def test_get_contractors_in_radius() -> None:
    inside = get_contractors_in_radius(ORIGIN, _pool(), radius_miles=5.0)
    assert [contractor.contractor_id for contractor in inside] == [
        "c-01",
        "c-04",
        "c-08",
        "c-09",
    ]


def test_emergency_match_returns_single_best() -> None:
    best = emergency_match(_request(), _pool())

    assert best is not None
    assert best.score > 0
    assert best.contractor_id == find_best_matches(
        _request(urgency=Urgency.EMERGENCY), _pool(), limit=1
    )[0].contractor_id


def test_emergency_match_without_candidates_returns_none() -> None:
    assert emergency_match(_request(service="roofing"), _pool()) is None


def test_batch_match_returns_entry_per_job() -> None:
    jobs = [
        _request(request_id="job-plumbing", service="plumbing"),
        _request(request_id="job-electrical", service="electrical"),
        _request(request_id="job-hvac", service="hvac"),
    ]

    results = batch_match(jobs, _pool(), limit=5)

    assert list(results) == ["job-plumbing", "job-electrical", "job-hvac"]
    assert len(results) == len(jobs)
    for job in jobs:
        matches = results[job.request_id]
        assert matches == find_best_matches(job, _pool(), limit=5)
        assert all(job.service in match.contractor.services for match in matches)


def test_batch_match_keeps_empty_results() -> None:
    jobs = [_request(request_id="a"), _request(request_id="b", service="roofing")]
    results = batch_match(jobs, _pool(), max_workers=1)

    assert results["a"]
    assert results["b"] == []


def test_batch_match_rejects_duplicate_ids() -> None:
    with pytest.raises(MatchingValidationError):
        batch_match([_request(), _request()], _pool())


def test_matching_service_uses_settings_radius() -> None:
    settings = replace(
        get_settings(),
        matching_standard_radius_miles=45.0,
        matching_priority_radius_miles=60.0,
    )
    service = MatchingService(settings=settings)

    matched_ids = {match.contractor_id for match in service.find_best_matches(_request(), _pool(), limit=20)}
    assert "c-10" in matched_ids
    assert service.config.standard_radius_miles == 45.0


def test_nan_request_location_raises_even_without_candidates() -> None:
    request = _request(service="roofing", location=GeoPoint(lat=float("nan"), lng=-74.0))
    with pytest.raises(CoordinateError):
        find_best_matches(request, _pool())
    with pytest.raises(CoordinateError):
        find_best_matches(request, [])


def test_far_side_of_globe_contractor_does_not_block_matching() -> None:
    request = _request(location=GeoPoint(lat=-87.5, lng=0.0))
    pool = [
        _contractor("near", location=GeoPoint(lat=-87.45, lng=0.0)),
        _contractor("far", location=GeoPoint(lat=87.5, lng=180.0)),
    ]

    assert [match.contractor_id for match in find_best_matches(request, pool)] == ["near"]


def test_batch_match_rejects_zero_workers() -> None:
    with pytest.raises(MatchingValidationError):
        batch_match([_request()], _pool(), max_workers=0)
