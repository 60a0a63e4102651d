"""Candidate filtering and ranking of contractors for service requests."""

from __future__ import annotations

import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Mapping, Optional, Sequence

from matching_engine.domain.constraints import (
    CoordinateError,
    MatchingConfig,
    validate_contractor_profile,
    validate_matching_config,
    validate_service_request,
    validate_weight_table,
)
from matching_engine.domain.models import (
    ContractorProfile,
    GeoPoint,
    MatchScore,
    ServiceRequest,
    Urgency,
)
from matching_engine.services.scoring_service import score_contractor
from matching_engine.utils.config import Settings, get_settings
from matching_engine.utils.geo import distances_from
from matching_engine.utils.logger import get_logger


logger = get_logger(__name__)


class MatchingValidationError(ValueError):
    """Raised when matching parameters are invalid."""


def search_radius_miles(request: ServiceRequest, config: MatchingConfig) -> float:
    if request.urgency is Urgency.STANDARD:
        return config.standard_radius_miles
    return config.priority_radius_miles


def _passes_profile_filters(
    request: ServiceRequest,
    contractor: ContractorProfile,
    config: MatchingConfig,
) -> bool:
    if request.service not in contractor.services:
        return False
    if not contractor.has_capacity:
        return False
    if request.is_premium and contractor.acceptance_rate < config.premium_min_acceptance_rate:
        return False
    preferences = request.preferences
    if contractor.contractor_id in preferences.excluded_contractor_ids:
        return False
    if preferences.min_rating is not None and contractor.rating < preferences.min_rating:
        return False
    return True


def _ensure_finite(distances, contractors: Sequence[ContractorProfile], request_id: str) -> None:
    for distance, contractor in zip(distances, contractors):
        if math.isnan(distance):
            raise CoordinateError(
                f"distance is NaN | request_id={request_id} | "
                f"contractor_id={contractor.contractor_id}"
            )


def _ensure_finite_location(location: GeoPoint, request_id: str) -> None:
    if not (math.isfinite(location.lat) and math.isfinite(location.lng)):
        raise CoordinateError(f"request location is not finite | request_id={request_id}")


def find_best_matches(
    request: ServiceRequest,
    contractors: Sequence[ContractorProfile],
    *,
    limit: Optional[int] = None,
    config: Optional[MatchingConfig] = None,
    weights: Optional[Mapping[str, float]] = None,
) -> list[MatchScore]:
    """Filter, score and rank contractors for one request.

    Equal scores keep the order of ``contractors``. An empty list is a normal
    outcome when nobody survives filtering.
    """
    resolved_config = config or MatchingConfig()
    validate_matching_config(resolved_config)
    validate_service_request(request)
    _ensure_finite_location(request.location, request.request_id)
    if weights is not None:
        validate_weight_table(weights)
    resolved_limit = resolved_config.default_limit if limit is None else limit
    if resolved_limit < 1:
        raise MatchingValidationError("limit must be >= 1")

    candidates = []
    for contractor in contractors:
        validate_contractor_profile(contractor)
        if _passes_profile_filters(request, contractor, resolved_config):
            candidates.append(contractor)
    if not candidates:
        return []

    distances = distances_from(request.location, [c.location for c in candidates])
    _ensure_finite(distances, candidates, request.request_id)

    radius = search_radius_miles(request, resolved_config)
    scored = [
        score_contractor(
            request,
            contractor,
            distance_miles=float(distance),
            weights=weights,
        )
        for contractor, distance in zip(candidates, distances)
        if distance <= radius
    ]
    ranked = sorted(scored, key=lambda match: match.score, reverse=True)
    return ranked[:resolved_limit]


def get_contractors_in_radius(
    center: GeoPoint,
    contractors: Sequence[ContractorProfile],
    radius_miles: float,
) -> list[ContractorProfile]:
    if radius_miles < 0:
        raise MatchingValidationError("radius_miles must be >= 0")
    _ensure_finite_location(center, request_id="geo-fence")
    if not contractors:
        return []
    distances = distances_from(center, [c.location for c in contractors])
    _ensure_finite(distances, contractors, request_id="geo-fence")
    return [
        contractor
        for contractor, distance in zip(contractors, distances)
        if distance <= radius_miles
    ]


def emergency_match(
    request: ServiceRequest,
    contractors: Sequence[ContractorProfile],
    *,
    config: Optional[MatchingConfig] = None,
) -> Optional[MatchScore]:
    """Return the single best contractor for ``request`` treated as an emergency."""
    emergency_request = replace(request, urgency=Urgency.EMERGENCY)
    matches = find_best_matches(emergency_request, contractors, limit=1, config=config)
    return matches[0] if matches else None


def batch_match(
    requests: Sequence[ServiceRequest],
    contractors: Sequence[ContractorProfile],
    *,
    limit: Optional[int] = None,
    config: Optional[MatchingConfig] = None,
    max_workers: Optional[int] = None,
) -> dict[str, list[MatchScore]]:
    """Match every request independently against a shared contractor pool.

    The returned mapping holds exactly one entry per request, in input order.
    """
    request_ids = [request.request_id for request in requests]
    if len(set(request_ids)) != len(request_ids):
        raise MatchingValidationError("batch requests must have unique request_id values")
    if not requests:
        return {}

    resolved_config = config or MatchingConfig()
    workers = resolved_config.batch_max_workers if max_workers is None else max_workers
    if workers < 1:
        raise MatchingValidationError("max_workers must be >= 1")

    with ThreadPoolExecutor(max_workers=min(workers, len(requests))) as executor:
        results = list(
            executor.map(
                lambda request: find_best_matches(
                    request,
                    contractors,
                    limit=limit,
                    config=resolved_config,
                ),
                requests,
            )
        )
    return dict(zip(request_ids, results))


class MatchingService:
    """Settings-aware entry point used by controllers and dispatch workflows."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._config = MatchingConfig(
            standard_radius_miles=self._settings.matching_standard_radius_miles,
            priority_radius_miles=self._settings.matching_priority_radius_miles,
            premium_min_acceptance_rate=self._settings.matching_premium_min_acceptance_rate,
            default_limit=self._settings.matching_default_limit,
            batch_max_workers=self._settings.matching_batch_max_workers,
        )
        validate_matching_config(self._config)

    @property
    def config(self) -> MatchingConfig:
        return self._config

    def find_best_matches(
        self,
        request: ServiceRequest,
        contractors: Sequence[ContractorProfile],
        *,
        limit: Optional[int] = None,
    ) -> list[MatchScore]:
        matches = find_best_matches(request, contractors, limit=limit, config=self._config)
        if matches:
            logger.info(
                "Matching completed | request_id=%s | service=%s | urgency=%s | "
                "candidates=%s | returned=%s | top_contractor=%s | top_score=%.4f",
                request.request_id,
                request.service,
                request.urgency.value,
                len(contractors),
                len(matches),
                matches[0].contractor_id,
                matches[0].score,
            )
        else:
            logger.warning(
                "No contractors matched | request_id=%s | service=%s | urgency=%s | "
                "candidates=%s | radius_miles=%.1f",
                request.request_id,
                request.service,
                request.urgency.value,
                len(contractors),
                search_radius_miles(request, self._config),
            )
        return matches

    def emergency_match(
        self,
        request: ServiceRequest,
        contractors: Sequence[ContractorProfile],
    ) -> Optional[MatchScore]:
        match = emergency_match(request, contractors, config=self._config)
        logger.info(
            "Emergency matching completed | request_id=%s | contractor_id=%s",
            request.request_id,
            match.contractor_id if match else None,
        )
        return match

    def batch_match(
        self,
        requests: Sequence[ServiceRequest],
        contractors: Sequence[ContractorProfile],
        *,
        limit: Optional[int] = None,
    ) -> dict[str, list[MatchScore]]:
        results = batch_match(requests, contractors, limit=limit, config=self._config)
        unmatched = [request_id for request_id, matches in results.items() if not matches]
        logger.info(
            "Batch matching completed | requests=%s | contractors=%s | unmatched=%s",
            len(requests),
            len(contractors),
            unmatched,
        )
        return results
