"""HTTP controller layer for contractor matching and dispatch."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator, model_validator

from matching_engine.controllers.dependencies import get_dispatch_service, get_matching_service
from matching_engine.domain.constraints import (
    ContractorValidationError,
    CoordinateError,
    RequestValidationError,
    parse_clock,
)
from matching_engine.domain.models import (
    WEEKDAYS,
    ContractorProfile,
    CustomerPreferences,
    DayAvailability,
    GeoPoint,
    MatchScore,
    PriceRange,
    ServiceRequest,
    Urgency,
)
from matching_engine.services.dispatch_service import DispatchService
from matching_engine.services.matching_service import MatchingService, MatchingValidationError
from matching_engine.services.report_service import summary_records
from matching_engine.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["matching"])

_INPUT_ERRORS = (
    ContractorValidationError,
    CoordinateError,
    MatchingValidationError,
    RequestValidationError,
)


class LocationPayload(BaseModel):
    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)
    address: str = ""


class DayAvailabilityPayload(BaseModel):
    available: bool
    start: str = "00:00"
    end: str = "23:59"

    @model_validator(mode="after")
    def validate_window(self) -> "DayAvailabilityPayload":
        if parse_clock(self.start) > parse_clock(self.end):
            raise ValueError("overnight availability windows are not supported")
        return self


class ContractorPayload(BaseModel):
    """Input DTO validated before entering service layer."""

    id: str = Field(min_length=1)
    name: str = ""
    location: LocationPayload
    services: list[str]
    rating: float = Field(ge=0.0, le=5.0)
    completed_jobs: int = Field(ge=0)
    response_time_minutes: float = Field(ge=0.0)
    acceptance_rate: float = Field(ge=0.0, le=1.0)
    hourly_rate: float = Field(gt=0.0)
    emergency_available: bool = False
    current_jobs: int = Field(default=0, ge=0)
    max_concurrent_jobs: int = Field(default=1, ge=1)
    certifications: list[str] = Field(default_factory=list)
    availability: dict[str, DayAvailabilityPayload] = Field(default_factory=dict)

    @field_validator("availability")
    @classmethod
    def validate_weekdays(
        cls,
        value: dict[str, DayAvailabilityPayload],
    ) -> dict[str, DayAvailabilityPayload]:
        unknown = sorted(set(value) - set(WEEKDAYS))
        if unknown:
            raise ValueError(f"unknown weekday keys: {unknown}")
        return value

    @model_validator(mode="after")
    def validate_capacity(self) -> "ContractorPayload":
        if self.current_jobs > self.max_concurrent_jobs:
            raise ValueError("current_jobs must not exceed max_concurrent_jobs")
        return self

    def to_domain(self) -> ContractorProfile:
        return ContractorProfile(
            contractor_id=self.id,
            name=self.name,
            location=GeoPoint(
                lat=self.location.lat,
                lng=self.location.lng,
                address=self.location.address,
            ),
            services=frozenset(self.services),
            rating=self.rating,
            completed_jobs=self.completed_jobs,
            response_time_minutes=self.response_time_minutes,
            acceptance_rate=self.acceptance_rate,
            hourly_rate=self.hourly_rate,
            emergency_available=self.emergency_available,
            current_jobs=self.current_jobs,
            max_concurrent_jobs=self.max_concurrent_jobs,
            certifications=frozenset(self.certifications),
            availability={
                day: DayAvailability(
                    available=window.available,
                    start=window.start,
                    end=window.end,
                )
                for day, window in self.availability.items()
            },
        )


class PriceRangePayload(BaseModel):
    min: float = Field(default=0.0, ge=0.0)
    max: float = Field(default=float("inf"), ge=0.0)

    @model_validator(mode="after")
    def validate_bounds(self) -> "PriceRangePayload":
        if self.min > self.max:
            raise ValueError("price_range.min must be <= price_range.max")
        return self


class PreferencesPayload(BaseModel):
    min_rating: float | None = Field(default=None, ge=0.0, le=5.0)
    excluded_contractor_ids: list[str] = Field(default_factory=list)


class ServiceRequestPayload(BaseModel):
    id: str = Field(min_length=1)
    service: str = Field(min_length=1)
    location: LocationPayload
    requested_at: datetime
    urgency: Urgency = Urgency.STANDARD
    is_premium: bool = False
    estimated_duration_hours: float = Field(default=1.0, gt=0.0)
    price_range: PriceRangePayload = Field(default_factory=PriceRangePayload)
    preferences: PreferencesPayload = Field(default_factory=PreferencesPayload)

    def to_domain(self) -> ServiceRequest:
        return ServiceRequest(
            request_id=self.id,
            service=self.service,
            location=GeoPoint(
                lat=self.location.lat,
                lng=self.location.lng,
                address=self.location.address,
            ),
            requested_at=self.requested_at,
            urgency=self.urgency,
            is_premium=self.is_premium,
            estimated_duration_hours=self.estimated_duration_hours,
            price_range=PriceRange(min=self.price_range.min, max=self.price_range.max),
            preferences=CustomerPreferences(
                min_rating=self.preferences.min_rating,
                excluded_contractor_ids=frozenset(self.preferences.excluded_contractor_ids),
            ),
        )


class MatchRequest(BaseModel):
    request: ServiceRequestPayload
    contractors: list[ContractorPayload]
    limit: int | None = Field(default=None, ge=1, le=100)


class BatchMatchRequest(BaseModel):
    requests: list[ServiceRequestPayload] = Field(min_length=1)
    contractors: list[ContractorPayload]
    limit: int | None = Field(default=None, ge=1, le=100)


class EmergencyMatchRequest(BaseModel):
    request: ServiceRequestPayload
    contractors: list[ContractorPayload]


class FactorBreakdownResponse(BaseModel):
    """Output DTO constrained to normalised factor bounds."""

    distance: float = Field(ge=0.0, le=1.0)
    availability: float = Field(ge=0.0, le=1.0)
    rating: float = Field(ge=0.0, le=1.0)
    experience: float = Field(ge=0.0, le=1.0)
    price: float = Field(ge=0.0, le=1.0)
    response_time: float = Field(ge=0.0, le=1.0)
    certifications: float = Field(ge=0.0, le=1.0)


class MatchScoreResponse(BaseModel):
    contractor_id: str
    score: float = Field(ge=0.0)
    factors: FactorBreakdownResponse
    distance_miles: float = Field(ge=0.0)
    estimated_arrival_minutes: int = Field(ge=0)
    quoted_price: float = Field(ge=0.0)
    within_declared_hours: bool

    @classmethod
    def from_domain(cls, match: MatchScore) -> "MatchScoreResponse":
        return cls(
            contractor_id=match.contractor_id,
            score=match.score,
            factors=FactorBreakdownResponse(**match.factors.as_dict()),
            distance_miles=match.distance_miles,
            estimated_arrival_minutes=match.estimated_arrival_minutes,
            quoted_price=match.quoted_price,
            within_declared_hours=match.within_declared_hours,
        )


class MatchResponse(BaseModel):
    request_id: str
    matches: list[MatchScoreResponse]


class BatchSummaryResponse(BaseModel):
    request_id: str
    matches: int = Field(ge=0)
    top_contractor_id: str | None
    top_score: float | None
    mean_score: float | None
    nearest_miles: float | None
    needs_escalation: bool


class BatchMatchResponse(BaseModel):
    results: dict[str, list[MatchScoreResponse]]
    summary: list[BatchSummaryResponse]


class EmergencyMatchResponse(BaseModel):
    request_id: str
    match: MatchScoreResponse | None


class OfferAttemptResponse(BaseModel):
    contractor_id: str
    outcome: str
    timeout_seconds: float = Field(gt=0.0)


class DispatchResponse(BaseModel):
    request_id: str
    status: str
    accepted: bool
    contractor_id: str | None
    attempted_count: int = Field(ge=0)
    attempts: list[OfferAttemptResponse]
    matches: list[MatchScoreResponse]


@router.get("/health", status_code=status.HTTP_200_OK)
async def health() -> dict[str, str]:
    return {"status": "ok"}


@router.post(
    "/match",
    response_model=MatchResponse,
    status_code=status.HTTP_200_OK,
)
async def match(
    payload: MatchRequest,
    service: MatchingService = Depends(get_matching_service),
) -> MatchResponse:
    """Rank contractors for one service request."""
    try:
        matches = service.find_best_matches(
            payload.request.to_domain(),
            [contractor.to_domain() for contractor in payload.contractors],
            limit=payload.limit,
        )
    except _INPUT_ERRORS as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return MatchResponse(
        request_id=payload.request.id,
        matches=[MatchScoreResponse.from_domain(item) for item in matches],
    )


@router.post(
    "/match/batch",
    response_model=BatchMatchResponse,
    status_code=status.HTTP_200_OK,
)
async def match_batch(
    payload: BatchMatchRequest,
    service: MatchingService = Depends(get_matching_service),
) -> BatchMatchResponse:
    """Rank contractors for several requests sharing one contractor pool."""
    try:
        results = service.batch_match(
            [item.to_domain() for item in payload.requests],
            [contractor.to_domain() for contractor in payload.contractors],
            limit=payload.limit,
        )
    except _INPUT_ERRORS as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return BatchMatchResponse(
        results={
            request_id: [MatchScoreResponse.from_domain(item) for item in matches]
            for request_id, matches in results.items()
        },
        summary=[BatchSummaryResponse(**row) for row in summary_records(results)],
    )


@router.post(
    "/match/emergency",
    response_model=EmergencyMatchResponse,
    status_code=status.HTTP_200_OK,
)
async def match_emergency(
    payload: EmergencyMatchRequest,
    service: MatchingService = Depends(get_matching_service),
) -> EmergencyMatchResponse:
    try:
        best = service.emergency_match(
            payload.request.to_domain(),
            [contractor.to_domain() for contractor in payload.contractors],
        )
    except _INPUT_ERRORS as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return EmergencyMatchResponse(
        request_id=payload.request.id,
        match=MatchScoreResponse.from_domain(best) if best else None,
    )


@router.post(
    "/dispatch",
    response_model=DispatchResponse,
    status_code=status.HTTP_200_OK,
)
async def dispatch(
    payload: MatchRequest,
    service: DispatchService = Depends(get_dispatch_service),
) -> DispatchResponse:
    """Match, then offer the job to ranked contractors one at a time."""
    try:
        matches, result = await service.match_and_dispatch(
            payload.request.to_domain(),
            [contractor.to_domain() for contractor in payload.contractors],
            limit=payload.limit,
        )
    except _INPUT_ERRORS as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover
        logger.exception("Unexpected dispatch failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to dispatch request",
        ) from exc
    return DispatchResponse(
        request_id=payload.request.id,
        status=result.status.value,
        accepted=result.accepted,
        contractor_id=result.contractor.contractor_id if result.contractor else None,
        attempted_count=result.attempted_count,
        attempts=[
            OfferAttemptResponse(
                contractor_id=attempt.contractor_id,
                outcome=attempt.outcome.value,
                timeout_seconds=attempt.timeout_seconds,
            )
            for attempt in result.attempts
        ],
        matches=[MatchScoreResponse.from_domain(item) for item in matches],
    )
