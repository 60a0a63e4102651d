"""Domain models for contractor matching and dispatch."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Mapping, Optional


WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


class Urgency(str, Enum):
    STANDARD = "standard"
    URGENT = "urgent"
    EMERGENCY = "emergency"


class OfferOutcome(str, Enum):
    ACCEPTED = "accepted"
    DECLINED = "declined"
    TIMED_OUT = "timed_out"
    # offer withdrawn because the caller cancelled the dispatch
    WITHDRAWN = "withdrawn"


class DispatchStatus(str, Enum):
    ACCEPTED = "accepted"
    UNASSIGNED = "unassigned"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lng: float
    address: str = ""


@dataclass(frozen=True)
class DayAvailability:
    available: bool
    start: str = "00:00"
    end: str = "23:59"


@dataclass(frozen=True)
class ContractorProfile:
    contractor_id: str
    location: GeoPoint
    services: frozenset[str]
    rating: float
    completed_jobs: int
    response_time_minutes: float
    acceptance_rate: float
    hourly_rate: float
    emergency_available: bool = False
    current_jobs: int = 0
    max_concurrent_jobs: int = 1
    certifications: frozenset[str] = frozenset()
    availability: Mapping[str, DayAvailability] = field(default_factory=dict)
    name: str = ""

    @property
    def has_capacity(self) -> bool:
        return self.current_jobs < self.max_concurrent_jobs


@dataclass(frozen=True)
class PriceRange:
    min: float
    max: float

    def contains(self, amount: float) -> bool:
        return self.min <= amount <= self.max


@dataclass(frozen=True)
class CustomerPreferences:
    min_rating: Optional[float] = None
    excluded_contractor_ids: frozenset[str] = frozenset()


@dataclass(frozen=True)
class ServiceRequest:
    request_id: str
    service: str
    location: GeoPoint
    requested_at: datetime
    urgency: Urgency = Urgency.STANDARD
    is_premium: bool = False
    estimated_duration_hours: float = 1.0
    price_range: PriceRange = PriceRange(min=0.0, max=float("inf"))
    preferences: CustomerPreferences = CustomerPreferences()

    @property
    def is_priority(self) -> bool:
        """Urgent, emergency and premium jobs share the priority weight table."""
        return self.urgency is not Urgency.STANDARD or self.is_premium


@dataclass(frozen=True)
class FactorBreakdown:
    distance: float
    availability: float
    rating: float
    experience: float
    price: float
    response_time: float
    certifications: float

    def as_dict(self) -> dict[str, float]:
        return {
            "distance": self.distance,
            "availability": self.availability,
            "rating": self.rating,
            "experience": self.experience,
            "price": self.price,
            "response_time": self.response_time,
            "certifications": self.certifications,
        }


@dataclass(frozen=True)
class MatchScore:
    contractor: ContractorProfile
    score: float
    factors: FactorBreakdown
    distance_miles: float
    estimated_arrival_minutes: int
    quoted_price: float
    within_declared_hours: bool

    @property
    def contractor_id(self) -> str:
        return self.contractor.contractor_id


@dataclass(frozen=True)
class OfferAttempt:
    contractor_id: str
    outcome: OfferOutcome
    timeout_seconds: float


@dataclass(frozen=True)
class DispatchResult:
    status: DispatchStatus
    attempted_count: int
    contractor: Optional[ContractorProfile] = None
    attempts: list[OfferAttempt] = field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return self.status is DispatchStatus.ACCEPTED
