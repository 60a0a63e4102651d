"""Offer delivery channels used by the dispatcher.

A channel delivers one job offer to one contractor and reports whether the
contractor accepted. The dispatcher owns the response deadline; channels only
wait for an answer.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol
from uuid import uuid4

from matching_engine.domain.models import ContractorProfile, OfferOutcome, ServiceRequest
from matching_engine.utils.logger import get_logger


logger = get_logger(__name__)


class OfferNotFoundError(LookupError):
    """Raised when a response references an unknown or expired offer."""


class OfferChannel(Protocol):
    async def offer(
        self,
        contractor: ContractorProfile,
        request: ServiceRequest,
        timeout_seconds: float,
    ) -> OfferOutcome:
        ...


class SimulatedOfferChannel:
    """Answers offers by drawing against each contractor's acceptance rate."""

    def __init__(self, seed: Optional[int] = None, delay_scale: float = 1.0) -> None:
        if delay_scale < 0:
            raise ValueError("delay_scale must be >= 0")
        self._random = random.Random(seed)
        self._delay_scale = delay_scale

    async def offer(
        self,
        contractor: ContractorProfile,
        request: ServiceRequest,
        timeout_seconds: float,
    ) -> OfferOutcome:
        delay = self._random.random() * timeout_seconds * self._delay_scale
        accepted = self._random.random() < contractor.acceptance_rate
        logger.debug(
            "Simulated offer | request_id=%s | contractor_id=%s | delay=%.3f | accepted=%s",
            request.request_id,
            contractor.contractor_id,
            delay,
            accepted,
        )
        await asyncio.sleep(delay)
        return OfferOutcome.ACCEPTED if accepted else OfferOutcome.DECLINED


@dataclass(frozen=True)
class OfferEvent:
    offer_id: str
    contractor_id: str
    request_id: str
    service: str
    urgency: str
    timeout_seconds: float
    offered_at: datetime

    @property
    def expires_at(self) -> datetime:
        return self.offered_at + timedelta(seconds=self.timeout_seconds)

    def to_dict(self) -> dict[str, str | float]:
        return {
            "offer_id": self.offer_id,
            "contractor_id": self.contractor_id,
            "request_id": self.request_id,
            "service": self.service,
            "urgency": self.urgency,
            "timeout_seconds": self.timeout_seconds,
            "offered_at": self.offered_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }


class PendingOfferChannel:
    """Bridges offers to an external transport through an outbox queue.

    The transport consumes ``OfferEvent`` items from ``outbox`` and calls
    ``respond`` with the contractor's answer. Offers abandoned by the
    dispatcher (timeout or cancellation) are forgotten, so late answers raise
    ``OfferNotFoundError``. Their events stay in ``outbox``; a transport that
    falls behind should check ``is_pending(event.offer_id)`` (or compare
    ``event.expires_at`` with the current time) and drop stale events rather
    than notify the contractor.
    """

    def __init__(self, outbox: Optional[asyncio.Queue] = None) -> None:
        self.outbox: asyncio.Queue = outbox if outbox is not None else asyncio.Queue()
        self._pending: dict[str, asyncio.Future] = {}

    def is_pending(self, offer_id: str) -> bool:
        response = self._pending.get(offer_id)
        return response is not None and not response.done()

    @property
    def pending_offer_ids(self) -> list[str]:
        return list(self._pending)

    async def offer(
        self,
        contractor: ContractorProfile,
        request: ServiceRequest,
        timeout_seconds: float,
    ) -> OfferOutcome:
        offer_id = uuid4().hex
        response = asyncio.get_running_loop().create_future()
        self._pending[offer_id] = response
        try:
            await self.outbox.put(
                OfferEvent(
                    offer_id=offer_id,
                    contractor_id=contractor.contractor_id,
                    request_id=request.request_id,
                    service=request.service,
                    urgency=request.urgency.value,
                    timeout_seconds=timeout_seconds,
                    offered_at=datetime.now(timezone.utc),
                )
            )
            accepted = await response
        finally:
            self._pending.pop(offer_id, None)
        return OfferOutcome.ACCEPTED if accepted else OfferOutcome.DECLINED

    def respond(self, offer_id: str, accepted: bool) -> None:
        response = self._pending.get(offer_id)
        if response is None or response.done():
            raise OfferNotFoundError(f"offer_id={offer_id} is unknown or no longer pending")
        response.set_result(bool(accepted))
