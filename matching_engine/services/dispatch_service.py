"""Sequential dispatch of a matched job to ranked contractors.

Offers go out one at a time in rank order so a job is never held by two
contractors at once. Each offer ends as accepted, declined or timed out; a
declined or timed-out contractor is not retried within the same cycle.
"""

from __future__ import annotations

import asyncio
from typing import Optional, Sequence

from matching_engine.domain.models import (
    ContractorProfile,
    DispatchResult,
    DispatchStatus,
    MatchScore,
    OfferAttempt,
    OfferOutcome,
    ServiceRequest,
)
from matching_engine.services.matching_service import MatchingService
from matching_engine.services.offer_channels import OfferChannel, SimulatedOfferChannel
from matching_engine.utils.config import Settings, get_settings
from matching_engine.utils.logger import get_logger


logger = get_logger(__name__)


class DispatchValidationError(ValueError):
    """Raised when dispatcher timing parameters are invalid."""


class Dispatcher:
    def __init__(
        self,
        channel: OfferChannel,
        *,
        timeout_seconds: float = 30.0,
        timeout_decay: float = 1.0,
        min_timeout_seconds: float = 5.0,
    ) -> None:
        if timeout_seconds <= 0:
            raise DispatchValidationError("timeout_seconds must be > 0")
        if not 0.0 < timeout_decay <= 1.0:
            raise DispatchValidationError("timeout_decay must be in (0, 1]")
        if min_timeout_seconds <= 0:
            raise DispatchValidationError("min_timeout_seconds must be > 0")
        self._channel = channel
        self._timeout_seconds = timeout_seconds
        self._timeout_decay = timeout_decay
        self._min_timeout_seconds = min_timeout_seconds

    def timeout_for_attempt(self, attempt_index: int) -> float:
        """Response window for the n-th offer; later candidates may get less time."""
        if attempt_index == 0 or self._timeout_decay == 1.0:
            return self._timeout_seconds
        floor = min(self._min_timeout_seconds, self._timeout_seconds)
        return max(floor, self._timeout_seconds * self._timeout_decay**attempt_index)

    async def dispatch(
        self,
        request: ServiceRequest,
        matches: Sequence[MatchScore],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> DispatchResult:
        attempts: list[OfferAttempt] = []
        offered: set[str] = set()

        for match in matches:
            contractor = match.contractor
            if contractor.contractor_id in offered:
                continue
            if cancel_event is not None and cancel_event.is_set():
                return self._finish(request, DispatchStatus.CANCELLED, attempts)

            offered.add(contractor.contractor_id)
            timeout = self.timeout_for_attempt(len(attempts))
            outcome = await self._offer(contractor, request, timeout, cancel_event)
            attempts.append(
                OfferAttempt(
                    contractor_id=contractor.contractor_id,
                    outcome=outcome,
                    timeout_seconds=timeout,
                )
            )
            logger.info(
                "Offer resolved | request_id=%s | attempt=%s | contractor_id=%s | "
                "outcome=%s | timeout=%.1f",
                request.request_id,
                len(attempts),
                contractor.contractor_id,
                outcome.value,
                timeout,
            )

            if outcome is OfferOutcome.ACCEPTED:
                return self._finish(request, DispatchStatus.ACCEPTED, attempts, contractor)
            if outcome is OfferOutcome.WITHDRAWN:
                return self._finish(request, DispatchStatus.CANCELLED, attempts)

        return self._finish(request, DispatchStatus.UNASSIGNED, attempts)

    async def _offer(
        self,
        contractor: ContractorProfile,
        request: ServiceRequest,
        timeout: float,
        cancel_event: Optional[asyncio.Event],
    ) -> OfferOutcome:
        offer_task = asyncio.ensure_future(
            asyncio.wait_for(self._channel.offer(contractor, request, timeout), timeout)
        )
        waiters = {offer_task}
        cancel_task = None
        if cancel_event is not None:
            cancel_task = asyncio.ensure_future(cancel_event.wait())
            waiters.add(cancel_task)

        try:
            done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in waiters:
                if not task.done():
                    task.cancel()

        if offer_task in done:
            try:
                return offer_task.result()
            except asyncio.TimeoutError:
                return OfferOutcome.TIMED_OUT

        await asyncio.gather(offer_task, return_exceptions=True)
        return OfferOutcome.WITHDRAWN

    def _finish(
        self,
        request: ServiceRequest,
        status: DispatchStatus,
        attempts: list[OfferAttempt],
        contractor: Optional[ContractorProfile] = None,
    ) -> DispatchResult:
        log = logger.info if status is DispatchStatus.ACCEPTED else logger.warning
        log(
            "Dispatch completed | request_id=%s | status=%s | attempted=%s | contractor_id=%s",
            request.request_id,
            status.value,
            len(attempts),
            contractor.contractor_id if contractor else None,
        )
        return DispatchResult(
            status=status,
            attempted_count=len(attempts),
            contractor=contractor,
            attempts=list(attempts),
        )


class DispatchService:
    """Runs matching followed by sequential dispatch for one request."""

    def __init__(
        self,
        matching_service: Optional[MatchingService] = None,
        channel: Optional[OfferChannel] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._matching_service = matching_service or MatchingService(settings=self._settings)
        self._channel = channel or SimulatedOfferChannel(
            seed=self._settings.simulation_random_seed,
            delay_scale=self._settings.simulation_delay_scale,
        )
        self._dispatcher = Dispatcher(
            self._channel,
            timeout_seconds=self._settings.dispatch_timeout_seconds,
            timeout_decay=self._settings.dispatch_timeout_decay,
            min_timeout_seconds=self._settings.dispatch_min_timeout_seconds,
        )

    @property
    def channel(self) -> OfferChannel:
        return self._channel

    async def match_and_dispatch(
        self,
        request: ServiceRequest,
        contractors: Sequence[ContractorProfile],
        *,
        limit: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> tuple[list[MatchScore], DispatchResult]:
        matches = self._matching_service.find_best_matches(request, contractors, limit=limit)
        result = await self._dispatcher.dispatch(request, matches, cancel_event=cancel_event)
        return matches, result
