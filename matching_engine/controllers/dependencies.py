"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from matching_engine.services.dispatch_service import DispatchService
from matching_engine.services.matching_service import MatchingService


def get_matching_service(request: Request) -> MatchingService:
    service = getattr(request.app.state, "matching_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Matching service is not initialized",
        )
    return service


def get_dispatch_service(request: Request) -> DispatchService:
    service = getattr(request.app.state, "dispatch_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Dispatch service is not initialized",
        )
    return service
