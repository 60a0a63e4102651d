"""
app.py: FastAPI application factory.

This is the ASGI application object imported by uvicorn.
It wires the matching and dispatch services and registers routers.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI

from matching_engine.controllers.matching_controller import router as matching_router
from matching_engine.services.dispatch_service import DispatchService
from matching_engine.services.matching_service import MatchingService
from matching_engine.services.offer_channels import OfferChannel
from matching_engine.utils.config import Settings, get_settings
from matching_engine.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    channel: Optional[OfferChannel] = None,
) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Services live on app.state; the offer channel defaults to the simulated
    acceptance-rate channel until a real notification transport is injected.
    """
    resolved_settings = settings or get_settings()

    matching_service = MatchingService(settings=resolved_settings)
    dispatch_service = DispatchService(
        matching_service=matching_service,
        channel=channel,
        settings=resolved_settings,
    )

    app = FastAPI(
        title=resolved_settings.app_name,
        version=resolved_settings.app_version,
    )
    app.include_router(matching_router)

    app.state.settings = resolved_settings
    app.state.matching_service = matching_service
    app.state.dispatch_service = dispatch_service

    logger.info(
        "Application created | standard_radius=%.1f | priority_radius=%.1f | dispatch_timeout=%.1f",
        resolved_settings.matching_standard_radius_miles,
        resolved_settings.matching_priority_radius_miles,
        resolved_settings.dispatch_timeout_seconds,
    )
    return app


# Module-level app object for uvicorn
app = create_app()
