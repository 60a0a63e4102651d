#!/usr/bin/env python3
"""Validate local matching engine environment readiness."""

from __future__ import annotations

import asyncio
import importlib
import sys
from datetime import datetime
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from matching_engine.domain.models import (
    ContractorProfile,
    DayAvailability,
    DispatchStatus,
    GeoPoint,
    PriceRange,
    ServiceRequest,
)
from matching_engine.services.dispatch_service import Dispatcher
from matching_engine.services.matching_service import find_best_matches
from matching_engine.services.offer_channels import SimulatedOfferChannel
from matching_engine.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def _sample_inputs() -> tuple[ServiceRequest, list[ContractorProfile]]:
    weekday_hours = {
        day: DayAvailability(available=True, start="08:00", end="18:00")
        for day in ("monday", "tuesday", "wednesday", "thursday", "friday")
    }
    contractors = [
        ContractorProfile(
            contractor_id=f"c-{index}",
            location=GeoPoint(lat=40.7128 + index * 0.02, lng=-74.0060),
            services=frozenset({"plumbing"}),
            rating=4.2 + index * 0.1,
            completed_jobs=40 * (index + 1),
            response_time_minutes=12.0,
            acceptance_rate=0.9,
            hourly_rate=95.0,
            max_concurrent_jobs=3,
            availability=weekday_hours,
        )
        for index in range(5)
    ]
    request = ServiceRequest(
        request_id="env-check",
        service="plumbing",
        location=GeoPoint(lat=40.7128, lng=-74.0060),
        requested_at=datetime(2026, 6, 24, 14, 0),
        price_range=PriceRange(min=50.0, max=150.0),
    )
    return request, contractors


def main() -> int:
    results: list[str] = []
    all_passed = True

    # CHECK 1: Python version >= 3.11
    if sys.version_info >= (3, 11):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.11",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2: Required packages importable
    package_specs = ["fastapi", "uvicorn", "pydantic", "numpy", "pandas", "httpx", "pytest"]
    import_errors: list[str] = []
    for module_name in package_specs:
        try:
            importlib.import_module(module_name)
        except ImportError as exc:
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 3: Settings load from environment
    try:
        settings = get_settings()
        ok, line = _print_result(
            "Settings",
            True,
            f": radius={settings.matching_standard_radius_miles:.0f}/"
            f"{settings.matching_priority_radius_miles:.0f} mi",
        )
    except ValueError as exc:
        ok, line = _print_result("Settings", False, str(exc))
    results.append(line)
    all_passed = all_passed and ok

    request, contractors = _sample_inputs()

    # CHECK 4: Matching
    matches = []
    try:
        matches = find_best_matches(request, contractors, limit=3)
        if len(matches) != 3:
            raise RuntimeError(f"expected 3 matches, got {len(matches)}")
        ok, line = _print_result("Matching", True, f": top={matches[0].contractor_id}")
    except (ValueError, RuntimeError) as exc:
        ok, line = _print_result("Matching", False, str(exc))
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 5: Simulated dispatch
    try:
        dispatcher = Dispatcher(
            SimulatedOfferChannel(seed=7, delay_scale=0.0),
            timeout_seconds=1.0,
        )
        outcome = asyncio.run(dispatcher.dispatch(request, matches))
        if outcome.status is DispatchStatus.CANCELLED:
            raise RuntimeError("dispatch unexpectedly cancelled")
        ok, line = _print_result(
            "Simulated dispatch",
            True,
            f": status={outcome.status.value} attempts={outcome.attempted_count}",
        )
    except (ValueError, RuntimeError) as exc:
        ok, line = _print_result("Simulated dispatch", False, str(exc))
    results.append(line)
    all_passed = all_passed and ok

    print(SEPARATOR_LINE)
    print(" Matching Engine Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
