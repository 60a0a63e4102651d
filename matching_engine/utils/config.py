"""Environment-driven runtime settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Mapping, Optional


class ConfigurationError(ValueError):
    """Raised when an environment variable cannot be parsed."""


@dataclass(frozen=True)
class Settings:
    app_name: str = "Contractor Matching Engine"
    app_version: str = "1.0.0"
    log_level: str = "INFO"

    matching_standard_radius_miles: float = 25.0
    matching_priority_radius_miles: float = 50.0
    matching_premium_min_acceptance_rate: float = 0.85
    matching_default_limit: int = 10
    matching_batch_max_workers: int = 4

    dispatch_timeout_seconds: float = 30.0
    dispatch_timeout_decay: float = 1.0
    dispatch_min_timeout_seconds: float = 5.0

    simulation_random_seed: Optional[int] = None
    simulation_delay_scale: float = 1.0

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        defaults = cls()
        seed_raw = env.get("MATCHING_SIMULATION_SEED")
        return cls(
            app_name=env.get("MATCHING_APP_NAME", defaults.app_name),
            app_version=env.get("MATCHING_APP_VERSION", defaults.app_version),
            log_level=env.get("LOG_LEVEL", defaults.log_level),
            matching_standard_radius_miles=_read_float(
                env, "MATCHING_STANDARD_RADIUS_MILES", defaults.matching_standard_radius_miles
            ),
            matching_priority_radius_miles=_read_float(
                env, "MATCHING_PRIORITY_RADIUS_MILES", defaults.matching_priority_radius_miles
            ),
            matching_premium_min_acceptance_rate=_read_float(
                env,
                "MATCHING_PREMIUM_MIN_ACCEPTANCE_RATE",
                defaults.matching_premium_min_acceptance_rate,
            ),
            matching_default_limit=_read_int(
                env, "MATCHING_DEFAULT_LIMIT", defaults.matching_default_limit
            ),
            matching_batch_max_workers=_read_int(
                env, "MATCHING_BATCH_MAX_WORKERS", defaults.matching_batch_max_workers
            ),
            dispatch_timeout_seconds=_read_float(
                env, "MATCHING_DISPATCH_TIMEOUT_SECONDS", defaults.dispatch_timeout_seconds
            ),
            dispatch_timeout_decay=_read_float(
                env, "MATCHING_DISPATCH_TIMEOUT_DECAY", defaults.dispatch_timeout_decay
            ),
            dispatch_min_timeout_seconds=_read_float(
                env,
                "MATCHING_DISPATCH_MIN_TIMEOUT_SECONDS",
                defaults.dispatch_min_timeout_seconds,
            ),
            simulation_random_seed=(
                _parse_int("MATCHING_SIMULATION_SEED", seed_raw) if seed_raw else None
            ),
            simulation_delay_scale=_read_float(
                env, "MATCHING_SIMULATION_DELAY_SCALE", defaults.simulation_delay_scale
            ),
        )


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


def _read_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    return _parse_int(name, raw.strip())


def _read_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return process-wide settings loaded once from the environment."""
    return Settings.from_env()
