"""Environment-driven configuration helpers for leveling services."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional

_TRUTHY = {"1", "true", "yes", "on"}


@lru_cache(maxsize=None)
def get_epsilon() -> float:
    """Return the tolerance used to absorb floating-point residue in leveling runs."""

    return float(os.getenv("LEVELING_EPSILON", "0.01"))


@lru_cache(maxsize=None)
def get_task_ordering() -> str:
    """Return the default task processing order.

    ``derivation`` keeps the order in which tasks were derived from the selected
    orders and the catalog; ``sequence`` groups tasks per product and sorts them
    by routing position first. Unknown values fall back to ``derivation``.
    """

    requested = os.getenv("LEVELING_TASK_ORDER", "derivation").lower()
    if requested not in {"derivation", "sequence"}:
        return "derivation"
    return requested


@lru_cache(maxsize=None)
def get_logging_verbosity() -> str:
    """Return the configured log verbosity for console output."""

    return os.getenv("LEVELING_LOG_VERBOSITY", "info").lower()


@lru_cache(maxsize=None)
def get_assistant_url() -> Optional[str]:
    return os.getenv("LEVELING_ASSISTANT_URL") or None


@lru_cache(maxsize=None)
def get_assistant_timeout() -> float:
    return float(os.getenv("LEVELING_ASSISTANT_TIMEOUT", "60"))


@lru_cache(maxsize=None)
def profiling_requested() -> bool:
    return os.getenv("LEVELING_PROFILE", "0").lower() in _TRUTHY


def clear_settings_cache() -> None:
    """Drop memoised values so the next call re-reads the environment."""

    for getter in (
        get_epsilon,
        get_task_ordering,
        get_logging_verbosity,
        get_assistant_url,
        get_assistant_timeout,
        profiling_requested,
    ):
        getter.cache_clear()


__all__ = [
    "get_epsilon",
    "get_task_ordering",
    "get_logging_verbosity",
    "get_assistant_url",
    "get_assistant_timeout",
    "profiling_requested",
    "clear_settings_cache",
]
