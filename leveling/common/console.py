"""Rich console used for leveling reports and the benchmark tool."""

from __future__ import annotations

from typing import Any, Optional

from rich.console import Console

from .settings import get_logging_verbosity

# Verbosities that still render report tables
REPORTING_LEVELS = frozenset({"debug", "info"})


def reports_enabled(level: Optional[str] = None) -> bool:
    return (level or get_logging_verbosity()).lower() in REPORTING_LEVELS


def get_console(level: Optional[str] = None, **kwargs: Any) -> Console:
    """Console for report tables, muted unless ``LEVELING_LOG_VERBOSITY`` is debug or info.

    A muted console swallows output and skips markup and colour work, so the
    benchmark can run large workloads without paying for table rendering.
    Extra keyword arguments go straight to ``Console`` and win over the defaults.
    """

    options: dict = {"soft_wrap": True}
    if not reports_enabled(level):
        options.update(quiet=True, markup=False, highlight=False, emoji=False, color_system=None)
    options.update(kwargs)
    return Console(**options)


__all__ = ["REPORTING_LEVELS", "get_console", "reports_enabled"]
