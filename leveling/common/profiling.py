"""Opt-in runtime profiling of leveling runs.

Set ``LEVELING_PROFILE=1`` to record, for every decorated function and every
``profile_section`` block, its wall time, CPU time, traced allocation delta
and resident memory delta. Samples carry the current run id (see
:func:`set_correlation_id`) so API requests and benchmark iterations can be
told apart. :meth:`Profiler.flush` writes ``profile_<pid>.jsonl`` and
``summary_<pid>.csv`` under ``./.profile``; it also runs at interpreter exit.

With profiling off every helper is a passthrough.
"""

from __future__ import annotations

import atexit
import contextvars
import csv
import functools
import inspect
import json
import logging
import os
import statistics
import threading
import time
import tracemalloc
from contextlib import contextmanager, nullcontext
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

import psutil

from .settings import profiling_requested

profile_logger = logging.getLogger("leveling.profiling")

DEFAULT_PROFILE_DIR = Path(".profile")

SUMMARY_COLUMNS = (
    "module",
    "name",
    "kind",
    "calls",
    "wall_ms_total",
    "wall_ms_mean",
    "wall_ms_p95",
    "cpu_ms_total",
    "alloc_kb_total",
)

_run_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "leveling_run_id", default=None
)


def profile_enabled() -> bool:
    return profiling_requested()


def set_correlation_id(value: Optional[str]) -> contextvars.Token:
    return _run_id.set(value)


def reset_correlation_id(token: Optional[contextvars.Token]) -> None:
    if token is not None:
        _run_id.reset(token)


def get_correlation_id() -> Optional[str]:
    return _run_id.get()


@dataclass
class ProfileSample:
    module: str
    name: str
    kind: str  # "function" or "section"
    wall_ms: float
    cpu_ms: float
    alloc_kb: Optional[float]
    rss_kb: float
    run_id: Optional[str] = None
    ts: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_record(self, pid: int) -> Dict[str, Any]:
        record = asdict(self)
        record["pid"] = pid
        run_id = record.pop("run_id")
        if run_id:
            record["corr_id"] = run_id
        return record


@dataclass
class _SectionTotals:
    module: str
    name: str
    kind: str
    wall_ms: List[float] = field(default_factory=list)
    cpu_ms_total: float = 0.0
    alloc_kb_total: float = 0.0

    def add(self, sample: ProfileSample) -> None:
        self.wall_ms.append(sample.wall_ms)
        self.cpu_ms_total += sample.cpu_ms
        if sample.alloc_kb is not None:
            self.alloc_kb_total += sample.alloc_kb

    def row(self) -> Dict[str, Any]:
        calls = len(self.wall_ms)
        total = sum(self.wall_ms)
        return {
            "module": self.module,
            "name": self.name,
            "kind": self.kind,
            "calls": calls,
            "wall_ms_total": total,
            "wall_ms_mean": total / calls if calls else 0.0,
            "wall_ms_p95": _p95(self.wall_ms),
            "cpu_ms_total": self.cpu_ms_total,
            "alloc_kb_total": self.alloc_kb_total,
        }


def _p95(values: List[float]) -> float:
    if not values:
        return 0.0
    if len(values) == 1:
        return values[0]
    return statistics.quantiles(values, n=20, method="inclusive")[-1]


class _DisabledProfiler:
    enabled = False

    def measure(self, name: str, module: str, kind: str):
        return nullcontext()

    def summary_rows(self) -> List[Dict[str, Any]]:
        return []

    def flush(self) -> None:
        return None


class Profiler:
    """Process-wide sample store, created on first use by :meth:`instance`."""

    _instance: Optional["Profiler | _DisabledProfiler"] = None
    _instance_lock = threading.Lock()

    def __init__(self, profile_dir: Path = DEFAULT_PROFILE_DIR) -> None:
        self.enabled = True
        self.pid = os.getpid()
        self.profile_dir = profile_dir
        self.samples: List[ProfileSample] = []
        self._totals: Dict[Tuple[str, str, str], _SectionTotals] = {}
        self._lock = threading.Lock()
        self._process = psutil.Process(self.pid)
        if not tracemalloc.is_tracing():
            tracemalloc.start()
        atexit.register(self.flush)
        profile_logger.info(f"Profiling leveling runs (pid={self.pid}, dir={self.profile_dir})")

    @classmethod
    def instance(cls) -> "Profiler | _DisabledProfiler":
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls() if profile_enabled() else _DisabledProfiler()
            return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        with cls._instance_lock:
            cls._instance = None

    @contextmanager
    def measure(self, name: str, module: str, kind: str) -> Iterator[None]:
        alloc_start = tracemalloc.get_traced_memory()[0] if tracemalloc.is_tracing() else None
        rss_start = self._process.memory_info().rss
        cpu_start = time.process_time()
        wall_start = time.perf_counter()
        try:
            yield
        finally:
            wall_ms = (time.perf_counter() - wall_start) * 1000.0
            cpu_ms = (time.process_time() - cpu_start) * 1000.0
            alloc_kb = None
            if alloc_start is not None and tracemalloc.is_tracing():
                alloc_kb = (tracemalloc.get_traced_memory()[0] - alloc_start) / 1024.0
            self._add(
                ProfileSample(
                    module=module,
                    name=name,
                    kind=kind,
                    wall_ms=wall_ms,
                    cpu_ms=cpu_ms,
                    alloc_kb=alloc_kb,
                    rss_kb=(self._process.memory_info().rss - rss_start) / 1024.0,
                    run_id=get_correlation_id(),
                )
            )

    def _add(self, sample: ProfileSample) -> None:
        key = (sample.module, sample.name, sample.kind)
        with self._lock:
            self.samples.append(sample)
            totals = self._totals.get(key)
            if totals is None:
                totals = self._totals[key] = _SectionTotals(sample.module, sample.name, sample.kind)
            totals.add(sample)

    def summary_rows(self) -> List[Dict[str, Any]]:
        """One row per (module, name, kind), slowest total first."""
        with self._lock:
            rows = [totals.row() for totals in self._totals.values()]
        return sorted(rows, key=lambda row: row["wall_ms_total"], reverse=True)

    def flush(self) -> None:
        with self._lock:
            samples = list(self.samples)
        try:
            self.profile_dir.mkdir(parents=True, exist_ok=True)
            trace_path = self.profile_dir / f"profile_{self.pid}.jsonl"
            with trace_path.open("w", encoding="utf-8") as fh:
                for sample in samples:
                    fh.write(json.dumps(sample.to_record(self.pid)) + "\n")
            summary_path = self.profile_dir / f"summary_{self.pid}.csv"
            with summary_path.open("w", encoding="utf-8", newline="") as fh:
                writer = csv.DictWriter(fh, fieldnames=SUMMARY_COLUMNS)
                writer.writeheader()
                writer.writerows(self.summary_rows())
        except OSError as e:
            profile_logger.warning(f"Could not write profile to {self.profile_dir}: {e}")


def profile_function(name: Optional[str] = None):
    """Record every call of the decorated function (sync or async)."""

    def decorator(func):
        label = name or func.__qualname__

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                with Profiler.instance().measure(label, func.__module__, "function"):
                    return await func(*args, **kwargs)

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with Profiler.instance().measure(label, func.__module__, "function"):
                return func(*args, **kwargs)

        return wrapper

    return decorator


def profile_section(name: str):
    """Record one block under ``name``, attributed to the calling module."""
    profiler = Profiler.instance()
    if not profiler.enabled:
        return nullcontext()
    caller = inspect.currentframe().f_back
    module = caller.f_globals.get("__name__", "__main__") if caller else "__main__"
    return profiler.measure(name, module, "section")


__all__ = [
    "Profiler",
    "ProfileSample",
    "profile_enabled",
    "profile_function",
    "profile_section",
    "set_correlation_id",
    "reset_correlation_id",
    "get_correlation_id",
]
