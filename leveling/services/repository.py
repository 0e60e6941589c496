"""Persistence contract for leveling runs.

Storage is owned by the host application. Services only talk to the
``LevelingRepository`` protocol, saving each run's ledger slice and product
statistics under the order id they belong to.
"""

import threading
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol

from leveling.models import ProductStats


@dataclass
class OrderRun:
    order_id: str
    assignments: Dict[str, Dict[str, float]] = field(default_factory=dict)
    stats: List[ProductStats] = field(default_factory=list)


class LevelingRepository(Protocol):
    def save_order_run(
        self,
        order_id: str,
        assignments: Dict[str, Dict[str, float]],
        stats: List[ProductStats],
    ) -> None: ...

    def load_order_run(self, order_id: str) -> Optional[OrderRun]: ...


class InMemoryLevelingRepository:
    """Thread-safe dictionary-backed repository used by the API and tests."""

    def __init__(self):
        self._runs: Dict[str, OrderRun] = {}
        self._lock = threading.Lock()

    def save_order_run(
        self,
        order_id: str,
        assignments: Dict[str, Dict[str, float]],
        stats: List[ProductStats],
    ) -> None:
        run = OrderRun(order_id=order_id, assignments=deepcopy(assignments), stats=deepcopy(stats))
        with self._lock:
            self._runs[order_id] = run

    def load_order_run(self, order_id: str) -> Optional[OrderRun]:
        with self._lock:
            run = self._runs.get(order_id)
            return deepcopy(run) if run is not None else None

    def order_ids(self) -> List[str]:
        with self._lock:
            return list(self._runs)
