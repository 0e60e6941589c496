import logging
import threading
from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional

from leveling.common.errors import LevelingInputError
from leveling.common.settings import get_epsilon
from leveling.models import (
    AssignmentEntry,
    ClampBound,
    EditResult,
    LevelingKpis,
    Operative,
    OperativeSummary,
    Task,
)

logger = logging.getLogger(__name__)


class AssignmentLedger:
    """Sparse mapping ``task -> operative -> assigned minutes``.

    Absent pairs mean zero. Every aggregate is computed from the mapping on
    demand so it always reflects the latest engine run or manual edit.
    Readers work on copies taken under the same lock that guards edits, so
    they may run while other threads edit the ledger.
    """

    def __init__(
        self,
        tasks: Iterable[Task],
        operatives: Iterable[Operative],
        epsilon: Optional[float] = None,
    ):
        self.tasks: List[Task] = list(tasks)
        self.operatives: List[Operative] = list(operatives)
        self.tasks_by_id: Dict[str, Task] = {task.task_id: task for task in self.tasks}
        self.operatives_by_id: Dict[str, Operative] = {
            op.operative_id: op for op in self.operatives
        }
        self.epsilon = get_epsilon() if epsilon is None else epsilon
        self._assignments: Dict[str, Dict[str, float]] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_dict(
        cls,
        tasks: Iterable[Task],
        operatives: Iterable[Operative],
        assignments: Mapping[str, Mapping[str, float]],
        epsilon: Optional[float] = None,
    ) -> "AssignmentLedger":
        """Rebuild a ledger from its plain ``to_dict`` form.

        Values are taken as-is (non-positive values are dropped); use
        :meth:`set_assignment` to apply clamped edits on top.
        """
        ledger = cls(tasks, operatives, epsilon=epsilon)
        for task_id, by_operative in assignments.items():
            if task_id not in ledger.tasks_by_id:
                raise LevelingInputError(f"Unknown task id '{task_id}' in ledger")
            for operative_id, minutes in by_operative.items():
                if operative_id not in ledger.operatives_by_id:
                    raise LevelingInputError(
                        f"Unknown operative id '{operative_id}' in ledger"
                    )
                if minutes > 0:
                    ledger._assignments.setdefault(task_id, {})[operative_id] = float(minutes)
        return ledger

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        """Copy of the mapping, taken under the edit lock."""
        with self._lock:
            return {
                task_id: dict(by_operative)
                for task_id, by_operative in self._assignments.items()
            }

    def _row(self, task_id: str) -> Dict[str, float]:
        with self._lock:
            return dict(self._assignments.get(task_id, {}))

    def copy(self) -> "AssignmentLedger":
        return AssignmentLedger.from_dict(
            self.tasks, self.operatives, self.to_dict(), epsilon=self.epsilon
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AssignmentLedger):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    # MARK: - Mutation

    def record(self, task_id: str, operative_id: str, minutes: float) -> None:
        """Append engine output. Bounds are the caller's responsibility."""
        if minutes <= 0:
            return
        with self._lock:
            by_operative = self._assignments.setdefault(task_id, {})
            by_operative[operative_id] = by_operative.get(operative_id, 0.0) + minutes

    def set_assignment(self, task_id: str, operative_id: str, minutes: float) -> EditResult:
        """Overwrite one cell, clamped so neither capacity invariant breaks.

        The value is bounded by the task's remaining requirement (its required
        time minus the other operatives' share) and by the operative's remaining
        capacity (its capacity minus its other tasks). The tighter bound wins;
        on a tie the task bound is reported.
        """
        task = self.tasks_by_id[task_id]
        operative = self.operatives_by_id[operative_id]

        with self._lock:
            task_others = sum(
                value
                for op_id, value in self._assignments.get(task_id, {}).items()
                if op_id != operative_id
            )
            operative_others = sum(
                by_operative.get(operative_id, 0.0)
                for other_task_id, by_operative in self._assignments.items()
                if other_task_id != task_id
            )
            task_bound = max(task.required_time - task_others, 0.0)
            operative_bound = max(operative.capacity - operative_others, 0.0)

            applied = float(minutes)
            bound = ClampBound.NONE
            if applied < 0:
                applied = 0.0
                bound = ClampBound.NON_NEGATIVE
            limit = min(task_bound, operative_bound)
            if applied > limit:
                applied = limit
                bound = ClampBound.TASK if task_bound <= operative_bound else ClampBound.OPERATIVE

            if applied > 0:
                self._assignments.setdefault(task_id, {})[operative_id] = applied
            else:
                by_operative = self._assignments.get(task_id)
                if by_operative is not None:
                    by_operative.pop(operative_id, None)
                    if not by_operative:
                        del self._assignments[task_id]

        result = EditResult(
            task_id=task_id,
            operative_id=operative_id,
            requested=float(minutes),
            applied=applied,
            bound=bound,
        )
        if result.clamped:
            logger.debug(f"Clamped edit {task_id}/{operative_id}: {result.message}")
        return result

    # MARK: - Accessors

    def get(self, task_id: str, operative_id: str) -> float:
        return self._row(task_id).get(operative_id, 0.0)

    def has(self, task_id: str, operative_id: str) -> bool:
        return operative_id in self._row(task_id)

    def task_assignments(self, task_id: str) -> Dict[str, float]:
        return self._row(task_id)

    def entries(self) -> List[AssignmentEntry]:
        """All entries, in task order then operative priority order."""
        assignments = self.to_dict()
        entries = []
        for task in self.tasks:
            by_operative = assignments.get(task.task_id)
            if not by_operative:
                continue
            for operative in self.operatives:
                if operative.operative_id in by_operative:
                    entries.append(
                        AssignmentEntry(
                            task_id=task.task_id,
                            operative_id=operative.operative_id,
                            assigned_time=by_operative[operative.operative_id],
                        )
                    )
        return entries

    def __len__(self) -> int:
        return sum(len(by_operative) for by_operative in self.to_dict().values())

    # MARK: - Aggregates

    def operative_total(self, operative_id: str) -> float:
        return sum(
            by_operative.get(operative_id, 0.0)
            for by_operative in self.to_dict().values()
        )

    def task_assigned(self, task_id: str) -> float:
        return sum(self._row(task_id).values())

    def task_fulfillment(self, task_id: str) -> float:
        required = self.tasks_by_id[task_id].required_time
        if required <= 0:
            return 1.0
        return self.task_assigned(task_id) / required

    def task_shortfall(self, task_id: str) -> float:
        return max(self.tasks_by_id[task_id].required_time - self.task_assigned(task_id), 0.0)

    def unfulfilled_tasks(self) -> List[Task]:
        return [task for task in self.tasks if self.task_shortfall(task.task_id) > self.epsilon]

    @property
    def total_capacity(self) -> float:
        return sum(op.capacity for op in self.operatives)

    @property
    def total_assigned(self) -> float:
        return sum(sum(by_operative.values()) for by_operative in self.to_dict().values())

    @property
    def total_required(self) -> float:
        return sum(task.required_time for task in self.tasks)

    @property
    def total_shortfall(self) -> float:
        return sum(self.task_shortfall(task.task_id) for task in self.tasks)

    @property
    def makespan(self) -> float:
        return max((self.operative_total(op.operative_id) for op in self.operatives), default=0.0)

    @property
    def utilization(self) -> float:
        capacity = self.total_capacity
        return self.total_assigned / capacity if capacity > 0 else 0.0

    @property
    def efficiency(self) -> float:
        assigned = self.total_assigned
        return self.total_required / assigned if assigned > 0 else 0.0

    def operative_summaries(self) -> List[OperativeSummary]:
        summaries = []
        for operative in self.operatives:
            total = self.operative_total(operative.operative_id)
            summaries.append(
                OperativeSummary(
                    operative_id=operative.operative_id,
                    total_minutes=total,
                    capacity=operative.capacity,
                    utilization=total / operative.capacity if operative.capacity > 0 else 0.0,
                    spare=max(operative.capacity - total, 0.0),
                )
            )
        return summaries

    def idle_operatives(self) -> List[Operative]:
        return [
            op for op in self.operatives
            if self.operative_total(op.operative_id) <= self.epsilon
        ]

    def operative_load_by_operation(self) -> Dict[str, Dict[str, float]]:
        """Minutes per operative broken down by operation name."""
        loads: Dict[str, Dict[str, float]] = defaultdict(dict)
        for task_id, by_operative in self.to_dict().items():
            operation = self.tasks_by_id[task_id].operation
            for operative_id, minutes in by_operative.items():
                loads[operative_id][operation] = loads[operative_id].get(operation, 0.0) + minutes
        return {
            op.operative_id: loads[op.operative_id]
            for op in self.operatives
            if op.operative_id in loads
        }

    def kpis(self, units: float = 0.0) -> LevelingKpis:
        """KPI snapshot. ``units`` is the number of finished units the run covers."""
        makespan = self.makespan
        hours = makespan / 60 if makespan > 0 else 1
        return LevelingKpis(
            makespan=makespan,
            utilization=self.utilization,
            efficiency=self.efficiency,
            total_required=self.total_required,
            total_assigned=self.total_assigned,
            total_shortfall=self.total_shortfall,
            units_per_hour=units / hours,
        )

    def violations(self) -> List[str]:
        """Describe every capacity or demand bound the ledger breaks."""
        problems = []
        for operative in self.operatives:
            total = self.operative_total(operative.operative_id)
            if total > operative.capacity + self.epsilon:
                problems.append(
                    f"{operative.operative_id} loaded {total:.2f} min over capacity {operative.capacity:.2f}"
                )
        for task in self.tasks:
            assigned = self.task_assigned(task.task_id)
            if assigned > task.required_time + self.epsilon:
                problems.append(
                    f"{task.task_id} assigned {assigned:.2f} min over requirement {task.required_time:.2f}"
                )
        return problems
