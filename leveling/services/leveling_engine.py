import logging
from typing import Iterable, Optional, Sequence

from leveling.common.errors import LevelingInputError
from leveling.common.profiling import profile_function, profile_section
from leveling.common.settings import get_epsilon
from leveling.models import LevelingConfig, Operative, Task

from .assignment_ledger import AssignmentLedger
from .capacity_model import CapacityModel

logger = logging.getLogger(__name__)


def validate_request(
    tasks: Sequence[Task],
    operatives: Sequence[Operative],
    config: Optional[LevelingConfig] = None,
) -> None:
    """Reject structurally invalid input before a leveling run starts."""
    if not operatives:
        raise LevelingInputError("Invalid input: at least one operative is required")
    if not tasks:
        raise LevelingInputError("Invalid input: at least one task is required")
    for operative in operatives:
        if not operative.capacity > 0:
            raise LevelingInputError(
                f"Operative '{operative.operative_id}' has non-positive capacity {operative.capacity}"
            )
    seen_task_ids = set()
    for task in tasks:
        if task.task_id in seen_task_ids:
            raise LevelingInputError(f"Duplicate task id '{task.task_id}' in request")
        seen_task_ids.add(task.task_id)
        if task.required_time < 0 or task.unit_time < 0:
            raise LevelingInputError(f"Task '{task.task_id}' has a negative time requirement")
    if config is not None:
        if config.num_operatives <= 0:
            raise LevelingInputError("Invalid input: number of operatives must be positive")
        if not config.period_length > 0:
            raise LevelingInputError("Invalid input: leveling period length must be positive")
        if not config.operative_capacity > 0:
            raise LevelingInputError("Invalid input: operative work time must be positive")


class LevelingEngine:
    """Greedy first-fit partition of task time across a prioritised roster.

    Tasks are visited in the order given. Each task's remaining time is poured
    into operatives in roster order, filling an operative to capacity before
    moving on and splitting the task where an operative runs out. A task that
    does not fit in the fleet ends up under-assigned; the engine never raises
    for that.
    """

    def __init__(self, epsilon: Optional[float] = None):
        self.epsilon = get_epsilon() if epsilon is None else epsilon

    @profile_function()
    def level(self, tasks: Iterable[Task], operatives: Iterable[Operative]) -> AssignmentLedger:
        tasks = list(tasks)
        capacity_model = CapacityModel(operatives)
        ledger = AssignmentLedger(tasks, capacity_model.operatives, epsilon=self.epsilon)

        with profile_section("leveling_engine.greedy_pass"):
            for task in tasks:
                remaining = task.required_time
                if remaining <= self.epsilon:
                    continue
                for operative in capacity_model:
                    if remaining <= self.epsilon:
                        break
                    available = capacity_model.available(operative.operative_id)
                    if available <= self.epsilon:
                        continue
                    give = min(remaining, available)
                    ledger.record(task.task_id, operative.operative_id, give)
                    capacity_model.book(operative.operative_id, give)
                    remaining -= give
                if remaining > self.epsilon:
                    logger.debug(
                        f"Task {task.task_id} under-assigned by {remaining:.2f} min"
                    )

        shortfall = ledger.total_shortfall
        if shortfall > self.epsilon:
            logger.warning(
                f"⚠️ Demand exceeds fleet capacity: {shortfall:.2f} min left unassigned "
                f"across {len(ledger.unfulfilled_tasks())} tasks"
            )
        logger.info(
            f"✅ Leveled {len(tasks)} tasks over {len(capacity_model)} operatives "
            f"({ledger.total_assigned:.2f}/{capacity_model.total_capacity:.2f} min)"
        )
        return ledger
