import logging
from typing import Iterable, List, Optional, Protocol

from leveling.common.profiling import profile_function
from leveling.models import (
    CatalogEntry,
    LevelingConfig,
    LevelingMode,
    LevelingResult,
    ProductStats,
    ProductionOrder,
    SchedulingRequest,
    Task,
)

from .capacity_model import CapacityModel
from .leveling_engine import LevelingEngine, validate_request
from .repository import LevelingRepository
from .summary import build_summary
from .task_deriver import compute_product_stats, derive_tasks, order_tasks

logger = logging.getLogger(__name__)


class Leveler(Protocol):
    """Anything that turns a scheduling request into an assignment ledger."""

    name: str

    def level(self, request: SchedulingRequest) -> LevelingResult: ...


class GreedyLeveler:
    """Deterministic producer backed by :class:`LevelingEngine`."""

    name = "greedy"

    def level(self, request: SchedulingRequest) -> LevelingResult:
        validate_request(request.tasks, request.operatives, request.config)
        engine = LevelingEngine(epsilon=request.config.epsilon)
        ledger = engine.level(request.tasks, request.operatives)
        return LevelingResult(
            ledger=ledger,
            kpis=ledger.kpis(),
            summary=build_summary(ledger),
            producer=self.name,
            tasks=list(request.tasks),
        )


def covered_units(stats: Iterable[ProductStats], config: LevelingConfig) -> float:
    """Finished units a run accounts for: lot sizes, or per-period rates."""
    if config.mode is LevelingMode.WHOLE_ORDER:
        return float(sum(stat.lot_size for stat in stats))
    return sum(stat.units_per_period for stat in stats)


class LevelingService:
    @staticmethod
    def build_request(tasks: Iterable[Task], config: LevelingConfig) -> SchedulingRequest:
        """Freeze tasks (in the configured order) and the roster into a request."""
        ordered = order_tasks(list(tasks), config.ordering)
        roster = CapacityModel.from_config(config).operatives
        return SchedulingRequest(tasks=tuple(ordered), operatives=tuple(roster), config=config)

    @staticmethod
    @profile_function()
    def run(
        orders: List[ProductionOrder],
        catalog: List[CatalogEntry],
        selected_order_ids: Iterable[str],
        config: LevelingConfig,
        leveler: Optional[Leveler] = None,
        repository: Optional[LevelingRepository] = None,
    ) -> LevelingResult:
        """Derive, level and optionally persist one leveling run."""
        selected_order_ids = list(selected_order_ids)
        leveler = leveler or GreedyLeveler()

        stats = compute_product_stats(orders, catalog, selected_order_ids, config)
        rates = {stat.description: stat.units_per_period for stat in stats}
        tasks = derive_tasks(orders, catalog, selected_order_ids, config, rates=rates)
        request = LevelingService.build_request(tasks, config)
        validate_request(request.tasks, request.operatives, config)

        logger.info(
            f"🚀 Leveling {len(request.tasks)} tasks for orders {selected_order_ids} "
            f"with {leveler.name} leveler"
        )
        result = leveler.level(request)
        result.kpis = result.ledger.kpis(units=covered_units(stats, config))
        result.product_stats = stats
        result.tasks = list(request.tasks)

        if repository is not None:
            LevelingService.save(result, selected_order_ids, repository)
        return result

    @staticmethod
    def save(
        result: LevelingResult,
        order_ids: Iterable[str],
        repository: LevelingRepository,
    ) -> None:
        """Hand each order's slice of the ledger and the run statistics to storage."""
        assignments = result.ledger.to_dict()
        for order_id in order_ids:
            order_task_ids = {task.task_id for task in result.tasks if task.order_id == order_id}
            repository.save_order_run(
                order_id,
                {
                    task_id: by_operative
                    for task_id, by_operative in assignments.items()
                    if task_id in order_task_ids
                },
                result.product_stats,
            )
