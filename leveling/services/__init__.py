from .assignment_ledger import AssignmentLedger
from .assistant_leveler import AssistantLeveler
from .capacity_model import CapacityModel
from .leveler import GreedyLeveler, Leveler, LevelingService
from .leveling_engine import LevelingEngine, validate_request
from .repository import InMemoryLevelingRepository, LevelingRepository
from .summary import build_summary
from .task_deriver import (
    compute_operation_loads,
    compute_product_stats,
    derive_tasks,
    order_tasks,
)

__all__ = [
    "AssignmentLedger",
    "AssistantLeveler",
    "CapacityModel",
    "GreedyLeveler",
    "Leveler",
    "LevelingService",
    "LevelingEngine",
    "validate_request",
    "InMemoryLevelingRepository",
    "LevelingRepository",
    "build_summary",
    "compute_operation_loads",
    "compute_product_stats",
    "derive_tasks",
    "order_tasks",
]
