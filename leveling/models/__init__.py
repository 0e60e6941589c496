from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Optional

from leveling.common.settings import get_epsilon, get_task_ordering

if TYPE_CHECKING:  # pragma: no cover - typing only
    from leveling.services.assignment_ledger import AssignmentLedger

# MARK: - Enums


class LevelingMode(Enum):
    WHOLE_ORDER = "whole_order"
    PERIOD = "period"


class TaskOrdering(Enum):
    DERIVATION = "derivation"
    SEQUENCE = "sequence"


class ClampBound(Enum):
    NONE = "none"
    NON_NEGATIVE = "non_negative"
    TASK = "task"
    OPERATIVE = "operative"


# MARK: - Catalog & Orders


@dataclass(frozen=True)
class CatalogEntry:
    entry_id: str
    reference: str  # product reference shared by all operations of a product
    description: str
    operation: str
    machine: str
    consecutive: int  # position inside the product's routing
    sam: float  # standard allowed minutes per unit
    family: str = ""
    process: str = ""


@dataclass
class OrderItem:
    reference: str
    quantity: int


@dataclass
class ProductionOrder:
    order_id: str
    client_name: str
    items: list[OrderItem]
    delivery_date: Optional[str] = None
    priority: Optional[int] = None  # 1 -> 5
    # Written back by the persistence collaborator after a leveling run
    assignments: Optional[dict[str, dict[str, float]]] = None
    stats: Optional[list["ProductStats"]] = None


# MARK: - Leveling inputs


@dataclass(frozen=True)
class Task:
    task_id: str
    order_id: str
    reference: str
    product_description: str
    operation: str
    machine: str
    sequence_position: int
    unit_time: float
    required_time: float
    catalog_entry_id: str = ""


@dataclass(frozen=True)
class Operative:
    operative_id: str
    capacity: float  # minutes available in one leveling period


@dataclass(frozen=True)
class LevelingConfig:
    num_operatives: int
    period_length: float  # minutes, e.g. 60 for hourly leveling
    work_time: float = 480.0  # minutes an operative works per day (shift)
    package_size: int = 10  # reporting only
    mode: LevelingMode = LevelingMode.PERIOD
    ordering: TaskOrdering = field(
        default_factory=lambda: TaskOrdering(get_task_ordering())
    )
    epsilon: float = field(default_factory=get_epsilon)

    @property
    def operative_capacity(self) -> float:
        """Minutes each operative can absorb in one run.

        Period leveling balances one leveling period; whole-order leveling
        spreads the orders over a full shift.
        """
        if self.mode is LevelingMode.WHOLE_ORDER:
            return self.work_time
        return self.period_length


@dataclass(frozen=True)
class SchedulingRequest:
    tasks: tuple[Task, ...]
    operatives: tuple[Operative, ...]
    config: LevelingConfig


# MARK: - Statistics


@dataclass
class ProductStats:
    description: str
    total_sam: float  # sum of unit times of every operation of the product
    lot_size: int  # units ordered across the selected orders
    units_per_period: float
    units_per_day: float


@dataclass
class OperationLoad:
    operation: str
    total_sam: float


# MARK: - Leveling outputs


@dataclass(frozen=True)
class AssignmentEntry:
    task_id: str
    operative_id: str
    assigned_time: float


@dataclass
class EditResult:
    task_id: str
    operative_id: str
    requested: float
    applied: float
    bound: ClampBound = ClampBound.NONE

    @property
    def clamped(self) -> bool:
        return self.bound is not ClampBound.NONE

    @property
    def message(self) -> str:
        if self.bound is ClampBound.TASK:
            return f"task bound applied: {self.requested:.2f} -> {self.applied:.2f} min"
        if self.bound is ClampBound.OPERATIVE:
            return f"operative bound applied: {self.requested:.2f} -> {self.applied:.2f} min"
        if self.bound is ClampBound.NON_NEGATIVE:
            return f"negative value replaced by {self.applied:.2f} min"
        return f"assigned {self.applied:.2f} min"


@dataclass
class OperativeSummary:
    operative_id: str
    total_minutes: float
    capacity: float
    utilization: float  # 0.0 -> 1.0
    spare: float


@dataclass
class LevelingKpis:
    makespan: float
    utilization: float  # 0.0 -> 1.0
    efficiency: float  # required / assigned
    total_required: float
    total_assigned: float
    total_shortfall: float
    units_per_hour: float = 0.0


@dataclass
class LevelingResult:
    ledger: "AssignmentLedger"
    kpis: LevelingKpis
    summary: str
    producer: str = "greedy"
    tasks: list[Task] = field(default_factory=list)
    product_stats: list[ProductStats] = field(default_factory=list)
