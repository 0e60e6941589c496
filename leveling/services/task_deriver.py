"""Expansion of selected production orders into leveling tasks.

Every (order, ordered product, catalog operation) triple becomes one task;
repeated lines of the same product in one order are merged first.
Order items whose reference has no catalog rows are skipped without error;
keeping the catalog and the order book consistent is the caller's job.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from leveling.common.profiling import profile_function
from leveling.models import (
    CatalogEntry,
    LevelingConfig,
    LevelingMode,
    OperationLoad,
    ProductStats,
    ProductionOrder,
    Task,
    TaskOrdering,
)

logger = logging.getLogger(__name__)


def index_catalog(catalog: Iterable[CatalogEntry]) -> Dict[str, List[CatalogEntry]]:
    """Group catalog rows per product reference, preserving catalog order."""
    by_reference: Dict[str, List[CatalogEntry]] = defaultdict(list)
    for entry in catalog:
        by_reference[entry.reference].append(entry)
    return dict(by_reference)


def _selected_orders(
    orders: Iterable[ProductionOrder], selected_order_ids: Iterable[str]
) -> List[ProductionOrder]:
    selected = set(selected_order_ids)
    return [order for order in orders if order.order_id in selected]


def order_quantities(order: ProductionOrder) -> Dict[str, int]:
    """Units ordered per reference, repeated lines of one reference summed."""
    quantities: Dict[str, int] = {}
    for item in order.items:
        quantities[item.reference] = quantities.get(item.reference, 0) + item.quantity
    return quantities


def units_per_period(total_sam: float, config: LevelingConfig) -> float:
    """Finished units per period a perfectly balanced line of the product yields."""
    if total_sam <= 0:
        return 0.0
    return (config.num_operatives * config.period_length) / total_sam


@profile_function()
def compute_product_stats(
    orders: Iterable[ProductionOrder],
    catalog: Iterable[CatalogEntry],
    selected_order_ids: Iterable[str],
    config: LevelingConfig,
) -> List[ProductStats]:
    """Per product: total SAM, lot size across the selection and line rates.

    Products are keyed by description and listed in first-seen order.
    ``units_per_day`` scales the per-period rate to one operative shift.
    """
    by_reference = index_catalog(catalog)
    totals: Dict[str, float] = {}
    lot_sizes: Dict[str, int] = {}

    for order in _selected_orders(orders, selected_order_ids):
        for reference, quantity in order_quantities(order).items():
            entries = by_reference.get(reference)
            if not entries:
                continue
            description = entries[0].description
            if description not in totals:
                totals[description] = sum(entry.sam for entry in entries)
                lot_sizes[description] = 0
            lot_sizes[description] += quantity

    periods_per_day = config.work_time / config.period_length if config.period_length > 0 else 0.0
    stats = []
    for description, total_sam in totals.items():
        rate = units_per_period(total_sam, config)
        stats.append(
            ProductStats(
                description=description,
                total_sam=total_sam,
                lot_size=lot_sizes[description],
                units_per_period=rate,
                units_per_day=rate * periods_per_day,
            )
        )
    return stats


def compute_operation_loads(
    orders: Iterable[ProductionOrder],
    catalog: Iterable[CatalogEntry],
    selected_order_ids: Iterable[str],
) -> List[OperationLoad]:
    """Whole-order SAM required per operation name across the selection."""
    by_reference = index_catalog(catalog)
    totals: Dict[str, float] = {}
    for order in _selected_orders(orders, selected_order_ids):
        for reference, quantity in order_quantities(order).items():
            for entry in by_reference.get(reference, []):
                totals[entry.operation] = totals.get(entry.operation, 0.0) + entry.sam * quantity
    return [OperationLoad(operation=name, total_sam=total) for name, total in totals.items()]


@profile_function()
def derive_tasks(
    orders: Iterable[ProductionOrder],
    catalog: Iterable[CatalogEntry],
    selected_order_ids: Iterable[str],
    config: LevelingConfig,
    rates: Optional[Mapping[str, float]] = None,
) -> List[Task]:
    """Expand the selected orders into tasks, in derivation order.

    In ``WHOLE_ORDER`` mode a task requires ``sam x ordered quantity``. In
    ``PERIOD`` mode it requires ``sam x units_per_period`` of its product,
    taken from ``rates`` (keyed by product description) or computed from the
    catalog when not supplied.
    """
    by_reference = index_catalog(catalog)
    tasks: List[Task] = []

    for order in _selected_orders(orders, selected_order_ids):
        for reference, quantity in order_quantities(order).items():
            entries = by_reference.get(reference)
            if not entries:
                logger.debug(
                    f"Order {order.order_id}: no catalog operations for reference {reference}, skipped"
                )
                continue

            if config.mode is LevelingMode.WHOLE_ORDER:
                required_units = float(quantity)
            else:
                description = entries[0].description
                if rates is not None and description in rates:
                    required_units = rates[description]
                else:
                    required_units = units_per_period(sum(e.sam for e in entries), config)

            for entry in entries:
                tasks.append(
                    Task(
                        task_id=f"{order.order_id}-{reference}-{entry.entry_id}",
                        order_id=order.order_id,
                        reference=reference,
                        product_description=entry.description,
                        operation=entry.operation,
                        machine=entry.machine,
                        sequence_position=entry.consecutive,
                        unit_time=entry.sam,
                        required_time=entry.sam * required_units,
                        catalog_entry_id=entry.entry_id,
                    )
                )

    logger.info(f"📋 Derived {len(tasks)} tasks from {len(set(t.order_id for t in tasks))} orders")
    return tasks


def order_tasks(tasks: Sequence[Task], ordering: TaskOrdering) -> List[Task]:
    """Apply the processing order the leveling engine will follow.

    ``DERIVATION`` leaves the list untouched. ``SEQUENCE`` groups tasks per
    product (first-seen order) and sorts each group by routing position; the
    sort is stable so equal positions keep their derivation order.
    """
    if ordering is TaskOrdering.DERIVATION:
        return list(tasks)

    groups: Dict[str, List[Task]] = {}
    for task in tasks:
        groups.setdefault(task.product_description, []).append(task)
    ordered: List[Task] = []
    for group in groups.values():
        ordered.extend(sorted(group, key=lambda task: task.sequence_position))
    return ordered


def tasks_by_product(tasks: Iterable[Task]) -> Dict[str, List[Task]]:
    """Group tasks per product description, each sorted by routing position."""
    grouped: Dict[str, List[Task]] = {}
    for task in tasks:
        grouped.setdefault(task.product_description, []).append(task)
    return {
        product: sorted(group, key=lambda task: task.sequence_position)
        for product, group in grouped.items()
    }
