"""
Data conversion utilities between dashboard JSON payloads and leveling models.

The dashboard stores the BOM catalog, production orders and leveling runs as
camelCase JSON documents. These helpers turn them into the dataclasses used by
the leveling services and back.
"""

import logging
from typing import Any, Dict, List

from leveling.common.errors import LevelingInputError
from leveling.models import (
    CatalogEntry,
    LevelingResult,
    Operative,
    OrderItem,
    ProductStats,
    ProductionOrder,
    Task,
)

logger = logging.getLogger(__name__)


def _unwrap(data, key: str) -> List[Dict[str, Any]]:
    # Handle both wrapped and direct array formats
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return data.get(key, [])
    return []


def convert_catalog(data) -> List[CatalogEntry]:
    """Convert BOM rows (``products`` list or bare array) into catalog entries."""
    catalog = []
    for row in _unwrap(data, "products"):
        sam = float(row.get("sam", 0) or 0)
        if sam < 0:
            raise LevelingInputError(f"Catalog entry {row.get('id')} has negative SAM {sam}")
        catalog.append(
            CatalogEntry(
                entry_id=str(row["id"]),
                reference=row["reference"],
                description=row.get("description", row["reference"]),
                operation=row.get("operation", ""),
                machine=row.get("machine", ""),
                consecutive=int(row.get("consecutive", 0)),
                sam=sam,
                family=row.get("family", ""),
                process=row.get("process", ""),
            )
        )
    logger.info(f"🔄 Converted {len(catalog)} catalog entries")
    return catalog


def convert_product_stats(data) -> List[ProductStats]:
    return [
        ProductStats(
            description=row["description"],
            total_sam=float(row.get("totalSam", 0)),
            lot_size=int(row.get("loteSize", row.get("lotSize", 0))),
            units_per_period=float(row.get("unitsPerHour", row.get("unitsPerPeriod", 0))),
            units_per_day=float(row.get("unitsPerDay", 0)),
        )
        for row in _unwrap(data, "stats")
    ]


def convert_orders(data) -> List[ProductionOrder]:
    orders = []
    for row in _unwrap(data, "orders"):
        orders.append(
            ProductionOrder(
                order_id=str(row["id"]),
                client_name=row.get("clientName", ""),
                delivery_date=row.get("deliveryDate"),
                priority=row.get("priority"),
                items=[
                    OrderItem(reference=item["reference"], quantity=int(item["quantity"]))
                    for item in row.get("items", [])
                ],
                assignments=row.get("assignments"),
                stats=convert_product_stats(row["stats"]) if row.get("stats") else None,
            )
        )
    logger.info(f"🔄 Converted {len(orders)} production orders")
    return orders


def convert_tasks(data) -> List[Task]:
    return [
        Task(
            task_id=row["id"],
            order_id=row.get("orderId", ""),
            reference=row.get("reference", ""),
            product_description=row.get("productDescription", ""),
            operation=row.get("operation", ""),
            machine=row.get("machine", ""),
            sequence_position=int(row.get("sequencePosition", 0)),
            unit_time=float(row.get("unitTime", 0)),
            required_time=float(row["requiredTime"]),
            catalog_entry_id=row.get("catalogEntryId", ""),
        )
        for row in _unwrap(data, "tasks")
    ]


def convert_operatives(data) -> List[Operative]:
    return [
        Operative(operative_id=row["id"], capacity=float(row["capacity"]))
        for row in _unwrap(data, "operatives")
    ]


def task_to_dict(task: Task) -> Dict[str, Any]:
    return {
        "id": task.task_id,
        "orderId": task.order_id,
        "reference": task.reference,
        "productDescription": task.product_description,
        "operation": task.operation,
        "machine": task.machine,
        "sequencePosition": task.sequence_position,
        "unitTime": task.unit_time,
        "requiredTime": task.required_time,
        "catalogEntryId": task.catalog_entry_id,
    }


def product_stats_to_dict(stat: ProductStats) -> Dict[str, Any]:
    return {
        "description": stat.description,
        "totalSam": stat.total_sam,
        "loteSize": stat.lot_size,
        "unitsPerHour": stat.units_per_period,
        "unitsPerDay": stat.units_per_day,
    }


def result_to_dict(result: LevelingResult) -> Dict[str, Any]:
    """Serialise a leveling result the way the dashboard consumes it."""
    ledger = result.ledger
    kpis = result.kpis
    return {
        "producer": result.producer,
        "tasks": [task_to_dict(task) for task in result.tasks],
        "operatives": [
            {"id": op.operative_id, "capacity": op.capacity} for op in ledger.operatives
        ],
        "assignments": ledger.to_dict(),
        "stats": [product_stats_to_dict(stat) for stat in result.product_stats],
        "taskFulfillment": {
            task.task_id: ledger.task_fulfillment(task.task_id) for task in ledger.tasks
        },
        "operativeSummary": [
            {
                "operative": summary.operative_id,
                "totalMinutes": summary.total_minutes,
                "capacity": summary.capacity,
                "utilization": summary.utilization,
                "spare": summary.spare,
            }
            for summary in ledger.operative_summaries()
        ],
        "operativeLoads": ledger.operative_load_by_operation(),
        "kpis": {
            "makespan": kpis.makespan,
            "utilization": kpis.utilization,
            "efficiency": kpis.efficiency,
            "totalRequired": kpis.total_required,
            "totalAssigned": kpis.total_assigned,
            "totalShortfall": kpis.total_shortfall,
            "unitsPerHour": kpis.units_per_hour,
        },
        "summary": result.summary,
    }
