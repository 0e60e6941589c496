"""
FastAPI application exposing the leveling services to the dashboard.

Endpoints:
- /level: derive tasks from the selected orders and level them greedily
- /level-assistant: same input, assignments proposed by the external assistant
- /ledger/edit: apply one clamped manual edit to an existing ledger
- /orders/{order_id}/run: last persisted leveling run of an order
"""

import logging
import time
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from leveling.common.errors import AssistantLevelerError, LevelingInputError
from leveling.common.profiling import profile_enabled
from leveling.common.profiling_middleware import ProfilingMiddleware
from leveling.models import LevelingConfig, LevelingMode, TaskOrdering
from leveling.services.assignment_ledger import AssignmentLedger
from leveling.services.assistant_leveler import AssistantLeveler
from leveling.services.leveler import Leveler, LevelingService
from leveling.services.repository import InMemoryLevelingRepository
from leveling.services.task_deriver import compute_operation_loads
from leveling.utils.data_converters import (
    convert_catalog,
    convert_operatives,
    convert_orders,
    convert_tasks,
    product_stats_to_dict,
    result_to_dict,
)

logger = logging.getLogger(__name__)


# MARK: - Pydantic Models for API


class LevelingConfigModel(BaseModel):
    num_operatives: int
    period_length: float = 60.0
    work_time: float = 480.0
    package_size: int = 10
    mode: str = LevelingMode.PERIOD.value
    ordering: Optional[str] = None
    epsilon: Optional[float] = None


class LevelRequest(BaseModel):
    orders: List[Dict[str, Any]]
    catalog: List[Dict[str, Any]]
    selected_order_ids: List[str]
    config: LevelingConfigModel
    persist: bool = False


class EditRequest(BaseModel):
    tasks: List[Dict[str, Any]]
    operatives: List[Dict[str, Any]]
    assignments: Dict[str, Dict[str, float]]
    task_id: str
    operative_id: str
    minutes: float
    epsilon: Optional[float] = None


class EditResponse(BaseModel):
    task_id: str
    operative_id: str
    requested: float
    applied: float
    clamped: bool
    bound: str
    message: str
    assignments: Dict[str, Dict[str, float]]
    operative_total: float
    task_fulfillment: float


# MARK: - FastAPI App

app = FastAPI(title="Line Leveling", version="1.0.0")

if profile_enabled():
    app.add_middleware(ProfilingMiddleware)

repository = InMemoryLevelingRepository()


# MARK: - Helper Functions


def to_leveling_config(model: LevelingConfigModel) -> LevelingConfig:
    try:
        overrides: Dict[str, Any] = {"mode": LevelingMode(model.mode)}
        if model.ordering is not None:
            overrides["ordering"] = TaskOrdering(model.ordering)
    except ValueError as e:
        raise LevelingInputError(str(e)) from e
    if model.epsilon is not None:
        overrides["epsilon"] = model.epsilon
    return LevelingConfig(
        num_operatives=model.num_operatives,
        period_length=model.period_length,
        work_time=model.work_time,
        package_size=model.package_size,
        **overrides,
    )


def run_leveling(request: LevelRequest, leveler: Optional[Leveler] = None) -> Dict[str, Any]:
    start_time = time.time()
    orders = convert_orders(request.orders)
    catalog = convert_catalog(request.catalog)
    config = to_leveling_config(request.config)

    result = LevelingService.run(
        orders,
        catalog,
        request.selected_order_ids,
        config,
        leveler=leveler,
        repository=repository if request.persist else None,
    )
    payload = result_to_dict(result)
    payload["operationLoads"] = [
        {"operation": load.operation, "totalSam": load.total_sam}
        for load in compute_operation_loads(orders, catalog, request.selected_order_ids)
    ]
    payload["runtime"] = time.time() - start_time
    return payload


# MARK: - Endpoints


@app.post("/level")
def level(request: LevelRequest):
    """Greedy leveling of the selected orders."""
    try:
        return run_leveling(request)
    except LevelingInputError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


@app.post("/level-assistant")
def level_with_assistant(request: LevelRequest):
    """Leveling proposed by the external assistant, clamped to the same bounds."""
    try:
        return run_leveling(request, leveler=AssistantLeveler())
    except LevelingInputError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except AssistantLevelerError as e:
        logger.error(f"❌ Assistant leveling failed: {e}")
        raise HTTPException(status_code=502, detail=str(e)) from e


@app.post("/ledger/edit", response_model=EditResponse)
def edit_ledger(request: EditRequest):
    """Apply one manual cell edit, clamped to the task and operative bounds."""
    try:
        ledger = AssignmentLedger.from_dict(
            convert_tasks(request.tasks),
            convert_operatives(request.operatives),
            request.assignments,
            epsilon=request.epsilon,
        )
        result = ledger.set_assignment(request.task_id, request.operative_id, request.minutes)
    except LevelingInputError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except KeyError as e:
        raise HTTPException(status_code=404, detail=f"Unknown task or operative: {e}") from e

    return EditResponse(
        task_id=result.task_id,
        operative_id=result.operative_id,
        requested=result.requested,
        applied=result.applied,
        clamped=result.clamped,
        bound=result.bound.value,
        message=result.message,
        assignments=ledger.to_dict(),
        operative_total=ledger.operative_total(request.operative_id),
        task_fulfillment=ledger.task_fulfillment(request.task_id),
    )


@app.get("/orders/{order_id}/run")
def get_order_run(order_id: str):
    run = repository.load_order_run(order_id)
    if run is None:
        raise HTTPException(status_code=404, detail=f"No leveling run stored for order {order_id}")
    return {
        "orderId": run.order_id,
        "assignments": run.assignments,
        "stats": [product_stats_to_dict(stat) for stat in run.stats],
    }


@app.get("/health")
def health_check():
    return {
        "status": "healthy",
        "message": "Line leveling service is running",
        "version": "1.0.0",
    }


@app.get("/")
def root():
    return {"message": "Line leveling service", "endpoints": ["/level", "/level-assistant", "/ledger/edit"]}
