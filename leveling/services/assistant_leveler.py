"""Leveler backed by an external task-assignment assistant.

The assistant is a remote, non-deterministic service. It receives the roster,
the tasks and the leveling period and answers with suggested assignments
plus a free-text summary. Its suggestions are replayed through
:meth:`AssignmentLedger.set_assignment`, so the result honours the same
capacity and demand bounds as the greedy engine.

Wire format (JSON)::

    request  {"operatives": [{"operativeId", "tiempoDisponible"}],
              "tasks": [{"orderId", "prenda", "operacion", "samRequeridoTotal"}],
              "nivelacionUnidad": <minutes>}
    response {"assignments": [{"operativeId", "taskId", "samAsignado"}],
              "summary": "<text>"}

``orderId`` in the request carries the task id, which the assistant echoes
back as ``taskId``.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError

from leveling.common.errors import AssistantLevelerError
from leveling.common.settings import get_assistant_timeout, get_assistant_url
from leveling.models import LevelingResult, SchedulingRequest

from .assignment_ledger import AssignmentLedger
from .leveling_engine import validate_request

logger = logging.getLogger(__name__)


class AssistantAssignment(BaseModel):
    operative_id: str = Field(alias="operativeId")
    task_id: str = Field(alias="taskId")
    assigned_sam: float = Field(alias="samAsignado")


class AssistantResponse(BaseModel):
    assignments: List[AssistantAssignment]
    summary: str = ""


def build_payload(request: SchedulingRequest) -> Dict[str, Any]:
    return {
        "operatives": [
            {"operativeId": op.operative_id, "tiempoDisponible": op.capacity}
            for op in request.operatives
        ],
        "tasks": [
            {
                "orderId": task.task_id,
                "prenda": task.product_description,
                "operacion": task.operation,
                "samRequeridoTotal": task.required_time,
            }
            for task in request.tasks
        ],
        "nivelacionUnidad": request.config.period_length,
    }


class AssistantLeveler:
    name = "assistant"

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None,
    ):
        self.url = url or get_assistant_url()
        self.timeout = get_assistant_timeout() if timeout is None else timeout
        self._client = client

    def _post(self, payload: Dict[str, Any]) -> Any:
        if not self.url:
            raise AssistantLevelerError(
                "No assistant URL configured (set LEVELING_ASSISTANT_URL)"
            )
        client = self._client or httpx.Client(timeout=self.timeout)
        try:
            response = client.post(self.url, json=payload)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            raise AssistantLevelerError(f"Assistant request failed: {e}") from e
        except ValueError as e:
            raise AssistantLevelerError(f"Assistant answered with invalid JSON: {e}") from e
        finally:
            if self._client is None:
                client.close()

    def level(self, request: SchedulingRequest) -> LevelingResult:
        validate_request(request.tasks, request.operatives, request.config)
        logger.info(
            f"🤖 Requesting assistant assignment for {len(request.tasks)} tasks "
            f"and {len(request.operatives)} operatives"
        )
        raw = self._post(build_payload(request))
        try:
            answer = AssistantResponse.model_validate(raw)
        except ValidationError as e:
            raise AssistantLevelerError(f"Assistant answer does not match the contract: {e}") from e

        ledger = AssignmentLedger(request.tasks, request.operatives, epsilon=request.config.epsilon)
        for suggestion in answer.assignments:
            if (
                suggestion.task_id not in ledger.tasks_by_id
                or suggestion.operative_id not in ledger.operatives_by_id
            ):
                logger.warning(
                    f"Ignoring assistant assignment for unknown pair "
                    f"{suggestion.task_id}/{suggestion.operative_id}"
                )
                continue
            current = ledger.get(suggestion.task_id, suggestion.operative_id)
            result = ledger.set_assignment(
                suggestion.task_id,
                suggestion.operative_id,
                current + suggestion.assigned_sam,
            )
            if result.clamped:
                logger.warning(
                    f"Assistant assignment {suggestion.task_id}/{suggestion.operative_id} clamped: "
                    f"{result.message}"
                )

        return LevelingResult(
            ledger=ledger,
            kpis=ledger.kpis(),
            summary=answer.summary,
            producer=self.name,
            tasks=list(request.tasks),
        )
