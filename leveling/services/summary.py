import math
from typing import List

from .assignment_ledger import AssignmentLedger


def additional_operatives_needed(ledger: AssignmentLedger) -> int:
    """Extra operatives (of the roster's largest capacity) that would absorb the shortfall."""
    shortfall = ledger.total_shortfall
    if shortfall <= ledger.epsilon or not ledger.operatives:
        return 0
    capacity = max(op.capacity for op in ledger.operatives)
    if capacity <= 0:
        return 0
    return math.ceil((shortfall - ledger.epsilon) / capacity)


def build_summary(ledger: AssignmentLedger) -> str:
    """Plain-language account of a leveling run for planners."""
    lines: List[str] = [
        f"Assigned {ledger.total_assigned:.2f} of {ledger.total_required:.2f} required minutes "
        f"across {len(ledger.operatives)} operatives "
        f"(utilization {ledger.utilization:.0%}, makespan {ledger.makespan:.2f} min)."
    ]

    unfulfilled = ledger.unfulfilled_tasks()
    if unfulfilled:
        lines.append(
            f"{len(unfulfilled)} task(s) could not be fully assigned; "
            f"{ledger.total_shortfall:.2f} min remain uncovered:"
        )
        for task in unfulfilled:
            lines.append(
                f"  - {task.task_id} ({task.operation}): "
                f"{ledger.task_shortfall(task.task_id):.2f} min short, "
                f"{ledger.task_fulfillment(task.task_id):.0%} fulfilled"
            )
        lines.append(
            f"Add {additional_operatives_needed(ledger)} more operative(s) "
            "or move part of the work to another period."
        )
        return "\n".join(lines)

    lines.append("Every task is fully assigned.")
    spare = sum(summary.spare for summary in ledger.operative_summaries())
    if spare > ledger.epsilon:
        idle = ledger.idle_operatives()
        lines.append(f"{spare:.2f} min of operative time remain unused.")
        if idle:
            names = ", ".join(op.operative_id for op in idle)
            lines.append(f"Operatives without work could be reassigned or removed: {names}.")
    return "\n".join(lines)
