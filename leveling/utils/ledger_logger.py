from typing import List, Optional

from rich import box, table

from leveling.common.console import get_console
from leveling.models import LevelingResult, OperationLoad, ProductStats
from leveling.services.assignment_ledger import AssignmentLedger
from leveling.services.task_deriver import tasks_by_product
from leveling.utils.utils import style_minutes, style_ratio


class LedgerLogger:
    @staticmethod
    def assignment_table(ledger: AssignmentLedger, title: Optional[str] = None) -> table.Table:
        """Tasks grouped by product, one column per operative."""
        assignment_table = table.Table(
            title=title or "Task Assignment",
            title_style="bold green",
            style="dim",
            box=box.ROUNDED,
        )
        assignment_table.add_column("Product", style="italic")
        assignment_table.add_column("Seq", justify="right")
        assignment_table.add_column("Operation", style="cyan")
        assignment_table.add_column("Machine", style="italic")
        assignment_table.add_column("Unit SAM", justify="right")
        assignment_table.add_column("Required", justify="right")
        assignment_table.add_column("Assigned", justify="right")
        for operative in ledger.operatives:
            assignment_table.add_column(operative.operative_id, justify="right")

        for product, tasks in tasks_by_product(ledger.tasks).items():
            assignment_table.add_section()
            product_displayed = False
            for task in tasks:
                assigned = ledger.task_assigned(task.task_id)
                balanced = abs(assigned - task.required_time) < ledger.epsilon
                color = "green" if balanced else "red"
                cells = [
                    ledger.get(task.task_id, op.operative_id) for op in ledger.operatives
                ]
                assignment_table.add_row(
                    product if not product_displayed else "",
                    str(task.sequence_position),
                    task.operation,
                    task.machine,
                    f"{task.unit_time:.2f}",
                    f"{task.required_time:.2f}",
                    f"[bold {color}]{assigned:.2f}[/bold {color}]",
                    *[f"{value:.2f}" if value > 0 else "" for value in cells],
                )
                product_displayed = True

        return assignment_table

    @staticmethod
    def operative_load_table(ledger: AssignmentLedger) -> table.Table:
        load_table = table.Table(
            title="Operative Load",
            title_style="bold blue",
            style="dim",
            box=box.ROUNDED,
        )
        load_table.add_column("Operative", style="bold")
        load_table.add_column("Assigned", justify="right")
        load_table.add_column("Capacity", justify="right")
        load_table.add_column("Utilization", justify="right")
        load_table.add_column("Spare", justify="right")
        load_table.add_column("Operations", style="italic")

        by_operation = ledger.operative_load_by_operation()
        for summary in ledger.operative_summaries():
            overloaded = summary.total_minutes > summary.capacity + ledger.epsilon
            operations = by_operation.get(summary.operative_id, {})
            load_table.add_row(
                summary.operative_id,
                f"[red]{summary.total_minutes:.2f}[/red]" if overloaded else f"{summary.total_minutes:.2f}",
                f"{summary.capacity:.2f}",
                style_ratio(summary.utilization),
                f"{summary.spare:.2f}",
                ", ".join(f"{name} {minutes:.1f}" for name, minutes in operations.items()),
            )
        return load_table

    @staticmethod
    def kpi_table(result: LevelingResult) -> table.Table:
        kpi_table = table.Table(style="dim", box=box.SIMPLE)
        kpi_table.add_column("Producer")
        kpi_table.add_column("Makespan")
        kpi_table.add_column("Utilization")
        kpi_table.add_column("Efficiency")
        kpi_table.add_column("Required")
        kpi_table.add_column("Assigned")
        kpi_table.add_column("Shortfall")
        kpi_table.add_column("Units/h")

        kpis = result.kpis
        kpi_table.add_row(
            result.producer,
            style_minutes(kpis.makespan),
            style_ratio(kpis.utilization),
            style_ratio(kpis.efficiency),
            f"{kpis.total_required:.2f}",
            f"{kpis.total_assigned:.2f}",
            f"[red]{kpis.total_shortfall:.2f}[/red]" if kpis.total_shortfall > result.ledger.epsilon else "0.00",
            f"{kpis.units_per_hour:.2f}",
        )
        return kpi_table

    @staticmethod
    def product_stats_table(stats: List[ProductStats], period_length: float = 60) -> table.Table:
        stats_table = table.Table(
            title="Initial Statistics",
            title_style="bold yellow",
            style="dim",
            box=box.ROUNDED,
        )
        stats_table.add_column("Product", style="bold")
        stats_table.add_column("Lot size", justify="right")
        stats_table.add_column("Product SAM", justify="right")
        stats_table.add_column(f"Units / {period_length:g} min", justify="right")
        stats_table.add_column("Units / day", justify="right")
        for stat in stats:
            stats_table.add_row(
                stat.description,
                str(stat.lot_size),
                f"{stat.total_sam:.2f}",
                f"{stat.units_per_period:.2f}",
                f"{stat.units_per_day:.2f}",
            )
        return stats_table

    @staticmethod
    def operation_load_table(loads: List[OperationLoad]) -> table.Table:
        operation_table = table.Table(
            title="Required Workload",
            style="dim",
            box=box.SIMPLE,
        )
        operation_table.add_column("Operation", style="cyan")
        operation_table.add_column("Total SAM", justify="right")
        for load in loads:
            operation_table.add_row(load.operation, f"{load.total_sam:.2f}")
        return operation_table

    @staticmethod
    def print(result: LevelingResult, title: Optional[str] = None) -> None:
        console = get_console()
        if result.product_stats:
            console.print(LedgerLogger.product_stats_table(result.product_stats))
        console.print(LedgerLogger.assignment_table(result.ledger, title=title))
        console.print(LedgerLogger.operative_load_table(result.ledger))
        console.print(LedgerLogger.kpi_table(result))
        if result.summary:
            console.print(result.summary, markup=False)
