"""Deterministic benchmarking harness for task derivation and leveling."""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, List

PACKAGE_ROOT = Path(__file__).resolve().parents[1]
if str(PACKAGE_ROOT) not in sys.path:
    sys.path.insert(0, str(PACKAGE_ROOT))

# Profiling must be switched on before the profiler singleton is created
os.environ.setdefault("LEVELING_PROFILE", "1")

from rich import box, table  # noqa: E402

from leveling.common.console import get_console  # noqa: E402
from leveling.common.profiling import (  # noqa: E402
    Profiler,
    profile_enabled,
    profile_section,
    reset_correlation_id,
    set_correlation_id,
)
from leveling.models import LevelingMode  # noqa: E402
from leveling.services.leveler import LevelingService  # noqa: E402
from leveling.utils.data_converters import convert_catalog, convert_orders  # noqa: E402
from tests.fixtures import generate_workload  # noqa: E402


def _load_dataset(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Dataset not found: {path}")
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def _run_iteration(orders, catalog, config, iteration: int) -> Dict[str, Any]:
    token = set_correlation_id(f"benchmark-iter-{iteration:03d}")
    try:
        with profile_section("benchmark.level"):
            result = LevelingService.run(
                orders, catalog, [order.order_id for order in orders], config
            )
        return {
            "iteration": iteration,
            "orders": len(orders),
            "tasks": len(result.tasks),
            "entries": len(result.ledger),
            "makespan": round(result.kpis.makespan, 2),
            "utilization": round(result.kpis.utilization, 4),
            "shortfall": round(result.kpis.total_shortfall, 2),
        }
    finally:
        reset_correlation_id(token)


def run_benchmark(args: argparse.Namespace) -> List[Dict[str, Any]]:
    mode = LevelingMode(args.mode)
    orders, catalog, config = generate_workload(
        order_count=args.orders,
        product_count=args.products,
        num_operatives=args.operatives,
        mode=mode,
    )
    if args.dataset is not None:
        data = _load_dataset(args.dataset)
        orders = convert_orders(data.get("orders", []))
        catalog = convert_catalog(data.get("products", []))

    results = []
    with profile_section("benchmark.total_run"):
        for iteration in range(1, max(1, args.iterations) + 1):
            results.append(_run_iteration(orders, catalog, config, iteration))
    return results


def profile_table(rows: List[Dict[str, Any]]) -> table.Table:
    profile = table.Table(title="Profile", style="dim", box=box.SIMPLE)
    profile.add_column("Section", style="cyan")
    profile.add_column("Calls", justify="right")
    profile.add_column("Total ms", justify="right")
    profile.add_column("Mean ms", justify="right")
    profile.add_column("p95 ms", justify="right")
    for row in rows[:15]:
        profile.add_row(
            f"{row['module']}.{row['name']}",
            str(row["calls"]),
            f"{row['wall_ms_total']:.2f}",
            f"{row['wall_ms_mean']:.3f}",
            f"{row['wall_ms_p95']:.3f}",
        )
    return profile


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--dataset", type=Path, default=None, help="JSON with 'orders' and 'products'")
    parser.add_argument("--orders", type=int, default=200)
    parser.add_argument("--products", type=int, default=20)
    parser.add_argument("--operatives", type=int, default=40)
    parser.add_argument("--mode", choices=[m.value for m in LevelingMode], default="whole_order")
    parser.add_argument("--iterations", type=int, default=3)
    args = parser.parse_args()

    console = get_console()
    results = run_benchmark(args)

    console.print("[bold cyan]Leveling benchmark summary[/bold cyan]")
    console.print(json.dumps(results, indent=2))

    profiler = Profiler.instance()
    if profile_enabled():
        console.print(profile_table(profiler.summary_rows()))
        profiler.flush()
    else:
        console.print(
            "[yellow]Warning:[/] Profiling artifacts were not generated because"
            " LEVELING_PROFILE was disabled."
        )


if __name__ == "__main__":
    main()
