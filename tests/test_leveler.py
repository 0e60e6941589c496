import pytest

from leveling.common.errors import LevelingInputError
from leveling.models import (
    LevelingConfig,
    LevelingMode,
    Operative,
    OrderItem,
    ProductionOrder,
    SchedulingRequest,
    TaskOrdering,
)
from leveling.services.leveler import GreedyLeveler, LevelingService, covered_units
from leveling.services.repository import InMemoryLevelingRepository
from leveling.services.summary import additional_operatives_needed, build_summary
from leveling.services.task_deriver import compute_operation_loads
from leveling.utils.ledger_logger import LedgerLogger

from .utils import (
    assert_capacity_and_demand,
    assert_saturation_order,
    catalog,
    make_orders,
    make_task,
)


def whole_order(num_operatives: int) -> LevelingConfig:
    return LevelingConfig(
        num_operatives=num_operatives,
        period_length=60,
        work_time=480,
        mode=LevelingMode.WHOLE_ORDER,
        ordering=TaskOrdering.DERIVATION,
    )


def test_whole_order_run_fills_the_shift():
    result = LevelingService.run(make_orders(), catalog, ["ORD-002"], whole_order(4))
    ledger = result.ledger

    totals = [ledger.operative_total(op.operative_id) for op in ledger.operatives]
    assert totals == pytest.approx([480, 480, 480, 315])
    assert ledger.task_assignments("ORD-002-REF002-p4") == {"Op 1": 350}
    assert ledger.task_assignments("ORD-002-REF002-p5") == pytest.approx(
        {"Op 1": 130, "Op 2": 480, "Op 3": 155}
    )
    assert ledger.task_assignments("ORD-002-REF002-p6") == pytest.approx({"Op 3": 325, "Op 4": 315})
    assert result.producer == "greedy"
    assert result.kpis.total_shortfall == pytest.approx(0)
    assert result.kpis.makespan == pytest.approx(480)
    # 50 jeans over an 8 hour makespan
    assert result.kpis.units_per_hour == pytest.approx(50 / 8)
    assert "Every task is fully assigned." in result.summary
    assert "165.00 min of operative time remain unused." in result.summary


def test_shortfall_run_recommends_more_operatives():
    result = LevelingService.run(make_orders(), catalog, ["ORD-002"], whole_order(2))

    assert result.kpis.total_shortfall == pytest.approx(1755 - 960)
    assert additional_operatives_needed(result.ledger) == 2
    assert "Add 2 more operative(s)" in result.summary
    assert "ORD-002-REF002-p5" in result.summary
    assert_capacity_and_demand(result.ledger)


def test_period_run_balances_one_period():
    config = LevelingConfig(num_operatives=4, period_length=60, mode=LevelingMode.PERIOD)

    result = LevelingService.run(make_orders(), catalog, ["ORD-001"], config)

    assert result.ledger.total_capacity == 240
    assert result.ledger.total_required == pytest.approx(240)
    assert result.kpis.utilization == pytest.approx(1.0)
    assert result.kpis.units_per_hour == pytest.approx(240 / 17.8)
    assert [stat.description for stat in result.product_stats] == ["T-Shirt"]
    assert_saturation_order(result.ledger, result.ledger.operatives)


def test_run_tasks_follow_configured_ordering():
    config = LevelingConfig(
        num_operatives=6,
        period_length=60,
        mode=LevelingMode.WHOLE_ORDER,
        ordering=TaskOrdering.SEQUENCE,
    )

    result = LevelingService.run(make_orders(), catalog, ["ORD-001", "ORD-003"], config)

    assert [task.task_id for task in result.tasks][:2] == ["ORD-001-REF001-p1", "ORD-003-REF001-p1"]
    assert result.ledger.tasks == result.tasks


def test_default_ordering_comes_from_environment(monkeypatch):
    monkeypatch.setenv("LEVELING_TASK_ORDER", "sequence")

    config = LevelingConfig(num_operatives=1, period_length=60)

    assert config.ordering is TaskOrdering.SEQUENCE


def test_covered_units_by_mode():
    stats_config = whole_order(4)
    result = LevelingService.run(make_orders(), catalog, ["ORD-001", "ORD-003"], stats_config)

    assert covered_units(result.product_stats, stats_config) == 200
    period = LevelingConfig(num_operatives=4, period_length=60, mode=LevelingMode.PERIOD)
    assert covered_units(result.product_stats, period) == pytest.approx(
        sum(stat.units_per_period for stat in result.product_stats)
    )


def test_run_persists_each_order_slice():
    repository = InMemoryLevelingRepository()

    LevelingService.run(
        make_orders(), catalog, ["ORD-001", "ORD-002"], whole_order(8), repository=repository
    )

    assert sorted(repository.order_ids()) == ["ORD-001", "ORD-002"]
    first = repository.load_order_run("ORD-001")
    assert set(first.assignments) == {
        "ORD-001-REF001-p1",
        "ORD-001-REF001-p2",
        "ORD-001-REF001-p3",
    }
    assert [stat.description for stat in first.stats] == ["T-Shirt", "Jeans"]
    assert repository.load_order_run("ORD-003") is None


def test_stored_run_is_a_copy():
    repository = InMemoryLevelingRepository()
    LevelingService.run(make_orders(), catalog, ["ORD-001"], whole_order(4), repository=repository)

    repository.load_order_run("ORD-001").assignments.clear()

    assert repository.load_order_run("ORD-001").assignments


def test_run_rejects_empty_selection():
    with pytest.raises(LevelingInputError, match="at least one task"):
        LevelingService.run(make_orders(), catalog, [], whole_order(4))


def test_run_rejects_missing_operatives():
    with pytest.raises(LevelingInputError, match="at least one operative"):
        LevelingService.run(make_orders(), catalog, ["ORD-001"], whole_order(0))


def test_run_rejects_non_positive_period():
    config = LevelingConfig(num_operatives=2, period_length=0, mode=LevelingMode.WHOLE_ORDER)

    with pytest.raises(LevelingInputError, match="period length"):
        LevelingService.run(make_orders(), catalog, ["ORD-001"], config)


def test_greedy_leveler_on_a_request():
    config = whole_order(4)
    tasks = LevelingService.run(make_orders(), catalog, ["ORD-002"], config).tasks
    request = LevelingService.build_request(tasks, config)

    result = GreedyLeveler().level(request)

    assert [op.operative_id for op in request.operatives] == ["Op 1", "Op 2", "Op 3", "Op 4"]
    assert result.summary == build_summary(result.ledger)
    assert result.kpis.units_per_hour == 0


def test_idle_operatives_are_listed_in_summary():
    result = LevelingService.run(make_orders(), catalog, ["ORD-002"], whole_order(6))

    assert "Op 5, Op 6" in result.summary


def test_result_tables_render(console):
    result = LevelingService.run(make_orders(), catalog, ["ORD-001", "ORD-003"], whole_order(4))

    console.print(LedgerLogger.product_stats_table(result.product_stats))
    console.print(LedgerLogger.assignment_table(result.ledger))
    console.print(LedgerLogger.operative_load_table(result.ledger))
    console.print(LedgerLogger.kpi_table(result))
    output = console.export_text()

    assert "Task Assignment" in output
    assert "Polo Shirt" in output
    assert "Attach Collar" in output
    assert "Op 4" in output
    assert "greedy" in output


def test_operation_loads_and_full_report(console, capsys):
    orders = make_orders()
    result = LevelingService.run(orders, catalog, ["ORD-002"], whole_order(2))

    console.print(LedgerLogger.operation_load_table(compute_operation_loads(orders, catalog, ["ORD-002"])))
    assert "Sew Legs" in console.export_text()

    LedgerLogger.print(result, title="ORD-002")
    printed = capsys.readouterr().out
    assert "ORD-002" in printed
    assert "Add 2 more operative(s)" in printed


def test_repeated_product_lines_keep_the_demand_bound():
    orders = [ProductionOrder("ORD-9", "Import", [OrderItem("REF002", 10), OrderItem("REF002", 10)])]

    result = LevelingService.run(orders, catalog, ["ORD-9"], whole_order(10))

    assert len(result.tasks) == 3
    assert result.ledger.violations() == []
    assert result.ledger.task_fulfillment("ORD-9-REF002-p4") == pytest.approx(1.0)
    assert result.kpis.total_required == pytest.approx(702.0)


def test_greedy_leveler_rejects_duplicate_task_ids():
    request = SchedulingRequest(
        tasks=(make_task("T1", 10), make_task("T1", 20)),
        operatives=(Operative("Op 1", 60),),
        config=whole_order(1),
    )

    with pytest.raises(LevelingInputError, match="Duplicate task id 'T1'"):
        GreedyLeveler().level(request)


def test_greedy_leveler_rejects_zero_capacity_operative():
    request = SchedulingRequest(
        tasks=(make_task("T1", 10),),
        operatives=(Operative("Op 1", 0),),
        config=whole_order(1),
    )

    with pytest.raises(LevelingInputError, match="non-positive capacity"):
        GreedyLeveler().level(request)


def test_greedy_leveler_rejects_negative_task_time():
    request = SchedulingRequest(
        tasks=(make_task("T1", 10), make_task("T2", -5)),
        operatives=(Operative("Op 1", 60),),
        config=whole_order(1),
    )

    with pytest.raises(LevelingInputError, match="'T2' has a negative time requirement"):
        GreedyLeveler().level(request)
