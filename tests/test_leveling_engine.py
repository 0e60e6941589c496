import pytest

from leveling.models import Operative
from leveling.services.leveling_engine import LevelingEngine
from leveling.services.task_deriver import derive_tasks

from .fixtures import generate_workload
from .utils import (
    assert_capacity_and_demand,
    assert_saturation_order,
    make_operatives,
    make_task,
)


def test_task_split_across_two_operatives():
    task = make_task("T1", 100)
    operatives = make_operatives(2)

    ledger = LevelingEngine(epsilon=0.01).level([task], operatives)

    assert ledger.to_dict() == {"T1": {"Op 1": 60, "Op 2": 40}}
    assert ledger.operative_total("Op 1") == 60
    assert ledger.operative_summaries()[1].spare == 20


def test_second_task_under_assigned_when_fleet_is_full():
    tasks = [make_task("T1", 50), make_task("T2", 50)]
    operatives = make_operatives(1)

    ledger = LevelingEngine(epsilon=0.01).level(tasks, operatives)

    assert ledger.task_assignments("T1") == {"Op 1": 50}
    assert ledger.task_assignments("T2") == {"Op 1": 10}
    assert ledger.task_fulfillment("T2") == pytest.approx(0.2)
    assert ledger.task_shortfall("T2") == pytest.approx(40)
    assert [task.task_id for task in ledger.unfulfilled_tasks()] == ["T2"]


def test_exact_fit_saturates_every_operative():
    ledger = LevelingEngine(epsilon=0.01).level([make_task("T1", 180)], make_operatives(3))

    assert ledger.task_assignments("T1") == {"Op 1": 60, "Op 2": 60, "Op 3": 60}
    assert ledger.task_fulfillment("T1") == 1.0
    assert ledger.utilization == pytest.approx(1.0)


def test_zero_requirement_produces_no_entries():
    ledger = LevelingEngine(epsilon=0.01).level([make_task("T0", 0)], make_operatives(2))

    assert ledger.to_dict() == {}
    assert ledger.task_fulfillment("T0") == 1.0


def test_requirement_within_epsilon_is_skipped():
    ledger = LevelingEngine(epsilon=0.01).level([make_task("T1", 0.005)], make_operatives(1))

    assert len(ledger) == 0


def test_full_operative_is_skipped_for_later_tasks():
    tasks = [make_task("T1", 60), make_task("T2", 30)]

    ledger = LevelingEngine(epsilon=0.01).level(tasks, make_operatives(2))

    assert ledger.task_assignments("T2") == {"Op 2": 30}
    assert not ledger.has("T2", "Op 1")


def test_roster_order_is_the_priority_order():
    operatives = [Operative("Op B", 30), Operative("Op A", 60)]

    ledger = LevelingEngine(epsilon=0.01).level([make_task("T1", 50)], operatives)

    assert ledger.task_assignments("T1") == {"Op B": 30, "Op A": 20}


def test_empty_task_list_gives_empty_ledger():
    ledger = LevelingEngine(epsilon=0.01).level([], make_operatives(3))

    assert ledger.to_dict() == {}
    assert ledger.makespan == 0


def test_zero_capacity_assigns_nothing():
    tasks = [make_task("T1", 20), make_task("T2", 5)]

    ledger = LevelingEngine(epsilon=0.01).level(tasks, [Operative("Op 1", 0.0)])

    assert ledger.task_assigned("T1") == 0
    assert ledger.task_assigned("T2") == 0
    assert ledger.total_shortfall == pytest.approx(25)


def test_no_operatives_assigns_nothing():
    ledger = LevelingEngine(epsilon=0.01).level([make_task("T1", 20)], [])

    assert ledger.total_assigned == 0
    assert ledger.utilization == 0


def test_uneven_tasks_respect_every_invariant():
    tasks = [make_task(f"T{i}", 7.3 * (i % 5 + 1)) for i in range(40)]
    operatives = make_operatives(6, capacity=45.5)

    ledger = LevelingEngine(epsilon=0.01).level(tasks, operatives)

    assert_capacity_and_demand(ledger)
    assert_saturation_order(ledger, operatives)
    per_task = sum(ledger.task_assigned(task.task_id) for task in tasks)
    per_operative = sum(ledger.operative_total(op.operative_id) for op in operatives)
    assert per_task == pytest.approx(per_operative)


def test_synthetic_workload_invariants_and_idempotence():
    orders, catalog, config = generate_workload(order_count=30, num_operatives=25)
    tasks = derive_tasks(orders, catalog, [order.order_id for order in orders], config)
    operatives = make_operatives(config.num_operatives, capacity=config.operative_capacity)
    engine = LevelingEngine(epsilon=config.epsilon)

    first = engine.level(tasks, operatives)
    second = engine.level(tasks, operatives)

    assert first == second
    assert first.to_dict() == second.to_dict()
    assert_capacity_and_demand(first)
    assert_saturation_order(first, operatives)


def test_shortfall_is_reported_not_raised(caplog):
    with caplog.at_level("WARNING"):
        ledger = LevelingEngine(epsilon=0.01).level([make_task("T1", 500)], make_operatives(2))

    assert ledger.total_shortfall == pytest.approx(380)
    assert "exceeds fleet capacity" in caplog.text
