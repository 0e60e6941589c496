from typing import List, Sequence

from leveling.models import CatalogEntry, Operative, OrderItem, ProductionOrder, Task
from leveling.services.assignment_ledger import AssignmentLedger


# MARK: Catalog & orders mirroring the dashboard sample data

catalog = [
    CatalogEntry("p1", "REF001", "T-Shirt", "Cut Fabric", "Cutter", 1, 5.5, "Tops", "P01"),
    CatalogEntry("p2", "REF001", "T-Shirt", "Sew Sleeves", "Sewing M1", 2, 8.2, "Tops", "P01"),
    CatalogEntry("p3", "REF001", "T-Shirt", "Attach Collar", "Sewing M2", 3, 4.1, "Tops", "P01"),
    CatalogEntry("p4", "REF002", "Jeans", "Cut Denim", "Cutter", 1, 7.0, "Bottoms", "P02"),
    CatalogEntry("p5", "REF002", "Jeans", "Sew Legs", "Heavy-Duty S1", 2, 15.3, "Bottoms", "P02"),
    CatalogEntry("p6", "REF002", "Jeans", "Add Pockets", "Heavy-Duty S2", 3, 12.8, "Bottoms", "P02"),
    CatalogEntry("p7", "REF003", "Polo Shirt", "Cut Fabric", "Cutter", 1, 6.0, "Tops", "P03"),
    CatalogEntry("p8", "REF003", "Polo Shirt", "Sew Body", "Sewing M1", 2, 9.5, "Tops", "P03"),
]


def make_orders() -> List[ProductionOrder]:
    return [
        ProductionOrder("ORD-001", "Fashion Co.", [OrderItem("REF001", 100)], "2024-08-15", 2),
        ProductionOrder("ORD-002", "Retail Giant", [OrderItem("REF002", 50)], "2024-08-20", 1),
        ProductionOrder(
            "ORD-003",
            "Boutique Store",
            [OrderItem("REF003", 75), OrderItem("REF001", 25)],
            "2024-08-18",
            3,
        ),
    ]


# MARK: Builders


def make_task(task_id: str, required_time: float, operation: str = "Sew", sequence: int = 1) -> Task:
    return Task(
        task_id=task_id,
        order_id="ORD-T",
        reference="REF-T",
        product_description="Test Garment",
        operation=operation,
        machine="Sewing M1",
        sequence_position=sequence,
        unit_time=1.0,
        required_time=required_time,
    )


def make_operatives(count: int, capacity: float = 60.0) -> List[Operative]:
    return [Operative(operative_id=f"Op {i + 1}", capacity=capacity) for i in range(count)]


# MARK: Property checks


def assert_saturation_order(ledger: AssignmentLedger, operatives: Sequence[Operative]) -> None:
    """No operative holds work while an earlier one still has spare capacity."""
    for index, operative in enumerate(operatives):
        if ledger.operative_total(operative.operative_id) < operative.capacity - ledger.epsilon:
            for later in operatives[index + 1:]:
                assert ledger.operative_total(later.operative_id) == 0, (
                    f"{later.operative_id} loaded while {operative.operative_id} had spare capacity"
                )
            return


def assert_capacity_and_demand(ledger: AssignmentLedger) -> None:
    assert ledger.violations() == []
