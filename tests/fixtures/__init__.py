"""Helper fixtures for constructing large deterministic leveling workloads."""

from .synthetic_workloads import (
    generate_synthetic_catalog,
    generate_synthetic_orders,
    generate_workload,
)

__all__ = [
    "generate_synthetic_catalog",
    "generate_synthetic_orders",
    "generate_workload",
]
