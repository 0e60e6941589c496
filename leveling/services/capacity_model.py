from typing import Dict, Iterable, List

from leveling.common.errors import LevelingInputError
from leveling.models import LevelingConfig, Operative


def operative_label(position: int) -> str:
    """Positional label of the ``position``-th operative (1-based)."""
    return f"Op {position}"


class CapacityModel:
    """Fixed operative roster with per-period load tracking.

    The roster order is the priority order used while leveling: the first
    operative is always saturated before the second receives any work.
    """

    def __init__(self, operatives: Iterable[Operative]):
        self.operatives: List[Operative] = list(operatives)
        self.operatives_by_id: Dict[str, Operative] = {}
        for operative in self.operatives:
            if operative.operative_id in self.operatives_by_id:
                raise LevelingInputError(
                    f"Duplicate operative id '{operative.operative_id}' in roster"
                )
            self.operatives_by_id[operative.operative_id] = operative
        self._load: Dict[str, float] = {op.operative_id: 0.0 for op in self.operatives}

    @classmethod
    def from_config(cls, config: LevelingConfig) -> "CapacityModel":
        """Build ``Op 1`` .. ``Op N`` with the configured per-operative capacity."""
        capacity = config.operative_capacity
        return cls(
            Operative(operative_id=operative_label(index + 1), capacity=capacity)
            for index in range(max(config.num_operatives, 0))
        )

    def __len__(self) -> int:
        return len(self.operatives)

    def __iter__(self):
        return iter(self.operatives)

    @property
    def total_capacity(self) -> float:
        return sum(op.capacity for op in self.operatives)

    def capacity(self, operative_id: str) -> float:
        return self.operatives_by_id[operative_id].capacity

    def load(self, operative_id: str) -> float:
        return self._load[operative_id]

    def available(self, operative_id: str) -> float:
        return self.operatives_by_id[operative_id].capacity - self._load[operative_id]

    def book(self, operative_id: str, minutes: float) -> None:
        """Add ``minutes`` to the operative's load. No bound check is made here."""
        self._load[operative_id] += minutes

    def reset(self) -> None:
        for operative_id in self._load:
            self._load[operative_id] = 0.0
