"""Exceptions raised by leveling services.

Business conditions (capacity shortfall, spare capacity, clamped edits) are
reported through results and never raised.
"""


class LevelingError(Exception):
    """Base class for leveling failures."""


class LevelingInputError(LevelingError, ValueError):
    """Structurally invalid leveling input, detected before the run starts."""


class AssistantLevelerError(LevelingError):
    """The external assistant could not be reached or answered with garbage."""


__all__ = ["LevelingError", "LevelingInputError", "AssistantLevelerError"]
