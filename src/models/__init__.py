from .defaults import DEFAULT_SHAPES, get_default_shape
from .repair import ParseOutcome, RepairAttempt, RepairStage

__all__ = [
    "RepairStage",
    "RepairAttempt",
    "ParseOutcome",
    "DEFAULT_SHAPES",
    "get_default_shape",
]
