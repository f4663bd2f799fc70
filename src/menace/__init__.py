"""menace package.

A matchbox learner for tic-tac-toe: symmetry reduction, bead memory,
the deciding agent and a training loop.

Convenience imports are exposed for common workflows.
"""

from .agent import DecisionRecord, MenaceAgent, new_agent
from .config import BeadSchedule, MenaceConfig
from .errors import (
    DeserializationError,
    IllegalMoveError,
    InvalidMappingError,
    MenaceError,
    NoLegalMoveError,
)
from .game_basics import Cell, Result, apply_move, check_result, create_empty, valid_moves
from .policy_store import Outcome, PlayStyle, PolicyStore
from .symmetry import canonicalize, map_canonical_to_actual

__all__ = [
    "new_agent",
    "MenaceAgent",
    "DecisionRecord",
    "MenaceConfig",
    "BeadSchedule",
    "PolicyStore",
    "PlayStyle",
    "Outcome",
    "Cell",
    "Result",
    "create_empty",
    "valid_moves",
    "apply_move",
    "check_result",
    "canonicalize",
    "map_canonical_to_actual",
    "MenaceError",
    "IllegalMoveError",
    "NoLegalMoveError",
    "InvalidMappingError",
    "DeserializationError",
]
