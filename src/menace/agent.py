"""
MENACE agent: one decision at a time, trained once per finished game.

A decision goes through canonicalize -> matchbox lookup -> bead draw ->
inverse mapping, and leaves a DecisionRecord behind. Training replays the
records of the finished game against the matchbox memory.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple, Union

import numpy as np

from .config import MenaceConfig
from .errors import InvalidMappingError, NoLegalMoveError
from .game_basics import Board, Cell, Result, check_result, parse_board, valid_moves
from .policy_store import Matchbox, Outcome, PlayStyle, PolicyStore
from .symmetry import TRANSFORMS, canonicalize, map_canonical_to_actual, transform_board

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecisionRecord:
    canonical_id: str
    canonical_move: int
    actual_move: int
    transform_index: int


@dataclass
class TrainingSummary:
    outcome: Outcome
    applied: int = 0
    skipped: int = 0
    exhausted: List[str] = field(default_factory=list)


def parse_result(value: Union[Result, Cell, str]) -> Result:
    if isinstance(value, Result):
        return value
    if isinstance(value, Cell):
        return Result.win_for(value)
    key = value.strip()
    for r in Result:
        if key.lower() == r.value.lower():
            return r
    return Result.win_for(Cell.parse(key))


class MenaceAgent:
    """Learner bound to one symbol, backed by a (possibly shared) matchbox memory."""

    def __init__(
        self,
        symbol: Union[Cell, str],
        config: Optional[MenaceConfig] = None,
        store: Optional[PolicyStore] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        symbol = Cell.parse(symbol)
        if symbol is Cell.EMPTY:
            raise ValueError("Agent symbol must be X or O")
        self.symbol = symbol
        self.store = store if store is not None else PolicyStore(config, rng)
        self._history: List[DecisionRecord] = []

    @property
    def history(self) -> Tuple[DecisionRecord, ...]:
        return tuple(self._history)

    def last_decision(self) -> Optional[DecisionRecord]:
        return self._history[-1] if self._history else None

    def outcome_for(self, result: Union[Result, Cell, str]) -> Outcome:
        result = parse_result(result)
        if result is Result.ONGOING:
            raise ValueError("Cannot train on an unfinished game")
        if result is Result.DRAW:
            return Outcome.DRAW
        return Outcome.WIN if result is Result.win_for(self.symbol) else Outcome.LOSS

    def decide(self, board: Union[Board, str, Iterable], style: Union[PlayStyle, str] = PlayStyle.PROBABILISTIC) -> int:
        board = parse_board(board)
        if check_result(board).is_terminal:
            raise NoLegalMoveError("Game is already over")
        legal = valid_moves(board)

        canonical_id, k = canonicalize(board)
        canonical = transform_board(board, k)
        perm = TRANSFORMS[k]
        legal_canonical = [perm[i] for i in legal]
        # symmetries preserve occupancy, so both views agree on the empty cells
        if sorted(legal_canonical) != valid_moves(canonical):
            raise InvalidMappingError(
                f"Legal moves {legal} map to {legal_canonical}, canonical board {canonical_id} disagrees"
            )

        box = self.store.get_or_create(canonical_id, canonical)
        canonical_move = self.store.select_move(box, legal_canonical, style)
        actual_move = map_canonical_to_actual(canonical_move, k)
        if board[actual_move] is not Cell.EMPTY:
            raise InvalidMappingError(
                f"Canonical move {canonical_move} (transform {k}) maps to occupied cell {actual_move}"
            )

        self._history.append(DecisionRecord(canonical_id, canonical_move, actual_move, k))
        return actual_move

    def train(self, final_result: Union[Result, Cell, str]) -> TrainingSummary:
        """Apply the game result to every recorded decision, then forget the game."""
        try:
            outcome = self.outcome_for(final_result)
            summary = TrainingSummary(outcome)
            for record in self._history:
                try:
                    self.store.update(record.canonical_id, record.canonical_move, outcome)
                except (KeyError, ValueError) as e:
                    logger.warning("skipping training record %s: %s", record, e)
                    summary.skipped += 1
                    continue
                summary.applied += 1
                box = self.store.get(record.canonical_id)
                if box is not None and box.is_exhausted() and record.canonical_id not in summary.exhausted:
                    summary.exhausted.append(record.canonical_id)
            return summary
        finally:
            self._history = []

    def reset_history(self) -> None:
        self._history = []

    def reset_memory(self) -> None:
        self.store.reset()
        self._history = []

    def export_memory(self) -> str:
        return self.store.export()

    def import_memory(self, blob: Union[str, bytes]) -> None:
        self.store.import_(blob)

    def memory_size(self) -> int:
        return self.store.size()

    def matchbox(self, canonical_id: str) -> Optional[Matchbox]:
        return self.store.get(canonical_id)


def new_agent(
    symbol: Union[Cell, str],
    config: Optional[MenaceConfig] = None,
    seed: Optional[int] = None,
    store: Optional[PolicyStore] = None,
) -> MenaceAgent:
    if store is None:
        store = PolicyStore(config, np.random.default_rng(seed))
    return MenaceAgent(symbol, store=store)
