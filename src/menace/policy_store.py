"""
Matchbox memory: canonical state id -> bead counts per cell.
Teaching notes:
- A matchbox is created the first time its canonical state is visited, with
  beads on every empty cell. Early turns get more beads than late turns.
- Moves are drawn in proportion to beads (probabilistic) or by the largest
  pile (greedy), always restricted to the cells that are legal right now.
- Training adds beads after wins and draws and removes one after a loss,
  never going below zero.
"""
from __future__ import annotations

import json
import logging
import threading
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from .config import MenaceConfig
from .errors import DeserializationError, NoLegalMoveError
from .game_basics import BOARD_SIZE, Board, Cell, count_moves, parse_board, serialize_board
from .symmetry import TRANSFORMS, canonicalize

logger = logging.getLogger(__name__)


class Outcome(Enum):
    WIN = 'win'
    DRAW = 'draw'
    LOSS = 'loss'


class PlayStyle(Enum):
    PROBABILISTIC = 'probabilistic'
    GREEDY = 'greedy'

    @classmethod
    def parse(cls, value: Union["PlayStyle", str]) -> "PlayStyle":
        if isinstance(value, PlayStyle):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Unknown play style: {value!r}")
        key = value.strip().lower()
        if key == 'master':
            return cls.GREEDY
        try:
            return cls(key)
        except ValueError:
            raise ValueError(f"Unknown play style: {value!r}") from None


class Matchbox:
    """Bead counts for one canonical state plus their cached total.

    Read-only from the outside; the owning PolicyStore is the only writer.
    """

    __slots__ = ('_beads', '_total')

    def __init__(self, beads: Sequence[int]):
        self._beads = [int(b) for b in beads]
        self._total = sum(self._beads)

    @property
    def beads(self) -> Tuple[int, ...]:
        return tuple(self._beads)

    @property
    def total(self) -> int:
        return self._total

    def __getitem__(self, index: int) -> int:
        return self._beads[index]

    def is_exhausted(self) -> bool:
        return self._total == 0

    def _add(self, index: int, delta: int) -> int:
        old = self._beads[index]
        new = max(0, old + delta)
        self._beads[index] = new
        applied = new - old
        self._total += applied
        return applied

    def __repr__(self) -> str:
        return f"Matchbox(beads={self._beads}, total={self._total})"


class PolicyStore:
    def __init__(self, config: Optional[MenaceConfig] = None, rng: Optional[np.random.Generator] = None):
        self.config = config or MenaceConfig()
        self._rng = rng if rng is not None else np.random.default_rng()
        self._boxes: Dict[str, Matchbox] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._boxes)

    def __contains__(self, canonical_id: str) -> bool:
        return canonical_id in self._boxes

    def size(self) -> int:
        return len(self._boxes)

    def get(self, canonical_id: str) -> Optional[Matchbox]:
        return self._boxes.get(canonical_id)

    def items(self) -> List[Tuple[str, Tuple[int, ...]]]:
        """Snapshot of (canonical id, beads) pairs sorted by id."""
        with self._lock:
            return [(k, self._boxes[k].beads) for k in sorted(self._boxes)]

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._boxes))

    def seed_beads(self, canonical_board: Board) -> List[int]:
        turn = 1 + count_moves(canonical_board)
        count = self.config.schedule.beads_for_turn(turn)
        return [count if cell is Cell.EMPTY else 0 for cell in canonical_board]

    def get_or_create(self, canonical_id: str, canonical_board: Optional[Board] = None) -> Matchbox:
        with self._lock:
            box = self._boxes.get(canonical_id)
            if box is not None:
                return box
            if canonical_board is None:
                canonical_board = parse_board(canonical_id)
            elif serialize_board(canonical_board) != canonical_id:
                raise ValueError(
                    f"Board {serialize_board(canonical_board)} does not match state id {canonical_id}"
                )
            box = Matchbox(self.seed_beads(canonical_board))
            self._boxes[canonical_id] = box
            logger.debug("new matchbox %s beads=%s", canonical_id, box.beads)
            return box

    def select_move(self, matchbox: Matchbox, legal_canonical_indices: Sequence[int],
                    style: PlayStyle = PlayStyle.PROBABILISTIC) -> int:
        legal = list(legal_canonical_indices)
        if not legal:
            raise NoLegalMoveError("No valid moves available")
        for i in legal:
            if not 0 <= i < BOARD_SIZE:
                raise ValueError(f"Cell index out of range: {i}")
        style = PlayStyle.parse(style)
        with self._lock:
            if style is PlayStyle.GREEDY:
                best = max(matchbox[i] for i in legal)
                tied = [i for i in legal if matchbox[i] == best]
                return self._uniform(tied)
            total = sum(matchbox[i] for i in legal)
            if total == 0:
                return self._uniform(legal)
            pick = int(self._rng.integers(total))
            cumulative = 0
            for i in legal:
                cumulative += matchbox[i]
                if pick < cumulative:
                    return i
        # pick < total always lands inside the walk
        raise AssertionError("weighted draw fell outside the bead mass")

    def _uniform(self, candidates: List[int]) -> int:
        return candidates[int(self._rng.integers(len(candidates)))]

    def reward_for(self, outcome: Outcome) -> int:
        if outcome is Outcome.WIN:
            return self.config.win_reward
        if outcome is Outcome.DRAW:
            return self.config.draw_reward
        if outcome is Outcome.LOSS:
            return -self.config.loss_penalty
        raise ValueError(f"Unknown outcome: {outcome!r}")

    def update(self, canonical_id: str, cell_index: int, outcome: Outcome) -> int:
        """Apply one training step and return the bead delta actually applied."""
        delta = self.reward_for(outcome)
        with self._lock:
            box = self._boxes.get(canonical_id)
            if box is None:
                raise KeyError(f"Matchbox not found for state: {canonical_id}")
            if not 0 <= cell_index < BOARD_SIZE:
                raise ValueError(f"Cell index out of range: {cell_index}")
            if canonical_id[cell_index] != Cell.EMPTY.code:
                raise ValueError(f"Cell {cell_index} is occupied in state {canonical_id}")
            return box._add(cell_index, delta)

    def exhausted_states(self) -> List[str]:
        with self._lock:
            return sorted(k for k, box in self._boxes.items() if box.is_exhausted())

    def reset(self) -> None:
        with self._lock:
            self._boxes.clear()

    def export(self) -> str:
        with self._lock:
            records = [
                {'canonical_id': k, 'weights': list(box.beads), 'weight_sum': box.total}
                for k, box in sorted(self._boxes.items())
            ]
        return json.dumps(records)

    def import_(self, blob: Union[str, bytes]) -> None:
        """Replace the whole memory with an exported blob.

        Parsing happens before the swap, so a malformed blob leaves the
        current memory untouched.
        """
        boxes = parse_memory(blob)
        with self._lock:
            self._boxes = boxes
        logger.debug("imported %d matchboxes", len(boxes))


def _field(record: Dict[str, Any], *names: str) -> Any:
    for name in names:
        if name in record:
            return record[name]
    raise DeserializationError(f"Record is missing field {names[0]!r}: {record!r}")


def _parse_record(record: Any) -> Tuple[str, List[int]]:
    if not isinstance(record, dict):
        raise DeserializationError(f"Memory record must be an object, got {type(record).__name__}")
    state = _field(record, 'canonical_id', 'state')
    weights = _field(record, 'weights', 'beads')
    if not isinstance(state, str) or len(state) != BOARD_SIZE:
        raise DeserializationError(f"Invalid state id: {state!r}")
    try:
        board = parse_board(state)
    except ValueError as e:
        raise DeserializationError(f"Invalid state id {state!r}: {e}") from e
    if (not isinstance(weights, list) or len(weights) != BOARD_SIZE
            or any(isinstance(w, bool) or not isinstance(w, int) or w < 0 for w in weights)):
        raise DeserializationError(f"Weights for {state!r} must be 9 non-negative integers: {weights!r}")
    for i, cell in enumerate(board):
        if cell is not Cell.EMPTY and weights[i] != 0:
            raise DeserializationError(f"State {state!r} has beads on occupied cell {i}")
    declared = record.get('weight_sum', record.get('totalBeads'))
    if declared is not None and declared != sum(weights):
        logger.debug("state %s: weight_sum %r recomputed as %d", state, declared, sum(weights))

    canonical_id, k = canonicalize(board)
    if canonical_id != serialize_board(board):
        perm = TRANSFORMS[k]
        moved = [0] * BOARD_SIZE
        for i, w in enumerate(weights):
            moved[perm[i]] = w
        logger.debug("state %s re-keyed as %s", state, canonical_id)
        weights = moved
    return canonical_id, list(weights)


def parse_memory(blob: Union[str, bytes]) -> Dict[str, Matchbox]:
    try:
        data = json.loads(blob)
    except (TypeError, ValueError, RecursionError) as e:
        raise DeserializationError(f"Memory blob is not valid JSON: {e}") from e
    if not isinstance(data, list):
        raise DeserializationError("Memory blob must be a JSON list of records")
    boxes: Dict[str, Matchbox] = {}
    for record in data:
        canonical_id, weights = _parse_record(record)
        if canonical_id in boxes:
            raise DeserializationError(f"Duplicate state in memory blob: {canonical_id}")
        boxes[canonical_id] = Matchbox(weights)
    return boxes
