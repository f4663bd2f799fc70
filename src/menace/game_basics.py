"""
Game basics: board representation, serialization, rules, winner/draw checks, validity.
Teaching notes:
- A board is a tuple of 9 cells in row-major order. X always starts.
- Boards are values: applying a move returns a new tuple.
- Identifiers use '_' for empty, 'A' for X and 'B' for O, so that the
  lexicographic order is A < B < _.
"""
from __future__ import annotations

from enum import Enum, IntEnum
from typing import Iterable, List, Tuple, Union

from .errors import IllegalMoveError

BOARD_SIZE = 9

WIN_PATTERNS = [
    [0, 1, 2], [3, 4, 5], [6, 7, 8],
    [0, 3, 6], [1, 4, 7], [2, 5, 8],
    [0, 4, 8], [2, 4, 6]
]


class Cell(IntEnum):
    EMPTY = 0
    X = 1
    O = 2

    @property
    def code(self) -> str:
        """Single character used in canonical identifiers."""
        return _CODES[self]

    @property
    def opponent(self) -> "Cell":
        if self is Cell.X:
            return Cell.O
        if self is Cell.O:
            return Cell.X
        raise ValueError("EMPTY has no opponent")

    @classmethod
    def parse(cls, value: Union["Cell", str, int, None]) -> "Cell":
        if isinstance(value, Cell):
            return value
        if value is None:
            return cls.EMPTY
        if isinstance(value, str):
            try:
                return _FROM_CHAR[value.upper()]
            except KeyError:
                raise ValueError(f"Unknown cell symbol: {value!r}") from None
        if isinstance(value, int) and not isinstance(value, bool):
            return cls(value)
        raise ValueError(f"Unknown cell value: {value!r}")


_CODES = {Cell.EMPTY: '_', Cell.X: 'A', Cell.O: 'B'}
_FROM_CHAR = {
    '_': Cell.EMPTY, '.': Cell.EMPTY, ' ': Cell.EMPTY, '-': Cell.EMPTY, '0': Cell.EMPTY,
    'A': Cell.X, 'X': Cell.X, '1': Cell.X,
    'B': Cell.O, 'O': Cell.O, '2': Cell.O,
}

Board = Tuple[Cell, ...]


class Result(Enum):
    X_WINS = 'X'
    O_WINS = 'O'
    DRAW = 'Draw'
    ONGOING = 'Ongoing'

    @property
    def is_terminal(self) -> bool:
        return self is not Result.ONGOING

    @classmethod
    def win_for(cls, player: Cell) -> "Result":
        if player is Cell.X:
            return cls.X_WINS
        if player is Cell.O:
            return cls.O_WINS
        raise ValueError("EMPTY cannot win")


def create_empty() -> Board:
    return (Cell.EMPTY,) * BOARD_SIZE


def parse_board(value: Union[str, Iterable]) -> Board:
    """Build a board from a 9-char string ("XX__O____") or a sequence of cells."""
    cells = [Cell.parse(v) for v in value]
    if len(cells) != BOARD_SIZE:
        raise ValueError(f"Board must have {BOARD_SIZE} cells, got {len(cells)}")
    return tuple(cells)


def serialize_board(board: Board) -> str:
    return ''.join(cell.code for cell in board)


def valid_moves(board: Board) -> List[int]:
    return [i for i, v in enumerate(board) if v is Cell.EMPTY]


def apply_move(board: Board, index: int, player: Cell) -> Board:
    if not isinstance(index, int) or not 0 <= index < BOARD_SIZE:
        raise IllegalMoveError(f"Position {index!r} is out of range")
    if board[index] is not Cell.EMPTY:
        raise IllegalMoveError(f"Position {index} is already occupied")
    if player is Cell.EMPTY:
        raise IllegalMoveError("Cannot place an empty mark")
    lst = list(board)
    lst[index] = player
    return tuple(lst)


def get_winner(board: Board) -> Cell:
    for a, b, c in WIN_PATTERNS:
        v = board[a]
        if v is not Cell.EMPTY and v == board[b] and v == board[c]:
            return v
    return Cell.EMPTY


def check_result(board: Board) -> Result:
    w = get_winner(board)
    if w is Cell.X:
        return Result.X_WINS
    if w is Cell.O:
        return Result.O_WINS
    if Cell.EMPTY not in board:
        return Result.DRAW
    return Result.ONGOING


def count_moves(board: Board) -> int:
    return sum(1 for v in board if v is not Cell.EMPTY)


def get_piece_counts(board: Board) -> Tuple[int, int]:
    return board.count(Cell.X), board.count(Cell.O)


def current_player(board: Board) -> Cell:
    x, o = get_piece_counts(board)
    return Cell.X if x == o else Cell.O


def is_valid_state(board: Board) -> bool:
    x_count, o_count = get_piece_counts(board)
    if not (x_count == o_count or x_count == o_count + 1):
        return False
    w = get_winner(board)
    if w is Cell.X and x_count != o_count + 1:
        return False
    if w is Cell.O and x_count != o_count:
        return False
    # no double winners
    def count_wins(p: Cell) -> int:
        return sum(1 for pat in WIN_PATTERNS if all(board[i] == p for i in pat))
    if count_wins(Cell.X) > 0 and count_wins(Cell.O) > 0:
        return False
    return True


def format_board(board: Board) -> str:
    display = ['.' if c is Cell.EMPTY else c.name for c in board]
    return '\n'.join(' '.join(display[r * 3:r * 3 + 3]) for r in range(3))
