"""
Symmetry and canonicalization for Tic-Tac-Toe.
Teaching notes:
- There are 8 symmetries (the dihedral group of the square). Using them reduces redundancy.
- We canonicalize a board by taking the lexicographically smallest image among all symmetries.
- Actions (cell indices) transform with the board; we precompute index maps and their inverses.

Index layout:
    0 1 2
    3 4 5
    6 7 8

Transform k sends the mark at actual index i to index TRANSFORMS[k][i] of the image,
so a move chosen on the canonical board is replayed on the actual board through
INVERSE_TRANSFORMS.
"""
from __future__ import annotations

from functools import lru_cache
from typing import List, Tuple

from .errors import InvalidMappingError
from .game_basics import BOARD_SIZE, Board, serialize_board

ALL_SYMS = ['id', 'rot90', 'rot180', 'rot270', 'hflip', 'hflip_rot90', 'hflip_rot180', 'hflip_rot270']

_IDENTITY = (0, 1, 2, 3, 4, 5, 6, 7, 8)
# clockwise quarter turn: top-left corner goes to top-right
_ROT90 = (2, 5, 8, 1, 4, 7, 0, 3, 6)
_ROT180 = (8, 7, 6, 5, 4, 3, 2, 1, 0)
_ROT270 = (6, 3, 0, 7, 4, 1, 8, 5, 2)
# left-right mirror
_HFLIP = (2, 1, 0, 5, 4, 3, 8, 7, 6)


def _compose(outer: Tuple[int, ...], inner: Tuple[int, ...]) -> Tuple[int, ...]:
    return tuple(outer[inner[i]] for i in range(BOARD_SIZE))


def _invert(perm: Tuple[int, ...]) -> Tuple[int, ...]:
    inv = [None] * BOARD_SIZE  # type: List
    for i, j in enumerate(perm):
        inv[j] = i
    if any(v is None for v in inv):
        raise InvalidMappingError(f"Transform is not a permutation: {perm}")
    return tuple(inv)


TRANSFORMS: Tuple[Tuple[int, ...], ...] = (
    _IDENTITY,
    _ROT90,
    _ROT180,
    _ROT270,
    _HFLIP,
    _compose(_ROT90, _HFLIP),
    _compose(_ROT180, _HFLIP),
    _compose(_ROT270, _HFLIP),
)

INVERSE_TRANSFORMS: Tuple[Tuple[int, ...], ...] = tuple(_invert(p) for p in TRANSFORMS)


def transform_board(board: Board, transform_index: int) -> Board:
    perm = TRANSFORMS[transform_index]
    image = [None] * BOARD_SIZE  # type: List
    for i, cell in enumerate(board):
        image[perm[i]] = cell
    return tuple(image)


def apply_action_transform(action: int, transform_index: int) -> int:
    """Map an actual-board index to its index on the transformed board."""
    return TRANSFORMS[transform_index][action]


@lru_cache(maxsize=None)
def _canonicalize_tuple(board_t: tuple) -> Tuple[str, int]:
    best = serialize_board(board_t)
    best_k = 0
    for k in range(1, len(TRANSFORMS)):
        candidate = serialize_board(transform_board(board_t, k))
        if candidate < best:
            best = candidate
            best_k = k
    return best, best_k


def canonicalize(board: Board) -> Tuple[str, int]:
    """Return (canonical identifier, transform index) for a board.

    Ties keep the lowest transform index, so the identity wins whenever the
    board already is its own canonical form.
    """
    return _canonicalize_tuple(tuple(board))


def canonical_board(board: Board) -> Board:
    _, k = canonicalize(board)
    return transform_board(board, k)


def map_canonical_to_actual(canonical_index: int, transform_index: int) -> int:
    if not 0 <= transform_index < len(TRANSFORMS):
        raise InvalidMappingError(f"Unknown transform index: {transform_index}")
    if not 0 <= canonical_index < BOARD_SIZE:
        raise InvalidMappingError(
            f"Invalid transformation mapping: canonical move {canonical_index}, transform {transform_index}"
        )
    actual = INVERSE_TRANSFORMS[transform_index][canonical_index]
    if TRANSFORMS[transform_index][actual] != canonical_index:
        raise InvalidMappingError(
            f"Invalid transformation mapping: canonical move {canonical_index}, transform {transform_index}"
        )
    return actual


def orbit_size(board: Board) -> int:
    """Number of distinct boards among the 8 symmetry images."""
    return len({serialize_board(transform_board(board, k)) for k in range(len(TRANSFORMS))})
