"""
Tactics: immediate wins and blocks for the side to move.
Teaching notes:
- These one-ply motifs are all the heuristic opponent knows.
"""
from typing import List

from .game_basics import Board, Cell, apply_move, get_winner, valid_moves


def immediate_winning_moves(board: Board, player: Cell) -> List[int]:
    return [i for i in valid_moves(board) if get_winner(apply_move(board, i, player)) is player]


def blocking_moves(board: Board, player: Cell) -> List[int]:
    """Cells where the opponent would complete a line next turn."""
    return immediate_winning_moves(board, player.opponent)
