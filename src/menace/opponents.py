"""Opponents MENACE trains and is evaluated against."""
from __future__ import annotations

from typing import Optional, Union

import numpy as np

from .agent import MenaceAgent
from .game_basics import Board, Cell, Result, valid_moves
from .errors import NoLegalMoveError
from .policy_store import PlayStyle
from .tactics import blocking_moves, immediate_winning_moves

OPPONENT_KINDS = ['random', 'heuristic', 'self']


class Opponent:
    """Plays one side of a game. `game_over` is called once per finished game."""

    name = 'opponent'

    def choose(self, board: Board, player: Cell) -> int:
        raise NotImplementedError

    def game_over(self, result: Result) -> None:
        pass

    def abandon(self) -> None:
        pass


class RandomOpponent(Opponent):
    name = 'random'

    def __init__(self, rng: Optional[np.random.Generator] = None):
        self.rng = rng if rng is not None else np.random.default_rng()

    def _random_move(self, board: Board) -> int:
        moves = valid_moves(board)
        if not moves:
            raise NoLegalMoveError("No valid moves available")
        return moves[int(self.rng.integers(len(moves)))]

    def choose(self, board: Board, player: Cell) -> int:
        return self._random_move(board)


class WinBlockOpponent(RandomOpponent):
    """Wins in one if it can, otherwise blocks the opponent's win in one, otherwise random."""

    name = 'heuristic'

    def choose(self, board: Board, player: Cell) -> int:
        wins = immediate_winning_moves(board, player)
        if wins:
            return wins[0]
        blocks = blocking_moves(board, player)
        if blocks:
            return blocks[0]
        return self._random_move(board)


class AgentOpponent(Opponent):
    """A second MENACE agent, trained on every game it finishes."""

    name = 'self'

    def __init__(self, agent: MenaceAgent, style: Union[PlayStyle, str] = PlayStyle.PROBABILISTIC, train: bool = True):
        self.agent = agent
        self.style = PlayStyle.parse(style)
        self.train = train

    def choose(self, board: Board, player: Cell) -> int:
        if player is not self.agent.symbol:
            raise ValueError(f"Opponent agent plays {self.agent.symbol.name}, asked to move for {player.name}")
        return self.agent.decide(board, self.style)

    def game_over(self, result: Result) -> None:
        if self.train:
            self.agent.train(result)
        else:
            self.agent.reset_history()

    def abandon(self) -> None:
        self.agent.reset_history()


def make_opponent(kind: str, agent: MenaceAgent, rng: Optional[np.random.Generator] = None) -> Opponent:
    """Build an opponent for `agent`. Self-play shares the agent's memory."""
    kind = kind.strip().lower()
    if kind == 'random':
        return RandomOpponent(rng)
    if kind == 'heuristic':
        return WinBlockOpponent(rng)
    if kind == 'self':
        return AgentOpponent(MenaceAgent(agent.symbol.opponent, store=agent.store))
    raise ValueError(f"Unknown opponent: {kind!r} (expected one of {OPPONENT_KINDS})")
