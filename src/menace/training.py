"""
Game loop, batch training and evaluation.
Teaching notes:
- X always moves first; the agent may play either side.
- A game's decision history is either trained on or discarded as a whole, so
  cancellation is only checked between games.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple, Union

from .agent import MenaceAgent
from .game_basics import Board, Cell, Result, apply_move, check_result, create_empty
from .opponents import Opponent
from .policy_store import Outcome, PlayStyle

logger = logging.getLogger(__name__)


@dataclass
class GameRecord:
    moves: List[Tuple[Cell, int]]
    result: Result
    outcome: Outcome
    board: Board


@dataclass
class Tally:
    games: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0

    def add(self, outcome: Outcome) -> None:
        self.games += 1
        if outcome is Outcome.WIN:
            self.wins += 1
        elif outcome is Outcome.DRAW:
            self.draws += 1
        else:
            self.losses += 1

    def rate(self, count: int) -> float:
        return count / self.games if self.games else 0.0

    @property
    def win_rate(self) -> float:
        return self.rate(self.wins)

    @property
    def draw_rate(self) -> float:
        return self.rate(self.draws)

    @property
    def loss_rate(self) -> float:
        return self.rate(self.losses)


@dataclass
class GenerationPoint:
    generation: int
    wins: int
    draws: int
    losses: int
    states: int


@dataclass
class TrainingReport(Tally):
    points: List[GenerationPoint] = field(default_factory=list)
    stopped_early: bool = False
    exhausted: List[str] = field(default_factory=list)


def play_game(
    agent: MenaceAgent,
    opponent: Opponent,
    style: Union[PlayStyle, str] = PlayStyle.PROBABILISTIC,
    train: bool = True,
) -> GameRecord:
    """Play one full game from the empty board and settle both players' histories."""
    board = create_empty()
    player = Cell.X
    moves: List[Tuple[Cell, int]] = []
    agent.reset_history()
    try:
        while not check_result(board).is_terminal:
            if player is agent.symbol:
                move = agent.decide(board, style)
            else:
                move = opponent.choose(board, player)
            board = apply_move(board, move, player)
            moves.append((player, move))
            player = player.opponent
    except Exception:
        agent.reset_history()
        opponent.abandon()
        raise

    result = check_result(board)
    outcome = agent.outcome_for(result)
    if train:
        agent.train(result)
        opponent.game_over(result)
    else:
        agent.reset_history()
        opponent.abandon()
    return GameRecord(moves, result, outcome, board)


def run_training(
    agent: MenaceAgent,
    opponent: Opponent,
    games: int,
    style: Union[PlayStyle, str] = PlayStyle.PROBABILISTIC,
    report_every: Optional[int] = None,
    should_stop: Optional[Callable[[], bool]] = None,
    on_generation: Optional[Callable[[GenerationPoint], None]] = None,
) -> TrainingReport:
    """Play `games` training games back to back.

    A cumulative GenerationPoint is recorded every `report_every` games and
    after the last one.
    """
    if games < 0:
        raise ValueError(f"games must be non-negative, got {games}")
    if report_every is not None and report_every <= 0:
        raise ValueError(f"report_every must be positive, got {report_every}")
    style = PlayStyle.parse(style)
    report = TrainingReport()

    def _record_point() -> None:
        point = GenerationPoint(report.games, report.wins, report.draws, report.losses, agent.memory_size())
        report.points.append(point)
        logger.info(
            "generation=%d wins=%d draws=%d losses=%d states=%d",
            point.generation, point.wins, point.draws, point.losses, point.states,
        )
        if on_generation is not None:
            on_generation(point)

    for _ in range(games):
        if should_stop is not None and should_stop():
            report.stopped_early = True
            logger.info("training stopped after %d games", report.games)
            break
        record = play_game(agent, opponent, style, train=True)
        report.add(record.outcome)
        if report_every and report.games % report_every == 0:
            _record_point()
    if not report.points or report.points[-1].generation != report.games:
        _record_point()
    report.exhausted = agent.store.exhausted_states()
    if report.exhausted:
        logger.info("%d matchboxes ran out of beads", len(report.exhausted))
    return report


def evaluate(
    agent: MenaceAgent,
    opponent: Opponent,
    games: int,
    style: Union[PlayStyle, str] = PlayStyle.GREEDY,
) -> Tally:
    """Play without learning; matchboxes may still be created for unseen states."""
    tally = Tally()
    for _ in range(games):
        record = play_game(agent, opponent, style, train=False)
        tally.add(record.outcome)
    logger.info(
        "evaluation games=%d win_rate=%.3f draw_rate=%.3f loss_rate=%.3f",
        tally.games, tally.win_rate, tally.draw_rate, tally.loss_rate,
    )
    return tally
