import numpy as np
import pytest

from menace.agent import new_agent
from menace.game_basics import Cell, Result, check_result, parse_board
from menace.opponents import AgentOpponent, RandomOpponent, WinBlockOpponent, make_opponent
from menace.policy_store import Outcome, PlayStyle
from menace.training import evaluate, play_game, run_training


def test_play_game_alternates_and_trains():
    agent = new_agent("X", seed=1)
    record = play_game(agent, RandomOpponent(np.random.default_rng(2)))
    assert record.result.is_terminal
    assert check_result(record.board) is record.result
    players = [p for p, _ in record.moves]
    assert players[0] is Cell.X
    assert all(a is not b for a, b in zip(players, players[1:]))
    assert agent.history == ()
    assert agent.memory_size() >= 1


def test_agent_can_play_second():
    agent = new_agent("O", seed=3)
    record = play_game(agent, RandomOpponent(np.random.default_rng(4)))
    assert record.moves[0][0] is Cell.X
    assert any(p is Cell.O for p, _ in record.moves)


def test_win_block_opponent_priorities():
    opp = WinBlockOpponent(np.random.default_rng(0))
    # X can win at 2 and must also block O at 5; winning comes first
    board = parse_board("XX_OO____")
    assert opp.choose(board, Cell.X) == 2
    # O cannot win, must block X's column 0
    board = parse_board("XO_X_____")
    assert opp.choose(board, Cell.O) == 6


def test_run_training_reports_generations():
    agent = new_agent("X", seed=5)
    report = run_training(agent, RandomOpponent(np.random.default_rng(6)), 200, report_every=50)
    assert report.games == 200
    assert report.wins + report.draws + report.losses == 200
    assert [p.generation for p in report.points] == [50, 100, 150, 200]
    assert report.points[-1].wins == report.wins
    assert report.points[-1].states == agent.memory_size()
    assert not report.stopped_early


def test_run_training_stops_between_games():
    agent = new_agent("X", seed=7)
    played = []

    def should_stop():
        played.append(1)
        return len(played) > 5

    report = run_training(agent, RandomOpponent(np.random.default_rng(8)), 100, should_stop=should_stop)
    assert report.games == 5
    assert report.stopped_early
    assert agent.history == ()


def test_run_training_rejects_bad_arguments():
    agent = new_agent("X", seed=0)
    with pytest.raises(ValueError):
        run_training(agent, RandomOpponent(), -1)
    with pytest.raises(ValueError):
        run_training(agent, RandomOpponent(), 10, report_every=0)


def test_weights_stay_non_negative_under_heavy_training():
    agent = new_agent("O", seed=9)
    run_training(agent, WinBlockOpponent(np.random.default_rng(10)), 500)
    for _, beads in agent.store.items():
        assert all(b >= 0 for b in beads)


def test_evaluate_does_not_change_learned_beads():
    agent = new_agent("X", seed=11)
    run_training(agent, RandomOpponent(np.random.default_rng(12)), 100)
    before = dict(agent.store.items())
    tally = evaluate(agent, RandomOpponent(np.random.default_rng(13)), 50)
    assert tally.games == 50
    after = dict(agent.store.items())
    for cid, beads in before.items():
        assert after[cid] == beads
    assert agent.history == ()


def test_self_play_shares_memory_and_trains_both_sides():
    agent = new_agent("X", seed=14)
    opponent = make_opponent("self", agent)
    assert isinstance(opponent, AgentOpponent)
    assert opponent.agent.store is agent.store
    run_training(agent, opponent, 30)
    ids = [cid for cid, _ in agent.store.items()]
    assert any(cid.count("_") % 2 == 1 for cid in ids)
    assert any(cid.count("_") % 2 == 0 for cid in ids)
    assert opponent.agent.history == ()


def test_make_opponent_rejects_unknown_kind():
    with pytest.raises(ValueError):
        make_opponent("minimax", new_agent("X"))


def test_training_improves_against_random():
    agent = new_agent("X", seed=15)
    run_training(agent, RandomOpponent(np.random.default_rng(16)), 2000)
    tally = evaluate(agent, RandomOpponent(np.random.default_rng(17)), 300, PlayStyle.GREEDY)
    assert tally.loss_rate < 0.25
    assert tally.win_rate > 0.5


def test_game_record_outcome_matches_result():
    agent = new_agent("O", seed=18)
    record = play_game(agent, WinBlockOpponent(np.random.default_rng(19)))
    expected = {Result.O_WINS: Outcome.WIN, Result.X_WINS: Outcome.LOSS, Result.DRAW: Outcome.DRAW}
    assert record.outcome is expected[record.result]
