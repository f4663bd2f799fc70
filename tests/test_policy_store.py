import json
import threading

import numpy as np
import pytest

from menace.config import BeadSchedule, MenaceConfig
from menace.errors import DeserializationError, NoLegalMoveError
from menace.game_basics import parse_board
from menace.policy_store import Outcome, PlayStyle, PolicyStore


def _store(seed=0, **kw):
    return PolicyStore(MenaceConfig(**kw), np.random.default_rng(seed))


def _blob(*records):
    return json.dumps([
        {"canonical_id": cid, "weights": list(w), "weight_sum": sum(w)} for cid, w in records
    ])


def test_seeding_follows_turn_schedule():
    store = _store()
    assert store.get_or_create("_________").beads == (4,) * 9
    assert store.get_or_create("A________").beads == (0,) + (4,) * 8
    assert store.get_or_create("AB_______").beads == (0, 0) + (3,) * 7
    box = store.get_or_create("ABAB_____")
    assert box.beads == (0, 0, 0, 0, 2, 2, 2, 2, 2)
    assert box.total == 10
    assert store.get_or_create("ABABAB___").beads == (0,) * 6 + (1, 1, 1)
    assert store.size() == 5


def test_get_or_create_is_idempotent_and_checks_board():
    store = _store()
    box = store.get_or_create("A________", parse_board("A________"))
    assert store.get_or_create("A________") is box
    with pytest.raises(ValueError):
        store.get_or_create("_A_______", parse_board("A________"))


def test_custom_schedule():
    store = _store(schedule=BeadSchedule(((1, 8), (2, 5))))
    assert store.get_or_create("_________").total == 72
    assert store.get_or_create("A________").total == 40


def test_probabilistic_selection_respects_weights_and_legality():
    store = _store()
    store.import_(_blob(("A________", [0, 0, 0, 0, 5, 0, 0, 0, 0])))
    box = store.get("A________")
    for _ in range(20):
        assert store.select_move(box, [1, 2, 3, 4, 5, 6, 7, 8]) == 4


def test_probabilistic_zero_mass_falls_back_to_uniform_over_legal():
    store = _store()
    store.import_(_blob(("A________", [0, 0, 0, 0, 5, 0, 0, 0, 0])))
    box = store.get("A________")
    picks = {store.select_move(box, [1, 2, 3]) for _ in range(60)}
    assert picks <= {1, 2, 3}
    assert len(picks) > 1


def test_probabilistic_distribution_is_proportional():
    store = _store(seed=3)
    store.import_(_blob(("A________", [0, 1, 3, 0, 0, 0, 0, 0, 0])))
    box = store.get("A________")
    picks = [store.select_move(box, [1, 2]) for _ in range(4000)]
    share = picks.count(2) / len(picks)
    assert 0.70 < share < 0.80


def test_greedy_picks_max_and_breaks_ties_randomly():
    store = _store()
    store.import_(_blob(("A________", [0, 2, 7, 1, 7, 0, 0, 0, 0])))
    box = store.get("A________")
    picks = {store.select_move(box, [1, 2, 3, 4], PlayStyle.GREEDY) for _ in range(60)}
    assert picks == {2, 4}
    assert store.select_move(box, [1, 3], "master") == 1


def test_greedy_all_zero_is_uniform():
    store = _store()
    store.import_(_blob(("A________", [0] * 9)))
    box = store.get("A________")
    picks = {store.select_move(box, [5, 6, 7], PlayStyle.GREEDY) for _ in range(60)}
    assert picks == {5, 6, 7}


def test_select_move_without_legal_cells():
    store = _store()
    box = store.get_or_create("_________")
    with pytest.raises(NoLegalMoveError):
        store.select_move(box, [])


def test_update_rewards_and_clamping():
    store = _store()
    box = store.get_or_create("A________")
    assert store.update("A________", 4, Outcome.WIN) == 3
    assert box[4] == 7
    assert store.update("A________", 4, Outcome.DRAW) == 1
    assert box[4] == 8
    assert store.update("A________", 4, Outcome.LOSS) == -1
    assert box[4] == 7
    assert box.total == 7 * 4 + 7


def test_win_then_loss_arithmetic():
    for w in (0, 1, 4):
        store = _store()
        weights = [0] + [w] * 8
        store.import_(_blob(("A________", weights)))
        store.update("A________", 1, Outcome.WIN)
        store.update("A________", 1, Outcome.LOSS)
        assert store.get("A________")[1] == max(0, w + 3 - 1)


def test_repeated_losses_converge_to_zero():
    store = _store()
    box = store.get_or_create("A________")
    for _ in range(10):
        store.update("A________", 8, Outcome.LOSS)
    assert box[8] == 0
    assert box.total == 4 * 7
    assert store.update("A________", 8, Outcome.LOSS) == 0


def test_update_errors():
    store = _store()
    store.get_or_create("A________")
    with pytest.raises(KeyError):
        store.update("AB_______", 3, Outcome.WIN)
    with pytest.raises(ValueError):
        store.update("A________", 9, Outcome.WIN)
    with pytest.raises(ValueError):
        store.update("A________", 0, Outcome.WIN)


def test_export_import_round_trip():
    store = _store()
    for cid in ("_________", "A________", "AB_______"):
        store.get_or_create(cid)
    store.update("A________", 4, Outcome.WIN)
    store.update("AB_______", 8, Outcome.LOSS)
    blob = store.export()
    before = store.items()

    store.import_(blob)
    assert store.items() == before
    assert store.export() == blob

    other = _store()
    other.import_(blob)
    assert other.items() == before
    records = json.loads(blob)
    assert [r["canonical_id"] for r in records] == ["AB_______", "A________", "_________"]
    assert all(r["weight_sum"] == sum(r["weights"]) for r in records)


def test_import_recomputes_inconsistent_weight_sum():
    store = _store()
    store.import_(json.dumps([{"canonical_id": "A________", "weights": [0, 1, 1, 1, 1, 1, 1, 1, 1], "weight_sum": 99}]))
    assert store.get("A________").total == 8


def test_import_accepts_legacy_records_and_rekeys():
    store = _store()
    legacy = [
        {"state": "X________", "beads": [0, 4, 4, 4, 4, 4, 4, 4, 4], "totalBeads": 32},
        {"state": "__X_O____", "beads": [3, 7, 0, 3, 0, 3, 3, 3, 3], "totalBeads": 25},
    ]
    store.import_(json.dumps(legacy))
    assert store.get("A________").beads == (0, 4, 4, 4, 4, 4, 4, 4, 4)
    # corner 2 -> 0 under rot270, so the edge at 1 lands on 3
    box = store.get("A___B____")
    assert box[0] == 0 and box[4] == 0
    assert box[3] == 7
    assert box.total == 25


@pytest.mark.parametrize("blob", [
    "not json",
    "[" * 200000 + "]" * 200000,
    "{}",
    "[1, 2]",
    json.dumps([{"weights": [0] * 9}]),
    json.dumps([{"canonical_id": "A_______", "weights": [0] * 9}]),
    json.dumps([{"canonical_id": "A_______Z", "weights": [0] * 9}]),
    json.dumps([{"canonical_id": "A________", "weights": [0] * 8}]),
    json.dumps([{"canonical_id": "A________", "weights": [0, -1, 0, 0, 0, 0, 0, 0, 0]}]),
    json.dumps([{"canonical_id": "A________", "weights": [0, True, 0, 0, 0, 0, 0, 0, 0]}]),
    json.dumps([{"canonical_id": "A________", "weights": [0, 1.5, 0, 0, 0, 0, 0, 0, 0]}]),
    json.dumps([{"canonical_id": "A________", "weights": [2, 1, 1, 1, 1, 1, 1, 1, 1]}]),
    json.dumps([
        {"canonical_id": "A________", "weights": [0, 1, 1, 1, 1, 1, 1, 1, 1]},
        {"canonical_id": "__A______", "weights": [1, 1, 0, 1, 1, 1, 1, 1, 1]},
    ]),
])
def test_import_rejects_malformed_blob_atomically(blob):
    store = _store()
    store.get_or_create("_________")
    store.update("_________", 4, Outcome.WIN)
    before = store.export()
    with pytest.raises(DeserializationError):
        store.import_(blob)
    assert store.export() == before


def test_exhausted_states_and_reset():
    store = _store()
    store.import_(_blob(("ABABAB___", [0, 0, 0, 0, 0, 0, 1, 0, 0]), ("A________", [0, 1, 1, 1, 1, 1, 1, 1, 1])))
    assert store.exhausted_states() == []
    store.update("ABABAB___", 6, Outcome.LOSS)
    assert store.exhausted_states() == ["ABABAB___"]
    store.reset()
    assert store.size() == 0


def test_play_style_parse():
    assert PlayStyle.parse("MASTER") is PlayStyle.GREEDY
    assert PlayStyle.parse("probabilistic") is PlayStyle.PROBABILISTIC
    with pytest.raises(ValueError):
        PlayStyle.parse("minimax")
    for bad in (None, 3):
        with pytest.raises(ValueError):
            PlayStyle.parse(bad)


def test_concurrent_updates_are_not_lost():
    store = _store()
    box = store.get_or_create("_________")
    seed = box[4]
    threads, rounds = 8, 500

    def worker():
        for _ in range(rounds):
            store.update("_________", 4, Outcome.WIN)

    pool = [threading.Thread(target=worker) for _ in range(threads)]
    for t in pool:
        t.start()
    for t in pool:
        t.join()
    box = store.get("_________")
    assert box[4] == seed + 3 * rounds * threads
    assert box.total == sum(box.beads)
