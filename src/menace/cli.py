from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import Optional

import numpy as np

from .agent import MenaceAgent, new_agent
from .config import MenaceConfig, load_config
from .datasets import EXPORT_FORMATS, ExportArgs, run_export
from .errors import MenaceError
from .game_basics import Cell, current_player, format_board, is_valid_state, parse_board
from .opponents import OPPONENT_KINDS, make_opponent
from .paths import default_memory_path
from .policy_store import PlayStyle
from .symmetry import canonicalize, orbit_size
from .tracking import log_artifact, log_metrics, log_params, maybe_mlflow_run
from .training import GenerationPoint, evaluate, run_training


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="menace", description="MENACE matchbox learner for tic-tac-toe")
    sub = p.add_subparsers(dest="cmd")
    p.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    p.add_argument("--version", action="store_true", help="Print version and exit")
    p.add_argument("--seed", type=int, default=None, help="Global seed for reproducibility")
    p.add_argument("--config", type=Path, default=None, help="JSON file with bead schedule and rewards")

    def add_memory(sp: argparse.ArgumentParser) -> None:
        sp.add_argument(
            "--memory",
            type=Path,
            default=None,
            help="Memory file (default: $MENACE_MEMORY or ./menace_memory.json)",
        )

    def add_match(sp: argparse.ArgumentParser, default_style: str) -> None:
        sp.add_argument("--games", type=int, default=1000, help="Number of games (default: 1000)")
        sp.add_argument("--opponent", choices=OPPONENT_KINDS, default="random", help="Opponent policy")
        sp.add_argument("--symbol", choices=["X", "O"], default="X", help="Side MENACE plays (X moves first)")
        sp.add_argument(
            "--style",
            choices=["probabilistic", "greedy", "master"],
            default=default_style,
            help=f"Move selection (default: {default_style})",
        )

    p_train = sub.add_parser("train", help="Train against an opponent and save the memory")
    add_memory(p_train)
    add_match(p_train, "probabilistic")
    p_train.add_argument("--report-every", type=int, default=100, help="Games per generation point")
    p_train.add_argument("--fresh", action="store_true", help="Ignore an existing memory file")
    p_train.add_argument(
        "--tracking",
        choices=["none", "mlflow"],
        default="none",
        help="Experiment tracking backend",
    )
    p_train.add_argument(
        "--log-dir",
        type=Path,
        default=Path("runs"),
        help="Directory for tracking logs/artifacts (for mlflow local backend)",
    )

    p_eval = sub.add_parser("evaluate", help="Play without learning and report win/draw/loss rates")
    add_memory(p_eval)
    add_match(p_eval, "greedy")

    p_dec = sub.add_parser("decide", help="Ask MENACE for a move on a board (e.g. XX__O____)")
    add_memory(p_dec)
    p_dec.add_argument("--board", required=True, help="9 cells of X/O/_ (A/B also accepted)")
    p_dec.add_argument(
        "--style",
        choices=["probabilistic", "greedy", "master"],
        default="greedy",
        help="Move selection (default: greedy)",
    )

    p_can = sub.add_parser("canonical", help="Show the canonical state of a board")
    p_can.add_argument("--board", required=True, help="9 cells of X/O/_ (A/B also accepted)")

    p_exp = sub.add_parser("export", help="Export the memory as a table (one row per matchbox)")
    add_memory(p_exp)
    p_exp.add_argument("--out", type=Path, default=Path("exports"), help="Output directory (default: exports)")
    p_exp.add_argument("--format", choices=list(EXPORT_FORMATS), default="csv", help="Export format")

    return p


def _memory_path(ns: argparse.Namespace) -> Path:
    return ns.memory if ns.memory is not None else default_memory_path()


def _load_agent(ns: argparse.Namespace, symbol: Cell, config: MenaceConfig, seed: Optional[int],
                fresh: bool = False) -> MenaceAgent:
    agent = new_agent(symbol, config=config, seed=seed)
    path = _memory_path(ns)
    if not fresh and path.exists():
        agent.import_memory(path.read_text())
        logging.info("Loaded %d matchboxes from %s", agent.memory_size(), path)
    return agent


def _save_memory(agent: MenaceAgent, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_text(agent.export_memory())
    os.replace(tmp, path)
    logging.info("Saved %d matchboxes to %s", agent.memory_size(), path)


def _parse_board_arg(raw: str):
    board = parse_board(raw.strip())
    if not is_valid_state(board):
        raise ValueError("Board is not a valid reachable state.")
    return board


def _seeds(seed: Optional[int]):
    agent_seq, opp_seq = np.random.SeedSequence(seed).spawn(2)
    return int(agent_seq.generate_state(1)[0]), np.random.default_rng(opp_seq)


def _run(ns: argparse.Namespace) -> int:
    config = load_config(ns.config) if ns.config is not None else MenaceConfig()

    if ns.cmd == "train":
        agent_seed, opp_rng = _seeds(ns.seed)
        agent = _load_agent(ns, Cell.parse(ns.symbol), config, agent_seed, fresh=ns.fresh)
        opponent = make_opponent(ns.opponent, agent, opp_rng)
        style = PlayStyle.parse(ns.style)
        with maybe_mlflow_run(ns.tracking == "mlflow", run_name="menace_train", log_dir=ns.log_dir) as tracked:
            if tracked:
                log_params({
                    "games": ns.games,
                    "opponent": ns.opponent,
                    "symbol": ns.symbol,
                    "style": style.value,
                    "seed": ns.seed,
                    **{k: str(v) for k, v in config.to_dict().items()},
                })

            def on_generation(point: GenerationPoint) -> None:
                if tracked:
                    log_metrics({
                        "wins": point.wins,
                        "draws": point.draws,
                        "losses": point.losses,
                        "states": point.states,
                    }, step=point.generation)

            report = run_training(agent, opponent, ns.games, style,
                                  report_every=ns.report_every, on_generation=on_generation)
            path = _memory_path(ns)
            _save_memory(agent, path)
            if tracked:
                log_artifact(path)
        logging.info(
            "games=%d win_rate=%.3f draw_rate=%.3f loss_rate=%.3f states=%d",
            report.games, report.win_rate, report.draw_rate, report.loss_rate, agent.memory_size(),
        )
        return 0

    if ns.cmd == "evaluate":
        agent_seed, opp_rng = _seeds(ns.seed)
        agent = _load_agent(ns, Cell.parse(ns.symbol), config, agent_seed)
        opponent = make_opponent(ns.opponent, agent, opp_rng)
        evaluate(agent, opponent, ns.games, PlayStyle.parse(ns.style))
        return 0

    if ns.cmd == "decide":
        board = _parse_board_arg(ns.board)
        agent = _load_agent(ns, current_player(board), config, ns.seed)
        move = agent.decide(board, PlayStyle.parse(ns.style))
        rec = agent.last_decision()
        box = agent.matchbox(rec.canonical_id)
        logging.debug("board:\n%s", format_board(board))
        logging.info(
            "move=%d canonical=%s canonical_move=%d transform=%d beads=%s",
            move, rec.canonical_id, rec.canonical_move, rec.transform_index, list(box.beads),
        )
        return 0

    if ns.cmd == "canonical":
        board = _parse_board_arg(ns.board)
        canonical_id, k = canonicalize(board)
        logging.info("canonical_form=%s transform=%d orbit_size=%d", canonical_id, k, orbit_size(board))
        return 0

    if ns.cmd == "export":
        agent = _load_agent(ns, Cell.X, config, ns.seed)
        out = run_export(agent.store, ExportArgs(out=ns.out, format=ns.format))
        logging.info("Exported memory to: %s", out)
        return 0

    raise ValueError(f"Unknown command: {ns.cmd}")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    ns = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if getattr(ns, "verbose", False) else logging.INFO,
                        format="[%(levelname)s] %(message)s")

    if getattr(ns, "version", False):
        try:
            from importlib.metadata import version as _ver

            print(_ver("menace"))
        except Exception:
            print("unknown")
        return 0
    if ns.cmd is None:
        parser.print_help()
        return 0

    try:
        return _run(ns)
    except (MenaceError, ValueError, RuntimeError, OSError) as e:
        logging.error("%s", e)
        return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
