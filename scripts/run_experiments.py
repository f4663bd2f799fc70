#!/usr/bin/env python3
from __future__ import annotations

import argparse
import csv
import json
import math
import statistics as stats
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

import numpy as np

from menace.agent import new_agent
from menace.opponents import make_opponent
from menace.paths import get_git_commit
from menace.policy_store import PlayStyle
from menace.training import evaluate, run_training


@dataclass
class RunConfig:
    mode: str  # "min" or "full"
    seeds: int
    games: int
    report_every: int
    eval_games: int
    symbol: str
    opponent: str


def _ci95(values: List[float]) -> tuple[float, float]:
    if not values:
        return (float("nan"), float("nan"))
    m = stats.fmean(values)
    s = stats.pstdev(values) if len(values) > 1 else 0.0
    z = 1.96
    half = z * (s / math.sqrt(len(values)))
    return m, half


def _write_rows(path: Path, rows: List[Dict[str, Any]]) -> None:
    if not rows:
        return
    keys = list(rows[0].keys())
    with path.open("w", newline="") as f:
        w = csv.DictWriter(f, fieldnames=keys)
        w.writeheader()
        for r in rows:
            w.writerow(r)


def run(cfg: RunConfig, out_root: Path, base_seed: int = 0) -> Path:
    out_root.mkdir(parents=True, exist_ok=True)
    curve: List[Dict[str, Any]] = []
    per_seed: Dict[str, List[float]] = {}

    for seed in np.random.SeedSequence(base_seed).spawn(cfg.seeds):
        agent_seed = int(seed.generate_state(1)[0])
        rng = np.random.default_rng(seed)
        agent = new_agent(cfg.symbol, seed=agent_seed)
        t0 = time.perf_counter()
        report = run_training(agent, make_opponent(cfg.opponent, agent, rng), cfg.games,
                              report_every=cfg.report_every)
        elapsed = time.perf_counter() - t0
        for p in report.points:
            curve.append({"seed": agent_seed, **asdict(p)})
        results = {"train_elapsed_s": elapsed, "states": float(agent.memory_size())}
        for kind in ("random", "heuristic"):
            tally = evaluate(agent, make_opponent(kind, agent, rng), cfg.eval_games, PlayStyle.GREEDY)
            results[f"{kind}_win_rate"] = tally.win_rate
            results[f"{kind}_loss_rate"] = tally.loss_rate
        for k, v in results.items():
            per_seed.setdefault(k, []).append(v)

    metrics: List[Dict[str, Any]] = []
    for k, values in per_seed.items():
        m, h = _ci95(values)
        metrics.append({"metric": f"{k}_mean", "value": m})
        metrics.append({"metric": f"{k}_ci95_half", "value": h})

    _write_rows(out_root / "learning_curve.csv", curve)
    _write_rows(out_root / "metrics.csv", metrics)
    manifest = {
        "created_at": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "git_commit": get_git_commit(),
        "run_config": asdict(cfg),
        "base_seed": base_seed,
        "artifacts": ["learning_curve.csv", "metrics.csv"],
    }
    (out_root / "MANIFEST.json").write_text(json.dumps(manifest, indent=2))
    return out_root


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Train MENACE over several seeds and collect learning curves")
    ap.add_argument("mode", choices=["min", "full"], help="Run mode: quick smoke (<1 min) or full")
    ap.add_argument("--seed", type=int, default=0)
    ap.add_argument("--out", type=Path, default=None, help="Output directory (default: results/<timestamp>)")
    ap.add_argument("--opponent", choices=["random", "heuristic", "self"], default="random")
    ns = ap.parse_args(argv)

    if ns.mode == "min":
        cfg = RunConfig(mode="min", seeds=2, games=200, report_every=50, eval_games=50,
                        symbol="X", opponent=ns.opponent)
    else:
        cfg = RunConfig(mode="full", seeds=10, games=5000, report_every=250, eval_games=1000,
                        symbol="X", opponent=ns.opponent)

    ts = datetime.now(timezone.utc).strftime("%Y-%m-%d_%H%M")
    out_root = ns.out if ns.out is not None else Path("results") / ts
    run(cfg, out_root, ns.seed)
    print(f"Artifacts written under {out_root}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
