"""
Tabular export of the matchbox memory.

One row per matchbox: the canonical state, its turn, orbit size, bead total,
the nine bead counts and whether the box ran dry. CSV is always available;
Parquet needs pandas and pyarrow (pip install .[parquet]).
"""
from __future__ import annotations

import csv
import hashlib
import importlib.util
import json
import logging
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

from .game_basics import BOARD_SIZE, count_moves, parse_board
from .paths import get_git_commit
from .policy_store import PolicyStore
from .symmetry import orbit_size

logger = logging.getLogger(__name__)

DATASET_VERSION = "1.0.0"
EXPORT_FORMATS = ("csv", "parquet", "both")


@dataclass
class ExportArgs:
    out: Path
    format: str = "csv"  # one of: "csv", "parquet", "both"


def _schema_hash(fieldnames: List[str]) -> str:
    payload = "\n".join(sorted(fieldnames)).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()


def _sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with path.open('rb') as f:
        for chunk in iter(lambda: f.read(8192), b''):
            h.update(chunk)
    return h.hexdigest()


def matchbox_rows(store: PolicyStore) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []
    for canonical_id, beads in store.items():
        board = parse_board(canonical_id)
        row: Dict[str, Any] = {
            'canonical_id': canonical_id,
            'turn': 1 + count_moves(board),
            'orbit_size': orbit_size(board),
            'total': sum(beads),
            'exhausted': sum(beads) == 0,
        }
        for i in range(BOARD_SIZE):
            row[f'w{i}'] = beads[i]
        rows.append(row)
    return rows


FIELDNAMES = ['canonical_id', 'turn', 'orbit_size', 'total', 'exhausted'] + [f'w{i}' for i in range(BOARD_SIZE)]


def run_export(store: PolicyStore, args: ExportArgs) -> Path:
    fmt = (args.format or "csv").lower()
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unknown export format: {args.format}")
    rows = matchbox_rows(store)

    parquet_ok = importlib.util.find_spec('pandas') is not None and importlib.util.find_spec('pyarrow') is not None
    if fmt == "parquet" and not parquet_ok:
        # Strict: user asked only for parquet; fail early before writing any files
        raise RuntimeError(
            "Parquet dependencies not available (install pandas and pyarrow). "
            "Use pip install .[parquet] to enable parquet support."
        )
    args.out.mkdir(parents=True, exist_ok=True)
    written: Dict[str, Path] = {}

    if fmt in {"csv", "both"}:
        path = args.out / 'matchboxes.csv'
        with path.open('w', newline='') as f:
            w = csv.DictWriter(f, fieldnames=FIELDNAMES)
            w.writeheader()
            for r in rows:
                w.writerow(r)
        written['csv'] = path
        logger.info("Wrote CSV: %s (%d rows)", path, len(rows))

    if fmt in {"parquet", "both"}:
        if parquet_ok:
            import pandas as pd  # type: ignore

            path = args.out / 'matchboxes.parquet'
            pd.DataFrame(rows, columns=FIELDNAMES).to_parquet(path)
            written['parquet'] = path
            logger.info("Wrote Parquet: %s", path)
        else:
            logger.warning(
                "Parquet dependencies not available; proceeding with CSV only, "
                "manifest will record parquet_written=false."
            )

    manifest = {
        "dataset_version": DATASET_VERSION,
        "created_at": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "git_commit": get_git_commit(),
        "python_version": sys.version.split(" ")[0],
        "row_count": len(rows),
        "exhausted_count": sum(1 for r in rows if r['exhausted']),
        "schema_hash": _schema_hash(FIELDNAMES),
        "config": store.config.to_dict(),
        "csv_written": 'csv' in written,
        "parquet_written": 'parquet' in written,
        "checksums": {p.name: _sha256_file(p) for p in written.values()},
    }
    (args.out / 'manifest.json').write_text(json.dumps(manifest, indent=2))
    return args.out
