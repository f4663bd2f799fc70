"""Centralized path helpers for memory files, exports and run metadata.

Environment-first, with robust fallbacks that still work when installed
as a package or executed from arbitrary CWDs.
"""

from __future__ import annotations

import os
import subprocess
from pathlib import Path


def _find_git_root(start: Path) -> Path | None:
    cur = start
    for _ in range(5):
        if (cur / ".git").exists():
            return cur
        if cur.parent == cur:
            break
        cur = cur.parent
    return None


def repo_root() -> Path:
    """Best-effort working root.

    Order: env var MENACE_HOME -> nearest parent containing .git -> CWD.
    Avoids writing under site-packages when installed as a library.
    """
    env = os.getenv("MENACE_HOME")
    if env:
        return Path(env)
    here = Path(__file__).resolve()
    git_root = _find_git_root(here)
    if git_root is not None:
        return git_root
    return Path.cwd()


def default_memory_path() -> Path:
    p = os.getenv("MENACE_MEMORY")
    return Path(p) if p else repo_root() / "menace_memory.json"


def get_git_commit() -> str | None:
    """Return the current git commit hash if available.

    Works when running inside a git repo; returns None otherwise.
    """
    root = repo_root()
    try:
        out = subprocess.check_output(
            ["git", "-C", str(root), "rev-parse", "HEAD"],
            stderr=subprocess.DEVNULL,
            text=True,
            timeout=2.0,
        )
        return out.strip()
    except (OSError, subprocess.SubprocessError):
        head = root / ".git" / "HEAD"
        try:
            txt = head.read_text().strip()
            if txt.startswith("ref:"):
                ref_file = root / ".git" / txt.split()[1]
                if ref_file.exists():
                    return ref_file.read_text().strip()
            return txt if txt else None
        except OSError:
            return None
