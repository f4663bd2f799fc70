"""
Experiment tracking helpers (optional MLflow backend).

This module is lightweight and only imports MLflow when requested
to avoid adding a hard dependency. Tracking failures never stop training;
they are logged and the run continues untracked.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Optional

logger = logging.getLogger(__name__)


@contextmanager
def maybe_mlflow_run(enabled: bool, run_name: str, log_dir: Optional[Path] = None) -> Iterator[bool]:
    """Yield True while an MLflow run is active, False when tracking is off or unavailable."""
    if not enabled:
        yield False
        return
    try:
        import mlflow  # type: ignore
    except ImportError:
        logger.warning("mlflow is not installed; continuing without tracking")
        yield False
        return
    try:
        if log_dir is not None:
            mlflow.set_tracking_uri((Path(log_dir).resolve() / "mlruns").as_uri())
        run = mlflow.start_run(run_name=run_name)
    except Exception as e:
        # Soft-fail: continue without tracking
        logger.warning("mlflow run could not be started (%s); continuing without tracking", e)
        yield False
        return
    with run:
        yield True


def log_params(params: Dict[str, object]) -> None:
    try:
        import mlflow  # type: ignore

        mlflow.log_params(params)
    except Exception as e:
        logger.debug("mlflow log_params skipped: %s", e)


def log_metrics(metrics: Dict[str, float], step: Optional[int] = None) -> None:
    try:
        import mlflow  # type: ignore

        mlflow.log_metrics(metrics, step=step)
    except Exception as e:
        logger.debug("mlflow log_metrics skipped: %s", e)


def log_artifact(path: Path, artifact_path: Optional[str] = None) -> None:
    try:
        import mlflow  # type: ignore

        mlflow.log_artifact(str(path), artifact_path=artifact_path)
    except Exception as e:
        logger.debug("mlflow log_artifact skipped: %s", e)
