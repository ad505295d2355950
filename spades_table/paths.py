# spades_table/paths.py
from __future__ import annotations

import os
from pathlib import Path

from . import config  # noqa: F401  (loads .env before SPADES_RESULTS_DIR is read)

# Central location for all generated results (CSV, text logs, plots).
DEFAULT_RESULTS_DIR = Path(__file__).resolve().parent / "results"


def results_dir() -> Path:
    """SPADES_RESULTS_DIR when set, else the package's results folder."""
    override = os.environ.get("SPADES_RESULTS_DIR")
    return Path(override) if override else DEFAULT_RESULTS_DIR


def ensure_results_dir() -> Path:
    """Create the results directory if it does not exist and return it."""
    path = results_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def resolve_results_path(path_like: str | Path) -> Path:
    """
    Resolve a user-specified path into the results directory.

    Absolute paths are returned unchanged. Relative paths are anchored inside
    the results directory so runs consistently write outputs there.
    """
    path = Path(path_like)
    if path.is_absolute():
        return path
    return ensure_results_dir() / path
