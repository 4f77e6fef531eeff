"""Scratch-directory helpers used at session start."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

__all__ = ["ARCHIVE_DIRNAME", "clear_directory", "prepare_scratch_dir", "read_build_descriptor"]

LOGGER = logging.getLogger(__name__)

ARCHIVE_DIRNAME = Path("archive") / "versions"


def clear_directory(path: Path) -> Path:
    """Remove everything below ``path`` and recreate it empty."""
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def prepare_scratch_dir(scratch_dir: Path) -> Path:
    """Clear the scratch directory and its nested archive directory."""
    LOGGER.debug("Clearing temporary directories")
    clear_directory(scratch_dir)
    clear_directory(scratch_dir / ARCHIVE_DIRNAME)
    return scratch_dir


def read_build_descriptor(project_root: Path, name: str) -> str:
    """Return the build descriptor text, or an empty string when it is absent."""
    path = project_root / name
    LOGGER.debug("Reading %s", path)
    if not path.is_file():
        return ""
    return path.read_text(encoding="utf-8", errors="replace")
