"""Collect source files that make up the context sent to a backend."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

__all__ = ["SourceFile", "collect_files_with_extension"]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class SourceFile:
    """Snapshot of a file taken when the context was collected."""

    path: Path
    content: str

    def relative_to(self, root: Path) -> str:
        """Return the path relative to ``root`` in POSIX form when possible."""
        try:
            return self.path.relative_to(root).as_posix()
        except ValueError:
            return self.path.as_posix()


def collect_files_with_extension(roots: Iterable[Path | str], extension: str) -> list[SourceFile]:
    """Recursively read every file below ``roots`` whose name ends with ``extension``.

    Files are returned sorted by path within each root. A missing root raises
    ``FileNotFoundError``; read failures on individual files propagate unchanged.
    """
    collected: list[SourceFile] = []
    for root in roots:
        root_path = Path(root)
        if not root_path.is_dir():
            raise FileNotFoundError(f"Source directory not found: {root_path}")
        matches = sorted(
            path for path in root_path.rglob("*") if path.is_file() and path.name.endswith(extension)
        )
        for path in matches:
            # Legacy sources are often Latin-1; undecodable bytes become U+FFFD.
            content = path.read_text(encoding="utf-8", errors="replace")
            collected.append(SourceFile(path=path, content=content))
    LOGGER.debug("Found %d files with extension %s", len(collected), extension)
    return collected
