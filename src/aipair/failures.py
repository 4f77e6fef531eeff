"""Map failing test identifiers onto the test sources that define them."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Sequence

from .context_builder import SourceFile

__all__ = ["extract_test_files", "owning_class", "class_to_test_path"]

LOGGER = logging.getLogger(__name__)

_PAREN_CLASS_RE = re.compile(r"\(([^)]*)\)")


def owning_class(failure: str) -> str:
    """Return the dotted class name that owns ``failure``.

    Accepts the JUnit 4 style ``method(pkg.Class)`` as well as dotted paths such
    as ``pkg.Class.testMethod`` where a lowercase-initial last segment is taken
    to be the method name.
    """
    match = _PAREN_CLASS_RE.search(failure)
    if match:
        return match.group(1)

    parts = failure.split(".")
    last = parts[-1]
    if last and last[0].islower():
        return ".".join(parts[:-1])
    return failure


def class_to_test_path(class_name: str, test_root: Path, extension: str) -> Path:
    """Build the test source path for ``class_name`` under ``test_root``."""
    return Path(test_root) / (class_name.replace(".", os.sep) + extension)


def extract_test_files(
    failures: Sequence[str],
    test_root: Path | str,
    extension: str,
) -> list[SourceFile]:
    """Resolve each failure to its test source, in order, keeping duplicates.

    Paths that do not exist produce an entry with empty content.
    """
    root = Path(test_root)
    files: list[SourceFile] = []
    for failure in failures:
        LOGGER.debug("Extracting class name from test name: %s", failure)
        path = class_to_test_path(owning_class(failure), root, extension)
        LOGGER.debug("Constructed test file path: %s", path)
        content = path.read_text(encoding="utf-8", errors="replace") if path.is_file() else ""
        files.append(SourceFile(path=path, content=content))
    return files
