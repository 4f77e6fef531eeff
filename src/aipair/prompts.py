"""Prompt templates and the renderer that fills them for each repair cycle."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

from .context_builder import SourceFile

__all__ = [
    "DEFAULT_PROMPT_TEMPLATE",
    "DEFAULT_SYSTEM_PROMPT",
    "HINTS_PREFIX",
    "NO_TEST_OUTPUT",
    "SESSION_LOG_NAME",
    "append_session_log",
    "render_files_content",
    "render_prompt",
]

LOGGER = logging.getLogger(__name__)

SESSION_LOG_NAME = "session_log.txt"
NO_TEST_OUTPUT = "No test output yet."
HINTS_PREFIX = "Hints for improvement: "

DEFAULT_SYSTEM_PROMPT = (
    "You are a senior software engineer pairing with a developer whose test suite is failing. "
    "Fix the production code so that every test passes. Only change tests when they are "
    "clearly wrong.\n"
    "Return every file you change in full. Put a line of the form `File: <path relative to the "
    "project root>` directly before each file, followed by the complete file content in a "
    "fenced code block. Do not return partial files, diffs, or files you did not change."
)

DEFAULT_PROMPT_TEMPLATE = (
    "The project's tests are failing. Here is the latest test output:\n"
    "\n"
    "{test_output}\n"
    "\n"
    "Here are the relevant source and test files:\n"
    "\n"
    "{files_content}\n"
    "\n"
    "Here is the build file for the project:\n"
    "\n"
    "{build_descriptor}\n"
    "\n"
    "Update the code so that all tests pass."
)

_PLACEHOLDER_RE = re.compile(r"\{(test_output|files_content|build_descriptor)\}")


def render_files_content(files: Sequence[SourceFile], project_root: Path) -> str:
    """Render each file under a ``File: <path>`` header, separated by blank lines."""
    return "\n\n".join(
        f"File: {source.relative_to(project_root)}\n\n{source.content}" for source in files
    )


def render_prompt(
    *,
    test_output: str,
    files: Sequence[SourceFile],
    project_root: Path,
    build_descriptor: str,
    hints: Sequence[str] = (),
    template: str = DEFAULT_PROMPT_TEMPLATE,
) -> str:
    """Fill ``template`` in a single pass and append the hint line when hints exist."""
    values = {
        "test_output": test_output,
        "files_content": render_files_content(files, project_root),
        "build_descriptor": build_descriptor,
    }
    prompt = _PLACEHOLDER_RE.sub(lambda match: values[match.group(1)], template)
    if hints:
        prompt += f"\n\n{HINTS_PREFIX}{'; '.join(hints)}"
    return prompt


def append_session_log(scratch_dir: Path, prompt: str, *, now: datetime | None = None) -> Path:
    """Append ``prompt`` with a UTC timestamp to the session log and return its path."""
    scratch_dir.mkdir(parents=True, exist_ok=True)
    log_path = scratch_dir / SESSION_LOG_NAME
    stamp = (now or datetime.now(timezone.utc)).isoformat()
    with log_path.open("a", encoding="utf-8") as handle:
        handle.write(f"Prompt at {stamp}:\n{prompt}\n\n")
    LOGGER.debug("Appended %d prompt characters to %s", len(prompt), log_path)
    return log_path
