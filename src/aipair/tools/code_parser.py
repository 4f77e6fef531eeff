"""Parse backend output into files and write them into the project."""

from __future__ import annotations

import logging
import re
import shutil
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

from .workspace import ARCHIVE_DIRNAME

__all__ = [
    "CodeApplicationError",
    "CodeApplicationResult",
    "GeneratedFile",
    "apply_generated_code",
    "parse_generated_code",
]

LOGGER = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^\s*```")
_HEADER_RE = re.compile(r"^\s*(?:[#>*\-]+\s*)?\**\s*File:\s*\**\s*`?(?P<path>[^`*\s]+)`?\s*\**\s*$")
_PACKAGE_RE = re.compile(r"^\s*package\s+([\w.]+)\s*;", re.MULTILINE)
_TYPE_RE = re.compile(
    r"^\s*(?:(?:public|protected|private|abstract|final|sealed|non-sealed|static|strictfp)\s+)*"
    r"(?:class|interface|enum|record|@interface)\s+(\w+)",
    re.MULTILINE,
)
_PUBLIC_TYPE_RE = re.compile(
    r"^\s*public\s+(?:(?:abstract|final|sealed|non-sealed|static|strictfp)\s+)*"
    r"(?:class|interface|enum|record|@interface)\s+(\w+)",
    re.MULTILINE,
)


class CodeApplicationError(RuntimeError):
    """Raised when generated output cannot be turned into files on disk."""

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = dict(details or {})


@dataclass(slots=True)
class GeneratedFile:
    """One fenced code block and the path it was labelled with, if any."""

    content: str
    header_path: str | None = None
    language: str = ""


@dataclass(slots=True)
class CodeApplicationResult:
    """Files written and archived by a single application step."""

    written: list[Path] = field(default_factory=list)
    archived: list[Path] = field(default_factory=list)
    skipped: int = 0


def parse_generated_code(text: str) -> list[GeneratedFile]:
    """Split ``text`` into fenced code blocks, pairing each with the nearest ``File:`` header."""
    blocks: list[GeneratedFile] = []
    pending_header: str | None = None
    lines = text.splitlines()
    index = 0
    while index < len(lines):
        line = lines[index]
        header = _HEADER_RE.match(line)
        if header:
            pending_header = header.group("path")
            index += 1
            continue
        if _FENCE_RE.match(line):
            language = line.strip()[3:].strip()
            body: list[str] = []
            index += 1
            while index < len(lines) and not _FENCE_RE.match(lines[index]):
                body.append(lines[index])
                index += 1
            content = "\n".join(body)
            if body:
                content += "\n"
            blocks.append(GeneratedFile(content=content, header_path=pending_header, language=language))
            pending_header = None
        index += 1
    return blocks


def _java_target(content: str, main_root: Path, test_root: Path, extension: str) -> Path | None:
    """Derive the target path of a Java source from its package and primary type."""
    type_match = _PUBLIC_TYPE_RE.search(content) or _TYPE_RE.search(content)
    if type_match is None:
        return None
    type_name = type_match.group(1)
    package_match = _PACKAGE_RE.search(content)
    package_path = Path(*package_match.group(1).split(".")) if package_match else Path()
    is_test = type_name.endswith("Test") or "org.junit" in content
    base = test_root if is_test else main_root
    return base / package_path / f"{type_name}{extension}"


def _resolve_header(project_root: Path, raw: str) -> Path:
    candidate = Path(raw.strip())
    if candidate.is_absolute():
        raise CodeApplicationError(
            f"Generated file path must be relative to the project: {raw}",
            details={"path": raw},
        )
    target = (project_root / candidate).resolve()
    try:
        target.relative_to(project_root.resolve())
    except ValueError as error:
        raise CodeApplicationError(
            f"Generated file path escapes the project root: {raw}",
            details={"path": raw},
        ) from error
    return target


def _archive_name(path: Path, stamp: datetime) -> str:
    millis = f"{stamp.microsecond // 1000:03d}"
    return f"{path.stem}_{stamp.strftime('%Y%m%dT%H%M%S')}{millis}Z{path.suffix}"


def _archive_relative(path: Path, roots: tuple[Path, ...]) -> Path:
    for root in roots:
        try:
            return path.resolve().relative_to(root.resolve())
        except ValueError:
            continue
    return Path(path.name)


def apply_generated_code(
    project_root: Path,
    scratch_dir: Path,
    extension: str,
    generated: str,
    *,
    main_root: Path | None = None,
    test_root: Path | None = None,
) -> CodeApplicationResult:
    """Write every file found in ``generated`` below ``project_root``.

    Every target is resolved before anything is written, so a rejected path
    leaves the project untouched. Existing files are copied to
    ``<scratch>/archive/versions`` before being overwritten. Raises
    ``CodeApplicationError`` when nothing could be applied.
    """
    main_root = main_root or project_root / "src" / "main" / "java"
    test_root = test_root or project_root / "src" / "test" / "java"
    archive_root = scratch_dir / ARCHIVE_DIRNAME
    stamp = datetime.now(timezone.utc)

    blocks = parse_generated_code(generated)
    result = CodeApplicationResult()
    planned: list[tuple[Path, GeneratedFile]] = []
    for block in blocks:
        if block.header_path:
            target = _resolve_header(project_root, block.header_path)
        elif extension == ".java":
            target = _java_target(block.content, main_root, test_root, extension)
        else:
            target = None
        if target is None:
            LOGGER.warning("Skipping generated %s block without a target path", block.language or "code")
            result.skipped += 1
            continue
        planned.append((target, block))

    if not planned:
        raise CodeApplicationError(
            "Generated output did not contain any files to apply.",
            details={"blocks": len(blocks), "skipped": result.skipped},
        )

    for target, block in planned:
        if target.is_file():
            relative = _archive_relative(target, (main_root, test_root, project_root))
            archived = archive_root / relative.parent / _archive_name(target, stamp)
            archived.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(target, archived)
            result.archived.append(archived)

        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(block.content, encoding="utf-8")
        LOGGER.info("Wrote %s", target)
        result.written.append(target)
    return result
