"""Gradle test execution and failure summaries for the repair loop."""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Sequence

__all__ = ["GradleTestRunner", "TEST_OUTPUT_NAME", "TestRunnerError", "parse_console_failures", "parse_junit_reports"]

LOGGER = logging.getLogger(__name__)

TEST_OUTPUT_NAME = "test_output.txt"
RESULTS_DIR = Path("build") / "test-results" / "test"

_CONSOLE_FAILURE_RE = re.compile(r"^\s*(?P<cls>[\w.$]+)\s+>\s+(?P<method>.+?)\s+FAILED\s*$", re.MULTILINE)


class TestRunnerError(RuntimeError):
    """Raised when the test command cannot be started at all."""

    __test__ = False


def _method_name(raw: str) -> str:
    """Drop any ``(...)`` parameter list Gradle/JUnit 5 appends to method names."""
    return raw.split("(", 1)[0].strip()


def parse_junit_reports(results_dir: Path) -> list[str]:
    """Return failing tests as ``method(Class)`` from JUnit XML reports."""
    failures: list[str] = []
    if not results_dir.is_dir():
        return failures
    for report in sorted(results_dir.glob("TEST-*.xml")):
        try:
            tree = ET.parse(report)
        except ET.ParseError as error:
            LOGGER.warning("Skipping unreadable test report %s: %s", report, error)
            continue
        for case in tree.getroot().iter("testcase"):
            if case.find("failure") is None and case.find("error") is None:
                continue
            class_name = case.get("classname") or ""
            method = _method_name(case.get("name") or "")
            failures.append(f"{method}({class_name})")
    return failures


def parse_console_failures(output: str) -> list[str]:
    """Return failing tests as ``method(Class)`` from Gradle console output."""
    return [
        f"{_method_name(match.group('method'))}({match.group('cls')})"
        for match in _CONSOLE_FAILURE_RE.finditer(output)
    ]


@dataclass(slots=True)
class GradleTestRunner:
    """Run ``gradle test`` and expose the failing tests of the last run."""

    command: Sequence[str] | None = None
    timeout: float | None = None
    env: Mapping[str, str] | None = None

    def resolve_command(self, project_root: Path) -> tuple[str, ...]:
        """Prefer the project's wrapper script over a global ``gradle``."""
        if self.command:
            return tuple(self.command)
        wrapper = project_root / ("gradlew.bat" if os.name == "nt" else "gradlew")
        if wrapper.is_file():
            return (str(wrapper), "test", "--continue")
        return ("gradle", "test", "--continue")

    def run_tests(self, project_root: Path, scratch_dir: Path) -> bool:
        """Run the suite, write the combined output to the report file, return success."""
        scratch_dir.mkdir(parents=True, exist_ok=True)
        shutil.rmtree(project_root / RESULTS_DIR, ignore_errors=True)

        command = self.resolve_command(project_root)
        env = os.environ.copy()
        if self.env:
            env.update({str(key): str(value) for key, value in self.env.items()})
        LOGGER.debug("Running %s in %s", " ".join(command), project_root)
        try:
            process = subprocess.run(  # noqa: S603 - command built from config values
                command,
                cwd=project_root,
                env=env,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=False,
                timeout=self.timeout,
            )
        except FileNotFoundError as error:
            raise TestRunnerError(f"Test command not found: {command[0]}") from error
        except subprocess.TimeoutExpired as error:
            raise TestRunnerError(f"Test command timed out after {self.timeout}s") from error

        report = "\n".join(part for part in (process.stdout, process.stderr) if part)
        (scratch_dir / TEST_OUTPUT_NAME).write_text(report, encoding="utf-8")
        LOGGER.debug("Test command exited with %d", process.returncode)
        return process.returncode == 0

    def read_output(self, scratch_dir: Path) -> str:
        path = scratch_dir / TEST_OUTPUT_NAME
        if not path.is_file():
            return ""
        return path.read_text(encoding="utf-8", errors="replace")

    def summarize_failures(self, project_root: Path, scratch_dir: Path) -> list[str]:
        """Return the ordered failing tests of the last run."""
        failures = parse_junit_reports(project_root / RESULTS_DIR)
        if failures:
            return failures
        return parse_console_failures(self.read_output(scratch_dir))
