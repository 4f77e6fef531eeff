from __future__ import annotations

import sys
import textwrap
from dataclasses import dataclass, field
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from aipair.config import RunnerConfig  # noqa: E402
from aipair.orchestrator import SessionState  # noqa: E402


@dataclass(slots=True)
class JavaProject:
    """Fixture payload representing a tiny Gradle project under test."""

    root: Path
    scratch: Path

    @property
    def test_dir(self) -> Path:
        return self.root / "src" / "test" / "java"

    def config(self, **overrides: object) -> RunnerConfig:
        values: dict[str, object] = {
            "project_root": self.root,
            "test_dir": self.test_dir,
            "scratch_dir": self.scratch,
        }
        values.update(overrides)
        return RunnerConfig(**values)  # type: ignore[arg-type]


@dataclass
class FakeRunner:
    """Scripted test runner: pops one outcome per ``run_tests`` call."""

    outcomes: list[bool]
    outputs: list[str] = field(default_factory=list)
    failures: list[str] = field(default_factory=list)
    calls: int = 0
    _output: str = ""

    def run_tests(self, project_root: Path, scratch_dir: Path) -> bool:
        index = self.calls
        self.calls += 1
        passed = self.outcomes[index] if index < len(self.outcomes) else self.outcomes[-1]
        if self.outputs:
            self._output = self.outputs[min(index, len(self.outputs) - 1)]
        else:
            self._output = "BUILD SUCCESSFUL" if passed else "BUILD FAILED"
        return passed

    def read_output(self, scratch_dir: Path) -> str:
        return self._output

    def summarize_failures(self, project_root: Path, scratch_dir: Path) -> list[str]:
        return list(self.failures)


class FakeClient:
    """Backend double that records prompts and returns canned output."""

    def __init__(self, model: str = "gpt-4o", response: str | None = None) -> None:
        self.model = model
        self.prompts: list[str] = []
        self.system_prompts: list[str] = []
        self.response = response or textwrap.dedent(
            """
            File: src/main/java/org/ex/Thing.java
            ```java
            package org.ex;

            public class Thing {
                public int answer() { return 42; }
            }
            ```
            """
        )

    def generate_code(self, prompt: str, work_dir: Path, system_prompt: str) -> str:
        self.prompts.append(prompt)
        self.system_prompts.append(system_prompt)
        return self.response


@pytest.fixture()
def java_project(tmp_path: Path) -> JavaProject:
    """Create a minimal Gradle-style Java project with one failing test class."""

    root = tmp_path / "project"
    main_pkg = root / "src" / "main" / "java" / "org" / "ex"
    test_pkg = root / "src" / "test" / "java" / "org" / "ex"
    main_pkg.mkdir(parents=True)
    test_pkg.mkdir(parents=True)

    (main_pkg / "Thing.java").write_text(
        textwrap.dedent(
            """
            package org.ex;

            public class Thing {
                public int answer() { return 0; }
            }
            """
        ).lstrip(),
        encoding="utf-8",
    )
    (test_pkg / "ThingTest.java").write_text(
        textwrap.dedent(
            """
            package org.ex;

            import org.junit.jupiter.api.Test;
            import static org.junit.jupiter.api.Assertions.assertEquals;

            class ThingTest {
                @Test
                void testAnswer() { assertEquals(42, new Thing().answer()); }
            }
            """
        ).lstrip(),
        encoding="utf-8",
    )
    (root / "build.gradle.kts").write_text('plugins {\n    id("java")\n}\n', encoding="utf-8")

    return JavaProject(root=root, scratch=tmp_path / "tmp")


@pytest.fixture()
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture()
def session_state(fake_client: FakeClient, java_project: JavaProject) -> SessionState:
    return SessionState(
        model="gpt-4o",
        client=fake_client,  # type: ignore[arg-type]
        build_descriptor=(java_project.root / "build.gradle.kts").read_text(encoding="utf-8"),
    )


@pytest.fixture()
def make_runner():
    """Factory for scripted runners so tests in subdirectories need no imports."""

    def _make(outcomes: list[bool], **kwargs: object) -> FakeRunner:
        return FakeRunner(outcomes=list(outcomes), **kwargs)  # type: ignore[arg-type]

    return _make


@pytest.fixture()
def make_client():
    def _make(model: str = "gpt-4o", response: str | None = None) -> FakeClient:
        return FakeClient(model=model, response=response)

    return _make
