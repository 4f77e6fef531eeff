"""Repair cycle state machine: test, extract, collect, prompt, generate, apply, retest."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Protocol, Sequence

import typer

from .config import CycleErrorPolicy, RunnerConfig
from .context_builder import collect_files_with_extension
from .failures import extract_test_files
from .models.llm_client import CodeGenerationClient, LLMClientError
from .prompts import (
    DEFAULT_PROMPT_TEMPLATE,
    DEFAULT_SYSTEM_PROMPT,
    NO_TEST_OUTPUT,
    append_session_log,
    render_prompt,
)
from .tools.code_parser import CodeApplicationError, CodeApplicationResult, apply_generated_code

__all__ = [
    "CycleResult",
    "CycleState",
    "RepairCycleEngine",
    "SessionState",
    "SuiteRunner",
]

LOGGER = logging.getLogger(__name__)


class CycleState(str, Enum):
    """States a single repair cycle moves through."""

    IDLE = "idle"
    TESTING = "testing"
    PASSED_EARLY = "passed_early"
    EXTRACTING_FAILURES = "extracting_failures"
    COLLECTING_CONTEXT = "collecting_context"
    PROMPTING = "prompting"
    GENERATING = "generating"
    APPLYING = "applying"
    RETESTING = "retesting"
    DONE = "done"


class SuiteRunner(Protocol):
    """Test collaborator contract used by the engine."""

    def run_tests(self, project_root: Path, scratch_dir: Path) -> bool: ...

    def read_output(self, scratch_dir: Path) -> str: ...

    def summarize_failures(self, project_root: Path, scratch_dir: Path) -> list[str]: ...


CodeApplier = Callable[..., CodeApplicationResult]


@dataclass(slots=True)
class SessionState:
    """Everything that survives from one cycle to the next within a process."""

    model: str
    client: CodeGenerationClient
    build_descriptor: str = ""
    hints: list[str] = field(default_factory=list)
    last_failures: list[str] = field(default_factory=list)
    last_test_output: str = NO_TEST_OUTPUT

    def add_hint(self, hint: str) -> None:
        self.hints.append(hint)
        LOGGER.debug("Added hint: %s", hint)

    def switch_backend(self, model: str, client: CodeGenerationClient) -> None:
        self.model = model
        self.client = client


@dataclass(slots=True)
class CycleResult:
    """Outcome of one repair cycle."""

    passed: bool
    test_output: str
    state: CycleState
    forced: bool = False
    failures: tuple[str, ...] = ()
    generation_calls: int = 0
    applied: Optional[CodeApplicationResult] = None
    error: Optional[Exception] = None


class RepairCycleEngine:
    """Run exactly one repair attempt per call to ``run_cycle``."""

    def __init__(
        self,
        config: RunnerConfig,
        *,
        runner: SuiteRunner,
        apply_code: CodeApplier = apply_generated_code,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        prompt_template: str = DEFAULT_PROMPT_TEMPLATE,
        echo: Callable[[str], None] = typer.echo,
    ) -> None:
        self._config = config
        self._runner = runner
        self._apply_code = apply_code
        self._system_prompt = system_prompt
        self._prompt_template = prompt_template
        self._echo = echo
        self.state = CycleState.IDLE

    @property
    def config(self) -> RunnerConfig:
        return self._config

    def _enter(self, state: CycleState) -> None:
        LOGGER.debug("Cycle state %s -> %s", self.state.value, state.value)
        self.state = state

    def _run_tests(self, session: SessionState) -> tuple[bool, str]:
        config = self._config
        passed = self._runner.run_tests(config.project_root, config.scratch_dir)
        output = self._runner.read_output(config.scratch_dir)
        session.last_test_output = output
        if passed:
            session.last_failures = []
        else:
            session.last_failures = list(
                self._runner.summarize_failures(config.project_root, config.scratch_dir)
            )
        return passed, output

    def run_cycle(self, session: SessionState, *, force: bool = False) -> CycleResult:
        """Run one cycle against ``session``.

        Without ``force`` a passing pre-check ends the cycle before any backend
        call. With ``force`` the pre-check is skipped and the last known failures
        and test output are reused.
        """
        config = self._config
        self.state = CycleState.IDLE

        if not force:
            self._enter(CycleState.TESTING)
            self._echo("Performing initial test to determine if changes are needed")
            passed, test_output = self._run_tests(session)
            if passed:
                self._enter(CycleState.PASSED_EARLY)
                self._echo("Project compiles and all tests passed! No changes needed.")
                return CycleResult(passed=True, test_output=test_output, state=self.state)
        else:
            test_output = session.last_test_output or NO_TEST_OUTPUT
        failures: Sequence[str] = tuple(session.last_failures)

        self._enter(CycleState.EXTRACTING_FAILURES)
        test_files = extract_test_files(failures, config.test_dir, config.extension)

        self._enter(CycleState.COLLECTING_CONTEXT)
        code_files = collect_files_with_extension([config.main_source_dir], config.extension)
        for source in code_files:
            LOGGER.debug("Found code file: %s", source.path)
        self._echo(
            f"{len(code_files)} code files and {len(test_files)} test files will be used for code generation"
        )

        self._enter(CycleState.PROMPTING)
        prompt = render_prompt(
            test_output=test_output,
            files=[*code_files, *test_files],
            project_root=config.project_root,
            build_descriptor=session.build_descriptor,
            hints=session.hints,
            template=self._prompt_template,
        )
        append_session_log(config.scratch_dir, prompt)

        applied: Optional[CodeApplicationResult] = None
        generation_calls = 0
        try:
            self._enter(CycleState.GENERATING)
            self._echo(f"Generating code with {session.client.model}")
            generation_calls = 1
            generated = session.client.generate_code(prompt, config.scratch_dir, self._system_prompt)

            self._enter(CycleState.APPLYING)
            applied = self._apply_code(
                config.project_root,
                config.scratch_dir,
                config.extension,
                generated,
                test_root=config.test_dir,
            )
        except (LLMClientError, CodeApplicationError) as error:
            if config.on_cycle_error is CycleErrorPolicy.RAISE:
                raise
            LOGGER.error("Cycle failed while %s: %s", self.state.value, error)
            return CycleResult(
                passed=False,
                test_output=test_output,
                state=self.state,
                forced=force,
                failures=tuple(failures),
                generation_calls=generation_calls,
                error=error,
            )

        self._enter(CycleState.RETESTING)
        self._echo("Running tests to see if the changes fixed the problem")
        passed, retest_output = self._run_tests(session)

        self._enter(CycleState.DONE)
        return CycleResult(
            passed=passed,
            test_output=retest_output,
            state=self.state,
            forced=force,
            failures=tuple(failures),
            generation_calls=generation_calls,
            applied=applied,
        )
