"""Interactive driver that repeats repair cycles under human control."""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Protocol, Sequence

import typer

from .models.llm_client import CodeGenerationClient
from .models.registry import valid_models
from .orchestrator import CycleResult, RepairCycleEngine, SessionState

__all__ = ["MENU_PROMPT", "SessionController", "SessionOutcome"]

LOGGER = logging.getLogger(__name__)

MENU_PROMPT = (
    "Options: [c]ontinue, provide [h]int, change [m]odel, e[x]it, [w]atch for changes. "
    "(Press Enter to continue)"
)
HINT_PROMPT = "Provide a hint to be used to regenerate code"
MODEL_PROMPT = "Enter the number or name of the model you want to use"


class SessionOutcome(str, Enum):
    """How the interactive loop ended."""

    EXIT = "exit"
    WATCH = "watch"


class ChangeWatcher(Protocol):
    def watch(self, on_change: Callable[[list[Path]], list[Path]]) -> object: ...


def _default_prompt(text: str) -> str:
    return typer.prompt(text, default="", show_default=False)


class SessionController:
    """Run one cycle, then loop over the menu until exit or watch mode."""

    def __init__(
        self,
        engine: RepairCycleEngine,
        state: SessionState,
        *,
        select_backend: Callable[[str], CodeGenerationClient],
        watcher_factory: Callable[[], ChangeWatcher],
        prompt: Callable[[str], str] = _default_prompt,
        echo: Callable[[str], None] = typer.echo,
        models: Optional[Sequence[str]] = None,
    ) -> None:
        self._engine = engine
        self._state = state
        self._select_backend = select_backend
        self._watcher_factory = watcher_factory
        self._prompt = prompt
        self._echo = echo
        self._models = list(models or valid_models())

    @property
    def state(self) -> SessionState:
        return self._state

    def run(self) -> SessionOutcome:
        self.handle_single_iteration()
        return self.interactive_loop()

    def handle_single_iteration(self, force: bool = False) -> CycleResult:
        result = self._engine.run_cycle(self._state, force=force)
        if result.passed:
            LOGGER.debug("All tests passed!")
        elif result.error is not None:
            self._echo(f"Cycle failed during {result.state.value}: {result.error}")
        else:
            self._echo(result.test_output)
        return result

    def interactive_loop(self) -> SessionOutcome:
        while True:
            choice = self._prompt(MENU_PROMPT).strip().lower()
            if choice in ("c", ""):
                self._echo("Continuing with the next iteration...")
                self.handle_single_iteration()
            elif choice == "h":
                self.handle_hint()
            elif choice == "m":
                self.handle_model_change()
            elif choice in ("e", "x"):
                self._echo("Exiting...")
                return SessionOutcome.EXIT
            elif choice == "w":
                self._echo("Watch mode enabled. Watching for changes in the source and test directories...")
                self.watch_code()
                return SessionOutcome.WATCH
            else:
                self._echo("Invalid option. Please try again.")

    def handle_hint(self) -> CycleResult:
        hint = self._prompt(HINT_PROMPT)
        if hint.strip():
            self._state.add_hint(hint)
        return self.handle_single_iteration(force=True)

    def prompt_for_model(self) -> str:
        """Ask until the answer names an allow-listed model by number or name."""
        while True:
            self._echo("Select a model:")
            for index, model in enumerate(self._models, start=1):
                self._echo(f"{index}. {model}")
            answer = self._prompt(MODEL_PROMPT).strip()
            if answer.isdigit() and 1 <= int(answer) <= len(self._models):
                return self._models[int(answer) - 1]
            if answer in self._models:
                return answer
            self._echo(f"Invalid model selection: {answer!r}")

    def handle_model_change(self) -> CycleResult:
        model = self.prompt_for_model()
        client = self._select_backend(model)
        self._state.switch_backend(model, client)
        LOGGER.info("Switched to model: %s", client.model)
        self._echo(f"Switched to model: {client.model}")
        return self.handle_single_iteration(force=True)

    def _on_change(self, changed: list[Path]) -> list[Path]:
        """Run a forced cycle and return the files it wrote."""
        for path in changed:
            self._echo(f"Detected changes in {path}.")
        result = self.handle_single_iteration(force=True)
        return list(result.applied.written) if result.applied else []

    def watch_code(self) -> None:
        watcher = self._watcher_factory()
        watcher.watch(self._on_change)
