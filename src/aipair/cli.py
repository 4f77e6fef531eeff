"""CLI entry point for the AI Pair repair loop."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import typer

from .config import (
    DEFAULT_EXTENSION,
    DEFAULT_TEST_DIR,
    ConfigError,
    RunnerConfig,
    load_config,
    load_credentials,
    load_env_files,
)
from .models.llm_client import CodeGenerationClient, LLMClientError
from .models.registry import (
    DEFAULT_MODEL,
    MODEL_FAMILIES,
    BackendSelectionError,
    MissingCredentialError,
    UnknownModelError,
    resolve_backend,
    validate_model,
)
from .orchestrator import RepairCycleEngine, SessionState
from .session import SessionController, SessionOutcome
from .tools.code_parser import CodeApplicationError
from .tools.gradle_runner import GradleTestRunner, TestRunnerError
from .tools.watcher import PollingWatcher
from .tools.workspace import prepare_scratch_dir, read_build_descriptor

APP_HELP = "Pair with an AI model to make a failing test suite pass."
LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"

app = typer.Typer(help=APP_HELP)

LOGGER = logging.getLogger(__name__)


def _validate_model_option(value: str) -> str:
    try:
        return validate_model(value)
    except UnknownModelError as error:
        raise typer.BadParameter(str(error)) from error


def _configure_logging(level_name: Optional[str]) -> None:
    """Configure the root logger once from ``--log-level`` or ``LOG_LEVEL``."""
    name = (level_name or os.getenv("LOG_LEVEL") or "WARNING").upper()
    level = getattr(logging, name, None)
    if not isinstance(level, int):
        raise typer.BadParameter(f"Unknown log level: {name}", param_hint="--log-level")
    logging.basicConfig(level=level, format=LOG_FORMAT)
    LOGGER.debug("Log level: %s", name)


@app.command()
def run(
    project_root: Path = typer.Option(
        ...,
        "--project-root",
        "-p",
        exists=True,
        file_okay=False,
        dir_okay=True,
        help="Root directory of the project whose tests should pass.",
    ),
    model: str = typer.Option(
        DEFAULT_MODEL,
        "--model",
        "-m",
        callback=_validate_model_option,
        help=f"Model to generate code with. One of: {', '.join(MODEL_FAMILIES)}.",
    ),
    extension: str = typer.Option(
        DEFAULT_EXTENSION,
        "--extension",
        "-e",
        help="Extension of the source files sent to the model.",
    ),
    test_dir: str = typer.Option(
        DEFAULT_TEST_DIR,
        "--test-dir",
        "-t",
        help="Test source directory, relative to the project root.",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Optional YAML configuration file (defaults to ./aipair.yaml when present).",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Logging level (defaults to LOG_LEVEL or WARNING).",
    ),
) -> None:
    """Run a repair cycle, then keep iterating under interactive control."""
    load_env_files(Path.cwd())
    _configure_logging(log_level)

    try:
        config_data = load_config(config)
        settings = RunnerConfig.from_config(
            config_data,
            project_root=project_root,
            model=model,
            extension=extension,
            test_dir=test_dir,
        )
    except ConfigError as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error

    credentials = load_credentials(config_data)

    def select_backend(name: str) -> CodeGenerationClient:
        return resolve_backend(name, credentials, **settings.client_options).client

    try:
        resolution = resolve_backend(model, credentials, **settings.client_options)
    except MissingCredentialError as error:
        typer.echo(f"Error: No API key found for {error.family.value} model family.")
        typer.echo("Please set the appropriate environment variable.")
        raise typer.Exit(code=1) from error

    prepare_scratch_dir(settings.scratch_dir)
    state = SessionState(
        model=model,
        client=resolution.client,
        build_descriptor=read_build_descriptor(settings.project_root, settings.build_descriptor),
    )
    engine = RepairCycleEngine(
        settings,
        runner=GradleTestRunner(command=settings.runner_command, timeout=settings.runner_timeout),
    )
    controller = SessionController(
        engine,
        state,
        select_backend=select_backend,
        watcher_factory=lambda: PollingWatcher(settings.watch_directories, interval=settings.watch_interval),
    )

    try:
        outcome = controller.run()
    except MissingCredentialError as error:
        typer.echo(f"Error: No API key found for {error.family.value} model family.")
        typer.echo("Please set the appropriate environment variable.")
        raise typer.Exit(code=1) from error
    except (
        BackendSelectionError,
        CodeApplicationError,
        LLMClientError,
        TestRunnerError,
        FileNotFoundError,
    ) as error:
        typer.echo(f"Failed to run AI Pair: {error}")
        raise typer.Exit(code=1) from error

    if outcome is SessionOutcome.EXIT:
        raise typer.Exit(code=0)


@app.command()
def models() -> None:
    """List the models accepted by --model and their provider families."""
    for name, family in MODEL_FAMILIES.items():
        typer.echo(f"{name}\t{family.value}")


if __name__ == "__main__":
    app()
