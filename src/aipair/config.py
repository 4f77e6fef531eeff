"""Configuration loading for AI Pair runs."""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv

from .models.registry import DEFAULT_MODEL, ProviderFamily

__all__ = [
    "ConfigError",
    "CREDENTIAL_ENV_VARS",
    "CycleErrorPolicy",
    "DEFAULT_CONFIG_NAME",
    "DEFAULT_CONFIG_TEMPLATE",
    "DEFAULT_EXTENSION",
    "DEFAULT_TEST_DIR",
    "RunnerConfig",
    "load_config",
    "load_credentials",
    "load_env_files",
]

DEFAULT_CONFIG_NAME = "aipair.yaml"
DEFAULT_EXTENSION = ".java"
DEFAULT_TEST_DIR = "src/test/java"

CREDENTIAL_ENV_VARS: Dict[ProviderFamily, str] = {
    ProviderFamily.OPENAI: "OPENAI_API_KEY",
    ProviderFamily.ANTHROPIC: "ANTHROPIC_API_KEY",
    ProviderFamily.GEMINI: "GEMINI_API_KEY",
}

DEFAULT_CONFIG_TEMPLATE: Dict[str, Any] = {
    "paths": {
        "scratch": "tmp",
        "main_source": "src/main",
        "build_descriptor": "build.gradle.kts",
    },
    "runner": {
        "command": None,
        "timeout": None,
    },
    "models": {
        "timeout": 120,
        "max_attempts": 3,
        "retry_delay": 0.5,
        "max_tokens": 8192,
    },
    "credentials": {
        "openai": "",
        "anthropic": "",
        "gemini": "",
    },
    "session": {
        "on_cycle_error": "raise",
    },
    "watch": {
        "interval": 1.0,
        "directories": ["src", "test"],
    },
}


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be used."""


class CycleErrorPolicy(str, Enum):
    """What the session does when generation or application fails inside a cycle."""

    RAISE = "raise"
    CONTINUE = "continue"


def _merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[Path]) -> Dict[str, Any]:
    """Return the default template merged with the YAML file at ``config_path``.

    A missing default config file is not an error; an explicitly requested one is.
    """
    if config_path is None:
        candidate = Path(DEFAULT_CONFIG_NAME)
        if not candidate.is_file():
            return copy.deepcopy(DEFAULT_CONFIG_TEMPLATE)
        config_path = candidate
    elif not config_path.is_file():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        raise ConfigError(f"Failed to parse config: {error}") from error

    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping at the top level.")
    return _merge(DEFAULT_CONFIG_TEMPLATE, data)


def load_env_files(*directories: Path) -> None:
    """Load ``.env`` files without overriding variables already set."""
    for directory in directories:
        env_file = directory / ".env"
        if env_file.is_file():
            load_dotenv(dotenv_path=env_file, override=False)


def load_credentials(
    config: Mapping[str, Any],
    env: Optional[Mapping[str, str]] = None,
) -> Dict[ProviderFamily, str]:
    """Collect one credential per provider family from config, then the environment."""
    environ = os.environ if env is None else env
    configured = config.get("credentials") or {}
    credentials: Dict[ProviderFamily, str] = {}
    for family, variable in CREDENTIAL_ENV_VARS.items():
        value = configured.get(family.value) if isinstance(configured, Mapping) else None
        if not (isinstance(value, str) and value.strip()):
            value = environ.get(variable, "")
        if value and value.strip():
            credentials[family] = value.strip()
    return credentials


def _positive_float(value: Any, default: Optional[float]) -> Optional[float]:
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
        return float(value)
    return default


@dataclass(slots=True)
class RunnerConfig:
    """Resolved settings for one AI Pair process."""

    project_root: Path
    test_dir: Path
    extension: str = DEFAULT_EXTENSION
    model: str = DEFAULT_MODEL
    scratch_dir: Path = field(default_factory=lambda: Path.cwd() / "tmp")
    main_source_dir: Optional[Path] = None
    build_descriptor: str = "build.gradle.kts"
    runner_command: Optional[tuple[str, ...]] = None
    runner_timeout: Optional[float] = None
    client_options: Dict[str, Any] = field(default_factory=dict)
    on_cycle_error: CycleErrorPolicy = CycleErrorPolicy.RAISE
    watch_interval: float = 1.0
    watch_directories: tuple[Path, ...] = ()

    def __post_init__(self) -> None:
        if self.main_source_dir is None:
            self.main_source_dir = self.project_root / "src" / "main"
        if not self.watch_directories:
            self.watch_directories = (self.project_root / "src", self.project_root / "test")

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any],
        *,
        project_root: Path,
        model: str = DEFAULT_MODEL,
        extension: str = DEFAULT_EXTENSION,
        test_dir: str = DEFAULT_TEST_DIR,
        cwd: Optional[Path] = None,
    ) -> "RunnerConfig":
        """Build settings from a merged config mapping plus CLI options."""
        root = project_root.resolve()
        base = (cwd or Path.cwd()).resolve()
        paths_cfg = config.get("paths") or {}
        runner_cfg = config.get("runner") or {}
        models_cfg = config.get("models") or {}
        session_cfg = config.get("session") or {}
        watch_cfg = config.get("watch") or {}

        scratch = Path(str(paths_cfg.get("scratch") or "tmp"))
        if not scratch.is_absolute():
            scratch = base / scratch

        command_value = runner_cfg.get("command")
        if isinstance(command_value, str) and command_value.strip():
            runner_command: Optional[tuple[str, ...]] = tuple(command_value.split())
        elif isinstance(command_value, list) and command_value:
            runner_command = tuple(str(part) for part in command_value)
        else:
            runner_command = None

        client_options: Dict[str, Any] = {}
        timeout_value = _positive_float(models_cfg.get("timeout"), None)
        if timeout_value is not None:
            client_options["timeout"] = timeout_value
        attempts_value = models_cfg.get("max_attempts")
        if isinstance(attempts_value, int) and attempts_value > 0:
            client_options["max_attempts"] = attempts_value
        delay_value = models_cfg.get("retry_delay")
        if isinstance(delay_value, (int, float)) and delay_value >= 0:
            client_options["retry_delay"] = float(delay_value)
        tokens_value = models_cfg.get("max_tokens")
        if isinstance(tokens_value, int) and tokens_value > 0:
            client_options["max_tokens"] = tokens_value

        policy_value = str(session_cfg.get("on_cycle_error") or CycleErrorPolicy.RAISE.value).lower()
        try:
            policy = CycleErrorPolicy(policy_value)
        except ValueError as error:
            valid = ", ".join(item.value for item in CycleErrorPolicy)
            raise ConfigError(f"session.on_cycle_error must be one of: {valid}") from error

        directories = watch_cfg.get("directories") or []
        watch_directories = tuple(root / str(entry) for entry in directories)

        return cls(
            project_root=root,
            test_dir=(root / test_dir).resolve(),
            extension=extension,
            model=model,
            scratch_dir=scratch,
            main_source_dir=root / str(paths_cfg.get("main_source") or "src/main"),
            build_descriptor=str(paths_cfg.get("build_descriptor") or "build.gradle.kts"),
            runner_command=runner_command,
            runner_timeout=_positive_float(runner_cfg.get("timeout"), None),
            client_options=client_options,
            on_cycle_error=policy,
            watch_interval=_positive_float(watch_cfg.get("interval"), 1.0) or 1.0,
            watch_directories=watch_directories,
        )
