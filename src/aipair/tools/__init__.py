"""Collaborators the repair loop drives: test runner, code writer, watcher."""

from .code_parser import CodeApplicationError, CodeApplicationResult, apply_generated_code, parse_generated_code
from .gradle_runner import GradleTestRunner, TestRunnerError
from .watcher import PollingWatcher
from .workspace import clear_directory, prepare_scratch_dir, read_build_descriptor

__all__ = [
    "CodeApplicationError",
    "CodeApplicationResult",
    "GradleTestRunner",
    "PollingWatcher",
    "TestRunnerError",
    "apply_generated_code",
    "clear_directory",
    "parse_generated_code",
    "prepare_scratch_dir",
    "read_build_descriptor",
]
