"""
Pytest configuration and shared fixtures.

Provides fixtures for project directories, recording callbacks, run
contexts, and scriptable fake agent executables used across the test suite.
"""

from __future__ import annotations

import os
import stat
import sys
import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest

from ralph.core.config.loader import clear_cache
from ralph.core.run.context import RunContext
from ralph.core.run.models import AppStatus, OutputKind, OutputLine, RunConfig, TokenUsage

# ==============================================================================
# Recording Callbacks
# ==============================================================================


class RecordingCallbacks:
    """RunnerCallbacks that remember every notification."""

    def __init__(self) -> None:
        self.iterations: list[int] = []
        self.tokens: list[TokenUsage] = []
        self.tasks: list[str] = []
        self.lines: list[OutputLine] = []
        self.statuses: list[tuple[AppStatus, str | None]] = []
        self.retries: list[int] = []

    def on_iteration_change(self, iteration: int) -> None:
        self.iterations.append(iteration)

    def on_tokens_update(self, usage: TokenUsage) -> None:
        self.tokens.append(usage)

    def on_task_change(self, task: str) -> None:
        self.tasks.append(task)

    def on_output(self, line: OutputLine) -> None:
        self.lines.append(line)

    def on_status_change(self, status: AppStatus, message: str | None = None) -> None:
        self.statuses.append((status, message))

    def on_retry(self, retry: int) -> None:
        self.retries.append(retry)

    def contents(self, kind: OutputKind | None = None) -> list[str]:
        """Output line texts, optionally filtered by kind."""
        return [line.content for line in self.lines if kind is None or line.kind == kind]


@pytest.fixture
def callbacks() -> RecordingCallbacks:
    """Provide a fresh recording callbacks object."""
    return RecordingCallbacks()


@pytest.fixture
def run_context() -> RunContext:
    """Provide a fresh run context."""
    return RunContext()


# ==============================================================================
# Directory Fixtures
# ==============================================================================


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """
    Provide a temporary project directory with the files ralph requires.

    Creates:
    - plan.md
    - progress.md
    """
    project = tmp_path / "project"
    project.mkdir()
    (project / "plan.md").write_text("# Plan\n\n- [ ] Task 1.1: Add login\n")
    (project / "progress.md").write_text("# Progress\n")
    return project


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Keep tests away from the real user config and RALPH_* variables."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    for name in list(os.environ):
        if name.startswith("RALPH_"):
            monkeypatch.delenv(name)
    clear_cache()
    yield
    clear_cache()


# ==============================================================================
# Fake Agent
# ==============================================================================


@pytest.fixture
def make_agent(tmp_path: Path) -> Callable[[str], str]:
    """
    Build an executable that stands in for the opencode CLI.

    The returned factory takes the Python body of the script and returns its
    path. Inside the body, ``args`` holds the command-line arguments and
    ``emit(obj)`` writes one JSON line to stdout.
    """
    if sys.platform == "win32":
        pytest.skip("fake agent scripts need a POSIX shebang")

    counter = {"n": 0}

    def factory(body: str) -> str:
        counter["n"] += 1
        path = tmp_path / f"fake-agent-{counter['n']}"
        script = (
            f"#!{sys.executable}\n"
            "import json, os, signal, sys, time\n"
            "args = sys.argv[1:]\n"
            "def emit(obj):\n"
            "    sys.stdout.write(json.dumps(obj) + '\\n')\n"
            "    sys.stdout.flush()\n"
            + textwrap.dedent(body)
        )
        path.write_text(script)
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(path)

    return factory


@pytest.fixture
def fast_config(project_dir: Path) -> Callable[..., RunConfig]:
    """Build a RunConfig with zero delays rooted in the project directory."""

    def factory(**overrides) -> RunConfig:
        values = {
            "cwd": str(project_dir),
            "max_iterations": 3,
            "retry_delay": 0.0,
            "iteration_delay": 0.0,
            "kill_grace": 0.5,
        }
        values.update(overrides)
        return RunConfig(**values)

    return factory
