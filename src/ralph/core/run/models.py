"""
Run loop configuration and outcome models.

Provides typed models for configuring and observing the iteration supervisor,
separated from CLI/rendering concerns. These models define:

- RunConfig: All parameters needed to configure a supervisor run
- OutputLine / OutputKind: Tagged lines for the live output pane
- IterationOutcome: Result of a single agent spawn
- RetryOutcome: Result of a retry-wrapped iteration
- RunResult: Final outcome of a complete run

Usage:
    >>> from ralph.core.run.models import RunConfig
    >>> config = RunConfig(model="opencode/claude-opus-4-5", max_iterations=10)
    >>> # Pass to RunLoop(config, callbacks).run()
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

DEFAULT_MODEL = "opencode/claude-opus-4-5"
DEFAULT_EXECUTABLE = "opencode"

# ===========================================================================
# RunConfig - All supervisor configuration
# ===========================================================================


@dataclass(frozen=True)
class RunConfig:
    """
    Configuration for a supervisor run.

    Created from CLI args and the loaded config file. Immutable once created.

    Attributes:
        model: Model identifier passed to ``opencode run --model``.
        max_iterations: Iteration ceiling for the run.
        cwd: Working directory for the agent process.
        prompt_file: Custom prompt file (built-in prompt if None).
        debug: Write per-iteration debug logs under ``.ralph/logs``.
        executable: Name or path of the agent CLI.
        max_retries: Retries per iteration after the first attempt.
        retry_delay: Seconds to wait between attempts.
        iteration_delay: Seconds to wait between iterations.
        kill_grace: Seconds between SIGTERM and SIGKILL on cancellation.
    """

    model: str = DEFAULT_MODEL
    max_iterations: int = 100
    cwd: str = "."
    prompt_file: str | None = None
    debug: bool = False

    # Agent process
    executable: str = DEFAULT_EXECUTABLE

    # Retry and pacing
    max_retries: int = 3
    retry_delay: float = 3.0
    iteration_delay: float = 2.0
    kill_grace: float = 1.0


# ===========================================================================
# Status enums
# ===========================================================================


class RunPhase(str, Enum):
    """State of the supervisor state machine."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETE = "complete"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (RunPhase.COMPLETE, RunPhase.FAILED, RunPhase.CANCELLED)


class AppStatus(str, Enum):
    """Status reported to the presentation layer."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETE = "complete"
    ERROR = "error"
    CANCELLED = "cancelled"


PHASE_TO_STATUS: dict[RunPhase, AppStatus] = {
    RunPhase.IDLE: AppStatus.IDLE,
    RunPhase.RUNNING: AppStatus.RUNNING,
    RunPhase.COMPLETE: AppStatus.COMPLETE,
    RunPhase.FAILED: AppStatus.ERROR,
    RunPhase.CANCELLED: AppStatus.CANCELLED,
}


class OutputKind(str, Enum):
    """Category tag for a live output line."""

    DEFAULT = "default"
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    TOOL = "tool"


@dataclass(frozen=True)
class OutputLine:
    """One append-only line for the live output pane."""

    content: str
    kind: OutputKind = OutputKind.DEFAULT
    timestamp: datetime = field(default_factory=datetime.now)


# ===========================================================================
# Token accounting
# ===========================================================================


class TokenUsage(BaseModel):
    """
    Cumulative token usage for a run.

    Only ever grows: step totals are added, never subtracted or reset
    between iterations.
    """

    input_tokens: int = Field(default=0, ge=0, description="Input tokens consumed")
    output_tokens: int = Field(default=0, ge=0, description="Output tokens generated")
    reasoning_tokens: int = Field(default=0, ge=0, description="Reasoning tokens generated")
    cache_read_tokens: int = Field(default=0, ge=0, description="Tokens read from prompt cache")
    cache_write_tokens: int = Field(default=0, ge=0, description="Tokens written to prompt cache")
    cost_usd: float = Field(default=0.0, ge=0.0, description="Reported cost in USD")

    @property
    def total_tokens(self) -> int:
        """Total tokens consumed (input + output)."""
        return self.input_tokens + self.output_tokens


# ===========================================================================
# Outcomes
# ===========================================================================


@dataclass
class IterationOutcome:
    """
    Result of one spawn of the agent.

    Attributes:
        success: The agent exited with code 0.
        completed: The completion marker has been seen in this run.
        cancelled: The attempt ended because of a cancellation request.
        error: Human-readable failure reason.
        exit_code: Process exit code (negative for signal termination).
        events_seen: Number of classified stream events.
        meaningful_events_seen: Events with text content or tool use.
    """

    success: bool
    completed: bool = False
    cancelled: bool = False
    error: str | None = None
    exit_code: int | None = None
    events_seen: int = 0
    meaningful_events_seen: int = 0

    @property
    def empty(self) -> bool:
        """The agent produced no meaningful events."""
        return self.meaningful_events_seen == 0


@dataclass
class RetryOutcome:
    """
    Result of a retry-wrapped iteration.

    ``exhausted`` implies the final attempt neither succeeded nor completed.
    """

    outcome: IterationOutcome
    retries_used: int = 0
    exhausted: bool = False

    @property
    def success(self) -> bool:
        return self.outcome.success

    @property
    def completed(self) -> bool:
        return self.outcome.completed

    @property
    def cancelled(self) -> bool:
        return self.outcome.cancelled

    @property
    def error(self) -> str | None:
        return self.outcome.error


@dataclass
class RunResult:
    """
    Final outcome of a complete supervisor run.

    Attributes:
        phase: Terminal phase reached.
        iterations_run: Iterations started (including a cancelled one).
        completed: The completion marker was observed.
        error: Reason for a non-success terminal phase.
        total_tokens: Cumulative token usage across the run.
    """

    phase: RunPhase
    iterations_run: int = 0
    completed: bool = False
    error: str | None = None
    total_tokens: TokenUsage = field(default_factory=TokenUsage)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def success(self) -> bool:
        return self.phase == RunPhase.COMPLETE

    @property
    def cancelled(self) -> bool:
        return self.phase == RunPhase.CANCELLED

    @property
    def duration_seconds(self) -> float:
        if self.started_at is None or self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()
