"""
Dashboard state and the callbacks that keep it current.

DashboardCallbacks implements RunnerCallbacks by folding every notification
into a DashboardState. The renderer reads that state on each refresh, so the
supervisor never touches the terminal directly.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from ralph.core.run.models import AppStatus, OutputLine, TokenUsage

# Output lines retained for the live pane
MAX_OUTPUT_LINES = 1000


class DashboardState(BaseModel):
    """Everything the dashboard shows."""

    model: str = Field(..., description="Model the agent runs with")
    max_iterations: int = Field(..., ge=1, description="Iteration ceiling")
    current_iteration: int = Field(default=0, ge=0, description="Iteration in progress")
    status: AppStatus = Field(default=AppStatus.IDLE, description="Run status")
    status_message: str | None = Field(default=None, description="Reason for the status")
    current_task: str | None = Field(default=None, description="Task the agent announced")
    tokens: TokenUsage = Field(default_factory=TokenUsage, description="Cumulative tokens")
    retry_count: int = Field(default=0, ge=0, description="Retries in this iteration")
    output_lines: list[OutputLine] = Field(default_factory=list, description="Live output")
    started_at: datetime = Field(default_factory=datetime.now, description="Run start time")

    def elapsed_seconds(self, now: datetime | None = None) -> float:
        return ((now or datetime.now()) - self.started_at).total_seconds()


class DashboardCallbacks:
    """RunnerCallbacks that update a DashboardState in place."""

    def __init__(self, state: DashboardState) -> None:
        self.state = state

    def on_iteration_change(self, iteration: int) -> None:
        self.state.current_iteration = iteration
        self.state.status = AppStatus.RUNNING
        self.state.retry_count = 0

    def on_tokens_update(self, usage: TokenUsage) -> None:
        # Usage is already cumulative for the run
        self.state.tokens = usage

    def on_task_change(self, task: str) -> None:
        self.state.current_task = task

    def on_output(self, line: OutputLine) -> None:
        self.state.output_lines.append(line)
        if len(self.state.output_lines) > MAX_OUTPUT_LINES:
            del self.state.output_lines[:-MAX_OUTPUT_LINES]

    def on_status_change(self, status: AppStatus, message: str | None = None) -> None:
        self.state.status = status
        self.state.status_message = message

    def on_retry(self, retry: int) -> None:
        self.state.retry_count = retry
