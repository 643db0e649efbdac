"""
Callback surface between the supervisor and whatever presents it.

The supervisor never renders anything itself. Every user-visible fact goes
through a RunnerCallbacks implementation: the rich dashboard in the CLI, a
recording fake in tests, or NullCallbacks when nothing is listening.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ralph.core.run.models import AppStatus, OutputKind, OutputLine, TokenUsage


@runtime_checkable
class RunnerCallbacks(Protocol):
    """Notifications emitted while a run progresses."""

    def on_iteration_change(self, iteration: int) -> None:
        """A new iteration (1-indexed) has started."""
        ...

    def on_tokens_update(self, usage: TokenUsage) -> None:
        """Cumulative token usage for the run has grown."""
        ...

    def on_task_change(self, task: str) -> None:
        """The agent announced a different task."""
        ...

    def on_output(self, line: OutputLine) -> None:
        """A line should be appended to the live output."""
        ...

    def on_status_change(self, status: AppStatus, message: str | None = None) -> None:
        """The run changed state."""
        ...

    def on_retry(self, retry: int) -> None:
        """Retry number ``retry`` of the current iteration is about to run."""
        ...


class NullCallbacks:
    """RunnerCallbacks that discards everything."""

    def on_iteration_change(self, iteration: int) -> None:
        pass

    def on_tokens_update(self, usage: TokenUsage) -> None:
        pass

    def on_task_change(self, task: str) -> None:
        pass

    def on_output(self, line: OutputLine) -> None:
        pass

    def on_status_change(self, status: AppStatus, message: str | None = None) -> None:
        pass

    def on_retry(self, retry: int) -> None:
        pass


def emit(callbacks: RunnerCallbacks, content: str, kind: OutputKind = OutputKind.DEFAULT) -> None:
    """Shorthand for sending one output line."""
    callbacks.on_output(OutputLine(content=content, kind=kind))
