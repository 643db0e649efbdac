"""
Core run package.

Provides the iteration supervisor for the ralph run command, separated from
CLI concerns. Everything here reports through RunnerCallbacks and can be
driven by any interface (CLI, tests, other harnesses).

Modules:
    models: Configuration, outcome, and status models.
    callbacks: The RunnerCallbacks protocol.
    context: Run-scoped state (cancellation, active process, tokens).
    session: One spawn of the agent wired into the stream pipeline.
    retry: Fixed-delay retry policy per iteration.
    loop: Iteration supervisor state machine.
    interrupt: SIGINT/SIGTERM cancellation.
    errors: Error types and diagnostic message tables.
"""

from ralph.core.run.callbacks import NullCallbacks, RunnerCallbacks
from ralph.core.run.context import RunContext
from ralph.core.run.interrupt import EXIT_CODE_CANCELLED, CancellationController
from ralph.core.run.loop import RunLoop
from ralph.core.run.models import (
    AppStatus,
    IterationOutcome,
    OutputKind,
    OutputLine,
    RetryOutcome,
    RunConfig,
    RunPhase,
    RunResult,
    TokenUsage,
)
from ralph.core.run.retry import RetryPolicy
from ralph.core.run.session import ProcessSession

__all__ = [
    # Models
    "AppStatus",
    "IterationOutcome",
    "OutputKind",
    "OutputLine",
    "RetryOutcome",
    "RunConfig",
    "RunPhase",
    "RunResult",
    "TokenUsage",
    # Callbacks and context
    "NullCallbacks",
    "RunContext",
    "RunnerCallbacks",
    # Supervisor
    "CancellationController",
    "EXIT_CODE_CANCELLED",
    "ProcessSession",
    "RetryPolicy",
    "RunLoop",
]
