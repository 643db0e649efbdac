"""
Iteration supervisor state machine.

Provides the RunLoop class, which re-runs the agent until it prints the
completion marker, a retry budget runs out, or the iteration ceiling is hit.
This module is free of rendering: every user-visible fact is reported through
RunnerCallbacks, so the CLI dashboard, tests, or any other caller can drive it.

States:
    idle -> running -> complete | failed | cancelled

Terminal states accept no further transitions.

The loop cycle per iteration i = 1..N:
1. Stop if cancellation was requested
2. Report the new iteration
3. Run one retry-wrapped agent attempt with the same prompt
4. Stop if cancellation was requested during the attempt
5. Completion marker seen -> complete
6. Retries exhausted -> failed
7. Otherwise wait the inter-iteration delay (cancellable) and continue

Reaching iteration N without completing is a failure of its own.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from functools import partial

from ralph.core.prompt import load_prompt
from ralph.core.run.callbacks import NullCallbacks, RunnerCallbacks, emit
from ralph.core.run.context import RunContext
from ralph.core.run.errors import PromptLoadError
from ralph.core.run.interrupt import CancellationController
from ralph.core.run.models import (
    PHASE_TO_STATUS,
    IterationOutcome,
    OutputKind,
    RunConfig,
    RunPhase,
    RunResult,
)
from ralph.core.run.retry import RetryPolicy
from ralph.core.run.session import CANCELLED_ERROR, ProcessSession
from ralph.utils.logging import DebugLogger

logger = logging.getLogger(__name__)

MAX_ITERATIONS_ERROR = "Max iterations reached"

AttemptFunction = Callable[[int, str], Awaitable[IterationOutcome]]


class RunLoop:
    """
    Supervises repeated runs of the agent.

    Args:
        config: Run configuration.
        callbacks: Presentation callbacks (discarded if None).
        context: Run context (a fresh one if None).
        attempt: Replaces the agent spawn with ``attempt(iteration, prompt)``.
            Used by tests and alternative harnesses.
        debug_logger: Per-iteration log writer (built from config if None).
        handle_signals: Install SIGINT/SIGTERM handlers for the run.

    Example:
        >>> loop = RunLoop(RunConfig(max_iterations=10), callbacks)
        >>> result = await loop.run()
        >>> result.phase
        <RunPhase.COMPLETE: 'complete'>
    """

    def __init__(
        self,
        config: RunConfig,
        callbacks: RunnerCallbacks | None = None,
        context: RunContext | None = None,
        attempt: AttemptFunction | None = None,
        debug_logger: DebugLogger | None = None,
        handle_signals: bool = False,
    ) -> None:
        self.config = config
        self.callbacks: RunnerCallbacks = callbacks or NullCallbacks()
        self.context = context or RunContext()
        self.debug_logger = debug_logger or DebugLogger(config.cwd, enabled=config.debug)
        self.handle_signals = handle_signals
        self.retry_policy = RetryPolicy(
            self.context,
            self.callbacks,
            max_retries=config.max_retries,
            delay=config.retry_delay,
        )
        self.session = ProcessSession(config, self.context, self.callbacks, self.debug_logger)
        self._attempt: AttemptFunction = attempt or self.session.run
        self._phase = RunPhase.IDLE
        self._iterations_run = 0

    @property
    def phase(self) -> RunPhase:
        return self._phase

    @property
    def iterations_run(self) -> int:
        return self._iterations_run

    def mark_cancelled(self, reason: str) -> None:
        """Move to the cancelled state now, ahead of the loop noticing."""
        if self._phase == RunPhase.RUNNING:
            self._transition(RunPhase.CANCELLED, reason)

    async def run(self) -> RunResult:
        """
        Execute the run to a terminal state.

        Returns:
            RunResult describing how the run ended.
        """
        started_at = datetime.now()
        self.context.begin_run()
        self.debug_logger.initialize()
        self._phase = RunPhase.IDLE
        self._iterations_run = 0

        controller: CancellationController | None = None
        if self.handle_signals:
            controller = CancellationController(
                self.context,
                self.callbacks,
                grace=self.config.kill_grace,
                on_cancel=self.mark_cancelled,
            )
            controller.register()

        try:
            self._transition(RunPhase.RUNNING)
            phase, error = await self._execute()
        finally:
            if controller is not None:
                await controller.drain()
                controller.unregister()

        return RunResult(
            phase=phase,
            iterations_run=self._iterations_run,
            completed=phase == RunPhase.COMPLETE,
            error=error,
            total_tokens=self.context.usage,
            started_at=started_at,
            finished_at=datetime.now(),
        )

    async def _execute(self) -> tuple[RunPhase, str | None]:
        try:
            prompt = load_prompt(self.config.prompt_file)
        except PromptLoadError as e:
            emit(self.callbacks, e.message, OutputKind.ERROR)
            return self._finish(RunPhase.FAILED, e.message)

        total = self.config.max_iterations
        for iteration in range(1, total + 1):
            if self.context.cancelled:
                return self._finish_cancelled()

            self._iterations_run = iteration
            self.callbacks.on_iteration_change(iteration)
            emit(self.callbacks, f"Starting iteration {iteration}/{total}", OutputKind.INFO)
            logger.debug("Starting iteration %d/%d", iteration, total)

            result = await self.retry_policy.run(
                iteration, partial(self._attempt, iteration, prompt)
            )

            if self.context.cancelled or result.cancelled:
                return self._finish_cancelled()

            if result.completed:
                emit(
                    self.callbacks,
                    "All tasks complete! <promise>COMPLETE</promise> detected.",
                    OutputKind.SUCCESS,
                )
                return self._finish(RunPhase.COMPLETE)

            if result.exhausted:
                message = (
                    f"All {self.retry_policy.max_retries} retries exhausted for iteration "
                    f"{iteration}: {result.error or 'Unknown error'}"
                )
                emit(self.callbacks, message, OutputKind.ERROR)
                return self._finish(RunPhase.FAILED, message)

            if iteration < total:
                emit(
                    self.callbacks,
                    f"Waiting {self.config.iteration_delay:g} seconds before next iteration...",
                    OutputKind.INFO,
                )
                if not await self.context.sleep(self.config.iteration_delay):
                    return self._finish_cancelled()

        emit(
            self.callbacks,
            f"Max iterations ({total}) reached without completion.",
            OutputKind.WARNING,
        )
        return self._finish(RunPhase.FAILED, MAX_ITERATIONS_ERROR)

    def _finish(self, phase: RunPhase, message: str | None = None) -> tuple[RunPhase, str | None]:
        self._transition(phase, message)
        logger.debug("Run finished: %s (%s)", phase.value, message)
        return phase, message

    def _finish_cancelled(self) -> tuple[RunPhase, str | None]:
        reason = self.context.cancel_reason or CANCELLED_ERROR
        if self._phase != RunPhase.CANCELLED:
            self._transition(RunPhase.CANCELLED, reason)
        return RunPhase.CANCELLED, CANCELLED_ERROR

    def _transition(self, phase: RunPhase, message: str | None = None) -> None:
        if self._phase.is_terminal:
            logger.debug("Ignoring transition %s -> %s", self._phase.value, phase.value)
            return
        self._phase = phase
        self.callbacks.on_status_change(PHASE_TO_STATUS[phase], message)
