"""
Fixed-delay retry policy for a single iteration.

An iteration gets one initial attempt plus up to ``max_retries`` retries.
A retry happens only when an attempt neither succeeded nor observed the
completion marker and nobody asked to cancel. The delay between attempts
wakes early on cancellation, so Ctrl-C never waits out a retry delay.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from ralph.core.run.callbacks import RunnerCallbacks, emit
from ralph.core.run.context import RunContext
from ralph.core.run.models import IterationOutcome, OutputKind, RetryOutcome

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_DELAY_SECONDS = 3.0

Attempt = Callable[[], Awaitable[IterationOutcome]]


def _cancelled_outcome(context: RunContext) -> IterationOutcome:
    return IterationOutcome(
        success=False,
        cancelled=True,
        error=context.cancel_reason or "Cancelled by user",
    )


class RetryPolicy:
    """
    Runs an attempt function until it succeeds, completes, or gives up.

    Example:
        >>> policy = RetryPolicy(context, callbacks, max_retries=3, delay=3.0)
        >>> result = await policy.run(iteration=1, attempt=lambda: session.run(1, prompt))
        >>> result.exhausted
        False
    """

    def __init__(
        self,
        context: RunContext,
        callbacks: RunnerCallbacks,
        max_retries: int = MAX_RETRIES,
        delay: float = RETRY_DELAY_SECONDS,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.context = context
        self.callbacks = callbacks
        self.max_retries = max_retries
        self.delay = delay

    async def run(self, iteration: int, attempt: Attempt) -> RetryOutcome:
        """
        Run ``attempt`` with retries.

        Args:
            iteration: Iteration number, for messages.
            attempt: Coroutine function performing one attempt.

        Returns:
            RetryOutcome with the last attempt's outcome and retries used.
        """
        outcome: IterationOutcome | None = None

        for retry in range(self.max_retries + 1):
            if retry > 0:
                # Checked before the delay, not only before spawning
                if self.context.cancelled:
                    return RetryOutcome(_cancelled_outcome(self.context), retries_used=retry - 1)

                self.callbacks.on_retry(retry)
                emit(
                    self.callbacks,
                    f"Retry {retry}/{self.max_retries}: Attempting to re-run iteration {iteration}...",
                    OutputKind.WARNING,
                )
                logger.debug("Retry %d/%d for iteration %d", retry, self.max_retries, iteration)

                if not await self.context.sleep(self.delay):
                    return RetryOutcome(_cancelled_outcome(self.context), retries_used=retry - 1)

            outcome = await attempt()

            if outcome.cancelled or outcome.success or outcome.completed:
                return RetryOutcome(outcome, retries_used=retry)

            if retry < self.max_retries:
                emit(
                    self.callbacks,
                    f"Iteration {iteration} failed: {outcome.error or 'Unknown error'}",
                    OutputKind.ERROR,
                )

        assert outcome is not None
        return RetryOutcome(outcome, retries_used=self.max_retries, exhausted=True)
