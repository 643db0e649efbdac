"""
Run-scoped shared state.

A RunContext is created per supervisor and handed by reference to every
component that needs the cancellation flag, the active agent process, the
cumulative token totals, or the completion detector. Nothing here is a
module-level global, so concurrent or test-isolated runs never interfere.

Mutation rules:
    cancelled        set only by the cancellation controller (``cancel``)
    active_process   set and cleared only by the process session
    usage            grown only by ``add_step_tokens``
    completion       reset only by ``begin_run``
"""

from __future__ import annotations

import asyncio
import logging
import weakref

from ralph.core.detection.completion import CompletionDetector
from ralph.core.run.models import TokenUsage
from ralph.core.stream.events import StepFinishEvent

logger = logging.getLogger(__name__)


class RunContext:
    """Explicitly owned state for one supervisor run."""

    def __init__(self) -> None:
        self.completion = CompletionDetector()
        self.usage = TokenUsage()
        self.cancel_reason: str | None = None
        self._cancel_event = asyncio.Event()
        self._process_ref: weakref.ref[asyncio.subprocess.Process] | None = None

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    def begin_run(self) -> None:
        """
        Reset per-run state before a fresh run starts.

        Cancellation is not reset: a cancelled context stays cancelled, and a
        flag set before the run starts stops it before the first iteration.
        An unset flag is rebuilt so the context can be reused under a new
        event loop.
        """
        if not self._cancel_event.is_set():
            self._cancel_event = asyncio.Event()
        self.completion.reset()
        self.usage = TokenUsage()
        self._process_ref = None

    # -----------------------------------------------------------------------
    # Cancellation
    # -----------------------------------------------------------------------

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self, reason: str = "Cancelled by user") -> bool:
        """
        Set the cancellation flag.

        Returns:
            True if this call set the flag, False if it was already set.
        """
        if self._cancel_event.is_set():
            return False
        self.cancel_reason = reason
        self._cancel_event.set()
        logger.debug("Run cancelled: %s", reason)
        return True

    async def sleep(self, seconds: float) -> bool:
        """
        Wait up to ``seconds``, waking early on cancellation.

        Returns:
            True if the full delay elapsed, False if cancelled.
        """
        if self.cancelled:
            return False
        if seconds <= 0:
            return True
        try:
            await asyncio.wait_for(self._cancel_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return True
        return False

    # -----------------------------------------------------------------------
    # Active process
    # -----------------------------------------------------------------------

    @property
    def active_process(self) -> asyncio.subprocess.Process | None:
        if self._process_ref is None:
            return None
        return self._process_ref()

    def set_active_process(self, process: asyncio.subprocess.Process) -> None:
        self._process_ref = weakref.ref(process)

    def clear_active_process(self, process: asyncio.subprocess.Process) -> None:
        if self.active_process is process:
            self._process_ref = None

    # -----------------------------------------------------------------------
    # Token accounting
    # -----------------------------------------------------------------------

    def add_step_tokens(self, event: StepFinishEvent) -> TokenUsage | None:
        """
        Add one step's tokens to the run total.

        Returns:
            The new cumulative usage, or None if the event carried no tokens.
        """
        part = event.part
        if part is None or part.tokens is None:
            return None
        tokens = part.tokens
        cache_read = tokens.cache.read if tokens.cache is not None else 0
        cache_write = tokens.cache.write if tokens.cache is not None else 0

        self.usage = TokenUsage(
            input_tokens=self.usage.input_tokens + tokens.input,
            output_tokens=self.usage.output_tokens + tokens.output,
            reasoning_tokens=self.usage.reasoning_tokens + tokens.reasoning,
            cache_read_tokens=self.usage.cache_read_tokens + cache_read,
            cache_write_tokens=self.usage.cache_write_tokens + cache_write,
            cost_usd=self.usage.cost_usd + max(part.cost or 0.0, 0.0),
        )
        return self.usage
