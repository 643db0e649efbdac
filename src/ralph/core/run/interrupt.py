"""
Signal-driven cancellation of a run.

Provides SIGINT/SIGTERM handling that works regardless of which interface is
driving the supervisor. The CancellationController holds a handle into the
RunContext rather than any global state.

Cancellation protocol:
1. Set the context's cancellation flag exactly once (later signals are no-ops)
2. Report the cancellation reason to the presentation layer
3. If an agent process is active, send SIGTERM, wait a bounded grace period,
   then SIGKILL if it is still alive
4. Await the process exit before cleanup counts as done

Usage:
    >>> from ralph.core.run.interrupt import CancellationController
    >>> controller = CancellationController(context, callbacks, grace=1.0)
    >>> controller.register()  # Set up signal handlers
    >>> # ... run the supervisor
    >>> await controller.drain()  # Wait for any pending cleanup
    >>> controller.unregister()
"""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Callable
from typing import Any

from ralph.core.run.callbacks import RunnerCallbacks, emit
from ralph.core.run.context import RunContext
from ralph.core.run.models import OutputKind
from ralph.core.run.process import terminate_process

logger = logging.getLogger(__name__)

EXIT_CODE_CANCELLED = 130

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class CancellationController:
    """
    Turns termination signals into an orderly cancellation.

    Attributes:
        context: Run context whose flag and active process are acted on.
        callbacks: Presentation callbacks for the cancellation notice.
        grace: Seconds between SIGTERM and SIGKILL for the active process.
        on_cancel: Called once with the reason, after the flag is set.
    """

    def __init__(
        self,
        context: RunContext,
        callbacks: RunnerCallbacks,
        grace: float = 1.0,
        on_cancel: Callable[[str], None] | None = None,
    ) -> None:
        self.context = context
        self.callbacks = callbacks
        self.grace = grace
        self.on_cancel = on_cancel
        self._loop: asyncio.AbstractEventLoop | None = None
        self._loop_handlers: list[signal.Signals] = []
        self._original_handlers: dict[signal.Signals, Any] = {}
        self._cleanup_tasks: set[asyncio.Task[None]] = set()

    @property
    def cancelled(self) -> bool:
        return self.context.cancelled

    def register(self) -> None:
        """
        Install handlers for SIGINT and SIGTERM.

        Uses the running event loop's signal handling where available and
        falls back to ``signal.signal`` elsewhere (e.g. Windows). Must be
        called from the event loop's thread.
        """
        self._loop = asyncio.get_running_loop()
        for sig in HANDLED_SIGNALS:
            self._original_handlers[sig] = signal.getsignal(sig)
            try:
                self._loop.add_signal_handler(sig, self._handle_signal, sig)
                self._loop_handlers.append(sig)
            except (NotImplementedError, RuntimeError):
                signal.signal(sig, self._handle_signal_threadsafe)

    def unregister(self) -> None:
        """Restore the signal handlers that were active before register()."""
        for sig in self._loop_handlers:
            if self._loop is not None and not self._loop.is_closed():
                self._loop.remove_signal_handler(sig)
        self._loop_handlers = []

        for sig, original in self._original_handlers.items():
            if original is not None:
                signal.signal(sig, original)
        self._original_handlers = {}

    def cancel(self, reason: str = "Cancelled by user") -> bool:
        """
        Cancel the run.

        Returns:
            True if this call cancelled the run, False if already cancelled.
        """
        if not self.context.cancel(reason):
            return False

        if self.on_cancel is not None:
            self.on_cancel(reason)

        process = self.context.active_process
        if process is not None and process.returncode is None:
            task = asyncio.get_running_loop().create_task(
                terminate_process(process, self.grace)
            )
            self._cleanup_tasks.add(task)
            task.add_done_callback(self._cleanup_tasks.discard)
        return True

    async def drain(self) -> None:
        """Wait until every pending process cleanup has finished."""
        if not self._cleanup_tasks:
            return
        results = await asyncio.gather(*list(self._cleanup_tasks), return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.warning("Error while stopping agent process: %s", result)

    def _handle_signal(self, sig: signal.Signals) -> None:
        name = signal.Signals(sig).name
        if self.context.cancelled:
            logger.debug("Ignoring repeated %s", name)
            return
        emit(self.callbacks, f"Received {name}, cancelling...", OutputKind.WARNING)
        self.cancel(f"Cancelled by {name}")

    def _handle_signal_threadsafe(self, signum: int, frame: object) -> None:
        # Runs between bytecodes on the main thread; hand off to the loop
        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._handle_signal, signal.Signals(signum))
