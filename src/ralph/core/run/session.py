"""
One spawn of the agent CLI, wired into the stream pipeline.

ProcessSession runs ``opencode run --model <model> --format=json <prompt>``
and connects its output to everything downstream:

    stdout bytes -> UTF-8 decoder -> StreamParser -> event handlers
                                                  -> task/completion detectors
    stderr lines -> warnings (+ network advice) in the live output

When the process exits, the session settles into exactly one
IterationOutcome. Cancellation wins over everything else; then completion;
then the exit status.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
from typing import Any

from ralph.core.detection.task import TaskDetector
from ralph.core.run.callbacks import RunnerCallbacks, emit
from ralph.core.run.context import RunContext
from ralph.core.run.errors import detect_network_error, spawn_error_message
from ralph.core.run.models import IterationOutcome, OutputKind, RunConfig
from ralph.core.run.process import (
    IS_UNIX,
    killed_by_termination_signal,
    signal_name,
    terminate_process,
)
from ralph.core.stream.events import StreamEvent, TextEvent, is_meaningful
from ralph.core.stream.handlers import dispatch_event
from ralph.core.stream.parser import StreamParser
from ralph.utils.logging import DebugLogger

logger = logging.getLogger(__name__)

CANCELLED_ERROR = "Cancelled by user"

# Bytes requested per stdout read
READ_CHUNK_SIZE = 64 * 1024


def build_command(config: RunConfig, prompt: str) -> list[str]:
    """Argument vector for one agent run."""
    return [config.executable, "run", "--model", config.model, "--format=json", prompt]


class ProcessSession:
    """
    Spawns the agent once and reports how it went.

    The task detector is reset for every spawn. Completion detection lives in
    the RunContext so a marker seen in an earlier attempt is never lost.
    """

    def __init__(
        self,
        config: RunConfig,
        context: RunContext,
        callbacks: RunnerCallbacks,
        debug_logger: DebugLogger | None = None,
    ) -> None:
        self.config = config
        self.context = context
        self.callbacks = callbacks
        self.debug_logger = debug_logger or DebugLogger(config.cwd, enabled=False)
        self.task_detector = TaskDetector(on_task_change=callbacks.on_task_change)
        self.parser = StreamParser(on_event=self._on_event, on_warning=self._on_warning)
        self.context.completion.on_complete = self._on_complete
        self._events_seen = 0
        self._meaningful_events_seen = 0

    async def run(self, iteration: int, prompt: str) -> IterationOutcome:
        """
        Spawn the agent and wait for it to exit.

        Args:
            iteration: Iteration number, for debug logs.
            prompt: Instruction payload passed as the last argument.

        Returns:
            The settled outcome of this attempt.
        """
        self.task_detector.reset()
        self.parser.reset()
        self._events_seen = 0
        self._meaningful_events_seen = 0

        if self.context.cancelled:
            return IterationOutcome(success=False, cancelled=True, error=CANCELLED_ERROR)

        self.debug_logger.start_iteration(iteration)
        command = build_command(self.config, prompt)

        kwargs: dict[str, Any] = {
            "stdin": asyncio.subprocess.DEVNULL,
            "stdout": asyncio.subprocess.PIPE,
            "stderr": asyncio.subprocess.PIPE,
            "cwd": self.config.cwd,
        }
        # Own process group so cancellation reaches the agent's children too
        if IS_UNIX:
            kwargs["start_new_session"] = True

        logger.debug("Spawning agent: %s run --model %s", self.config.executable, self.config.model)
        try:
            process = await asyncio.create_subprocess_exec(*command, **kwargs)
        except (OSError, ValueError) as e:
            message = spawn_error_message(e, self.config.executable)
            logger.debug("Spawn failed: %s", e)
            self.debug_logger.log_error(message)
            self.debug_logger.finish_iteration()
            emit(self.callbacks, f"Error: {message}", OutputKind.ERROR)
            return IterationOutcome(success=False, error=message)

        self.context.set_active_process(process)
        try:
            assert process.stdout is not None and process.stderr is not None
            await asyncio.gather(
                self._read_stdout(process.stdout),
                self._read_stderr(process.stderr),
            )
            returncode = await process.wait()
        finally:
            self.context.clear_active_process(process)
            if process.returncode is None:
                await terminate_process(process, self.config.kill_grace)

        self.parser.flush()
        self.debug_logger.finish_iteration()
        return self._settle(returncode)

    # -----------------------------------------------------------------------
    # Stream wiring
    # -----------------------------------------------------------------------

    async def _read_stdout(self, stream: asyncio.StreamReader) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            text = decoder.decode(chunk)
            if text:
                self.debug_logger.log_raw_output(text)
                self.parser.write(text)
        tail = decoder.decode(b"", final=True)
        if tail:
            self.debug_logger.log_raw_output(tail)
            self.parser.write(tail)

    async def _read_stderr(self, stream: asyncio.StreamReader) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        pending = ""
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            pending += decoder.decode(chunk)
            *lines, pending = pending.split("\n")
            for line in lines:
                if line.strip():
                    self._on_diagnostic(line.strip())
        pending += decoder.decode(b"", final=True)
        if pending.strip():
            self._on_diagnostic(pending.strip())

    def _on_event(self, event: StreamEvent) -> None:
        self._events_seen += 1
        self.debug_logger.log_event(event)
        dispatch_event(event, self.callbacks, self.context.add_step_tokens)

        if is_meaningful(event):
            self._meaningful_events_seen += 1
        if isinstance(event, TextEvent):
            content = event.content
            if content:
                self.task_detector.process_content(content)
                self.context.completion.process_content(content)

    def _on_complete(self) -> None:
        emit(self.callbacks, "Completion marker received", OutputKind.SUCCESS)

    def _on_warning(self, message: str, raw: str) -> None:
        self.debug_logger.log_error(f"Parse warning: {message}")
        logger.debug("Parse warning: %s (%s)", message, raw)

    def _on_diagnostic(self, line: str) -> None:
        self.debug_logger.log_error(line)
        advice = detect_network_error(line)
        if advice is not None:
            emit(self.callbacks, f"Network error: {advice}", OutputKind.ERROR)
        emit(self.callbacks, line, OutputKind.WARNING)

    # -----------------------------------------------------------------------
    # Settlement
    # -----------------------------------------------------------------------

    def _settle(self, returncode: int) -> IterationOutcome:
        counts = {
            "exit_code": returncode,
            "events_seen": self._events_seen,
            "meaningful_events_seen": self._meaningful_events_seen,
        }

        if self.context.cancelled or killed_by_termination_signal(returncode):
            return IterationOutcome(success=False, cancelled=True, error=CANCELLED_ERROR, **counts)

        completed = self.context.completion.is_complete

        if returncode == 0:
            if self._meaningful_events_seen == 0:
                emit(
                    self.callbacks,
                    f"Warning: Received empty response from {self.config.executable} "
                    "(no meaningful events)",
                    OutputKind.WARNING,
                )
            return IterationOutcome(success=True, completed=completed, **counts)

        if returncode < 0:
            error = f"{self.config.executable} terminated by {signal_name(returncode)}"
        else:
            error = f"{self.config.executable} exited with code {returncode}"
        logger.debug("Attempt failed: %s", error)
        return IterationOutcome(success=False, completed=completed, error=error, **counts)
