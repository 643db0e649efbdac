"""
Per-iteration debug logs for ralph.

When ``--debug`` is on, every iteration leaves two files under
``<project>/.ralph/logs/``:

- ``iteration-001.json``: the full record, written when the iteration ends
- ``iteration-001-raw.log``: raw agent stdout, appended as it arrives so
  output survives even if ralph itself crashes mid-iteration

The JSON record has the format:
{
  "iteration": 1,
  "started_at": "2026-01-15T12:34:56.789000Z",
  "finished_at": "2026-01-15T12:35:40.123000Z",
  "duration_ms": 43334,
  "events": [ ... classified stream events ... ],
  "raw_output": [ ... stdout chunks ... ],
  "errors": [ ... stderr lines and parse warnings ... ]
}

Write failures are logged and swallowed: debug logging must never stop a run.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from ralph.core.stream.events import StreamEvent

logger = logging.getLogger(__name__)

RALPH_DIR = ".ralph"
LOGS_DIR = "logs"

# Raw chunks are joined into a single entry once this many characters pile up
MAX_RAW_BUFFER_SIZE = 64 * 1024


def format_iteration_number(iteration: int) -> str:
    """Zero-pad an iteration number to three digits."""
    return f"{iteration:03d}"


class IterationLog(BaseModel):
    """Everything recorded about one iteration."""

    iteration: int = Field(..., ge=1, description="Iteration number (1-indexed)")
    started_at: datetime = Field(..., description="When the agent was spawned")
    finished_at: datetime | None = Field(default=None, description="When the agent exited")
    duration_ms: int | None = Field(default=None, description="Wall-clock duration")
    events: list[dict[str, Any]] = Field(default_factory=list, description="Classified events")
    raw_output: list[str] = Field(default_factory=list, description="Raw stdout chunks")
    errors: list[str] = Field(default_factory=list, description="Diagnostics and warnings")


class DebugLogger:
    """
    Writes iteration records under ``.ralph/logs`` when enabled.

    Every method is a no-op when disabled, so callers never need to check.

    Example:
        logger = DebugLogger(Path.cwd(), enabled=True)
        logger.start_iteration(1)
        logger.log_event(event)
        logger.finish_iteration()  # writes iteration-001.json
    """

    def __init__(self, cwd: Path | str, enabled: bool = False) -> None:
        self.enabled = enabled
        self.logs_dir = Path(cwd) / RALPH_DIR / LOGS_DIR
        self._initialized = False
        self._current: IterationLog | None = None
        self._raw_buffer: list[str] = []
        self._raw_buffer_size = 0

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """Create the logs directory. Disables logging if that fails."""
        if not self.enabled:
            return
        try:
            self.logs_dir.mkdir(parents=True, exist_ok=True)
            self._initialized = True
        except OSError as e:
            logger.warning("Could not create debug log directory %s: %s", self.logs_dir, e)
            self._initialized = False

    @property
    def active(self) -> bool:
        return self.enabled and self._initialized

    def start_iteration(self, iteration: int) -> None:
        if not self.active:
            return
        self._current = IterationLog(iteration=iteration, started_at=datetime.now(timezone.utc))
        self._raw_buffer = []
        self._raw_buffer_size = 0

    def log_raw_output(self, data: str) -> None:
        """Record a raw stdout chunk and append it to the real-time raw file."""
        if not self.active or self._current is None:
            return
        self._raw_buffer.append(data)
        self._raw_buffer_size += len(data)
        if self._raw_buffer_size >= MAX_RAW_BUFFER_SIZE:
            self._flush_raw_buffer()
        self._append_raw_file(self._current.iteration, data)

    def log_event(self, event: StreamEvent) -> None:
        if not self.active or self._current is None:
            return
        self._current.events.append(event.model_dump(mode="json", by_alias=True, exclude_none=True))

    def log_error(self, message: str) -> None:
        if not self.active or self._current is None:
            return
        self._current.errors.append(message)

    def finish_iteration(self) -> Path | None:
        """
        Write the current iteration record to disk.

        Returns:
            Path of the written file, or None if disabled or the write failed.
        """
        if not self.active or self._current is None:
            return None

        self._flush_raw_buffer()
        finished_at = datetime.now(timezone.utc)
        self._current.finished_at = finished_at
        self._current.duration_ms = int(
            (finished_at - self._current.started_at).total_seconds() * 1000
        )

        path = self.logs_dir / f"iteration-{format_iteration_number(self._current.iteration)}.json"
        try:
            path.write_text(self._current.model_dump_json(indent=2), encoding="utf-8")
        except OSError as e:
            logger.warning("Could not write debug log file %s: %s", path, e)
            return None
        finally:
            self._current = None
            self._raw_buffer = []
            self._raw_buffer_size = 0
        return path

    def _flush_raw_buffer(self) -> None:
        if self._current is None or not self._raw_buffer:
            return
        self._current.raw_output.append("".join(self._raw_buffer))
        self._raw_buffer = []
        self._raw_buffer_size = 0

    def _append_raw_file(self, iteration: int, data: str) -> None:
        path = self.logs_dir / f"iteration-{format_iteration_number(iteration)}-raw.log"
        try:
            with open(path, "a", encoding="utf-8") as f:
                f.write(data)
        except OSError as e:
            logger.debug("Could not append raw output to %s: %s", path, e)
