"""
Incremental NDJSON stream parser.

The agent writes one JSON object per line, but stdout arrives in arbitrary
chunks: a record may be split across any number of reads, and one read may
carry many records. StreamParser buffers the trailing partial line between
writes and emits every complete record as soon as its newline arrives.

Malformed lines never raise. They are reported through the ``on_warning``
callback with the offending raw text and dropped.

Usage:
    >>> parser = StreamParser(on_event=handle, on_warning=warn)
    >>> parser.write('{"type":"text","part":{"text":"hi"}}\\n{"type":')
    >>> parser.write('"session.idle"}\\n')
    >>> parser.flush()  # at end of stream
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable

from ralph.core.stream.events import EventValidationError, StreamEvent, classify_record

logger = logging.getLogger(__name__)

# Raw text shown alongside a warning is cut to this many characters
MAX_RAW_DISPLAY = 100

EventCallback = Callable[[StreamEvent], None]
WarningCallback = Callable[[str, str], None]


def truncate_raw(line: str, limit: int = MAX_RAW_DISPLAY) -> str:
    """Shorten a raw line for display, marking the cut with ``...``."""
    if len(line) <= limit:
        return line
    return line[:limit] + "..."


class StreamParser:
    """
    Split a chunked text stream into typed stream events.

    Attributes:
        on_event: Called once per successfully classified record, in order.
        on_warning: Called with ``(message, raw_line)`` for dropped records.
    """

    def __init__(
        self,
        on_event: EventCallback | None = None,
        on_warning: WarningCallback | None = None,
    ) -> None:
        self.on_event = on_event
        self.on_warning = on_warning
        self._buffer = ""

    @property
    def buffer(self) -> str:
        """Pending text that has not yet been terminated by a newline."""
        return self._buffer

    def write(self, chunk: str) -> list[StreamEvent]:
        """
        Feed a chunk of stream text.

        Args:
            chunk: Any slice of the stream, in delivery order.

        Returns:
            Events completed by this chunk (also delivered via ``on_event``).
        """
        self._buffer += chunk
        events: list[StreamEvent] = []

        while "\n" in self._buffer:
            line, self._buffer = self._buffer.split("\n", 1)
            event = self._parse_line(line)
            if event is not None:
                events.append(event)

        return events

    def flush(self) -> list[StreamEvent]:
        """
        Interpret whatever remains in the buffer and clear it.

        Used at end of stream, where the last record may lack a newline.
        """
        remaining = self._buffer
        self._buffer = ""
        event = self._parse_line(remaining)
        return [event] if event is not None else []

    def reset(self) -> None:
        """Discard any buffered partial record."""
        self._buffer = ""

    def _parse_line(self, line: str) -> StreamEvent | None:
        line = line.strip()
        if not line:
            return None

        try:
            record = json.loads(line)
        except json.JSONDecodeError as e:
            self._warn(f"JSON parse error: {e}", line)
            return None

        try:
            event = classify_record(record)
        except EventValidationError as e:
            self._warn(e.message, line)
            return None

        if self.on_event is not None:
            self.on_event(event)
        return event

    def _warn(self, message: str, line: str) -> None:
        raw = truncate_raw(line)
        logger.debug("Dropped stream record: %s (%s)", message, raw)
        if self.on_warning is not None:
            self.on_warning(message, raw)


def parse_ndjson(
    data: str,
    on_warning: WarningCallback | None = None,
) -> list[StreamEvent]:
    """
    Parse a complete NDJSON document in one call.

    Args:
        data: Full stream text (trailing newline optional).
        on_warning: Optional callback for dropped records.

    Returns:
        All classified events in stream order.
    """
    parser = StreamParser(on_warning=on_warning)
    events = parser.write(data)
    events.extend(parser.flush())
    return events
