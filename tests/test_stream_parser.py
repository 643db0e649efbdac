"""
Tests for the incremental NDJSON stream parser.
"""

from __future__ import annotations

import json

import pytest

from ralph.core.detection.completion import CompletionDetector
from ralph.core.stream.events import (
    INVALID_TYPE_WARNING,
    SessionIdleEvent,
    TextEvent,
    UnknownEvent,
)
from ralph.core.stream.parser import MAX_RAW_DISPLAY, StreamParser, parse_ndjson, truncate_raw

TEXT_LINE = json.dumps({"type": "text", "part": {"text": "hello"}})
IDLE_LINE = json.dumps({"type": "session.idle"})
STEP_LINE = json.dumps(
    {"type": "step_finish", "part": {"tokens": {"input": 10, "output": 5}}}
)
STREAM = f"{TEXT_LINE}\n{STEP_LINE}\n{IDLE_LINE}\n"


class Collector:
    def __init__(self) -> None:
        self.events: list = []
        self.warnings: list[tuple[str, str]] = []

    def on_event(self, event) -> None:
        self.events.append(event)

    def on_warning(self, message: str, raw: str) -> None:
        self.warnings.append((message, raw))

    def parser(self) -> StreamParser:
        return StreamParser(on_event=self.on_event, on_warning=self.on_warning)


# ==============================================================================
# Chunk Boundaries
# ==============================================================================


class TestChunkBoundaries:
    """Event output must not depend on how the stream is split."""

    def test_whole_stream_in_one_write(self) -> None:
        """A single write yields every record in order."""
        collector = Collector()
        events = collector.parser().write(STREAM)

        assert [e.type for e in events] == ["text", "step_finish", "session.idle"]
        assert collector.events == events
        assert collector.warnings == []

    @pytest.mark.parametrize("split_at", range(len(STREAM) + 1))
    def test_two_chunks_at_every_offset(self, split_at: int) -> None:
        """Splitting at any offset produces the same events."""
        collector = Collector()
        parser = collector.parser()

        parser.write(STREAM[:split_at])
        parser.write(STREAM[split_at:])
        parser.flush()

        assert [e.type for e in collector.events] == ["text", "step_finish", "session.idle"]
        assert collector.events[0].content == "hello"
        assert collector.warnings == []

    def test_one_character_at_a_time(self) -> None:
        """Byte-at-a-time delivery still parses every record."""
        collector = Collector()
        parser = collector.parser()

        for char in STREAM:
            parser.write(char)

        assert len(collector.events) == 3
        assert parser.buffer == ""

    def test_partial_line_is_buffered(self) -> None:
        """Text after the last newline waits for more input."""
        parser = StreamParser()

        assert parser.write(TEXT_LINE[:10]) == []
        assert parser.buffer == TEXT_LINE[:10]

        events = parser.write(TEXT_LINE[10:] + "\n")
        assert len(events) == 1
        assert parser.buffer == ""


# ==============================================================================
# Malformed Input
# ==============================================================================


class TestMalformedInput:
    """Bad lines are reported and skipped without stopping the stream."""

    def test_invalid_json_between_valid_lines(self) -> None:
        """A garbage line produces one warning and the others still parse."""
        collector = Collector()
        collector.parser().write(f"{TEXT_LINE}\nnot json at all\n{IDLE_LINE}\n")

        assert [type(e) for e in collector.events] == [TextEvent, SessionIdleEvent]
        assert len(collector.warnings) == 1
        message, raw = collector.warnings[0]
        assert message.startswith("JSON parse error:")
        assert raw == "not json at all"

    def test_missing_type_field(self) -> None:
        """Valid JSON without a type is rejected with the fixed message."""
        collector = Collector()
        collector.parser().write('{"part": {"text": "x"}}\n')

        assert collector.events == []
        assert collector.warnings[0][0] == INVALID_TYPE_WARNING

    @pytest.mark.parametrize("line", ["[1, 2]", '"text"', "42", '{"type": ""}', '{"type": 7}'])
    def test_non_event_json(self, line: str) -> None:
        """Arrays, scalars, and empty or non-string types are rejected."""
        collector = Collector()
        collector.parser().write(line + "\n")

        assert collector.events == []
        assert collector.warnings == [(INVALID_TYPE_WARNING, line)]

    def test_mistyped_payload_is_still_emitted(self) -> None:
        """A valid type with odd payload fields is classified, not dropped."""
        collector = Collector()
        collector.parser().write(
            '{"type": "step_finish", "part": {"tokens": {"input": -1, "output": 4}}}\n'
            '{"type": "tool_use", "part": {"tool": "bash", "state": {"error": {"code": 2}}}}\n'
        )

        assert [type(e).__name__ for e in collector.events] == [
            "StepFinishEvent",
            "ToolUseEvent",
        ]
        assert collector.events[0].part.tokens.output == 4
        assert collector.warnings == []

    def test_completion_survives_string_timestamp(self) -> None:
        """The completion marker is seen even when the timestamp is a string."""
        line = json.dumps(
            {
                "type": "text",
                "timestamp": "2025-10-18T00:00:00Z",
                "part": {"type": "text", "text": "<promise>COMPLETE</promise>"},
            }
        )
        collector = Collector()
        events = parse_ndjson(line + "\n", on_warning=collector.on_warning)

        assert collector.warnings == []
        assert len(events) == 1
        detector = CompletionDetector()
        detector.process_content(events[0].content)
        assert detector.is_complete

    def test_long_raw_line_is_truncated(self) -> None:
        """Warnings carry at most MAX_RAW_DISPLAY characters plus an ellipsis."""
        collector = Collector()
        garbage = "x" * 250
        collector.parser().write(garbage + "\n")

        raw = collector.warnings[0][1]
        assert raw == "x" * MAX_RAW_DISPLAY + "..."

    def test_blank_lines_are_ignored(self) -> None:
        """Empty and whitespace-only lines are skipped silently."""
        collector = Collector()
        collector.parser().write(f"\n   \n{IDLE_LINE}\r\n\n")

        assert len(collector.events) == 1
        assert collector.warnings == []

    def test_parser_without_warning_callback(self) -> None:
        """Warnings are optional."""
        parser = StreamParser()
        assert parser.write("{oops\n") == []


# ==============================================================================
# Unknown Types
# ==============================================================================


class TestUnknownTypes:
    def test_unrecognized_type_becomes_unknown_event(self) -> None:
        """Well-formed records of a new type are kept, not dropped."""
        events = parse_ndjson('{"type": "file.edited", "path": "a.py"}\n')

        assert len(events) == 1
        assert isinstance(events[0], UnknownEvent)
        assert events[0].type == "file.edited"


# ==============================================================================
# Flush and Reset
# ==============================================================================


class TestFlushAndReset:
    def test_flush_parses_unterminated_last_line(self) -> None:
        """The final record may lack a trailing newline."""
        collector = Collector()
        parser = collector.parser()

        parser.write(TEXT_LINE + "\n" + IDLE_LINE)
        assert len(collector.events) == 1

        flushed = parser.flush()
        assert len(flushed) == 1
        assert isinstance(flushed[0], SessionIdleEvent)
        assert parser.buffer == ""

    def test_flush_with_empty_buffer(self) -> None:
        """Flushing nothing yields nothing."""
        assert StreamParser().flush() == []

    def test_flush_reports_partial_garbage(self) -> None:
        """An incomplete record at end of stream is a warning."""
        collector = Collector()
        parser = collector.parser()
        parser.write('{"type": "text", "part":')
        parser.flush()

        assert collector.events == []
        assert len(collector.warnings) == 1

    def test_reset_discards_partial_record(self) -> None:
        """Reset clears the buffer without emitting anything."""
        collector = Collector()
        parser = collector.parser()
        parser.write('{"type": "te')
        parser.reset()

        assert parser.buffer == ""
        parser.write(IDLE_LINE + "\n")
        assert len(collector.events) == 1
        assert collector.warnings == []


class TestParseNdjson:
    def test_complete_document(self) -> None:
        """parse_ndjson handles a whole document with or without final newline."""
        assert len(parse_ndjson(STREAM)) == 3
        assert len(parse_ndjson(STREAM.rstrip("\n"))) == 3

    def test_warnings_forwarded(self) -> None:
        warnings: list[tuple[str, str]] = []
        events = parse_ndjson("bad\n" + IDLE_LINE, on_warning=lambda m, r: warnings.append((m, r)))

        assert len(events) == 1
        assert len(warnings) == 1


class TestTruncateRaw:
    def test_short_line_unchanged(self) -> None:
        assert truncate_raw("abc") == "abc"

    def test_exact_limit_unchanged(self) -> None:
        assert truncate_raw("a" * 100) == "a" * 100

    def test_custom_limit(self) -> None:
        assert truncate_raw("abcdef", limit=3) == "abc..."


class TestTopLevelText:
    def test_malformed_line_between_top_level_text_events(self) -> None:
        """Two events and one warning, with text carried at the top level."""
        collector = Collector()
        collector.parser().write('{"type":"text","text":"a"}\nNOT-JSON\n{"type":"text","text":"b"}\n')

        assert [e.content for e in collector.events] == ["a", "b"]
        assert len(collector.warnings) == 1
