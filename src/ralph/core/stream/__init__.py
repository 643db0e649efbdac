"""
Stream decoding for opencode's JSON event output.

Modules:
    parser: Incremental NDJSON splitter (StreamParser, parse_ndjson).
    events: Pydantic event models and record classification.
    handlers: ``type -> handler`` dispatch table.
"""

from ralph.core.stream.events import (
    EVENT_MODELS,
    EventValidationError,
    SessionErrorEvent,
    SessionIdleEvent,
    StepFinishEvent,
    StepStartEvent,
    StreamEvent,
    TextEvent,
    ToolUseEvent,
    UnknownEvent,
    classify_record,
    is_meaningful,
)
from ralph.core.stream.handlers import EVENT_HANDLERS, dispatch_event
from ralph.core.stream.parser import StreamParser, parse_ndjson, truncate_raw

__all__ = [
    # Parser
    "StreamParser",
    "parse_ndjson",
    "truncate_raw",
    # Events
    "EVENT_MODELS",
    "EventValidationError",
    "SessionErrorEvent",
    "SessionIdleEvent",
    "StepFinishEvent",
    "StepStartEvent",
    "StreamEvent",
    "TextEvent",
    "ToolUseEvent",
    "UnknownEvent",
    "classify_record",
    "is_meaningful",
    # Dispatch
    "EVENT_HANDLERS",
    "dispatch_event",
]
