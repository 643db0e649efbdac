"""
Per-type handlers for classified stream events.

Dispatch is a plain table lookup: EVENT_HANDLERS maps an event ``type`` to a
function that turns the event into output lines and token updates. Types
missing from the table are tolerated and only logged at debug level, so
newer opencode releases that add event types keep working.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import cast

from ralph.core.run.callbacks import RunnerCallbacks, emit
from ralph.core.run.models import OutputKind, TokenUsage
from ralph.core.stream.events import (
    SessionErrorEvent,
    StepFinishEvent,
    StepStartEvent,
    StreamEvent,
    TextEvent,
    ToolUseEvent,
)

logger = logging.getLogger(__name__)

TokenSink = Callable[[StepFinishEvent], TokenUsage | None]
EventHandler = Callable[[StreamEvent, RunnerCallbacks, TokenSink], None]


def handle_step_start(event: StreamEvent, callbacks: RunnerCallbacks, _tokens: TokenSink) -> None:
    step = cast(StepStartEvent, event)
    step_id = step.part.id if step.part is not None else None
    emit(callbacks, f"Starting step ({step_id})" if step_id else "Starting step", OutputKind.INFO)


def handle_text(event: StreamEvent, callbacks: RunnerCallbacks, _tokens: TokenSink) -> None:
    content = cast(TextEvent, event).content
    if content:
        emit(callbacks, content)


def handle_tool_use(event: StreamEvent, callbacks: RunnerCallbacks, _tokens: TokenSink) -> None:
    tool = cast(ToolUseEvent, event)
    state = tool.part.state if tool.part is not None else None

    line = f"Using tool: {tool.tool_name}"
    if state is not None and state.title:
        line += f" - {state.title}"
    emit(callbacks, line, OutputKind.TOOL)

    if state is not None and state.status == "error":
        emit(callbacks, f"Tool {tool.tool_name} failed: {state.error or 'unknown error'}", OutputKind.ERROR)


def handle_step_finish(event: StreamEvent, callbacks: RunnerCallbacks, tokens: TokenSink) -> None:
    step = cast(StepFinishEvent, event)
    step_tokens = step.part.tokens if step.part is not None else None

    if step_tokens is not None and (step_tokens.input or step_tokens.output):
        total = tokens(step)
        if total is not None:
            callbacks.on_tokens_update(total)
        emit(
            callbacks,
            f"Step complete (tokens: {step_tokens.input:,} in / {step_tokens.output:,} out)",
            OutputKind.INFO,
        )
    else:
        emit(callbacks, "Step complete", OutputKind.INFO)


def handle_session_error(event: StreamEvent, callbacks: RunnerCallbacks, _tokens: TokenSink) -> None:
    emit(callbacks, f"Session error: {cast(SessionErrorEvent, event).message}", OutputKind.ERROR)


def handle_session_idle(event: StreamEvent, callbacks: RunnerCallbacks, _tokens: TokenSink) -> None:
    emit(callbacks, "Session idle", OutputKind.INFO)


EVENT_HANDLERS: dict[str, EventHandler] = {
    "step_start": handle_step_start,
    "text": handle_text,
    "tool_use": handle_tool_use,
    "step_finish": handle_step_finish,
    "session.error": handle_session_error,
    "session.idle": handle_session_idle,
}


def dispatch_event(
    event: StreamEvent,
    callbacks: RunnerCallbacks,
    tokens: TokenSink,
    handlers: dict[str, EventHandler] | None = None,
) -> bool:
    """
    Route one event to its handler.

    Args:
        event: Classified stream event.
        callbacks: Presentation callbacks.
        tokens: Records a step's tokens and returns the new cumulative usage.
        handlers: Dispatch table (defaults to EVENT_HANDLERS).

    Returns:
        True if a handler ran, False for unrecognized types.
    """
    handler = (handlers if handlers is not None else EVENT_HANDLERS).get(event.type)
    if handler is None:
        logger.debug("Unhandled event type: %s", event.type)
        return False
    handler(event, callbacks, tokens)
    return True
