"""
Stream event models for opencode's ``--format=json`` output.

Each line on the agent's stdout is a JSON object carrying a ``type``
discriminator. The upstream schema is not contractually stable, so every
payload field is optional and unknown fields are kept rather than rejected.

Known event types:
    step_start     The agent began a reasoning step.
    text           A chunk of assistant text (``part.text``).
    tool_use       A tool invocation with its state.
    step_finish    A step ended; carries token accounting in ``part.tokens``.
    session.error  The session reported an error.
    session.idle   The session has nothing left to do.

Anything else with a valid ``type`` becomes an :class:`UnknownEvent`.
"""

from __future__ import annotations

import logging
from typing import Any, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    ValidatorFunctionWrapHandler,
    field_validator,
)

logger = logging.getLogger(__name__)

# ===========================================================================
# Payload parts
# ===========================================================================


class _Payload(BaseModel):
    """
    Base for all payload models: tolerate unknown fields.

    A field whose value does not fit its declared type falls back to the
    field default instead of failing the whole record, so schema drift in one
    field never hides the rest of the event.
    """

    model_config = ConfigDict(extra="allow")

    @field_validator("*", mode="wrap")
    @classmethod
    def _default_on_mismatch(
        cls, value: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo
    ) -> Any:
        try:
            return handler(value)
        except ValidationError:
            field = cls.model_fields.get(info.field_name or "")
            if field is None or field.is_required():
                raise
            logger.debug(
                "Ignoring unexpected %s.%s value: %r",
                cls.__name__,
                info.field_name,
                value,
            )
            return field.get_default(call_default_factory=True)


class CacheTokens(_Payload):
    read: int = Field(default=0, ge=0)
    write: int = Field(default=0, ge=0)


class StepTokens(_Payload):
    """Token accounting attached to a ``step_finish`` event."""

    input: int = Field(default=0, ge=0)
    output: int = Field(default=0, ge=0)
    reasoning: int = Field(default=0, ge=0)
    cache: CacheTokens | None = None


class ToolState(_Payload):
    status: str | None = None
    title: str | None = None
    input: Any = None
    output: Any = None
    error: str | None = None


class EventPart(_Payload):
    """
    The ``part`` object shared by most event types.

    Only the fields relevant to a given event type are populated.
    """

    id: str | None = None
    session_id: str | None = Field(default=None, alias="sessionID")
    message_id: str | None = Field(default=None, alias="messageID")
    type: str | None = None
    text: str | None = None
    tool: str | None = None
    call_id: str | None = Field(default=None, alias="callID")
    state: ToolState | None = None
    tokens: StepTokens | None = None
    cost: float | None = None
    reason: str | None = None
    snapshot: str | None = None

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class SessionErrorData(_Payload):
    message: str | None = None


class SessionErrorInfo(_Payload):
    name: str | None = None
    message: str | None = None
    data: SessionErrorData | None = None


# ===========================================================================
# Events
# ===========================================================================


class BaseEvent(_Payload):
    """Fields common to every event."""

    type: str
    timestamp: int | float | None = None
    session_id: str | None = Field(default=None, alias="sessionID")
    part: EventPart | None = None

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class StepStartEvent(BaseEvent):
    pass


class TextEvent(BaseEvent):
    # Some producers put the text at the top level instead of in ``part``.
    text: str | None = None

    @property
    def content(self) -> str:
        """Text payload, preferring ``part.text`` over a top-level ``text``."""
        if self.part is not None and self.part.text:
            return self.part.text
        return self.text or ""


class ToolUseEvent(BaseEvent):
    @property
    def tool_name(self) -> str:
        if self.part is not None and self.part.tool:
            return self.part.tool
        return "unknown tool"


class StepFinishEvent(BaseEvent):
    pass


class SessionErrorEvent(BaseEvent):
    error: SessionErrorInfo | None = None

    @property
    def message(self) -> str:
        """Most specific error message available."""
        if self.error is None:
            return "Unknown session error"
        if self.error.data is not None and self.error.data.message:
            return self.error.data.message
        if self.error.message:
            return self.error.message
        return self.error.name or "Unknown session error"


class SessionIdleEvent(BaseEvent):
    pass


class UnknownEvent(BaseEvent):
    """Well-formed event with a type this version does not recognize."""


StreamEvent = Union[
    StepStartEvent,
    TextEvent,
    ToolUseEvent,
    StepFinishEvent,
    SessionErrorEvent,
    SessionIdleEvent,
    UnknownEvent,
]

EVENT_MODELS: dict[str, type[BaseEvent]] = {
    "step_start": StepStartEvent,
    "text": TextEvent,
    "tool_use": ToolUseEvent,
    "step_finish": StepFinishEvent,
    "session.error": SessionErrorEvent,
    "session.idle": SessionIdleEvent,
}

INVALID_TYPE_WARNING = (
    'Parsed JSON is not a valid stream event (missing or invalid "type" field)'
)


class EventValidationError(ValueError):
    """A decoded record could not be turned into a stream event."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


def classify_record(record: Any) -> StreamEvent:
    """
    Build a typed event from one decoded JSON value.

    Args:
        record: The value returned by ``json.loads`` for one line.

    Returns:
        The matching event model, or UnknownEvent for unrecognized types.

    Payload fields with unexpected shapes are reset to their defaults; only
    the ``type`` check can reject a record.

    Raises:
        EventValidationError: If the record is not an object with a non-empty
            string ``type``.
    """
    if not isinstance(record, dict):
        raise EventValidationError(INVALID_TYPE_WARNING)

    event_type = record.get("type")
    if not isinstance(event_type, str) or not event_type:
        raise EventValidationError(INVALID_TYPE_WARNING)

    model = EVENT_MODELS.get(event_type, UnknownEvent)
    return model.model_validate(record)  # type: ignore[return-value]


def is_meaningful(event: StreamEvent) -> bool:
    """Whether an event shows the agent actually did something."""
    if isinstance(event, TextEvent):
        return bool(event.content.strip())
    return isinstance(event, ToolUseEvent)
