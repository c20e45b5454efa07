"""Events streamed from the summarization endpoint.

Every frame on the wire carries exactly one of these as JSON. The
``type`` field is the discriminator; :func:`parse_event` turns a
decoded payload back into the matching model.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError


class StartEvent(BaseModel):
    """The stream has begun. ``trace_id`` identifies this run."""

    type: Literal["start"] = "start"
    trace_id: str


class ProgressEvent(BaseModel):
    """Coarse-grained pipeline milestone."""

    type: Literal["progress"] = "progress"
    value: float = Field(ge=0.0, le=1.0)
    label: str = ""


class TokenEvent(BaseModel):
    """One unit of incremental summary text.

    ``index`` is 1-based. ``total`` is the number of tokens the stream
    will carry and is authoritative; ``index`` and ``progress`` are
    informational.
    """

    type: Literal["token"] = "token"
    token: str
    index: int = Field(ge=1)
    total: int = Field(ge=1)
    progress: float = Field(ge=0.0, le=1.0)


class CompleteEvent(BaseModel):
    """Final authoritative summary. Supersedes the concatenated tokens."""

    type: Literal["complete"] = "complete"
    summary: str
    trace_id: str | None = None


class ErrorEvent(BaseModel):
    """Terminal failure. No token or complete event follows."""

    type: Literal["error"] = "error"
    message: str


class EndEvent(BaseModel):
    """Explicit termination marker, always the last event written."""

    type: Literal["end"] = "end"


StreamEvent = Annotated[
    Union[StartEvent, ProgressEvent, TokenEvent, CompleteEvent, ErrorEvent, EndEvent],
    Field(discriminator="type"),
]

TERMINAL_TYPES = frozenset({"complete", "error"})

_adapter: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)


class InvalidEventError(ValueError):
    """A decoded payload is not a valid StreamEvent."""


def parse_event(payload: Any) -> StreamEvent:
    """Validate a decoded JSON payload into a StreamEvent.

    Raises:
        InvalidEventError: If the payload is not an object, has an
            unknown ``type``, or fails field validation.
    """
    if not isinstance(payload, dict):
        raise InvalidEventError(f"expected a JSON object, got {type(payload).__name__}")
    try:
        return _adapter.validate_python(payload)
    except ValidationError as e:
        raise InvalidEventError(str(e)) from e


def event_payload(event: StreamEvent) -> dict[str, Any]:
    """Return the wire representation of *event*."""
    return event.model_dump(exclude_none=True)
