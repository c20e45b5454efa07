import asyncio
from enum import Enum

from pydantic import BaseModel

from sumstream.events import CompleteEvent, ErrorEvent, ProgressEvent, StartEvent, TokenEvent


class StreamStatus(Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETE = "complete"
    ERROR = "error"


class StreamSession(BaseModel):
    """Visible state of the summary being streamed for one generation."""

    generation: int = 0
    status: StreamStatus = StreamStatus.IDLE
    text: str = ""
    progress: float = 0.0
    progress_label: str = ""
    trace_id: str | None = None
    error: str | None = None
    error_kind: str | None = None

    def begin(self, generation: int) -> None:
        self.generation = generation
        self.status = StreamStatus.STREAMING
        self.text = ""
        self.progress = 0.0
        self.progress_label = ""
        self.trace_id = None
        self.error = None
        self.error_kind = None

    def apply(self, event) -> None:
        if isinstance(event, StartEvent):
            self.trace_id = event.trace_id
        elif isinstance(event, ProgressEvent):
            self.progress = event.value
            self.progress_label = event.label
        elif isinstance(event, TokenEvent):
            self.text += event.token
        elif isinstance(event, CompleteEvent):
            self.text = event.summary
            self.trace_id = event.trace_id or self.trace_id
        elif isinstance(event, ErrorEvent):
            self.error = event.message

    def finish(self, summary: str, trace_id: str | None) -> None:
        self.status = StreamStatus.COMPLETE
        self.text = summary
        self.trace_id = trace_id or self.trace_id
        self.progress = 1.0

    def fail(self, message: str, kind: str) -> None:
        self.status = StreamStatus.ERROR
        self.error = message
        self.error_kind = kind

    def stop(self) -> None:
        """Return to idle after a cancellation, keeping the partial text."""
        self.status = StreamStatus.IDLE


class SessionManager:
    """Owns the current request generation and its cancellation handle.

    Only one generation is current at a time. Starting a new one
    cancels the previous transport first, so stale work is discarded
    rather than waited on; callbacks check :meth:`is_current` before
    touching visible state.
    """

    def __init__(self) -> None:
        self._generation = 0
        self._cancel: asyncio.Event | None = None
        self._closed = False

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def current_signal(self) -> asyncio.Event | None:
        """Cancellation handle bound to the current generation."""
        return self._cancel

    @property
    def closed(self) -> bool:
        return self._closed

    def start_new(self) -> int:
        if self._closed:
            raise RuntimeError("SessionManager is closed")
        self.cancel_current()
        self._generation += 1
        self._cancel = asyncio.Event()
        return self._generation

    def is_current(self, generation: int) -> bool:
        return not self._closed and generation == self._generation

    def cancel_current(self) -> None:
        if self._cancel is not None:
            self._cancel.set()
            self._cancel = None

    def close(self) -> None:
        """Invalidate the active generation and cancel its transport."""
        self.cancel_current()
        self._generation += 1
        self._closed = True
