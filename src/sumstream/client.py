"""HTTP client for the summary stream endpoint.

``SummaryClient.iter_events()`` is the streaming entry point: it yields
events in the order the server wrote them. ``summarize()`` drains it,
dispatches each event to an optional handler, honours a cancellation
signal, and settles with either a :class:`SummaryResult` or one of the
:mod:`sumstream.exceptions` failure kinds.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

import httpx

from sumstream.config import build_endpoint
from sumstream.events import EndEvent, ErrorEvent, InvalidEventError, StreamEvent, parse_event
from sumstream.exceptions import (
    REQUEST_FAILED_MESSAGE,
    RequestFailedError,
    ServerReportedError,
    StreamAborted,
    UnexpectedTerminationError,
)
from sumstream.sse import Frame, FrameDecoder
from sumstream.streaming import SummaryAccumulator
from sumstream.summarizer import SummaryLength, SummaryTemplate

logger = logging.getLogger(__name__)

DEFAULT_STREAM_PATH = "/api/summarize/stream"

EventHandler = Callable[[StreamEvent], Awaitable[None] | None]


@dataclass
class SummaryRequest:
    """One document plus the summary options to send with it."""

    content: bytes = b""
    filename: str = "document.txt"
    content_type: str = "text/plain"
    length: SummaryLength = SummaryLength.SHORT
    template: SummaryTemplate = SummaryTemplate.DEFAULT
    text: str | None = None

    @classmethod
    def from_path(cls, path: str | Path, **kwargs) -> "SummaryRequest":
        path = Path(path)
        return cls(content=path.read_bytes(), filename=path.name, **kwargs)

    def form_data(self) -> dict[str, str]:
        data = {
            "summary_length": self.length.value,
            "summary_template": self.template.value,
        }
        if self.text:
            data["text"] = self.text
        return data


@dataclass
class SummaryResult:
    summary: str
    trace_id: str | None = None


def decode_frame(frame: Frame) -> StreamEvent | None:
    """Parse one frame's data as a StreamEvent, or ``None`` if unusable."""
    try:
        payload = json.loads(frame.data)
    except json.JSONDecodeError as e:
        logger.warning(f"Ignoring frame with malformed JSON: {e}: {frame.data!r}")
        return None
    try:
        return parse_event(payload)
    except InvalidEventError as e:
        logger.warning(f"Ignoring unrecognised event: {e}")
        return None


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return REQUEST_FAILED_MESSAGE
    if isinstance(body, dict):
        for key in ("error", "detail"):
            if isinstance(body.get(key), str):
                return body[key]
    return REQUEST_FAILED_MESSAGE


class SummaryClient:
    """Consumes summary streams from a sumstream server.

    Args:
        base_url: Server root, e.g. ``http://localhost:3000``.
        stream_path: Path of the streaming endpoint.
        client: Optional pre-configured ``httpx.AsyncClient``. When
            omitted the client creates (and closes) its own.
        timeout: Timeout passed to a self-created ``httpx.AsyncClient``.
            Reads are unbounded by default since a stream may idle
            between tokens; compose a timeout through ``cancel`` instead.
    """

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:3000",
        stream_path: str = DEFAULT_STREAM_PATH,
        client: httpx.AsyncClient | None = None,
        timeout: httpx.Timeout | None = None,
    ):
        self.url = build_endpoint(base_url, stream_path)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout or httpx.Timeout(10.0, read=None),
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "SummaryClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def iter_events(self, request: SummaryRequest) -> AsyncIterator[StreamEvent]:
        """Stream events for *request* in wire order.

        Stops after the ``end`` marker (or a ``[DONE]`` sentinel, which
        is surfaced as an ``EndEvent``). Malformed and unknown frames
        are logged and skipped.

        Raises:
            RequestFailedError: The server answered with a non-2xx status.
            UnexpectedTerminationError: The transport failed mid-stream.
        """
        files = {"file": (request.filename, request.content, request.content_type)}
        try:
            async with self._client.stream(
                "POST",
                self.url,
                data=request.form_data(),
                files=files,
                headers={"Accept": "text/event-stream"},
            ) as response:
                if not response.is_success:
                    await response.aread()
                    raise RequestFailedError(response.status_code, _error_message(response))

                decoder = FrameDecoder()
                async for chunk in response.aiter_bytes():
                    for frame in decoder.feed(chunk):
                        if frame.is_done:
                            yield EndEvent()
                            return
                        event = decode_frame(frame)
                        if event is None:
                            continue
                        yield event
                        if isinstance(event, EndEvent):
                            return
                if decoder.pending.strip():
                    logger.warning(f"Dropping unterminated frame: {decoder.pending!r}")
        except httpx.TransportError as e:
            logger.info(f"Stream transport failed: {e!r}")
            raise UnexpectedTerminationError() from e

    async def summarize(
        self,
        request: SummaryRequest,
        on_event: EventHandler | None = None,
        cancel: asyncio.Event | None = None,
    ) -> SummaryResult:
        """Run one request to completion.

        Args:
            request: Document and options to send.
            on_event: Called with every event, in order. May be async.
            cancel: Setting this event aborts the in-flight read; no
                handler call happens after it is observed.

        Raises:
            ServerReportedError: The stream carried an ``error`` event.
            UnexpectedTerminationError: The stream ended without a result.
            StreamAborted: *cancel* was set before the stream settled.
            RequestFailedError: The server refused the request.
        """
        if cancel is None:
            return await self._consume(request, on_event, None)
        if cancel.is_set():
            raise StreamAborted()

        consumer = asyncio.ensure_future(self._consume(request, on_event, cancel))
        cancelled = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({consumer, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancelled.cancel()
            if not consumer.done():
                consumer.cancel()
                await asyncio.wait({consumer})
        if consumer.cancelled():
            raise StreamAborted()
        return consumer.result()

    async def _consume(
        self,
        request: SummaryRequest,
        on_event: EventHandler | None,
        cancel: asyncio.Event | None,
    ) -> SummaryResult:
        accumulator = SummaryAccumulator()
        error_message: str | None = None
        ended = False
        events = self.iter_events(request)
        try:
            async for event in events:
                if cancel is not None and cancel.is_set():
                    raise StreamAborted()
                accumulator.feed(event)
                if isinstance(event, ErrorEvent):
                    error_message = event.message
                elif isinstance(event, EndEvent):
                    ended = True
                if on_event is not None:
                    result = on_event(event)
                    if inspect.isawaitable(result):
                        await result
        finally:
            await events.aclose()

        if error_message is not None:
            raise ServerReportedError(error_message)
        if not (accumulator.completed or (ended and accumulator.text)):
            raise UnexpectedTerminationError()
        return SummaryResult(summary=accumulator.text, trace_id=accumulator.trace_id)
