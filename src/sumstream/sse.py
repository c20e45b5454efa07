"""Server-Sent Events framing for summary streams.

Encoding is one ``data:`` line per event followed by a blank line.
Decoding is incremental: :class:`FrameDecoder` accepts arbitrary
chunks of the response body and only yields frames once their
terminating blank line has arrived.
"""

from __future__ import annotations

import codecs
import json
from collections.abc import AsyncIterator
from dataclasses import dataclass

from sumstream.events import StreamEvent, event_payload

DONE_SENTINEL = "[DONE]"


def encode_frame(event: StreamEvent) -> str:
    """Serialize a single event into an SSE frame."""
    data = json.dumps(event_payload(event), ensure_ascii=False)
    return f"data: {data}\n\n"


async def sse_generator(
    event_stream: AsyncIterator[StreamEvent],
) -> AsyncIterator[str]:
    """Convert a StreamEvent async iterator into SSE-formatted strings."""
    async for event in event_stream:
        yield encode_frame(event)


@dataclass
class Frame:
    """One decoded frame: optional ``event:`` name and joined ``data:`` lines."""

    data: str
    event: str | None = None

    @property
    def is_done(self) -> bool:
        return self.data == DONE_SENTINEL


def parse_frame(block: str) -> Frame | None:
    """Parse one blank-line-delimited block.

    Returns ``None`` for blocks without any ``data:`` line (comments,
    keep-alives, stray whitespace).
    """
    data_lines: list[str] = []
    event_name: str | None = None
    for line in block.split("\n"):
        if not line or line.startswith(":"):
            continue
        field, sep, value = line.partition(":")
        if not sep:
            continue
        if value.startswith(" "):
            value = value[1:]
        if field == "data":
            data_lines.append(value)
        elif field == "event":
            event_name = value.strip()
    if not data_lines:
        return None
    return Frame(data="\n".join(data_lines), event=event_name)


class FrameDecoder:
    """Incremental frame decoder.

    Feed it raw bytes (or already-decoded text) as they arrive; each
    call returns the frames completed by that chunk, in order. Partial
    frames and partial UTF-8 sequences stay buffered until the rest
    arrives.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._after_cr = False
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def pending(self) -> str:
        """Text received but not yet terminated by a blank line."""
        return self._buffer

    def feed(self, chunk: bytes | str) -> list[Frame]:
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        # "\r" ends a line on its own; a "\n" right after it belongs to
        # the same line ending even when it arrives in the next chunk.
        if self._after_cr and chunk.startswith("\n"):
            chunk = chunk[1:]
            self._after_cr = False
        if chunk:
            self._after_cr = chunk.endswith("\r")
        self._buffer += chunk.replace("\r\n", "\n").replace("\r", "\n")
        frames: list[Frame] = []
        while True:
            boundary = self._buffer.find("\n\n")
            if boundary == -1:
                break
            block = self._buffer[:boundary]
            self._buffer = self._buffer[boundary + 2:]
            frame = parse_frame(block)
            if frame is not None:
                frames.append(frame)
        return frames

