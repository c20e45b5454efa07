import asyncio
import json

import httpx
import pytest

from sumstream.client import SummaryClient
from sumstream.extraction import Document
from sumstream.producer import StreamProducer
from sumstream.summarizer import Summarizer


SAMPLE_TEXT = (
    "The quarterly report shows steady growth. "
    "Revenue increased by twelve percent! "
    "Costs were flat compared to last year. "
    "Hiring will continue next quarter? "
    "The board approved the new budget. "
    "Customer churn fell slightly. "
    "A new office opens in spring."
)


# ---------------------------------------------------------------------------
# Summarizer test doubles
# ---------------------------------------------------------------------------

class FixedSummarizer(Summarizer):
    """Returns a canned summary and records every call."""

    def __init__(self, summary: str):
        self.summary = summary
        self.calls: list[tuple] = []

    async def summarize(self, text, length, template):
        self.calls.append((text, length, template))
        return self.summary


class FailingSummarizer(Summarizer):
    def __init__(self, error: Exception):
        self.error = error

    async def summarize(self, text, length, template):
        raise self.error


# ---------------------------------------------------------------------------
# Wire helpers
# ---------------------------------------------------------------------------

def frame(payload: dict) -> bytes:
    """Encode one payload as an SSE frame."""
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n".encode("utf-8")


def happy_stream(summary: str = "Hello streaming world.", trace_id: str = "t-1") -> list[bytes]:
    """Frames for a complete, well-formed stream of *summary*."""
    tokens = summary.split(" ")
    tokens = [t + " " for t in tokens[:-1]] + [tokens[-1]]
    total = len(tokens)
    frames = [
        frame({"type": "start", "trace_id": trace_id}),
        frame({"type": "progress", "value": 0.25, "label": "Streaming tokens"}),
    ]
    for i, token in enumerate(tokens, start=1):
        frames.append(frame({
            "type": "token", "token": token, "index": i,
            "total": total, "progress": i / total,
        }))
    frames += [
        frame({"type": "progress", "value": 1.0, "label": "Summary complete"}),
        frame({"type": "complete", "summary": summary, "trace_id": trace_id}),
        frame({"type": "end"}),
    ]
    return frames


def sse_response(chunks, gate: asyncio.Event | None = None, stall_after: int | None = None):
    """Build a streaming SSE response from byte chunks.

    With *stall_after*, the body blocks after that many chunks until
    *gate* is set.
    """
    async def body():
        for i, chunk in enumerate(chunks):
            if stall_after is not None and i == stall_after:
                await gate.wait()
            yield chunk

    return httpx.Response(
        200,
        headers={"content-type": "text/event-stream"},
        content=body(),
    )


def make_client(handler) -> SummaryClient:
    """SummaryClient whose requests are answered by *handler*."""
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test")
    return SummaryClient(base_url="http://test", client=http)


async def wait_until(predicate, timeout: float = 1.0) -> None:
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.001)
    await asyncio.wait_for(_poll(), timeout)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def sample_text():
    return SAMPLE_TEXT


@pytest.fixture
def sample_document():
    return Document(
        content=SAMPLE_TEXT.encode("utf-8"),
        filename="report.txt",
        content_type="text/plain",
    )


@pytest.fixture
def make_producer():
    """Factory for producers that do not pace between tokens."""
    def _make(summarizer=None, token_delay=0.0):
        return StreamProducer(summarizer=summarizer, token_delay=token_delay)
    return _make
