"""Streaming primitives shared by the producer and the consumer.

The producer splits a finished summary with :func:`tokenize_summary`
and reports progress from fixed checkpoints. The consumer rebuilds the
text with :class:`SummaryAccumulator`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from sumstream.events import CompleteEvent, StartEvent, TokenEvent

_TOKEN_RE = re.compile(r"\S+\s*")


@dataclass(frozen=True)
class Stage:
    """A fixed pipeline checkpoint reported before the stage runs."""

    name: str
    value: float
    label: str


PREPROCESSING = Stage("preprocessing", 0.05, "Preprocessing uploaded document")
PREPARATION = Stage("preparation", 0.10, "Preparing summarization pipeline")
SUMMARIZATION = Stage("summarization", 0.15, "Summarizing document")
TOKENIZATION = Stage("tokenization", 0.20, "Splitting summary into tokens")
STREAMING = Stage("streaming", 0.25, "Streaming tokens")

STAGES = (PREPROCESSING, PREPARATION, SUMMARIZATION, TOKENIZATION, STREAMING)

STREAM_SPAN = 0.65
STREAM_CAP = 0.9
MIDPOINT_LABEL = "Organizing summary"
COMPLETE_LABEL = "Summary complete"


def tokenize_summary(summary: str) -> list[str]:
    """Split *summary* into whitespace-delimited chunks.

    Each chunk keeps its trailing whitespace, so ``"".join(tokens)``
    reproduces the summary minus any leading whitespace, which is
    attached to the first token.
    """
    if not summary:
        return []
    tokens = _TOKEN_RE.findall(summary)
    if not tokens:
        return [summary]
    leading = summary[: len(summary) - len(summary.lstrip())]
    if leading:
        tokens[0] = leading + tokens[0]
    return tokens


def token_progress(sent: int, total: int) -> float:
    """Overall progress after *sent* of *total* tokens, capped below 1.0."""
    if total <= 0:
        return STREAMING.value
    return min(STREAMING.value + (sent / total) * STREAM_SPAN, STREAM_CAP)


def midpoint_index(total: int) -> int:
    """1-based index of the token after which the midpoint milestone fires."""
    return total // 2 + 1


class SummaryAccumulator:
    """Reassembles summary text from a stream of events.

    Tokens append; a complete event replaces the text wholesale, since
    the final summary is authoritative.
    """

    def __init__(self) -> None:
        self.text = ""
        self.trace_id: str | None = None
        self.total: int | None = None
        self.completed = False

    def feed(self, event) -> str:
        if isinstance(event, StartEvent):
            self.trace_id = event.trace_id
        elif isinstance(event, TokenEvent):
            self.text += event.token
            self.total = event.total
        elif isinstance(event, CompleteEvent):
            self.text = event.summary
            if event.trace_id is not None:
                self.trace_id = event.trace_id
            self.completed = True
        return self.text
