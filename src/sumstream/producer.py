import asyncio
import logging
import uuid
from collections.abc import AsyncIterator

from sumstream.events import (
    CompleteEvent,
    EndEvent,
    ErrorEvent,
    ProgressEvent,
    StartEvent,
    StreamEvent,
    TokenEvent,
)
from sumstream.extraction import Document, extract_text
from sumstream.instrumentation import record_disconnect, record_failure, record_tokens, stream_span
from sumstream.streaming import (
    COMPLETE_LABEL,
    MIDPOINT_LABEL,
    PREPARATION,
    PREPROCESSING,
    STREAMING,
    SUMMARIZATION,
    TOKENIZATION,
    Stage,
    midpoint_index,
    token_progress,
    tokenize_summary,
)
from sumstream.summarizer import ExtractiveSummarizer, Summarizer, SummaryLength, SummaryTemplate

logger = logging.getLogger(__name__)

NO_TEXT_MESSAGE = "No extractable text was found in the document."
EMPTY_SUMMARY_MESSAGE = "The generated summary is empty."
UNKNOWN_ERROR_MESSAGE = "An unknown error occurred while summarizing."


def _milestone(stage: Stage) -> ProgressEvent:
    return ProgressEvent(value=stage.value, label=stage.label)


class StreamProducer:
    """Turns one document into a paced stream of summary events.

    The summary is computed up front, then written token by token with
    a fixed delay between tokens. ``iter()`` takes a ``closed`` event
    that the transport sets when the client goes away; once it is set
    nothing more is yielded, not even the end marker.

    Args:
        summarizer: Backend producing the summary text.
        token_delay: Seconds to wait after each token.
    """

    def __init__(
        self,
        summarizer: Summarizer | None = None,
        token_delay: float = 0.08,
    ):
        self.summarizer = summarizer or ExtractiveSummarizer()
        self.token_delay = token_delay

    async def iter(
        self,
        document: Document,
        length: SummaryLength = SummaryLength.SHORT,
        template: SummaryTemplate = SummaryTemplate.DEFAULT,
        closed: asyncio.Event | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Yield the events for one summarization request."""
        if closed is None:
            closed = asyncio.Event()
        trace_id = str(uuid.uuid4())
        events = self._events(trace_id, document, length, template, closed)
        try:
            async for event in events:
                if closed.is_set():
                    logger.info(f"[{trace_id}] Client disconnected, stopping stream early")
                    return
                yield event
        finally:
            await events.aclose()

    async def _events(
        self,
        trace_id: str,
        document: Document,
        length: SummaryLength,
        template: SummaryTemplate,
        closed: asyncio.Event,
    ) -> AsyncIterator[StreamEvent]:
        text = extract_text(document)
        if not text:
            logger.info(f"[{trace_id}] Rejected {document.filename!r}: no extractable text")
            yield ErrorEvent(message=NO_TEXT_MESSAGE)
            yield EndEvent()
            return

        with stream_span(trace_id, length.value, template.value) as span:
            sent = 0
            total = 0
            try:
                logger.info(
                    f"[{trace_id}] Stream started "
                    f"(length={length.value}, template={template.value}, chars={len(text)})"
                )
                yield StartEvent(trace_id=trace_id)
                yield _milestone(PREPROCESSING)
                yield _milestone(PREPARATION)
                yield _milestone(SUMMARIZATION)
                summary = await self._summarize(text, length, template, closed)
                if summary is None:
                    logger.info(f"[{trace_id}] Client disconnected during summarization")
                    record_disconnect(span)
                    return

                yield _milestone(TOKENIZATION)
                tokens = tokenize_summary(summary)
                total = len(tokens)
                if not tokens:
                    logger.warning(f"[{trace_id}] Summarizer returned an empty summary")
                    yield ErrorEvent(message=EMPTY_SUMMARY_MESSAGE)
                    yield EndEvent()
                    return

                yield _milestone(STREAMING)
                midpoint = midpoint_index(total)
                for index, token in enumerate(tokens, start=1):
                    yield TokenEvent(
                        token=token,
                        index=index,
                        total=total,
                        progress=index / total,
                    )
                    sent = index
                    if index == midpoint and index < total:
                        yield ProgressEvent(
                            value=token_progress(index, total),
                            label=MIDPOINT_LABEL,
                        )
                    if await self._pace(closed):
                        record_disconnect(span)
                        return

                yield ProgressEvent(value=1.0, label=COMPLETE_LABEL)
                yield CompleteEvent(summary=summary, trace_id=trace_id)
                logger.info(f"[{trace_id}] Stream complete ({total} tokens)")
            except Exception as e:
                logger.exception(f"[{trace_id}] Summarization failed: {e}")
                record_failure(span, e)
                yield ErrorEvent(message=str(e) or UNKNOWN_ERROR_MESSAGE)
            finally:
                record_tokens(span, sent, total)
        yield EndEvent()

    async def _pace(self, closed: asyncio.Event) -> bool:
        """Wait out the inter-token delay.

        Returns True as soon as the client disconnects, without
        waiting for the rest of the delay.
        """
        if self.token_delay <= 0:
            await asyncio.sleep(0)
            return closed.is_set()
        try:
            await asyncio.wait_for(closed.wait(), timeout=self.token_delay)
        except asyncio.TimeoutError:
            return False
        return True

    async def _summarize(
        self,
        text: str,
        length: SummaryLength,
        template: SummaryTemplate,
        closed: asyncio.Event,
    ) -> str | None:
        """Run the summarizer unless the client disconnects first.

        Returns ``None`` when the disconnect wins; the summarizer call
        is cancelled in that case.
        """
        work = asyncio.ensure_future(self.summarizer.summarize(text, length, template))
        disconnected = asyncio.ensure_future(closed.wait())
        try:
            await asyncio.wait({work, disconnected}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            disconnected.cancel()
            if not work.done():
                work.cancel()
                await asyncio.wait({work})
        if work.cancelled():
            return None
        return work.result()
