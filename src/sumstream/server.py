"""FastAPI application serving summary streams over SSE.

``POST /api/summarize/stream`` takes a multipart upload plus the
``summary_length`` and ``summary_template`` fields and answers with a
``text/event-stream`` body. ``GET /health`` is a liveness probe.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from sumstream.config import Settings
from sumstream.extraction import Document
from sumstream.producer import StreamProducer
from sumstream.sse import sse_generator
from sumstream.summarizer import (
    ExtractiveSummarizer,
    OpenAISummarizer,
    Summarizer,
    SummaryLength,
    SummaryTemplate,
)

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def build_summarizer(settings: Settings) -> Summarizer:
    if settings.summarizer == "openai":
        return OpenAISummarizer(
            model=settings.openai_model,
            base_url=settings.openai_base_url,
        )
    if settings.summarizer != "extractive":
        raise ValueError(f"Unknown summarizer backend: {settings.summarizer!r}")
    return ExtractiveSummarizer()


async def watch_disconnect(request: Request, closed: asyncio.Event) -> None:
    """Set *closed* once the ASGI server reports the client gone.

    Must only run after the request body has been fully read.
    """
    while not closed.is_set():
        message = await request.receive()
        if message["type"] == "http.disconnect":
            closed.set()


def create_app(
    settings: Settings | None = None,
    producer: StreamProducer | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or Settings()
    if producer is None:
        producer = StreamProducer(
            summarizer=build_summarizer(settings),
            token_delay=settings.token_delay,
        )

    app = FastAPI(
        title="sumstream",
        description="Streaming document summaries over server-sent events",
    )
    app.state.settings = settings
    app.state.producer = producer

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post(settings.stream_path, response_class=StreamingResponse)
    async def summarize_stream(
        request: Request,
        file: UploadFile | None = File(None),
        text: str | None = Form(None),
        summary_length: str = Form(SummaryLength.SHORT.value),
        summary_template: str = Form(SummaryTemplate.DEFAULT.value),
    ):
        """Stream a summary of the uploaded document as SSE frames.

        Input problems (no file, undecodable content) are reported
        inside the stream as an ``error`` event. Only an oversized
        upload is refused with an HTTP error, before streaming starts.
        """
        content = b""
        filename = content_type = None
        if file is not None:
            content = await file.read()
            filename, content_type = file.filename, file.content_type
        if len(content) > settings.max_upload_bytes:
            logger.info(f"Rejected upload {filename!r}: {len(content)} bytes")
            return JSONResponse(
                {"error": f"File exceeds the {settings.max_upload_bytes} byte upload limit."},
                status_code=413,
            )

        document = Document(
            content=content,
            filename=filename,
            content_type=content_type,
            text=text,
        )
        length = SummaryLength.parse(summary_length)
        template = SummaryTemplate.parse(summary_template)

        async def body() -> AsyncIterator[str]:
            closed = asyncio.Event()
            watcher = asyncio.create_task(watch_disconnect(request, closed))
            events = producer.iter(document, length, template, closed)
            try:
                async for frame in sse_generator(events):
                    yield frame
            finally:
                watcher.cancel()
                await events.aclose()

        return StreamingResponse(
            body(),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    return app
