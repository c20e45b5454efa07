"""OpenTelemetry spans around summary streams.

Tracing is off until :func:`instrument` is called. Without it, or
without ``opentelemetry-api`` installed, every helper here is a no-op
and streams behave exactly the same.
"""

import importlib.util
import logging
from contextlib import contextmanager

logger = logging.getLogger(__name__)

_tracer = None


def instrument(*, tracer_name: str = "sumstream") -> None:
    """Open a ``summarize_stream`` span for every producer run.

    Spans go to the globally registered TracerProvider, so configure
    that first. The API ships in the ``otel`` extra
    (``pip install sumstream[otel]``).

    Raises:
        ImportError: ``opentelemetry-api`` is missing.
    """
    global _tracer
    if importlib.util.find_spec("opentelemetry.trace") is None:
        raise ImportError("Tracing needs opentelemetry-api: pip install sumstream[otel]")
    from opentelemetry import trace

    tracer = trace.get_tracer(tracer_name)
    if isinstance(tracer, trace.NoOpTracer):
        logger.warning("Tracing enabled without a TracerProvider; stream spans will be dropped")
    else:
        logger.info(f"Tracing summary streams with tracer {tracer_name!r}")
    _tracer = tracer


def uninstrument() -> None:
    global _tracer
    _tracer = None


@contextmanager
def stream_span(trace_id: str, length: str, template: str):
    """Wrap one producer run in a ``summarize_stream`` span."""
    if _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(
        "summarize_stream",
        attributes={
            "sumstream.trace_id": trace_id,
            "sumstream.summary_length": length,
            "sumstream.summary_template": template,
        },
    ) as span:
        yield span


def record_tokens(span, sent: int, total: int) -> None:
    """Record how many tokens were written before the stream ended."""
    if span is None:
        return
    span.set_attribute("sumstream.tokens.total", total)
    span.set_attribute("sumstream.tokens.sent", sent)


def record_disconnect(span) -> None:
    if span is None:
        return
    span.add_event("client_disconnected")


def record_failure(span, error: Exception) -> None:
    """Mark the stream span failed with the error reported to the client."""
    if span is None:
        return
    from opentelemetry.trace import StatusCode

    span.record_exception(error)
    span.set_attribute("sumstream.error.type", type(error).__name__)
    span.set_status(StatusCode.ERROR, str(error) or type(error).__name__)
