"""Unit tests for the instrumentation module.

Tests use unittest.mock for OTel interactions.  ``opentelemetry-api``
is a test dependency so we can import ``StatusCode`` directly for
assertion accuracy.
"""

from unittest.mock import MagicMock, patch

import pytest
from opentelemetry.trace import StatusCode

import sumstream.instrumentation as inst
from sumstream.events import ErrorEvent, EndEvent
from sumstream.instrumentation import (
    record_disconnect,
    record_failure,
    record_tokens,
    stream_span,
    uninstrument,
)
from sumstream.summarizer import SummaryLength, SummaryTemplate

from tests.conftest import FailingSummarizer


@pytest.fixture(autouse=True)
def _reset_tracer():
    """Ensure _tracer is reset to None before and after each test."""
    inst._tracer = None
    yield
    inst._tracer = None


def _mock_tracer():
    tracer = MagicMock()
    span = MagicMock()
    tracer.start_as_current_span.return_value.__enter__ = MagicMock(return_value=span)
    tracer.start_as_current_span.return_value.__exit__ = MagicMock(return_value=False)
    return tracer, span


# -------------------------------------------------------------------
# instrument()
# -------------------------------------------------------------------


class TestInstrument:
    def test_raises_without_otel_installed(self):
        with patch("importlib.util.find_spec", return_value=None):
            with pytest.raises(ImportError, match="pip install"):
                inst.instrument()

    def test_sets_global_tracer(self):
        mock_tracer = MagicMock()
        mock_trace = MagicMock()
        mock_trace.get_tracer.return_value = mock_tracer
        mock_trace.NoOpTracer = type("NoOpTracer", (), {})

        with patch("importlib.util.find_spec", return_value=MagicMock()), patch.dict(
            "sys.modules",
            {
                "opentelemetry": MagicMock(trace=mock_trace),
                "opentelemetry.trace": mock_trace,
            },
        ):
            inst.instrument()

        assert inst._tracer is mock_tracer
        mock_trace.get_tracer.assert_called_once_with("sumstream")

    def test_uninstrument_clears_tracer(self):
        inst._tracer = MagicMock()
        uninstrument()
        assert inst._tracer is None


# -------------------------------------------------------------------
# Spans
# -------------------------------------------------------------------


class TestStreamSpan:
    def test_noop_when_disabled(self):
        with stream_span("t", "short", "default") as span:
            assert span is None

    def test_span_attributes(self):
        tracer, span = _mock_tracer()
        inst._tracer = tracer
        with stream_span("t-1", "medium", "HR_BULLET") as active:
            assert active is span
        args, kwargs = tracer.start_as_current_span.call_args
        assert args[0] == "summarize_stream"
        assert kwargs["attributes"] == {
            "sumstream.trace_id": "t-1",
            "sumstream.summary_length": "medium",
            "sumstream.summary_template": "HR_BULLET",
        }

    def test_helpers_noop_on_none(self):
        record_tokens(None, 1, 2)
        record_disconnect(None)
        record_failure(None, RuntimeError("x"))

    def test_record_tokens(self):
        span = MagicMock()
        record_tokens(span, 3, 10)
        span.set_attribute.assert_any_call("sumstream.tokens.total", 10)
        span.set_attribute.assert_any_call("sumstream.tokens.sent", 3)

    def test_record_failure_sets_status(self):
        span = MagicMock()
        error = ValueError("bad input")
        record_failure(span, error)
        span.set_status.assert_called_once_with(StatusCode.ERROR, "bad input")
        span.record_exception.assert_called_once_with(error)
        span.set_attribute.assert_called_once_with("sumstream.error.type", "ValueError")

    def test_record_failure_without_message_uses_type_name(self):
        span = MagicMock()
        record_failure(span, RuntimeError())
        span.set_status.assert_called_once_with(StatusCode.ERROR, "RuntimeError")


class TestProducerSpans:
    @pytest.mark.asyncio
    async def test_failure_recorded_on_span(self, make_producer, sample_document):
        tracer, span = _mock_tracer()
        inst._tracer = tracer
        producer = make_producer(summarizer=FailingSummarizer(RuntimeError("backend down")))

        events = [e async for e in producer.iter(
            sample_document, SummaryLength.SHORT, SummaryTemplate.DEFAULT,
        )]

        assert isinstance(events[-2], ErrorEvent)
        assert isinstance(events[-1], EndEvent)
        span.set_status.assert_called_once_with(StatusCode.ERROR, "backend down")
        span.set_attribute.assert_any_call("sumstream.tokens.sent", 0)
