"""Failure kinds surfaced by the stream consumer.

Callers distinguish them to decide what to show: a server-reported
message, a retry prompt, or nothing at all for a cancellation.
"""

GENERIC_ERROR_MESSAGE = "An error occurred while streaming the summary."
UNEXPECTED_TERMINATION_MESSAGE = "The stream ended unexpectedly. Please try again."
ABORTED_MESSAGE = "The summary request was cancelled."
REQUEST_FAILED_MESSAGE = "The summary stream request failed."


class SummaryStreamError(Exception):
    """Base class for every consumer-side failure."""


class ServerReportedError(SummaryStreamError):
    """The producer sent a terminal ``error`` event."""

    def __init__(self, message: str = GENERIC_ERROR_MESSAGE):
        super().__init__(message)
        self.message = message


class UnexpectedTerminationError(SummaryStreamError):
    """The transport closed or failed before a terminal event arrived."""

    def __init__(self, message: str = UNEXPECTED_TERMINATION_MESSAGE):
        super().__init__(message)
        self.message = message


class StreamAborted(SummaryStreamError):
    """The caller cancelled the request, directly or by superseding it."""

    def __init__(self, message: str = ABORTED_MESSAGE):
        super().__init__(message)
        self.message = message


class RequestFailedError(SummaryStreamError):
    """The server refused the request with a non-2xx status."""

    def __init__(self, status_code: int, message: str = REQUEST_FAILED_MESSAGE):
        super().__init__(f"{message} (HTTP {status_code})")
        self.status_code = status_code
        self.message = message
