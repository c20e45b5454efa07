import logging

from sumstream.client import SummaryClient, SummaryRequest, SummaryResult
from sumstream.exceptions import (
    RequestFailedError,
    ServerReportedError,
    StreamAborted,
    SummaryStreamError,
    UnexpectedTerminationError,
)
from sumstream.session import SessionManager, StreamSession

logger = logging.getLogger(__name__)


def _error_kind(error: SummaryStreamError) -> str:
    if isinstance(error, ServerReportedError):
        return "server"
    if isinstance(error, RequestFailedError):
        return "request"
    if isinstance(error, UnexpectedTerminationError):
        return "transport"
    return "unknown"


class SummaryController:
    """Drives one visible summary through successive generate actions.

    Each ``generate()`` supersedes the previous one: the older stream
    is cancelled and anything it still delivers is dropped, so only the
    newest generation ever reaches ``view``.

    Args:
        client: Client used to open streams.
        sessions: Generation bookkeeping, or a fresh SessionManager.
    """

    def __init__(
        self,
        client: SummaryClient,
        sessions: SessionManager | None = None,
    ):
        self.client = client
        self.sessions = sessions or SessionManager()
        self.view = StreamSession()

    async def generate(self, request: SummaryRequest) -> SummaryResult | None:
        """Start a new generation and stream it into ``view``.

        Returns the result if this generation completed while still
        current, otherwise ``None``. Failures are recorded on ``view``
        rather than raised.
        """
        generation = self.sessions.start_new()
        cancel = self.sessions.current_signal
        self.view.begin(generation)

        def on_event(event) -> None:
            if not self.sessions.is_current(generation):
                logger.debug(f"Dropping {event.type} event from stale generation {generation}")
                return
            self.view.apply(event)

        try:
            result = await self.client.summarize(request, on_event=on_event, cancel=cancel)
        except StreamAborted:
            logger.debug(f"Generation {generation} aborted")
            if self.sessions.is_current(generation):
                self.view.stop()
            return None
        except SummaryStreamError as e:
            if not self.sessions.is_current(generation):
                return None
            logger.info(f"Generation {generation} failed: {e}")
            self.view.fail(getattr(e, "message", str(e)), _error_kind(e))
            return None

        if not self.sessions.is_current(generation):
            return None
        self.view.finish(result.summary, result.trace_id)
        return result

    def cancel(self) -> None:
        """Cancel the in-flight generation, if any."""
        self.sessions.cancel_current()

    def close(self) -> None:
        """Tear down: invalidate the current generation unconditionally."""
        self.sessions.close()
