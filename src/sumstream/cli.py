"""Command line entry point.

Usage:
    sumstream serve [--host HOST] [--port PORT] [--token-delay SECONDS]
    sumstream summarize FILE [--url URL] [--length short|medium]
                             [--template TEMPLATE] [--timeout SECONDS]
"""

import argparse
import asyncio
import logging
import sys

from sumstream.client import SummaryClient, SummaryRequest
from sumstream.config import Settings, configure_logging
from sumstream.events import ErrorEvent, ProgressEvent, TokenEvent
from sumstream.exceptions import (
    RequestFailedError,
    ServerReportedError,
    StreamAborted,
    UnexpectedTerminationError,
)
from sumstream.summarizer import SummaryLength, SummaryTemplate

logger = logging.getLogger(__name__)

EXIT_SERVER_ERROR = 1
EXIT_TRANSPORT_ERROR = 2
EXIT_ABORTED = 130


def serve(args: argparse.Namespace, settings: Settings) -> int:
    import uvicorn

    from sumstream.server import create_app

    if args.trace:
        from sumstream.instrumentation import instrument
        instrument()

    app = create_app(settings)
    logger.info(f"Streaming summarize service listening on {settings.host}:{settings.port}")
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
    return 0


async def summarize(args: argparse.Namespace, settings: Settings) -> int:
    request = SummaryRequest.from_path(
        args.file,
        length=SummaryLength(args.length),
        template=SummaryTemplate(args.template),
    )
    cancel = asyncio.Event()
    if args.timeout:
        asyncio.get_running_loop().call_later(args.timeout, cancel.set)

    def on_event(event) -> None:
        if isinstance(event, TokenEvent):
            sys.stdout.write(event.token)
            sys.stdout.flush()
        elif isinstance(event, ProgressEvent) and args.verbose:
            sys.stderr.write(f"[{event.value:.0%}] {event.label}\n")
        elif isinstance(event, ErrorEvent):
            sys.stderr.write(f"error: {event.message}\n")

    async with SummaryClient(base_url=settings.base_url, stream_path=settings.stream_path) as client:
        try:
            result = await client.summarize(request, on_event=on_event, cancel=cancel)
        except StreamAborted:
            sys.stderr.write("\ncancelled\n")
            return EXIT_ABORTED
        except ServerReportedError:
            return EXIT_SERVER_ERROR
        except (UnexpectedTerminationError, RequestFailedError) as e:
            sys.stderr.write(f"\n{e}\n")
            return EXIT_TRANSPORT_ERROR
    sys.stdout.write("\n")
    if args.verbose:
        sys.stderr.write(f"trace id: {result.trace_id}\n")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sumstream", description="Streaming document summaries")
    parser.add_argument("--log-level", default=None)
    sub = parser.add_subparsers(dest="command", required=True)

    serve_parser = sub.add_parser("serve", help="Run the streaming server")
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", type=int, default=None)
    serve_parser.add_argument("--token-delay", type=float, default=None)
    serve_parser.add_argument("--summarizer", choices=["extractive", "openai"], default=None)
    serve_parser.add_argument("--trace", action="store_true")

    summarize_parser = sub.add_parser("summarize", help="Stream a summary of FILE")
    summarize_parser.add_argument("file")
    summarize_parser.add_argument("--url", default=None, help="Server base URL")
    summarize_parser.add_argument(
        "--length", choices=[v.value for v in SummaryLength], default=SummaryLength.SHORT.value,
    )
    summarize_parser.add_argument(
        "--template", choices=[v.value for v in SummaryTemplate], default=SummaryTemplate.DEFAULT.value,
    )
    summarize_parser.add_argument("--timeout", type=float, default=None)
    summarize_parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    overrides = {
        "log_level": args.log_level,
        "host": getattr(args, "host", None),
        "port": getattr(args, "port", None),
        "token_delay": getattr(args, "token_delay", None),
        "summarizer": getattr(args, "summarizer", None),
        "base_url": getattr(args, "url", None),
    }
    settings = Settings(**{k: v for k, v in overrides.items() if v is not None})
    configure_logging(settings.log_level, settings.log_file)

    if args.command == "serve":
        return serve(args, settings)
    return asyncio.run(summarize(args, settings))


if __name__ == "__main__":
    sys.exit(main())
