"""Event forwarder command line. Use --help for usage."""

import argparse
import asyncio
import json
import logging
import os
import signal
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import IO

from dotenv import load_dotenv

from core.errors.exceptions import ConfigurationError
from core.logging.context import set_log_context
from core.logging.setup import setup_logging
from core.logging.utilities import log_exception
from core.utils import generate_worker_id
from event_forwarder.event import Event
from event_forwarder.plugins.registry import create_output
from event_forwarder.plugins.shared.base import OutputPlugin
from event_forwarder.plugins.shared.config import ForwarderConfig, load_forwarder_config

# Project root directory (where .env file is located)
PROJECT_ROOT = Path(__file__).parent.parent.parent

EXIT_OK = 0
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130

# Options under "logging:" that are passed to setup_logging()
LOGGING_OPTIONS = ("json_format", "log_dir", "rotation_when", "rotation_interval", "backup_count", "suppress_noisy")

# Placeholder logger until setup_logging() is called in main()
logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    events_read: int = 0
    delivered: int = 0
    failed: int = 0
    skipped: int = 0


def _env_flag(name: str) -> bool:
    return os.getenv(name, "false").lower() in ("true", "1", "yes")


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {number}")
    return number


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Forward JSON-lines events to the configured outputs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Forward events from a file
    python -m event_forwarder --config config/forwarder.yaml --input events.jsonl

    # Forward events piped on stdin, 20 in flight at a time
    tail -f app.jsonl | python -m event_forwarder -c config/forwarder.yaml --concurrency 20

    # Debug output on the console only
    python -m event_forwarder -c config/forwarder.yaml --log-level DEBUG --log-to-stdout
        """,
    )

    parser.add_argument(
        "--config",
        "-c",
        default=os.getenv("FORWARDER_CONFIG", "config/forwarder.yaml"),
        help="Path to the YAML configuration (default: FORWARDER_CONFIG env var or config/forwarder.yaml)",
    )

    parser.add_argument(
        "--input",
        "-i",
        default="-",
        help="JSON-lines file with one event per line, '-' for stdin (default: stdin)",
    )

    parser.add_argument(
        "--concurrency",
        type=_positive_int,
        default=10,
        help="Maximum number of events delivered concurrently (default: 10)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Console logging level (default: INFO)",
    )

    parser.add_argument(
        "--log-dir",
        type=str,
        default=None,
        help="Log directory path (default: from LOG_DIR env var, config, or ./logs)",
    )

    parser.add_argument(
        "--log-to-stdout",
        action="store_true",
        help="Send all log output to the console only, skipping file handlers. "
        "Can also be set via LOG_TO_STDOUT environment variable.",
    )

    return parser.parse_args(argv)


def parse_line(line: str, line_number: int) -> Event | None:
    """Decode one input line, or return None (and log) if it is not a usable event."""
    try:
        return Event.from_dict(json.loads(line))
    except (ValueError, RecursionError) as e:
        logger.warning(
            "Skipping unparseable input line",
            extra={"line_number": line_number, "error": str(e)},
        )
        return None


async def _deliver(event: Event, outputs: list[OutputPlugin], summary: RunSummary) -> None:
    results = await asyncio.gather(
        *(output.receive(event) for output in outputs),
        return_exceptions=True,
    )
    for output, result in zip(outputs, results, strict=True):
        if isinstance(result, Exception):
            log_exception(
                logger,
                result,
                "Output raised while handling event",
                level=logging.WARNING,
                plugin_name=output.name,
            )
            summary.failed += 1
        elif getattr(result, "ok", True):
            summary.delivered += 1
        else:
            summary.failed += 1


async def forward_events(
    outputs: list[OutputPlugin],
    stream: IO[str],
    concurrency: int = 10,
    shutdown_event: asyncio.Event | None = None,
) -> RunSummary:
    """
    Read events from stream and hand each one to every output.

    At most concurrency events are in flight; reading pauses while the
    limit is reached. Blank lines are ignored. Stops at end of input or
    when shutdown_event is set, after in-flight events finish.
    """
    summary = RunSummary()
    semaphore = asyncio.Semaphore(concurrency)
    tasks: set[asyncio.Task] = set()

    async def deliver_and_release(event: Event) -> None:
        try:
            await _deliver(event, outputs, summary)
        finally:
            semaphore.release()

    line_number = 0
    while shutdown_event is None or not shutdown_event.is_set():
        line = await asyncio.to_thread(stream.readline)
        if not line:
            break
        line_number += 1
        if not line.strip():
            continue

        summary.events_read += 1
        event = parse_line(line, line_number)
        if event is None:
            summary.skipped += 1
            continue

        await semaphore.acquire()
        task = asyncio.create_task(deliver_and_release(event))
        tasks.add(task)
        task.add_done_callback(tasks.discard)

    if tasks:
        await asyncio.gather(*tasks)
    return summary


def setup_signal_handlers(loop: asyncio.AbstractEventLoop, shutdown_event: asyncio.Event) -> None:
    """Stop reading input on SIGINT/SIGTERM; a second signal cancels in-flight work."""

    def handle_signal(sig):
        logger.info("Received signal, finishing in-flight events", extra={"signal": sig.name})
        if not shutdown_event.is_set():
            shutdown_event.set()
        else:
            logger.warning("Received second signal, forcing immediate shutdown...")
            for task in asyncio.all_tasks(loop):
                task.cancel()

    if sys.platform == "win32":
        logger.debug("Signal handlers not supported on Windows, using KeyboardInterrupt")
        return

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))


async def run(config: ForwarderConfig, input_path: str, concurrency: int) -> RunSummary:
    """
    Create and register the configured outputs, forward all input, close outputs.

    Raises:
        ConfigurationError: If an output is unknown or rejects its options
    """
    outputs = [create_output(name, options) for name, options in config.outputs.items()]

    shutdown_event = asyncio.Event()
    setup_signal_handlers(asyncio.get_running_loop(), shutdown_event)

    registered: list[OutputPlugin] = []
    stream = sys.stdin if input_path == "-" else open(input_path, encoding="utf-8")
    try:
        for output in outputs:
            await output.register()
            registered.append(output)
        return await forward_events(registered, stream, concurrency, shutdown_event)
    finally:
        for output in registered:
            await output.close()
        if stream is not sys.stdin:
            stream.close()


def _logging_kwargs(args: argparse.Namespace, config: ForwarderConfig | None) -> dict:
    options = {k: v for k, v in (config.logging if config else {}).items() if k in LOGGING_OPTIONS}

    if "JSON_LOGS" in os.environ:
        options["json_format"] = _env_flag("JSON_LOGS")

    log_dir = args.log_dir or os.getenv("LOG_DIR") or options.get("log_dir") or "logs"
    options["log_dir"] = Path(log_dir)
    options["console_level"] = getattr(logging, args.log_level)
    options["log_to_stdout"] = args.log_to_stdout or _env_flag("LOG_TO_STDOUT")
    return options


def main(argv: list[str] | None = None) -> int:
    load_dotenv(PROJECT_ROOT / ".env")
    args = parse_args(argv)

    worker_id = os.getenv("WORKER_ID") or generate_worker_id("forwarder")

    # Load config before logging so its logging section applies
    config_error = None
    try:
        config = load_forwarder_config(Path(args.config))
    except ConfigurationError as e:
        config, config_error = None, e

    setup_logging(worker_id=worker_id, **_logging_kwargs(args, config))
    set_log_context(worker_id=worker_id)

    if config_error is not None:
        log_exception(logger, config_error, "Invalid configuration", include_traceback=False)
        print(f"Configuration error: {config_error}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    try:
        summary = asyncio.run(run(config, args.input, args.concurrency))
    except ConfigurationError as e:
        log_exception(logger, e, "Invalid output configuration", include_traceback=False)
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except OSError as e:
        log_exception(logger, e, "Cannot read input", include_traceback=False)
        print(f"Input error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Interrupted, shutting down")
        return EXIT_INTERRUPTED

    logger.info(
        "Forwarding complete",
        extra={
            "events_read": summary.events_read,
            "events_delivered": summary.delivered,
            "events_failed": summary.failed,
            "events_skipped": summary.skipped,
        },
    )
    print(
        f"[SUMMARY] read={summary.events_read} delivered={summary.delivered} "
        f"failed={summary.failed} skipped={summary.skipped}",
        flush=True,
    )
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
