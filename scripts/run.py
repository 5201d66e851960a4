#!/usr/bin/env python3
"""Service entrypoint — wires the notification pipeline and serves HTTP.

Usage::

    # Run with default config
    python scripts/run.py

    # Custom config file
    python scripts/run.py --config config/settings.yaml

    # Override log level / listener
    python scripts/run.py --log-level DEBUG --port 9000
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys

import structlog

from src.api.server import start_server
from src.core.config import load_settings
from src.core.logging import setup_logging
from src.history.exceptions import StoreError
from src.service.factory import create_service

logger = structlog.get_logger(__name__)


async def run(args: argparse.Namespace) -> int:
    """Start the service and run until interrupted."""
    settings = load_settings(args.config)
    setup_logging(level=args.log_level)

    host = args.host or settings.server.host
    port = args.port or settings.server.port

    logger.info(
        "service_starting",
        channels=len(settings.channels),
        rules=len(settings.routing.rules),
        history_path=settings.history.path or None,
    )

    service = create_service(settings)
    try:
        await service.open()
    except StoreError:
        logger.exception("history_open_failed")
        return 1
    except OSError as exc:
        logger.error("history_open_failed", error=str(exc))
        print(f"Could not load history from {settings.history.path}: {exc}", file=sys.stderr)
        return 1

    runner = await start_server(service, host=host, port=port)
    logger.info("service_running", host=host, port=port)

    # ── Wait for shutdown signal ─────────────────────────────────
    stop_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("shutdown_signal_received")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows: signal handlers not supported on ProactorEventLoop
            pass

    try:
        await stop_event.wait()
    except KeyboardInterrupt:
        logger.info("keyboard_interrupt")

    # ── Graceful shutdown ────────────────────────────────────────
    logger.info("service_shutting_down")
    await runner.cleanup()
    await service.close()

    health = service.health()
    logger.info(
        "service_stopped",
        events_processed=health["events_processed"],
        history_size=health["history_size"],
    )
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Run the IaC notification routing service.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to settings YAML (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level override: DEBUG, INFO, WARNING, ERROR",
    )
    parser.add_argument("--host", default=None, help="Listen address override")
    parser.add_argument("--port", type=int, default=None, help="Listen port override")
    args = parser.parse_args()

    code = asyncio.run(run(args))
    sys.exit(code)


if __name__ == "__main__":
    main()
