"""Structured logging for the notification service.

Every record, whether from structlog or from aiohttp's stdlib loggers, goes
through one stderr handler. Channel destinations, SMTP passwords and webhook
signing secrets are masked before rendering.
"""

from __future__ import annotations

import logging
import sys

import structlog

from src.core.config import get_settings

# Loggers from libraries that are too chatty at INFO.
_NOISY_LOGGERS = ("aiohttp.access",)

# Event keys that may carry webhook URLs, mailing lists or credentials.
_SECRET_KEYS = frozenset({"destination", "password", "signing_secret", "authorization"})
_MASK = "**********"


def redact_secrets(
    logger: object, method_name: str, event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Mask values logged under secret-bearing keys."""
    for key in _SECRET_KEYS.intersection(event_dict):
        if event_dict[key]:
            event_dict[key] = _MASK
    return event_dict


def setup_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Configure structlog and stdlib logging and tag records with the service name.

    Args:
        level: Log level override (e.g. "DEBUG"). Uses config if None.
        fmt: Renderer override ("json" or "console"). Uses config if None.
    """
    settings = get_settings()
    log_level = getattr(logging, (level or settings.logging.level).upper(), logging.INFO)
    log_format = fmt or settings.logging.format

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    renderer: structlog.types.Processor
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # foreign_pre_chain formats records emitted by plain stdlib loggers (aiohttp).
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    structlog.contextvars.bind_contextvars(service=settings.server.service_name)
