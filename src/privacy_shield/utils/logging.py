"""Structlog setup: JSON lines in production, coloured console during development."""

from __future__ import annotations

import logging
import sys

import structlog

from privacy_shield.config import APP_VERSION

_QUIET_IN_PRODUCTION = ("tldextract", "filelock", "uvicorn.access")


def _add_shield_version(
    logger: logging.Logger, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """Stamp every record with the shield version so mixed logs stay attributable."""
    event_dict.setdefault("shield", APP_VERSION)
    return event_dict


def configure_logging(environment: str, log_level: str = "INFO") -> None:
    """Route structlog through the stdlib root logger.

    Production emits one JSON object per line; anything else gets the
    colourised development renderer.  Calling this twice simply replaces
    the root handler.

    Args:
        environment: ``"production"`` or anything else (treated as development).
        log_level:   Standard Python log-level name, e.g. ``"DEBUG"``.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    production = environment == "production"

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _add_shield_version,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    renderer: structlog.types.Processor
    if production:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=shared_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)

    if production:
        for name in _QUIET_IN_PRODUCTION:
            logging.getLogger(name).setLevel(logging.WARNING)
