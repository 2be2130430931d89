"""Structured logging setup for the API, CLI and client library."""

import logging
import sys
from typing import Any

import structlog

from refledger.settings import settings

# Event keys whose values must never reach the log sink
REDACTED_KEYS = frozenset({"signature", "sig_header", "stripe_signature", "webhook_secret", "secret"})
REDACTED = "[redacted]"


def redact_secrets(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """structlog processor that masks webhook secrets and signatures."""
    for key in REDACTED_KEYS.intersection(event_dict):
        event_dict[key] = REDACTED
    return event_dict


def add_service_context(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("service", settings.app_name)
    event_dict.setdefault("env", settings.env)
    return event_dict


def configure_logging(log_format: str | None = None, log_level: str | None = None) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        log_format: ``console`` or ``json``, defaults to settings
        log_level: Level name, defaults to settings
    """
    log_format = log_format or settings.log_format
    level = logging.getLevelName((log_level or settings.log_level).upper())

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        redact_secrets,
    ]
    if log_format == "json":
        processors += [
            add_service_context,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors += [
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.dev.ConsoleRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    # sqlalchemy, uvicorn and httpx log through the stdlib
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a logger instance."""
    return structlog.get_logger(name)
