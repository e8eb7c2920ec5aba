"""Structured logging setup shared by the proxy service and the CLI."""

import logging
import sys
from typing import Any, Optional, TextIO

import structlog

# Substrings marking a field as secret, matched after lowercasing and "-" -> "_"
SENSITIVE_KEYS = (
    "api_key",
    "authorization",
    "secret",
    "password",
)

REDACTED = "REDACTED"


def _is_sensitive(key: str) -> bool:
    normalized = key.lower().replace("-", "_")
    return any(marker in normalized for marker in SENSITIVE_KEYS)


def redact_sensitive(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Mask secret fields, including secret entries inside header mappings.

    ``X-API-KEY``, ``x_api_key`` and ``api_key`` all match after normalizing
    case and dashes.
    """
    for key, value in list(event_dict.items()):
        if _is_sensitive(key):
            event_dict[key] = REDACTED
        elif isinstance(value, dict):
            event_dict[key] = {
                k: REDACTED if isinstance(k, str) and _is_sensitive(k) else v
                for k, v in value.items()
            }
    return event_dict


def build_processors() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_sensitive,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]


def configure_logging(log_level: str = "INFO", stream: Optional[TextIO] = None) -> None:
    """Configure structlog to emit one JSON object per line.

    Args:
        log_level: Minimum level (DEBUG, INFO, WARNING, ERROR)
        stream: Destination; stdout for the service, stderr for the CLI
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    stream = stream or sys.stdout

    logging.basicConfig(format="%(message)s", stream=stream, level=level)

    structlog.configure(
        processors=build_processors(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Return a logger, bound to ``logger_name`` when a name is given."""
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger_name=name)
    return logger
