"""Logging configuration utilities."""

import logging
import sys
from pathlib import Path
from typing import Optional, Union
from urllib.parse import urlsplit, urlunsplit

import structlog
from structlog.contextvars import bind_contextvars


SENSITIVE_KEYS = {
    "password",
    "token",
    "api_key",
    "secret",
    "authorization",
}

# Fields that may hold a pack URL; presigned links carry credentials in the query.
URL_KEYS = {"url", "pack_url", "package_url", "source"}


def _scrub_url(value: str) -> str:
    try:
        parts = urlsplit(value)
        port = parts.port
    except ValueError:
        return "[REDACTED]"
    if parts.scheme not in ("http", "https"):
        return value
    netloc = parts.hostname or ""
    if port:
        netloc = f"{netloc}:{port}"
    if parts.username or parts.password:
        netloc = f"[REDACTED]@{netloc}"
    query = "[REDACTED]" if parts.query else ""
    return urlunsplit((parts.scheme, netloc, parts.path, query, ""))


def _redact_sensitive(_, __, event_dict: dict) -> dict:
    """Redact secrets and pack URL credentials in the structured log."""
    for key in list(event_dict.keys()):
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = "[REDACTED]"
        elif key in URL_KEYS and isinstance(event_dict[key], str):
            event_dict[key] = _scrub_url(event_dict[key])
    return event_dict


def setup_logging(log_level: str = "INFO", log_format: str = "console") -> None:
    """Configure structured logging."""

    # CLI output goes to stdout, so logs go to stderr
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper()),
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        _redact_sensitive,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, log_level.upper())),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def bind_deployment_context(
    agent: Optional[str] = None, destination: Optional[Union[str, Path]] = None
) -> None:
    """Bind correlation fields for deployment logs using contextvars."""
    if agent:
        bind_contextvars(agent=agent)
    if destination:
        bind_contextvars(destination=str(destination))
