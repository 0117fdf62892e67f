"""
Structured logging configuration for agent-media.

This module provides:
- JSON or console structured logging with structlog
- Context enrichment (request_id, action, provider)
- Redaction of credentials in log events
- Integration of stdlib loggers (httpx, transformers) into the same stream

Logs always go to stderr: stdout carries the JSON result envelope.
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone

import structlog
from structlog.types import FilteringBoundLogger

from .config import settings

# Per-invocation identifiers picked up by add_context_fields
request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
action_ctx: ContextVar[str | None] = ContextVar("action", default=None)

SENSITIVE_FIELDS = {"password", "secret", "token", "api_key", "apikey", "authorization", "credentials"}


def add_context_fields(logger, method_name, event_dict):
    """Attach request id, action and toolkit identity to the event."""
    if request_id := request_id_ctx.get():
        event_dict.setdefault("request_id", request_id)
    if action := action_ctx.get():
        event_dict.setdefault("action", action)

    event_dict["app"] = settings.app.app_name
    event_dict["version"] = settings.app.version
    return event_dict


def add_timestamps(logger, method_name, event_dict):
    """UTC timestamp in ISO 8601."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def filter_sensitive_data(logger, method_name, event_dict):
    """Redact credential-like keys at any nesting depth."""

    def _filter(obj):
        if isinstance(obj, dict):
            return {
                key: (
                    "[REDACTED]"
                    if any(field in str(key).lower() for field in SENSITIVE_FIELDS)
                    else _filter(value)
                )
                for key, value in obj.items()
            }
        if isinstance(obj, list):
            return [_filter(item) for item in obj]
        return obj

    return _filter(event_dict)


def _renderer():
    if settings.app.log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=False)


def setup_structlog():
    """Configure structlog processors and renderer."""
    processors = [
        structlog.stdlib.filter_by_level,
        add_context_fields,
        add_timestamps,
        filter_sensitive_data,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def setup_stdlib_logging():
    """Route stdlib logging through the structlog formatter on stderr."""
    formatter = structlog.stdlib.ProcessorFormatter(
        processor=_renderer(),
        foreign_pre_chain=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            add_timestamps,
        ],
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.app.log_level))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Library loggers only surface problems
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)
    logging.getLogger("transformers").setLevel(logging.ERROR)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


class LoggingContextManager:
    """Binds request id and action for the duration of a block."""

    def __init__(self, request_id: str | None = None, action: str | None = None):
        self.request_id = request_id or str(uuid.uuid4())
        self.action = action
        self._tokens = []

    def __enter__(self):
        self._tokens.append(request_id_ctx.set(self.request_id))
        if self.action:
            self._tokens.append(action_ctx.set(self.action))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for token in reversed(self._tokens):
            token.var.reset(token)
        self._tokens.clear()


def setup_logging():
    """Configure structlog and the stdlib root logger; call once per process."""
    setup_structlog()
    setup_stdlib_logging()


def get_logger(name: str = None) -> FilteringBoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def with_logging_context(request_id: str = None, action: str = None) -> LoggingContextManager:
    """Create logging context manager."""
    return LoggingContextManager(request_id, action)
