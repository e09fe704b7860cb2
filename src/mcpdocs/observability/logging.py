"""Structured logging for mcpdocs.

structlog renders every record, both structlog events and plain stdlib
``logging`` calls from dependencies, through one stderr handler. The bundled
MCP servers speak JSON-RPC on stdout, so log output must never go there.

Environment Variables:
    MCPDOCS_LOG_FORMAT: "console" (colored, default) or "json" (one object per line)
    MCPDOCS_LOG_LEVEL: DEBUG, INFO (default), WARNING or ERROR
    MCPDOCS_SERVICE_NAME: Value of the ``service`` field bound to every record
    MCPDOCS_DEBUG: "true"/"1" to expose tool exception messages to clients

Example:
    >>> from mcpdocs.observability.logging import get_logger, configure_logging
    >>>
    >>> configure_logging(log_format="json", log_level="INFO")
    >>> logger = get_logger("mcpdocs.mcp.client")
    >>> logger.info("mcp.client.ready", server="petstore")
"""

import logging
import os
import sys
from dataclasses import dataclass
from typing import Any, TextIO

import structlog
from structlog.typing import Processor

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "console"
DEFAULT_SERVICE_NAME = "mcpdocs"

ENV_LOG_FORMAT = "MCPDOCS_LOG_FORMAT"
ENV_LOG_LEVEL = "MCPDOCS_LOG_LEVEL"
ENV_SERVICE_NAME = "MCPDOCS_SERVICE_NAME"
ENV_DEBUG = "MCPDOCS_DEBUG"

REDACTED_PLACEHOLDER = "***REDACTED***"

# Argument names whose values never reach the logs
_SENSITIVE_KEY_PATTERNS = frozenset({"password", "token", "secret", "key", "authorization", "auth"})

_TRUTHY = frozenset({"true", "1", "yes", "on"})

_logging_configured = False


@dataclass(frozen=True)
class _LogSettings:
    log_format: str
    log_level: str
    service_name: str

    @classmethod
    def resolve(
        cls,
        log_format: str | None,
        log_level: str | None,
        service_name: str | None,
    ) -> "_LogSettings":
        """Explicit arguments first, then environment, then defaults."""
        return cls(
            log_format=(log_format or os.environ.get(ENV_LOG_FORMAT) or DEFAULT_LOG_FORMAT).lower(),
            log_level=(log_level or os.environ.get(ENV_LOG_LEVEL) or DEFAULT_LOG_LEVEL).upper(),
            service_name=service_name or os.environ.get(ENV_SERVICE_NAME) or DEFAULT_SERVICE_NAME,
        )


def _redact(key: str, value: Any) -> Any:
    if any(pattern in key.lower() for pattern in _SENSITIVE_KEY_PATTERNS):
        return REDACTED_PLACEHOLDER
    if isinstance(value, dict):
        return sanitize_for_logging(value)
    if isinstance(value, list):
        return [sanitize_for_logging(item) if isinstance(item, dict) else item for item in value]
    return value


def sanitize_for_logging(data: dict[str, Any]) -> dict[str, Any]:
    """Copy of ``data`` with sensitive values replaced, for logging tool arguments.

    Matching is by key substring, case-insensitive, and recurses into nested
    dicts and lists of dicts.

    Example:
        >>> sanitize_for_logging({"query": "pets", "api_token": "abc"})
        {'query': 'pets', 'api_token': '***REDACTED***'}
    """
    return {key: _redact(key, value) for key, value in (data or {}).items()}


def is_debug_mode() -> bool:
    """True when MCPDOCS_DEBUG holds a truthy value."""
    return os.environ.get(ENV_DEBUG, "").strip().lower() in _TRUTHY


def _pre_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_format: str) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=True,
        exception_formatter=structlog.dev.plain_traceback,
    )


def configure_logging(
    log_format: str | None = None,
    log_level: str | None = None,
    service_name: str | None = None,
    force: bool = False,
    stream: TextIO | None = None,
) -> None:
    """Configure structlog and the root logger.

    Args:
        log_format: "json" or "console"; falls back to MCPDOCS_LOG_FORMAT.
        log_level: Minimum level; falls back to MCPDOCS_LOG_LEVEL.
        service_name: Bound as ``service``; falls back to MCPDOCS_SERVICE_NAME.
        force: Reconfigure even when logging was already set up.
        stream: Output stream (default: sys.stderr at call time).
    """
    global _logging_configured

    if _logging_configured and not force:
        return

    settings = _LogSettings.resolve(log_format, log_level, service_name)
    pre_chain = _pre_chain()

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(settings.log_format),
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, settings.log_level))

    structlog.contextvars.bind_contextvars(service=settings.service_name)
    _logging_configured = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Structured logger for ``name``; configures defaults on first use.

    Example:
        >>> logger = get_logger(__name__).bind(server="petstore")
        >>> logger.info("mcp.client.ready")
    """
    if not _logging_configured:
        configure_logging()
    return structlog.stdlib.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind fields included in all subsequent records of this context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
