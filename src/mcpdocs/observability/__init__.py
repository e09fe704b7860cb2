"""Observability module for mcpdocs.

Structured logging (structlog) shared by the MCP client, the bundled
servers and the documentation generator.

Example:
    >>> from mcpdocs.observability import get_logger
    >>>
    >>> logger = get_logger(__name__)
    >>> logger.info("mcp.tool.called", tool="get_api_info")
"""

from mcpdocs.observability.logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    is_debug_mode,
    sanitize_for_logging,
)

__all__ = [
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "is_debug_mode",
    "sanitize_for_logging",
]
