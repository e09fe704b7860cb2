"""mcpdocs Error Taxonomy.

This module defines the error hierarchy for the MCP client stack,
providing structured error handling with specific error codes
and context information.

Transport- and framing-level errors abort a connection; tool-level
failures reported by a tool itself are returned as data and never
raised from here.
"""
from __future__ import annotations

from typing import Any


class MCPDocsError(Exception):
    """Base exception for all mcpdocs errors.

    Attributes:
        code: Error code following the mcpdocs:<area>/<reason> pattern
        message: Human-readable error message
        details: Optional additional error context
    """

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize to ``{code, message, details}`` dict."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class InvalidTransitionError(MCPDocsError):
    """Raised when a connection is asked to move to a state it cannot reach.

    A connection only moves forward (unconnected, starting, ready, then
    closed or failed); reconnecting requires a new client instance.

    Attributes:
        from_state: The current connection state
        to_state: The attempted target state
    """

    def __init__(
        self, from_state: str, to_state: str, details: dict[str, Any] | None = None
    ) -> None:
        message = f"Invalid transition from '{from_state}' to '{to_state}'"
        super().__init__(
            code="mcpdocs:connection/invalid_state",
            message=message,
            details={"from_state": from_state, "to_state": to_state, **(details or {})},
        )
        self.from_state = from_state
        self.to_state = to_state


class SpawnError(MCPDocsError):
    """Raised when the server executable cannot be launched."""

    def __init__(
        self, command: list[str], reason: str, details: dict[str, Any] | None = None
    ) -> None:
        message = f"Failed to start server process {command[0] if command else '<empty>'}: {reason}"
        super().__init__(
            code="mcpdocs:transport/spawn_failed",
            message=message,
            details={"command": list(command), **(details or {})},
        )
        self.command = list(command)
        self.reason = reason


class StartupTimeoutError(MCPDocsError):
    """Raised when a server does not signal readiness within the timeout."""

    def __init__(self, timeout: float, details: dict[str, Any] | None = None) -> None:
        message = f"Server not ready within {timeout}s"
        super().__init__(
            code="mcpdocs:transport/startup_timeout",
            message=message,
            details={"timeout": timeout, **(details or {})},
        )
        self.timeout = timeout


class WriteError(MCPDocsError):
    """Raised when writing to the server's stdin fails (closed or broken pipe)."""

    def __init__(self, reason: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="mcpdocs:transport/write_failed",
            message=f"Write to server failed: {reason}",
            details=details or {},
        )
        self.reason = reason


class FramingError(MCPDocsError):
    """Raised when buffered server output is corrupt or exceeds the size limit.

    Attributes:
        buffered: Number of bytes held when the error was detected
        limit: Configured maximum buffer size
    """

    def __init__(self, buffered: int, limit: int, details: dict[str, Any] | None = None) -> None:
        message = f"Buffered response data exceeds limit ({buffered} > {limit} bytes)"
        super().__init__(
            code="mcpdocs:protocol/framing",
            message=message,
            details={"buffered": buffered, "limit": limit, **(details or {})},
        )
        self.buffered = buffered
        self.limit = limit


class RequestTimeoutError(MCPDocsError):
    """Raised when no matching response arrives before the request deadline."""

    def __init__(
        self, method: str, request_id: int, timeout: float, details: dict[str, Any] | None = None
    ) -> None:
        message = f"No response to {method} (id={request_id}) within {timeout}s"
        super().__init__(
            code="mcpdocs:protocol/timeout",
            message=message,
            details={
                "method": method,
                "request_id": request_id,
                "timeout": timeout,
                **(details or {}),
            },
        )
        self.method = method
        self.request_id = request_id
        self.timeout = timeout


class RpcError(MCPDocsError):
    """Raised when the server answers a request with a JSON-RPC error envelope.

    Attributes:
        rpc_code: Integer JSON-RPC error code from the server
        data: Optional error data supplied by the server
    """

    def __init__(self, rpc_code: int, message: str, data: Any = None) -> None:
        super().__init__(
            code="mcpdocs:protocol/rpc_error",
            message=message,
            details={"rpc_code": rpc_code, "data": data},
        )
        self.rpc_code = rpc_code
        self.data = data


class ToolError(MCPDocsError):
    """Raised when a tools/call request fails to complete (error envelope).

    A tool that runs and reports failure returns ``isError`` content
    instead; that result is data, not a ToolError.
    """

    def __init__(self, name: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="mcpdocs:tool/failed",
            message=f"Tool '{name}' failed: {message}",
            details={"tool": name, **(details or {})},
        )
        self.name = name
        self.reason = message


class ResourceNotFoundError(MCPDocsError):
    """Raised when the server does not know the requested resource URI."""

    def __init__(self, uri: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="mcpdocs:resource/not_found",
            message=f"Resource not found: {uri}",
            details={"uri": uri, **(details or {})},
        )
        self.uri = uri


class ConnectionClosedError(MCPDocsError):
    """Raised for calls attempted on, or pending when, a connection closes."""

    def __init__(
        self, reason: str = "Connection closed", details: dict[str, Any] | None = None
    ) -> None:
        super().__init__(
            code="mcpdocs:connection/closed",
            message=reason,
            details=details or {},
        )
        self.reason = reason
