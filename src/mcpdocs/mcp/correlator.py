"""JSON-RPC request/response correlation over a chunked byte stream.

The correlator assigns request ids, writes newline-delimited requests through
a send callable and settles each caller's future when the response carrying
its id arrives. Responses are matched by id only, so any number of requests
may be in flight and complete in whatever order the server answers.

Incoming bytes are framed by newlines. A line that does not parse yet but
looks like the start of a JSON document is carried over and joined with the
following lines until it does; the amount of carried data is bounded by
``max_buffer_size``.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from mcpdocs.errors import (
    ConnectionClosedError,
    FramingError,
    MCPDocsError,
    RequestTimeoutError,
    RpcError,
)
from mcpdocs.mcp.protocol import (
    INTERNAL_ERROR,
    INVALID_REQUEST,
    JSONRPCNotification,
    JSONRPCRequest,
)
from mcpdocs.observability import get_logger

logger = get_logger(__name__)

SendFunc = Callable[[bytes], Awaitable[None]]
UnmatchedHandler = Callable[[dict[str, Any]], None]

# Seconds to wait for a response when the caller gives no timeout
DEFAULT_REQUEST_TIMEOUT = 10.0

# Upper bound for buffered, not yet parseable response data
DEFAULT_MAX_BUFFER_SIZE = 1024 * 1024

_JSON_OPENERS = ("{", "[")


@dataclass
class PendingRequest:
    """A request waiting for its response."""

    id: int
    method: str
    future: asyncio.Future[Any]
    created_at: float = field(default_factory=time.monotonic)


class RequestCorrelator:
    """Matches JSON-RPC responses to outstanding requests by id.

    Args:
        send: Coroutine function writing raw bytes to the peer.
        default_timeout: Seconds to wait per call (None waits forever).
        max_buffer_size: Maximum bytes held while waiting for a complete message.
        on_unmatched: Optional callback receiving messages that settle no
            pending request (unknown ids, late responses, server notifications).
    """

    def __init__(
        self,
        send: SendFunc,
        *,
        default_timeout: float | None = DEFAULT_REQUEST_TIMEOUT,
        max_buffer_size: int = DEFAULT_MAX_BUFFER_SIZE,
        on_unmatched: UnmatchedHandler | None = None,
    ) -> None:
        self._send = send
        self._default_timeout = default_timeout
        self._max_buffer_size = max_buffer_size
        self._on_unmatched = on_unmatched
        self._pending: dict[int, PendingRequest] = {}
        self._ids = itertools.count(1)
        self._buffer = bytearray()
        self._carry = ""
        self._closed_error: MCPDocsError | None = None

    @property
    def pending_ids(self) -> list[int]:
        return list(self._pending)

    @property
    def is_closed(self) -> bool:
        return self._closed_error is not None

    def _allocate_id(self) -> int:
        request_id = next(self._ids)
        while request_id in self._pending:
            request_id = next(self._ids)
        return request_id

    async def call(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Send a request and wait for its matching response.

        Args:
            method: JSON-RPC method name.
            params: Method params (sent as ``{}`` when omitted).
            timeout: Seconds to wait; defaults to the correlator's default_timeout.

        Returns:
            The ``result`` member of the matching response.

        Raises:
            RpcError: The server answered with an error envelope.
            RequestTimeoutError: No matching response within the timeout.
            ConnectionClosedError: The correlator was closed before or during the call.
            WriteError: The request could not be written.
        """
        if self._closed_error is not None:
            raise ConnectionClosedError(
                "Connection closed", details={"cause": self._closed_error.message}
            )

        request_id = self._allocate_id()
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = PendingRequest(id=request_id, method=method, future=future)
        effective_timeout = self._default_timeout if timeout is None else timeout

        request = JSONRPCRequest(id=request_id, method=method, params=params or {})
        line = json.dumps(request.model_dump(by_alias=True)) + "\n"
        try:
            await self._send(line.encode("utf-8"))
            try:
                return await asyncio.wait_for(future, timeout=effective_timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    "mcp.correlator.timeout",
                    method=method,
                    id=request_id,
                    timeout=effective_timeout,
                )
                raise RequestTimeoutError(method, request_id, effective_timeout or 0.0) from None
        finally:
            self._pending.pop(request_id, None)

    async def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        """Send a notification (no id, no response expected)."""
        if self._closed_error is not None:
            raise ConnectionClosedError("Connection closed")
        notification = JSONRPCNotification(method=method, params=params)
        line = json.dumps(notification.model_dump(by_alias=True, exclude_none=True)) + "\n"
        await self._send(line.encode("utf-8"))

    def feed(self, chunk: bytes) -> None:
        """Consume a raw chunk of peer output.

        Raises:
            FramingError: If unparsed data grows beyond max_buffer_size. The
                buffer is discarded; callers should treat the stream as corrupt.
        """
        self._buffer.extend(chunk)
        while True:
            newline = self._buffer.find(b"\n")
            if newline < 0:
                break
            raw = bytes(self._buffer[:newline])
            del self._buffer[: newline + 1]
            self._handle_line(raw.decode("utf-8", errors="replace").strip())
        self._check_buffer_size()

    def close(self, error: MCPDocsError | None = None) -> None:
        """Refuse further calls and reject every pending request.

        Args:
            error: Exception given to pending callers; defaults to ConnectionClosedError.
        """
        if self._closed_error is None:
            self._closed_error = error or ConnectionClosedError()
        self.fail_all(error or ConnectionClosedError())

    def fail_all(self, error: MCPDocsError) -> None:
        """Reject all pending requests with ``error`` and empty the pending set."""
        pending, self._pending = self._pending, {}
        for entry in pending.values():
            if not entry.future.done():
                entry.future.set_exception(error)
        if pending:
            logger.debug("mcp.correlator.drained", count=len(pending), reason=error.message)

    def _check_buffer_size(self) -> None:
        buffered = len(self._buffer) + len(self._carry)
        if buffered > self._max_buffer_size:
            self._buffer.clear()
            self._carry = ""
            raise FramingError(buffered, self._max_buffer_size)

    def _handle_line(self, line: str) -> None:
        if not line:
            return
        candidate = f"{self._carry}\n{line}" if self._carry else line
        try:
            message = json.loads(candidate)
        except json.JSONDecodeError:
            if self._carry:
                try:
                    message = json.loads(line)
                except json.JSONDecodeError:
                    self._carry = candidate
                    self._check_buffer_size()
                    return
                logger.warning("mcp.correlator.fragment_discarded", size=len(self._carry))
            elif line.startswith(_JSON_OPENERS):
                self._carry = line
                self._check_buffer_size()
                return
            else:
                logger.warning("mcp.correlator.non_json_line", line=line[:200])
                return
        self._carry = ""
        self._dispatch(message)

    def _dispatch(self, message: Any) -> None:
        if isinstance(message, list):
            for item in message:
                self._dispatch(item)
            return
        if not isinstance(message, dict):
            logger.warning("mcp.correlator.unexpected_message", kind=type(message).__name__)
            return
        if "method" in message:
            logger.debug("mcp.correlator.server_message", method=message.get("method"))
            self._report_unmatched(message)
            return

        request_id = message.get("id")
        entry = None
        if isinstance(request_id, int) and not isinstance(request_id, bool):
            entry = self._pending.pop(request_id, None)
        if entry is None or entry.future.done():
            logger.warning("mcp.correlator.unmatched_response", id=request_id)
            self._report_unmatched(message)
            return

        if "error" in message:
            error = message.get("error")
            if isinstance(error, dict):
                code = error.get("code")
                entry.future.set_exception(
                    RpcError(
                        code if isinstance(code, int) else INTERNAL_ERROR,
                        str(error.get("message", "Unknown error")),
                        error.get("data"),
                    )
                )
            else:
                entry.future.set_exception(RpcError(INTERNAL_ERROR, str(error)))
        elif "result" in message:
            entry.future.set_result(message["result"])
        else:
            entry.future.set_exception(
                RpcError(INVALID_REQUEST, "Response carries neither result nor error")
            )
        logger.debug(
            "mcp.correlator.settled",
            id=request_id,
            method=entry.method,
            elapsed_ms=round((time.monotonic() - entry.created_at) * 1000, 2),
        )

    def _report_unmatched(self, message: dict[str, Any]) -> None:
        if self._on_unmatched is not None:
            self._on_unmatched(message)
