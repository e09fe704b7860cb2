"""MCP client: a connection handle over a stdio transport.

Each ``MCPClient`` is one connection. It owns its transport and correlator,
moves through ``UNCONNECTED -> STARTING -> READY -> CLOSED`` (or ``FAILED``),
and never goes back: reconnecting means creating a new client.

Example:
    >>> async with connected(["mcpdocs-petstore"], server_name="petstore") as client:
    ...     tools = await client.list_tools()
    ...     result = await client.call_tool("get_api_info", {})
    ...     print(result.text)
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from mcpdocs import __version__
from mcpdocs.errors import (
    ConnectionClosedError,
    InvalidTransitionError,
    MCPDocsError,
    RequestTimeoutError,
    ResourceNotFoundError,
    RpcError,
    StartupTimeoutError,
    ToolError,
)
from mcpdocs.mcp.correlator import (
    DEFAULT_MAX_BUFFER_SIZE,
    DEFAULT_REQUEST_TIMEOUT,
    RequestCorrelator,
    UnmatchedHandler,
)
from mcpdocs.mcp.protocol import (
    MCP_PROTOCOL_VERSION,
    RESOURCE_NOT_FOUND,
    CallToolRequestParams,
    CallToolResult,
    Implementation,
    InitializeRequestParams,
    InitializeResult,
    ListResourcesResult,
    ListToolsResult,
    ReadResourceRequestParams,
    ReadResourceResult,
    Resource,
    Tool,
)
from mcpdocs.mcp.transport import StdioTransport, Transport
from mcpdocs.observability import get_logger, sanitize_for_logging

logger = get_logger(__name__)

# Seconds allowed for process start, readiness marker and initialize handshake
DEFAULT_STARTUP_TIMEOUT = 5.0


class ConnectionState(str, Enum):
    """Lifecycle of a client connection."""

    UNCONNECTED = "unconnected"
    STARTING = "starting"
    READY = "ready"
    CLOSED = "closed"
    FAILED = "failed"


_TRANSITIONS: dict[ConnectionState, frozenset[ConnectionState]] = {
    ConnectionState.UNCONNECTED: frozenset({ConnectionState.STARTING}),
    ConnectionState.STARTING: frozenset(
        {ConnectionState.READY, ConnectionState.CLOSED, ConnectionState.FAILED}
    ),
    ConnectionState.READY: frozenset({ConnectionState.CLOSED, ConnectionState.FAILED}),
    ConnectionState.CLOSED: frozenset(),
    ConnectionState.FAILED: frozenset(),
}


@dataclass(frozen=True)
class ToolCall:
    """One tool invocation, as seen by logs and errors."""

    server_name: str
    tool_name: str
    arguments: dict[str, Any] = field(default_factory=dict)


class MCPClient:
    """MCP client connection over a child process's stdio.

    Starts the server, waits for readiness (optional stderr marker, then the
    ``initialize`` handshake) and exposes tools and resources. Requests may be
    issued concurrently; responses are matched by id.
    """

    def __init__(
        self,
        server_command: list[str],
        *,
        server_name: str | None = None,
        env: dict[str, str] | None = None,
        name: str = "mcpdocs-client",
        version: str = __version__,
        request_timeout: float | None = DEFAULT_REQUEST_TIMEOUT,
        startup_timeout: float = DEFAULT_STARTUP_TIMEOUT,
        ready_marker: str | None = None,
        max_buffer_size: int = DEFAULT_MAX_BUFFER_SIZE,
        transport: Transport | None = None,
        on_unmatched: UnmatchedHandler | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            server_command: Command and args that start the server.
            server_name: Label used in logs and errors (defaults to the executable).
            env: Extra environment variables for the server process.
            name: Client name sent in initialize.
            version: Client version sent in initialize.
            request_timeout: Default seconds to wait for each response.
            startup_timeout: Seconds allowed for readiness and the handshake.
            ready_marker: If set, wait for a stderr line containing it before
                the handshake.
            max_buffer_size: Limit on buffered, unparsed server output.
            transport: Transport to use (default: a new StdioTransport).
            on_unmatched: Callback for responses that match no pending request.
        """
        if not server_command:
            raise ValueError("server_command must not be empty")
        self._server_command = list(server_command)
        self.server_name = server_name or server_command[0]
        self._env = env
        self._client_info = Implementation(name=name, version=version)
        self._request_timeout = request_timeout
        self._startup_timeout = startup_timeout
        self._ready_marker = ready_marker
        self._transport = transport if transport is not None else StdioTransport()
        self._correlator = RequestCorrelator(
            self._transport.send,
            default_timeout=request_timeout,
            max_buffer_size=max_buffer_size,
            on_unmatched=on_unmatched,
        )
        self._state = ConnectionState.UNCONNECTED
        self._init_result: InitializeResult | None = None
        self._log = logger.bind(server=self.server_name)

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def init_result(self) -> InitializeResult | None:
        return self._init_result

    @property
    def pending_requests(self) -> int:
        return len(self._correlator.pending_ids)

    def _transition(self, target: ConnectionState) -> None:
        if target not in _TRANSITIONS[self._state]:
            raise InvalidTransitionError(self._state.value, target.value)
        self._log.debug("mcp.client.state", from_state=self._state.value, to_state=target.value)
        self._state = target

    async def connect(self) -> InitializeResult:
        """Start the server and perform the initialize handshake.

        Returns:
            InitializeResult from the server.

        Raises:
            InvalidTransitionError: If this client was already used.
            SpawnError: If the server cannot be launched.
            StartupTimeoutError: If the server is not ready in time.
            RpcError: If the server rejects initialize.
        """
        self._transition(ConnectionState.STARTING)
        self._transport.on_data(self._on_data)
        self._transport.on_close(self._on_transport_closed)
        try:
            await self._transport.start(
                self._server_command[0], self._server_command[1:], self._env
            )
            if self._ready_marker is not None:
                marker = self._ready_marker
                await self._transport.await_ready(
                    lambda line: marker in line, self._startup_timeout
                )
            init_result = await self._handshake()
        except (Exception, asyncio.CancelledError) as exc:
            await self._abort(exc)
            raise
        if self._state is not ConnectionState.STARTING:
            raise ConnectionClosedError(f"Connection {self._state.value} during startup")
        self._transition(ConnectionState.READY)
        self._log.info(
            "mcp.client.ready",
            server_info=init_result.server_info.name,
            protocol_version=init_result.protocol_version,
        )
        return init_result

    async def _handshake(self) -> InitializeResult:
        params = InitializeRequestParams(
            protocolVersion=MCP_PROTOCOL_VERSION,
            capabilities={},
            clientInfo=self._client_info,
        ).model_dump(by_alias=True, exclude_none=True)
        try:
            raw = await self._correlator.call("initialize", params, timeout=self._startup_timeout)
        except RequestTimeoutError as exc:
            raise StartupTimeoutError(
                self._startup_timeout, details={"stage": "initialize"}
            ) from exc
        self._init_result = InitializeResult.model_validate(raw)
        await self._correlator.notify("notifications/initialized")
        return self._init_result

    async def _abort(self, exc: BaseException) -> None:
        """Mark a failed startup and release the process."""
        if self._state is ConnectionState.STARTING:
            self._transition(ConnectionState.FAILED)
            self._log.warning("mcp.client.startup_failed", error=str(exc) or type(exc).__name__)
        self._correlator.close(ConnectionClosedError("Connection failed during startup"))
        await self._transport.terminate()

    async def disconnect(self) -> None:
        """Close the connection and terminate the server. Safe to call repeatedly."""
        if self._state in (ConnectionState.STARTING, ConnectionState.READY):
            self._transition(ConnectionState.CLOSED)
            self._log.info("mcp.client.disconnected")
        self._correlator.close(ConnectionClosedError("Connection closed by client"))
        await self._transport.terminate()

    def _on_data(self, chunk: bytes) -> None:
        self._correlator.feed(chunk)

    def _on_transport_closed(self, reason: BaseException | None) -> None:
        if self._state not in (ConnectionState.STARTING, ConnectionState.READY):
            return
        self._log.warning(
            "mcp.client.transport_closed",
            state=self._state.value,
            reason=str(reason) if reason else "eof",
        )
        self._transition(ConnectionState.FAILED)
        if isinstance(reason, MCPDocsError):
            self._correlator.close(reason)
        else:
            self._correlator.close(ConnectionClosedError("Server closed the connection"))

    def _ensure_ready(self) -> None:
        if self._state is ConnectionState.READY:
            return
        if self._state in (ConnectionState.CLOSED, ConnectionState.FAILED):
            raise ConnectionClosedError(f"Connection is {self._state.value}")
        raise ConnectionClosedError("Not connected; call connect() first")

    async def request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> Any:
        """Send a raw JSON-RPC request on this connection and return its result."""
        self._ensure_ready()
        return await self._correlator.call(method, params, timeout=timeout)

    async def ping(self) -> None:
        await self.request("ping")

    async def list_tools(self) -> list[Tool]:
        """Request the list of tools from the server, following pagination cursors.

        Returns:
            Tool definitions in the order the server lists them.
        """
        tools: list[Tool] = []
        cursor: str | None = None
        while True:
            raw = await self.request("tools/list", {"cursor": cursor} if cursor else {})
            page = ListToolsResult.model_validate(raw)
            tools.extend(page.tools)
            cursor = page.next_cursor
            if not cursor:
                return tools

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> CallToolResult:
        """Invoke a tool by name. Arguments are passed through unvalidated.

        Returns:
            CallToolResult with the server's content blocks unmodified. A tool
            that ran and reported failure comes back with ``is_error`` set.

        Raises:
            ToolError: The server answered with an error envelope (unknown
                tool, invalid arguments, ...).
        """
        call = ToolCall(server_name=self.server_name, tool_name=name, arguments=arguments or {})
        self._log.debug(
            "mcp.tool.call", tool=call.tool_name, arguments=sanitize_for_logging(call.arguments)
        )
        params = CallToolRequestParams(name=call.tool_name, arguments=call.arguments)
        try:
            raw = await self.request(
                "tools/call", params.model_dump(by_alias=True), timeout=timeout
            )
        except RpcError as exc:
            raise ToolError(
                call.tool_name,
                exc.message,
                details={"server": call.server_name, "rpc_code": exc.rpc_code},
            ) from exc
        result = CallToolResult.model_validate(raw)
        if result.is_error:
            self._log.info("mcp.tool.reported_error", tool=call.tool_name)
        return result

    async def list_resources(self) -> list[Resource]:
        """Request the list of resources, following pagination cursors."""
        resources: list[Resource] = []
        cursor: str | None = None
        while True:
            raw = await self.request("resources/list", {"cursor": cursor} if cursor else {})
            page = ListResourcesResult.model_validate(raw)
            resources.extend(page.resources)
            cursor = page.next_cursor
            if not cursor:
                return resources

    async def read_resource(self, uri: str) -> ReadResourceResult:
        """Read one resource by URI.

        Raises:
            ResourceNotFoundError: The server does not know ``uri``.
        """
        params = ReadResourceRequestParams(uri=uri).model_dump(by_alias=True)
        try:
            raw = await self.request("resources/read", params)
        except RpcError as exc:
            if exc.rpc_code == RESOURCE_NOT_FOUND:
                raise ResourceNotFoundError(uri, details={"server": self.server_name}) from exc
            raise
        return ReadResourceResult.model_validate(raw)

    async def __aenter__(self) -> MCPClient:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.disconnect()


async def connect(server_command: list[str], **kwargs: Any) -> MCPClient:
    """Open a connection and return its handle (READY).

    The caller owns the handle and must ``disconnect()`` it; prefer
    :func:`connected` for scoped use.
    """
    client = MCPClient(server_command, **kwargs)
    await client.connect()
    return client


@asynccontextmanager
async def connected(server_command: list[str], **kwargs: Any) -> AsyncIterator[MCPClient]:
    """Scoped connection: disconnects on every exit path, including failed startup."""
    client = MCPClient(server_command, **kwargs)
    try:
        await client.connect()
        yield client
    finally:
        await client.disconnect()
