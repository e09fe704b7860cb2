"""Minimal MCP server over stdio.

Reads one JSON-RPC message per line from stdin and writes one response line
per request to stdout. Requests are handled strictly in arrival order. Tool
arguments are validated against the tool's ``inputSchema`` with jsonschema
before the tool runs.

Example:
    >>> server = MCPServer(name="petstore-mcp-server", version="1.0.0")
    >>> server.register_tool("get_api_info", lambda: {"title": "Pet Store API"}, {})
    >>> asyncio.run(server.serve_stdio())
"""

from __future__ import annotations

import asyncio
import inspect
import io
import json
import sys
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import jsonschema

from mcpdocs.mcp.protocol import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    JSONRPC_VERSION,
    MCP_PROTOCOL_VERSION,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    RESOURCE_NOT_FOUND,
    CallToolRequestParams,
    CallToolResult,
    Implementation,
    InitializeResult,
    JSONRPCError,
    JSONRPCErrorResponse,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResponse,
    ListResourcesResult,
    ListToolsResult,
    ReadResourceRequestParams,
    ReadResourceResult,
    Resource,
    ResourceContents,
    TextContent,
    Tool,
)
from mcpdocs.observability import get_logger, is_debug_mode

logger = get_logger(__name__)

_INTERNAL_TOOL_ERROR_MESSAGE = "Internal tool error"

EMPTY_INPUT_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}}

ResourceReader = Callable[[str], str]
ResourceLister = Callable[[], list[Resource]]

_PARSE_ERROR_RESPONSE: dict[str, Any] = {
    "jsonrpc": JSONRPC_VERSION,
    "id": None,
    "error": {"code": PARSE_ERROR, "message": "Parse error"},
}


class _ProtocolError(Exception):
    """Request failed with a JSON-RPC error code."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


@dataclass(frozen=True)
class _RegisteredTool:
    func: Callable[..., Any]
    input_schema: dict[str, Any]
    description: str
    title: str | None = None

    def describe(self, name: str) -> Tool:
        return Tool(
            name=name,
            description=self.description,
            inputSchema=self.input_schema,
            title=self.title,
        )


def _tool_text(out: Any) -> str:
    if isinstance(out, str):
        return out
    if isinstance(out, (dict, list)):
        return json.dumps(out, indent=2)
    return str(out)


def _tool_result(text: str, *, is_error: bool = False) -> dict[str, Any]:
    return CallToolResult(
        content=[TextContent(text=text).model_dump(by_alias=True)],
        isError=is_error,
    ).model_dump(by_alias=True, exclude_none=True)


class MCPServer:
    """MCP server exposing registered tools and resources over stdio.

    Register tools with register_tool() and resources with register_resource()
    or register_resource_provider(), then run with serve_stdio().
    """

    def __init__(
        self,
        name: str = "mcpdocs-server",
        version: str = "1.0.0",
        title: str | None = None,
        description: str | None = None,
        instructions: str | None = None,
    ) -> None:
        self._server_info = Implementation(
            name=name,
            version=version,
            title=title or name,
            description=description,
        )
        self._instructions = instructions
        self._tools: dict[str, _RegisteredTool] = {}
        self._resources: dict[str, tuple[ResourceReader, Resource]] = {}
        self._resource_providers: list[tuple[ResourceLister, ResourceReader]] = []
        self._handlers: dict[str, Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]] = {
            "initialize": self._async(self._handle_initialize),
            "ping": self._async(lambda params: {}),
            "tools/list": self._async(self._handle_tools_list),
            "tools/call": self._handle_tools_call,
            "resources/list": self._async(self._handle_resources_list),
            "resources/read": self._async(self._handle_resources_read),
        }

    @staticmethod
    def _async(
        handler: Callable[[dict[str, Any]], dict[str, Any]],
    ) -> Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]:
        async def run(params: dict[str, Any]) -> dict[str, Any]:
            return handler(params)

        return run

    @property
    def name(self) -> str:
        return self._server_info.name

    def register_tool(
        self,
        name: str,
        func: Callable[..., Any],
        schema: dict[str, Any],
        *,
        description: str = "",
        title: str | None = None,
    ) -> None:
        """Register a tool callable via tools/call.

        Args:
            name: Unique tool name (e.g. "list_endpoints").
            func: Sync or async callable receiving the arguments as keywords.
                Strings are returned as-is, dicts and lists as indented JSON.
                LookupError and ValueError are reported to the client as an
                ``isError`` result carrying the message.
            schema: JSON Schema for the arguments (inputSchema). Empty means
                an object with no properties.
            description: Human-readable description.
            title: Optional display title.
        """
        self._tools[name] = _RegisteredTool(
            func=func,
            input_schema=schema or EMPTY_INPUT_SCHEMA,
            description=description or f"Tool {name}",
            title=title,
        )

    def register_resource(
        self,
        uri: str,
        reader: ResourceReader,
        *,
        name: str,
        description: str | None = None,
        mime_type: str | None = None,
    ) -> None:
        """Register one resource; ``reader(uri)`` returns its text."""
        resource = Resource(uri=uri, name=name, description=description, mimeType=mime_type)
        self._resources[uri] = (reader, resource)

    def register_resource_provider(self, lister: ResourceLister, reader: ResourceReader) -> None:
        """Register a resource set computed on each request.

        ``lister()`` returns the current resources; ``reader(uri)`` returns
        the text of one of them or raises LookupError for an unknown URI.
        """
        self._resource_providers.append((lister, reader))

    def _handle_initialize(self, params: dict[str, Any] | None) -> dict[str, Any]:
        capabilities: dict[str, Any] = {}
        if self._tools:
            capabilities["tools"] = {"listChanged": False}
        if self._resources or self._resource_providers:
            capabilities["resources"] = {"listChanged": False, "subscribe": False}
        return InitializeResult(
            protocolVersion=MCP_PROTOCOL_VERSION,
            capabilities=capabilities,
            serverInfo=self._server_info,
            instructions=self._instructions,
        ).model_dump(by_alias=True, exclude_none=True)

    def _handle_tools_list(self, params: dict[str, Any] | None) -> dict[str, Any]:
        tools = [tool.describe(name) for name, tool in self._tools.items()]
        return ListToolsResult(tools=tools).model_dump(by_alias=True, exclude_none=True)

    async def _handle_tools_call(self, params: dict[str, Any]) -> dict[str, Any]:
        """Validate and run one tool.

        Raises:
            _ProtocolError: INVALID_PARAMS for malformed params, an unknown
                tool, or arguments rejected by the tool's schema.
        """
        try:
            call = CallToolRequestParams(**params)
        except Exception as e:
            raise _ProtocolError(INVALID_PARAMS, f"Invalid params: {e}") from e

        tool = self._tools.get(call.name)
        if tool is None:
            raise _ProtocolError(INVALID_PARAMS, f"Unknown tool: {call.name}")
        try:
            jsonschema.validate(instance=call.arguments, schema=tool.input_schema)
        except jsonschema.ValidationError as e:
            raise _ProtocolError(INVALID_PARAMS, f"Invalid arguments: {e.message}") from e

        try:
            if inspect.iscoroutinefunction(tool.func):
                out = await tool.func(**call.arguments)
            else:
                loop = asyncio.get_running_loop()
                out = await loop.run_in_executor(None, lambda: tool.func(**call.arguments))
        except TypeError as e:
            raise _ProtocolError(INVALID_PARAMS, f"Tool argument mismatch: {e}") from e
        except (LookupError, ValueError) as e:
            reason = e.args[0] if e.args else str(e)
            logger.info("mcp.tool.failed", tool=call.name, reason=str(reason))
            return _tool_result(f"Error: {reason}", is_error=True)
        except Exception as e:
            logger.exception("mcp.tool.error", tool=call.name, error=str(e))
            return _tool_result(
                str(e) if is_debug_mode() else _INTERNAL_TOOL_ERROR_MESSAGE, is_error=True
            )
        return _tool_result(_tool_text(out))

    def _handle_resources_list(self, params: dict[str, Any] | None) -> dict[str, Any]:
        resources = [resource for _, resource in self._resources.values()]
        for lister, _ in self._resource_providers:
            resources.extend(lister())
        return ListResourcesResult(resources=resources).model_dump(by_alias=True, exclude_none=True)

    def _read_from_providers(self, uri: str) -> tuple[str, str | None] | None:
        for lister, reader in self._resource_providers:
            try:
                text = reader(uri)
            except LookupError:
                continue
            mime_type = next((r.mime_type for r in lister() if r.uri == uri), None)
            return text, mime_type
        return None

    def _handle_resources_read(self, params: dict[str, Any]) -> dict[str, Any]:
        try:
            uri = ReadResourceRequestParams(**params).uri
        except Exception as e:
            raise _ProtocolError(INVALID_PARAMS, f"Invalid params: {e}") from e

        if uri in self._resources:
            reader, resource = self._resources[uri]
            found: tuple[str, str | None] | None = (reader(uri), resource.mime_type)
        else:
            found = self._read_from_providers(uri)
        if found is None:
            raise _ProtocolError(RESOURCE_NOT_FOUND, f"Resource not found: {uri}")
        text, mime_type = found
        contents = ResourceContents(uri=uri, mimeType=mime_type, text=text)
        return ReadResourceResult(contents=[contents]).model_dump(by_alias=True, exclude_none=True)

    async def _respond(self, request: JSONRPCRequest) -> dict[str, Any]:
        handler = self._handlers.get(request.method)
        try:
            if handler is None:
                raise _ProtocolError(METHOD_NOT_FOUND, f"Method not found: {request.method}")
            result = await handler(request.params or {})
        except _ProtocolError as e:
            return JSONRPCErrorResponse(
                id=request.id, error=JSONRPCError(code=e.code, message=e.message)
            ).model_dump(by_alias=True)
        return JSONRPCResponse(id=request.id, result=result).model_dump(by_alias=True)

    def _on_notification(self, notification: JSONRPCNotification) -> None:
        logger.debug("mcp.notification", method=notification.method, params=notification.params)

    async def handle_message(self, message: dict[str, Any]) -> dict[str, Any] | None:
        """Handle one decoded message; return the response, or None for notifications."""
        if "id" in message and message.get("method"):
            try:
                return await self._respond(JSONRPCRequest(**message))
            except Exception as e:
                logger.exception("mcp.request_error", error=str(e))
                return JSONRPCErrorResponse(
                    id=message.get("id"),
                    error=JSONRPCError(code=INTERNAL_ERROR, message=str(e)),
                ).model_dump(by_alias=True)
        try:
            self._on_notification(JSONRPCNotification(**message))
        except Exception as e:
            logger.debug("mcp.notification_error", error=str(e))
        return None

    def announce_ready(self, stream: io.TextIOBase | None = None) -> None:
        """Print the readiness line (``<name> started``), on stderr by default."""
        out = stream if stream is not None else sys.stderr
        out.write(f"{self.name} started\n")
        out.flush()

    async def serve_stdio(
        self,
        stdin: io.TextIOBase | None = None,
        stdout: io.TextIOBase | None = None,
        stderr: io.TextIOBase | None = None,
    ) -> None:
        """Serve until stdin reaches EOF.

        Blank lines are skipped. A line that is not a JSON object, including
        one that is not valid UTF-8, is answered with a parse error and the
        server keeps reading. Streams with a binary ``buffer`` (sys.stdin,
        TextIOWrapper) are read as bytes so undecodable input stays per line.

        Args:
            stdin: Input stream (default: sys.stdin).
            stdout: Output stream for responses (default: sys.stdout).
            stderr: Stream for the readiness line (default: sys.stderr).
        """
        source = stdin if stdin is not None else sys.stdin
        reader = getattr(source, "buffer", source)
        writer = stdout if stdout is not None else sys.stdout
        loop = asyncio.get_running_loop()

        self.announce_ready(stderr)
        while True:
            try:
                raw = await loop.run_in_executor(None, reader.readline)
            except (EOFError, OSError) as e:
                logger.debug("mcp.stdin.closed", reason=str(e))
                break
            if not raw:
                break
            if isinstance(raw, bytes):
                line = raw.decode("utf-8", errors="replace").strip()
            else:
                line = raw.strip()
            if not line:
                continue

            try:
                message = json.loads(line)
            except json.JSONDecodeError:
                message = None
            if isinstance(message, dict):
                response = await self.handle_message(message)
            else:
                logger.warning("mcp.parse_error", line=line[:200])
                response = _PARSE_ERROR_RESPONSE
            if response is not None:
                writer.write(json.dumps(response) + "\n")
                writer.flush()
