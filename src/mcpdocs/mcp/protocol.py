"""MCP protocol types.

JSON-RPC 2.0 and MCP message types for initialize, tools, and resources.
Models use extra="ignore" for forward compatibility with fields added by
newer MCP protocol revisions.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# Protocol version supported by this implementation
MCP_PROTOCOL_VERSION = "2025-11-25"

JSONRPC_VERSION = "2.0"

# JSON-RPC 2.0 standard error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

# MCP-defined error code for resources/read on an unknown URI
RESOURCE_NOT_FOUND = -32002


def _mcp_model_config() -> ConfigDict:
    """Pydantic config for MCP models: allow extra fields for forward compatibility."""
    return ConfigDict(extra="ignore", populate_by_name=True)


# --- JSON-RPC 2.0 ---


class JSONRPCError(BaseModel):
    """JSON-RPC 2.0 error object."""

    model_config = _mcp_model_config()

    code: int = Field(description="Error code (integer)")
    message: str = Field(description="Short error description")
    data: Any = Field(default=None, description="Optional additional data")


class JSONRPCRequest(BaseModel):
    """JSON-RPC 2.0 request (has id, expects response)."""

    model_config = _mcp_model_config()

    jsonrpc: Literal["2.0"] = Field(default="2.0")
    id: str | int = Field(description="Request id (must not be null)")
    method: str = Field(description="Method name")
    params: dict[str, Any] | None = Field(default=None)


class JSONRPCResponse(BaseModel):
    """JSON-RPC 2.0 success response."""

    model_config = _mcp_model_config()

    jsonrpc: Literal["2.0"] = Field(default="2.0")
    id: str | int = Field(description="Same id as request")
    result: Any = Field(description="Result payload")


class JSONRPCErrorResponse(BaseModel):
    """JSON-RPC 2.0 error response."""

    model_config = _mcp_model_config()

    jsonrpc: Literal["2.0"] = Field(default="2.0")
    id: str | int | None = Field(description="Same id as request, or null")
    error: JSONRPCError = Field(description="Error object")


class JSONRPCNotification(BaseModel):
    """JSON-RPC 2.0 notification (no id, no response)."""

    model_config = _mcp_model_config()

    jsonrpc: Literal["2.0"] = Field(default="2.0")
    method: str = Field(description="Method name")
    params: dict[str, Any] | None = Field(default=None)


# --- Implementation (clientInfo / serverInfo) ---


class Implementation(BaseModel):
    """MCP implementation info (client or server)."""

    model_config = _mcp_model_config()

    name: str = Field(description="Programmatic name")
    version: str = Field(description="Version string")
    title: str | None = Field(default=None, description="Human-readable title")
    description: str | None = Field(default=None)


# --- Initialize ---


class InitializeRequestParams(BaseModel):
    """Params for initialize request."""

    model_config = _mcp_model_config()

    protocol_version: str = Field(alias="protocolVersion")
    capabilities: dict[str, Any] = Field(default_factory=dict)
    client_info: Implementation = Field(alias="clientInfo")


class InitializeResult(BaseModel):
    """Result of initialize (server response)."""

    model_config = _mcp_model_config()

    protocol_version: str = Field(alias="protocolVersion", default=MCP_PROTOCOL_VERSION)
    capabilities: dict[str, Any] = Field(default_factory=dict)
    server_info: Implementation = Field(alias="serverInfo")
    instructions: str | None = Field(default=None)


# --- Tools ---


class Tool(BaseModel):
    """MCP tool definition (tools/list item)."""

    model_config = _mcp_model_config()

    name: str = Field(description="Unique tool name")
    description: str = Field(default="", description="Human-readable description")
    input_schema: dict[str, Any] = Field(
        default_factory=dict,
        alias="inputSchema",
        description="JSON Schema for parameters",
    )
    title: str | None = Field(default=None)


class TextContent(BaseModel):
    """Text content item in tool result."""

    model_config = _mcp_model_config()

    type: Literal["text"] = Field(default="text")
    text: str = Field(description="Text content")


class CallToolRequestParams(BaseModel):
    """Params for tools/call request."""

    model_config = _mcp_model_config()

    name: str = Field(description="Tool name")
    arguments: dict[str, Any] = Field(default_factory=dict, description="Tool arguments")


class CallToolResult(BaseModel):
    """Result of tools/call (content + isError).

    ``content`` keeps the server's content blocks exactly as received.
    """

    model_config = _mcp_model_config()

    content: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Content blocks (e.g. TextContent)",
    )
    is_error: bool = Field(default=False, alias="isError")
    structured_content: dict[str, Any] | None = Field(default=None, alias="structuredContent")

    @property
    def text(self) -> str:
        """Concatenated text of all ``text`` content blocks."""
        return "".join(
            block.get("text", "") for block in self.content if block.get("type") == "text"
        )


class ListToolsResult(BaseModel):
    """Result of tools/list."""

    model_config = _mcp_model_config()

    tools: list[Tool] = Field(default_factory=list)
    next_cursor: str | None = Field(default=None, alias="nextCursor")


# --- Resources ---


class Resource(BaseModel):
    """MCP resource descriptor (resources/list item)."""

    model_config = _mcp_model_config()

    uri: str = Field(description="Resource URI")
    name: str = Field(description="Display name")
    description: str | None = Field(default=None)
    mime_type: str | None = Field(default=None, alias="mimeType")


class ListResourcesResult(BaseModel):
    """Result of resources/list."""

    model_config = _mcp_model_config()

    resources: list[Resource] = Field(default_factory=list)
    next_cursor: str | None = Field(default=None, alias="nextCursor")


class ReadResourceRequestParams(BaseModel):
    """Params for resources/read request."""

    model_config = _mcp_model_config()

    uri: str = Field(description="Resource URI")


class ResourceContents(BaseModel):
    """Text contents of a read resource."""

    model_config = _mcp_model_config()

    uri: str
    mime_type: str | None = Field(default=None, alias="mimeType")
    text: str | None = Field(default=None)
    blob: str | None = Field(default=None, description="Base64 data for binary resources")


class ReadResourceResult(BaseModel):
    """Result of resources/read."""

    model_config = _mcp_model_config()

    contents: list[ResourceContents] = Field(default_factory=list)

    @property
    def text(self) -> str:
        """Concatenated text of all text contents."""
        return "".join(c.text or "" for c in self.contents)
