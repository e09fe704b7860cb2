"""Model Context Protocol (MCP) client and server for mcpdocs.

JSON-RPC 2.0 over stdio: an id-keyed request correlator on the client side,
and a small server framework used by the bundled documentation servers.

Example:
    >>> from mcpdocs.mcp import connected
    >>> # async with connected(["mcpdocs-petstore"]) as client:
    >>> #     tools = await client.list_tools()
"""

from mcpdocs.mcp.client import ConnectionState, MCPClient, ToolCall, connect, connected
from mcpdocs.mcp.correlator import PendingRequest, RequestCorrelator
from mcpdocs.mcp.protocol import (
    MCP_PROTOCOL_VERSION,
    CallToolResult,
    InitializeResult,
    JSONRPCError,
    JSONRPCRequest,
    JSONRPCResponse,
    ReadResourceResult,
    Resource,
    TextContent,
    Tool,
)
from mcpdocs.mcp.server import MCPServer
from mcpdocs.mcp.transport import StdioTransport, Transport

__all__ = [
    "ConnectionState",
    "MCPClient",
    "MCPServer",
    "MCP_PROTOCOL_VERSION",
    "CallToolResult",
    "InitializeResult",
    "JSONRPCError",
    "JSONRPCRequest",
    "JSONRPCResponse",
    "PendingRequest",
    "ReadResourceResult",
    "RequestCorrelator",
    "Resource",
    "StdioTransport",
    "TextContent",
    "Tool",
    "ToolCall",
    "Transport",
    "connect",
    "connected",
]
