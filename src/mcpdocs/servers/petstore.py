"""Pet Store MCP server: exposes an OpenAPI document over stdio.

Example:
    python -m mcpdocs.servers.petstore --spec path/to/openapi.json

The document is re-read on every call, so edits show up without a restart.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import os
import sys
from pathlib import Path
from typing import Any

from mcpdocs import __version__
from mcpdocs.config import ENV_OPENAPI_SPEC
from mcpdocs.mcp.server import EMPTY_INPUT_SCHEMA, MCPServer
from mcpdocs.observability import get_logger
from mcpdocs.openapi import (
    DEFAULT_SPEC_PATH,
    DOCS_FORMATS,
    api_info,
    get_endpoint_details,
    get_schemas,
    list_endpoints,
    load_spec,
    render_markdown,
)

logger = get_logger(__name__)

SERVER_NAME = "petstore-mcp-server"
SPEC_RESOURCE_URI = "file:///petstore-api.json"


def build_server(spec_path: Path | str = DEFAULT_SPEC_PATH) -> MCPServer:
    """Create the Pet Store server for the OpenAPI document at ``spec_path``."""
    spec_file = Path(spec_path)
    server = MCPServer(
        name=SERVER_NAME,
        version=__version__,
        title="Pet Store API",
        description="OpenAPI specification and generated docs for the Pet Store API",
    )

    def _spec() -> dict[str, Any]:
        return load_spec(spec_file)

    def get_api_specification() -> dict[str, Any]:
        return _spec()

    def _list_endpoints(tag: str | None = None) -> list[dict[str, Any]]:
        return list_endpoints(_spec(), tag=tag)

    def _get_endpoint_details(path: str, method: str) -> dict[str, Any]:
        return get_endpoint_details(_spec(), path, method)

    def _get_schemas(schema_name: str | None = None) -> dict[str, Any]:
        return get_schemas(_spec(), schema_name)

    def generate_markdown_docs(format: str = "full", include_examples: bool = True) -> str:
        return render_markdown(_spec(), format=format, include_examples=include_examples)

    def get_api_info() -> dict[str, Any]:
        return api_info(_spec())

    server.register_tool(
        "get_api_specification",
        get_api_specification,
        EMPTY_INPUT_SCHEMA,
        description="Get the complete OpenAPI specification for the Pet Store API",
    )
    server.register_tool(
        "list_endpoints",
        _list_endpoints,
        {
            "type": "object",
            "properties": {
                "tag": {
                    "type": "string",
                    "description": "Filter by tag (pets, orders)",
                    "enum": ["pets", "orders"],
                }
            },
        },
        description="List all available API endpoints",
    )
    server.register_tool(
        "get_endpoint_details",
        _get_endpoint_details,
        {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "API path (e.g., /pets, /pets/{petId})"},
                "method": {
                    "type": "string",
                    "description": "HTTP method (GET, POST, PUT, DELETE)",
                    "enum": ["GET", "POST", "PUT", "DELETE"],
                },
            },
            "required": ["path", "method"],
        },
        description="Get detailed information about a specific endpoint",
    )
    server.register_tool(
        "get_schemas",
        _get_schemas,
        {
            "type": "object",
            "properties": {
                "schema_name": {
                    "type": "string",
                    "description": (
                        "Specific schema name to retrieve (Pet, Order, Category, Tag, Error)"
                    ),
                }
            },
        },
        description="Get all data schemas used by the API",
    )
    server.register_tool(
        "generate_markdown_docs",
        generate_markdown_docs,
        {
            "type": "object",
            "properties": {
                "format": {
                    "type": "string",
                    "description": "Documentation format",
                    "enum": list(DOCS_FORMATS),
                    "default": "full",
                },
                "include_examples": {
                    "type": "boolean",
                    "description": "Include example requests/responses",
                    "default": True,
                },
            },
        },
        description="Generate markdown documentation for the API",
    )
    server.register_tool(
        "get_api_info",
        get_api_info,
        EMPTY_INPUT_SCHEMA,
        description="Get basic API information (title, version, description)",
    )
    server.register_resource(
        SPEC_RESOURCE_URI,
        lambda _uri: spec_file.read_text(encoding="utf-8"),
        name="Pet Store API Specification",
        description="Complete OpenAPI 3.0 specification for the Pet Store API",
        mime_type="application/json",
    )
    return server


def main(argv: list[str] | None = None) -> None:
    """Serve the Pet Store API over stdio."""
    parser = argparse.ArgumentParser(description="Pet Store MCP server (stdio)")
    parser.add_argument(
        "--spec",
        type=Path,
        default=Path(os.environ.get(ENV_OPENAPI_SPEC) or DEFAULT_SPEC_PATH),
        help="OpenAPI JSON document to serve",
    )
    args = parser.parse_args(argv)

    server = build_server(args.spec)
    logger.info("petstore.server.starting", spec=str(args.spec))
    with contextlib.suppress(BrokenPipeError, KeyboardInterrupt):
        asyncio.run(server.serve_stdio())
    sys.exit(0)


if __name__ == "__main__":
    main()
