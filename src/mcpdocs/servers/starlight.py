"""Starlight MCP server: exposes a documentation site's markdown over stdio.

Example:
    python -m mcpdocs.servers.starlight --content-dir src/content/docs
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import os
import sys
from pathlib import Path

from mcpdocs import __version__
from mcpdocs.config import DEFAULT_CONTENT_DIR, ENV_CONTENT_DIR
from mcpdocs.content import CATEGORIES, ContentStore, DocPage
from mcpdocs.mcp.protocol import Resource
from mcpdocs.mcp.server import EMPTY_INPUT_SCHEMA, MCPServer
from mcpdocs.observability import get_logger

logger = get_logger(__name__)

SERVER_NAME = "starlight-mcp-server"
RESOURCE_PREFIX = "file:///"

# Characters of body text shown per search hit
SEARCH_EXCERPT_LENGTH = 200

_CATEGORY_SCHEMA = {
    "type": "string",
    "description": "Filter by category (guides, reference, etc.)",
    "enum": list(CATEGORIES),
}


def format_doc_list(pages: list[DocPage]) -> str:
    entries = "\n\n".join(
        f"- **{page.title}** ({page.path})\n"
        f"  Category: {page.category}\n"
        f"  Last modified: {page.last_modified.isoformat() if page.last_modified else 'unknown'}"
        for page in pages
    )
    return f"Found {len(pages)} documentation files:\n\n{entries}"


def format_search_results(query: str, pages: list[DocPage]) -> str:
    hits = "\n\n---\n\n".join(
        f"## {page.title}\n**Path:** {page.path}\n**Category:** {page.category}\n\n"
        f"{page.body[:SEARCH_EXCERPT_LENGTH]}..."
        for page in pages
    )
    return f'Found {len(pages)} results for "{query}":\n\n{hits}'


def format_doc_content(page: DocPage) -> str:
    return (
        f"# {page.title}\n\n"
        f"**Path:** {page.path}\n"
        f"**Frontmatter:** {json.dumps(page.frontmatter, indent=2, default=str)}\n\n"
        f"## Content\n\n{page.body}"
    )


def format_site_structure(structure: dict[str, list[DocPage]]) -> str:
    sections = "\n\n".join(
        f"## {category}\n" + "\n".join(f"- [{page.title}]({page.path})" for page in pages)
        for category, pages in structure.items()
    )
    return f"# Starlight Site Structure\n\n{sections}"


def build_server(content_dir: Path | str = DEFAULT_CONTENT_DIR) -> MCPServer:
    """Create the Starlight server for the content directory ``content_dir``."""
    store = ContentStore(content_dir)
    server = MCPServer(
        name=SERVER_NAME,
        version=__version__,
        title="Starlight Docs",
        description="Markdown content of the Starlight documentation site",
    )

    def list_docs(category: str = "all") -> str:
        return format_doc_list(store.list_docs(category))

    def search_docs(query: str, category: str = "all") -> str:
        return format_search_results(query, store.search(query, category))

    def get_doc_content(path: str) -> str:
        return format_doc_content(store.read_page(path))

    def get_site_structure() -> str:
        return format_site_structure(store.site_structure())

    server.register_tool(
        "list_docs",
        list_docs,
        {"type": "object", "properties": {"category": _CATEGORY_SCHEMA}},
        description="List all documentation pages in the Starlight site",
    )
    server.register_tool(
        "search_docs",
        search_docs,
        {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search query"},
                "category": {**_CATEGORY_SCHEMA, "description": "Filter by category"},
            },
            "required": ["query"],
        },
        description="Search documentation content by keyword",
    )
    server.register_tool(
        "get_doc_content",
        get_doc_content,
        {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Path to the documentation file (relative to docs directory)",
                }
            },
            "required": ["path"],
        },
        description="Get the content of a specific documentation page",
    )
    server.register_tool(
        "get_site_structure",
        get_site_structure,
        EMPTY_INPUT_SCHEMA,
        description="Get the complete site structure and navigation",
    )

    def list_resources() -> list[Resource]:
        return [
            Resource(
                uri=f"{RESOURCE_PREFIX}{store.relative_path(file)}",
                name=file.name,
                description=f"Documentation file: {store.relative_path(file)}",
                mimeType="text/markdown",
            )
            for file in store.files()
        ]

    def read_resource(uri: str) -> str:
        if not uri.startswith(RESOURCE_PREFIX):
            raise LookupError(f"Unsupported URI scheme: {uri}")
        return store.resolve(uri[len(RESOURCE_PREFIX) :]).read_text(encoding="utf-8")

    server.register_resource_provider(list_resources, read_resource)
    return server


def main(argv: list[str] | None = None) -> None:
    """Serve the Starlight content directory over stdio."""
    parser = argparse.ArgumentParser(description="Starlight MCP server (stdio)")
    parser.add_argument(
        "--content-dir",
        type=Path,
        default=Path(os.environ.get(ENV_CONTENT_DIR) or DEFAULT_CONTENT_DIR),
        help="Starlight content directory (markdown pages)",
    )
    args = parser.parse_args(argv)

    server = build_server(args.content_dir)
    logger.info("starlight.server.starting", content_dir=str(args.content_dir))
    with contextlib.suppress(BrokenPipeError, KeyboardInterrupt):
        asyncio.run(server.serve_stdio())
    sys.exit(0)


if __name__ == "__main__":
    main()
