"""Documentation generation driven by the bundled MCP servers.

Connects to the Pet Store and Starlight servers as a client, renders the API
reference page and the site index, and writes them into the Starlight content
directory.

Example:
    >>> settings = DocsSettings.from_env(content_dir=Path("src/content/docs"))
    >>> result = asyncio.run(DocsGenerator(settings).generate_combined_docs())
    >>> result.api_path.name
    'petstore-api.md'
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from mcpdocs.config import PETSTORE_SERVER, STARLIGHT_SERVER, DocsSettings
from mcpdocs.content import render_frontmatter
from mcpdocs.errors import ToolError
from mcpdocs.mcp.client import MCPClient, connected
from mcpdocs.observability import get_logger

logger = get_logger(__name__)

API_DOC_RELPATH = "api/petstore-api.md"
INDEX_RELPATH = "index.mdx"

API_FRONTMATTER: dict[str, str] = {
    "title": "Pet Store API",
    "description": (
        "Complete API reference for the Pet Store API with endpoints, schemas, and examples"
    ),
}

INDEX_FRONTMATTER: dict[str, str] = {
    "title": "Documentation",
    "description": "Welcome to our documentation",
}

INDEX_BODY = """\
# Documentation

Welcome to our comprehensive documentation site.

## API Documentation

- [Pet Store API](/api/petstore-api/) - Complete API reference with examples

## Guides

- [Getting Started](/guides/example/) - Quick start guide
- [Examples](/guides/example/) - Code examples and tutorials

## Reference

- [API Reference](/reference/example/) - Detailed API documentation
- [Configuration](/reference/example/) - Configuration options

## Generated Content

This documentation is automatically generated using MCP (Model Context Protocol) servers.

- **Pet Store API**: Generated from OpenAPI specification
- **Starlight Docs**: Managed through Starlight MCP server
"""

_DOC_COUNT_PATTERN = re.compile(r"Found (\d+) documentation files:")

Connector = Callable[..., AbstractAsyncContextManager[MCPClient]]


class DocsObserver(Protocol):
    """Receives progress from a DocsGenerator run."""

    def step(self, message: str, **fields: Any) -> None: ...

    def wrote(self, kind: str, path: Path) -> None: ...


class LoggingObserver:
    """Default observer: structured log events."""

    def step(self, message: str, **fields: Any) -> None:
        logger.info("docgen.step", message=message, **fields)

    def wrote(self, kind: str, path: Path) -> None:
        logger.info("docgen.wrote", kind=kind, path=str(path))


@dataclass
class ApiDocsResult:
    title: str
    version: str
    path: Path
    content: str


@dataclass
class SiteSummary:
    structure: str
    docs: str
    docs_count: int


@dataclass
class IndexResult:
    path: Path
    structure: str


@dataclass
class CombinedDocsResult:
    api_path: Path
    index_path: Path
    api_content: str
    site_structure: str
    sections: dict[str, list[str]] = field(
        default_factory=lambda: {
            "api": ["overview", "endpoints", "schemas"],
            "starlight": ["guides", "reference", "api"],
        }
    )


async def tool_text(client: MCPClient, name: str, arguments: dict[str, Any] | None = None) -> str:
    """Call a tool and return its text, treating a reported failure as an error.

    Raises:
        ToolError: The call failed or the tool reported ``isError``.
    """
    result = await client.call_tool(name, arguments or {})
    if result.is_error:
        raise ToolError(
            name,
            result.text or "tool reported an error",
            details={"server": client.server_name},
        )
    return result.text


def render_api_page(markdown: str) -> str:
    return render_frontmatter(API_FRONTMATTER) + markdown


def render_index_page() -> str:
    return render_frontmatter(INDEX_FRONTMATTER) + INDEX_BODY


def count_docs(listing: str) -> int:
    """Page count from a ``list_docs`` result, 0 if the header is missing."""
    match = _DOC_COUNT_PATTERN.search(listing)
    return int(match.group(1)) if match else 0


class DocsGenerator:
    """Generates Starlight pages from the Pet Store and Starlight MCP servers.

    Each operation opens its own scoped connections, so servers are always
    terminated when the operation finishes or fails.
    """

    def __init__(
        self,
        settings: DocsSettings,
        observer: DocsObserver | None = None,
        *,
        connector: Connector = connected,
    ) -> None:
        self.settings = settings
        self.observer: DocsObserver = observer or LoggingObserver()
        self._connector = connector

    @property
    def api_path(self) -> Path:
        return self.settings.content_dir / API_DOC_RELPATH

    @property
    def index_path(self) -> Path:
        return self.settings.content_dir / INDEX_RELPATH

    def _connect(self, server: str) -> AbstractAsyncContextManager[MCPClient]:
        return self._connector(
            self.settings.server_command(server), **self.settings.client_options(server)
        )

    def _write(self, kind: str, path: Path, text: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        self.observer.wrote(kind, path)
        return path

    async def _api_markdown(self, client: MCPClient) -> str:
        return await tool_text(
            client, "generate_markdown_docs", {"format": "full", "include_examples": True}
        )

    async def generate_api_docs(self) -> ApiDocsResult:
        """Write the full API reference page from the Pet Store server."""
        self.observer.step("Generating API documentation")
        async with self._connect(PETSTORE_SERVER) as petstore:
            info = json.loads(await tool_text(petstore, "get_api_info"))
            markdown = await self._api_markdown(petstore)
        path = self._write("api", self.api_path, render_api_page(markdown))
        return ApiDocsResult(
            title=str(info.get("title", "")),
            version=str(info.get("version", "")),
            path=path,
            content=markdown,
        )

    async def generate_site_summary(self) -> SiteSummary:
        """Collect the site structure and page listing from the Starlight server."""
        self.observer.step("Reading Starlight site structure")
        async with self._connect(STARLIGHT_SERVER) as starlight:
            structure = await tool_text(starlight, "get_site_structure")
            docs = await tool_text(starlight, "list_docs")
        docs_count = count_docs(docs)
        self.observer.step("Found documentation pages", docs_count=docs_count)
        return SiteSummary(structure=structure, docs=docs, docs_count=docs_count)

    async def generate_index(self) -> IndexResult:
        """Write the site index page linking the API, guides and reference sections."""
        self.observer.step("Generating documentation index")
        async with self._connect(STARLIGHT_SERVER) as starlight:
            structure = await tool_text(starlight, "get_site_structure")
        path = self._write("index", self.index_path, render_index_page())
        return IndexResult(path=path, structure=structure)

    async def generate_combined_docs(self) -> CombinedDocsResult:
        """Write both the API reference page and the index page."""
        self.observer.step("Generating combined documentation")
        async with self._connect(PETSTORE_SERVER) as petstore, self._connect(
            STARLIGHT_SERVER
        ) as starlight:
            markdown = await self._api_markdown(petstore)
            structure = await tool_text(starlight, "get_site_structure")
        api_path = self._write("api", self.api_path, render_api_page(markdown))
        index_path = self._write("index", self.index_path, render_index_page())
        return CombinedDocsResult(
            api_path=api_path,
            index_path=index_path,
            api_content=markdown,
            site_structure=structure,
        )
