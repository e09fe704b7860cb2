"""Command-line interface for mcpdocs.

Generates Starlight documentation through the bundled MCP servers and offers
small utilities for poking at any of them.

Example:
    >>> # From terminal:
    >>> # mcpdocs --version
    >>> # mcpdocs generate all --content-dir src/content/docs
    >>> # mcpdocs generate api
    >>> # mcpdocs tools petstore
    >>> # mcpdocs call petstore get_endpoint_details --args '{"path": "/pets", "method": "GET"}'
    >>> # mcpdocs resources starlight
    >>> # mcpdocs serve starlight
"""

import asyncio
import json
from collections.abc import Awaitable, Callable, Coroutine
from enum import Enum
from pathlib import Path
from typing import Any, Optional, TypeVar

import typer

from mcpdocs import __version__
from mcpdocs.config import PETSTORE_SERVER, STARLIGHT_SERVER, DocsSettings
from mcpdocs.docgen import DocsGenerator
from mcpdocs.errors import MCPDocsError
from mcpdocs.mcp.client import MCPClient, connected
from mcpdocs.observability import configure_logging

T = TypeVar("T")

app = typer.Typer(help="Generate Starlight docs from MCP servers.")

generate_app = typer.Typer(help="Write documentation pages into the content directory.")
app.add_typer(generate_app, name="generate")


class ServerName(str, Enum):
    petstore = PETSTORE_SERVER
    starlight = STARLIGHT_SERVER


def _version_callback(value: bool) -> None:
    """Print the version and exit when requested."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


VERSION_OPTION = typer.Option(
    False,
    "--version",
    help="Show mcpdocs version and exit.",
    callback=_version_callback,
    is_eager=True,
)

# Module-level singleton options to avoid B008 linting errors
CONTENT_DIR_OPTION = typer.Option(
    None,
    "--content-dir",
    help="Starlight content directory (default: $MCPDOCS_CONTENT_DIR or src/content/docs).",
)
SPEC_OPTION = typer.Option(
    None,
    "--spec",
    help="OpenAPI JSON document for the Pet Store server (default: bundled example).",
)
TIMEOUT_OPTION = typer.Option(
    None,
    "--timeout",
    help="Seconds to wait for each MCP response.",
)
SERVER_ARGUMENT = typer.Argument(..., help="Bundled MCP server to use.")


@app.callback()
def cli(
    version: bool = VERSION_OPTION,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """mcpdocs CLI entrypoint."""
    configure_logging(log_level="DEBUG" if verbose else None, force=verbose)


def _settings(
    content_dir: Optional[Path] = None,
    spec: Optional[Path] = None,
    timeout: Optional[float] = None,
) -> DocsSettings:
    try:
        return DocsSettings.from_env(
            content_dir=content_dir, openapi_spec=spec, request_timeout=timeout
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine, turning library errors into a clean exit code."""
    try:
        return asyncio.run(coro)
    except MCPDocsError as exc:
        typer.echo(f"Error: {exc.message}", err=True)
        raise typer.Exit(1) from exc


def _with_client(
    settings: DocsSettings, server: ServerName, action: Callable[[MCPClient], Awaitable[T]]
) -> T:
    async def _session() -> T:
        async with connected(
            settings.server_command(server.value), **settings.client_options(server.value)
        ) as client:
            return await action(client)

    return _run(_session())


@generate_app.command("api")
def generate_api(
    content_dir: Optional[Path] = CONTENT_DIR_OPTION,
    spec: Optional[Path] = SPEC_OPTION,
) -> None:
    """Write the Pet Store API reference page."""
    result = _run(DocsGenerator(_settings(content_dir, spec)).generate_api_docs())
    typer.echo(f"Generated {result.title} v{result.version}: {result.path}")


@generate_app.command("index")
def generate_index(
    content_dir: Optional[Path] = CONTENT_DIR_OPTION,
) -> None:
    """Write the documentation index page."""
    result = _run(DocsGenerator(_settings(content_dir)).generate_index())
    typer.echo(f"Index page: {result.path}")


@generate_app.command("summary")
def generate_summary(
    content_dir: Optional[Path] = CONTENT_DIR_OPTION,
) -> None:
    """Print the site structure and page count without writing anything."""
    summary = _run(DocsGenerator(_settings(content_dir)).generate_site_summary())
    typer.echo(summary.structure)
    typer.echo(f"\n{summary.docs_count} documentation pages")


@generate_app.command("all")
def generate_all(
    content_dir: Optional[Path] = CONTENT_DIR_OPTION,
    spec: Optional[Path] = SPEC_OPTION,
) -> None:
    """Write the API reference page and the index page."""
    result = _run(DocsGenerator(_settings(content_dir, spec)).generate_combined_docs())
    typer.echo(f"API docs: {result.api_path}")
    typer.echo(f"Index: {result.index_path}")


@app.command("tools")
def list_tools(
    server: ServerName = SERVER_ARGUMENT,
    content_dir: Optional[Path] = CONTENT_DIR_OPTION,
    spec: Optional[Path] = SPEC_OPTION,
) -> None:
    """List the tools a bundled server exposes."""

    async def _list(client: MCPClient) -> list[Any]:
        return await client.list_tools()

    for tool in _with_client(_settings(content_dir, spec), server, _list):
        typer.echo(f"{tool.name}\t{tool.description}")


@app.command("resources")
def list_resources(
    server: ServerName = SERVER_ARGUMENT,
    content_dir: Optional[Path] = CONTENT_DIR_OPTION,
    spec: Optional[Path] = SPEC_OPTION,
) -> None:
    """List the resources a bundled server exposes."""

    async def _list(client: MCPClient) -> list[Any]:
        return await client.list_resources()

    for resource in _with_client(_settings(content_dir, spec), server, _list):
        typer.echo(f"{resource.uri}\t{resource.mime_type or ''}")


@app.command("call")
def call_tool(
    server: ServerName = SERVER_ARGUMENT,
    tool: str = typer.Argument(..., help="Tool name."),
    args: str = typer.Option("{}", "--args", "-a", help="Tool arguments as a JSON object."),
    content_dir: Optional[Path] = CONTENT_DIR_OPTION,
    spec: Optional[Path] = SPEC_OPTION,
    timeout: Optional[float] = TIMEOUT_OPTION,
) -> None:
    """Call one tool and print its text content."""
    try:
        arguments = json.loads(args)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"Invalid JSON in --args: {exc}") from exc
    if not isinstance(arguments, dict):
        raise typer.BadParameter("--args must be a JSON object")

    async def _call(client: MCPClient) -> Any:
        return await client.call_tool(tool, arguments)

    result = _with_client(_settings(content_dir, spec, timeout), server, _call)
    if result.is_error:
        typer.echo(result.text, err=True)
        raise typer.Exit(1)
    typer.echo(result.text)


@app.command("serve")
def serve(
    server: ServerName = SERVER_ARGUMENT,
    content_dir: Optional[Path] = CONTENT_DIR_OPTION,
    spec: Optional[Path] = SPEC_OPTION,
) -> None:
    """Run a bundled server on this process's stdin/stdout."""
    settings = _settings(content_dir, spec)
    if server is ServerName.petstore:
        from mcpdocs.servers.petstore import build_server as build_petstore

        mcp_server = build_petstore(settings.openapi_spec)
    else:
        from mcpdocs.servers.starlight import build_server as build_starlight

        mcp_server = build_starlight(settings.content_dir)
    try:
        asyncio.run(mcp_server.serve_stdio())
    except (BrokenPipeError, KeyboardInterrupt):
        pass


def main() -> None:
    """Run the mcpdocs CLI."""
    app()


if __name__ == "__main__":
    main()
