"""Pytest fixtures and context managers for mcpdocs tests.

Fixtures (use with pytest):
    memory_transport: MemoryTransport answering with the stub catalog.
    stub_command: Factory for command lines launching the stub server.
    docs_dir: Temporary Starlight content directory with sample pages.

Context managers:
    stub_client(): Async context manager yielding a READY client on a
        MemoryTransport.
"""

import sys
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import pytest

from mcpdocs.mcp.client import MCPClient
from mcpdocs.testing.mocks import MemoryTransport
from mcpdocs.testing.stub_server import stub_response

SAMPLE_PAGES: dict[str, str] = {
    "guides/example.md": (
        "---\ntitle: Example Guide\ndescription: A guide in my new Starlight docs site.\n---\n\n"
        "Guides lead a user through a specific task they want to accomplish.\n"
    ),
    "reference/example.md": (
        "---\ntitle: Example Reference\n"
        "description: A reference page in my new Starlight docs site.\n---\n\n"
        "Reference pages are ideal for outlining how things work.\n"
    ),
    "getting-started.md": "# Getting started\n\nInstall the package and run the generator.\n",
}


@pytest.fixture
def memory_transport() -> MemoryTransport:
    """Create a MemoryTransport that answers like the stub server."""
    return MemoryTransport(responder=stub_response)


@pytest.fixture
def stub_command() -> Callable[..., list[str]]:
    """Factory for the stub server's command line.

    Returns:
        Callable taking stub options (mode, delay, marker) and returning argv.
    """

    def _command(mode: str = "normal", delay: float = 0.0, marker: str | None = None) -> list[str]:
        argv = [sys.executable, "-m", "mcpdocs.testing.stub_server", "--mode", mode]
        if delay:
            argv += ["--delay", str(delay)]
        if marker:
            argv += ["--marker", marker]
        return argv

    return _command


def write_pages(root: Path, pages: dict[str, str] | None = None) -> Path:
    """Write markdown pages under ``root`` and return it."""
    for relative, text in (pages or SAMPLE_PAGES).items():
        target = root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")
    return root


@pytest.fixture
def docs_dir(tmp_path: Path) -> Path:
    """Temporary content directory holding SAMPLE_PAGES."""
    return write_pages(tmp_path / "docs")


@asynccontextmanager
async def stub_client(
    transport: MemoryTransport | None = None, **kwargs: Any
) -> AsyncIterator[MCPClient]:
    """Connected client over a MemoryTransport; disconnected on exit.

    Example:
        >>> async with stub_client() as client:
        ...     tools = await client.list_tools()
    """
    client = MCPClient(
        ["stub"],
        server_name="stub",
        transport=transport or MemoryTransport(responder=stub_response),
        **kwargs,
    )
    await client.connect()
    try:
        yield client
    finally:
        await client.disconnect()
