"""mcpdocs testing utilities.

This package provides an in-memory transport, a scripted stub MCP server
and pytest fixtures for testing MCP clients without real servers.

Modules:
    mocks: MemoryTransport, a Transport that records writes and replies
           through a responder callable.
    stub_server: Runnable stub server (``python -m mcpdocs.testing.stub_server``)
                 with a fixed two-tool catalog and misbehaviour modes.
    fixtures: Pytest fixtures (memory_transport, stub_command, docs_dir).

Example:
    >>> from mcpdocs.testing import MemoryTransport, stub_response
    >>> transport = MemoryTransport(responder=stub_response)
"""

from mcpdocs.testing.mocks import MemoryTransport
from mcpdocs.testing.stub_server import STUB_API_INFO_TEXT, STUB_TOOLS, stub_response

__all__ = [
    "MemoryTransport",
    "STUB_API_INFO_TEXT",
    "STUB_TOOLS",
    "stub_response",
]
