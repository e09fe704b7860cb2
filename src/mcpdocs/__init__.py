"""mcpdocs: regenerate Starlight documentation from MCP servers.

Ships a small asyncio MCP client (stdio transport, id-keyed request
correlation, typed tool facade), two MCP servers (Pet Store OpenAPI and
Starlight markdown content), and a generator that writes documentation pages.
"""

__version__ = "0.3.0"
