"""Bundled MCP servers.

- ``mcpdocs.servers.petstore``: Pet Store OpenAPI document (tools + resource)
- ``mcpdocs.servers.starlight``: Starlight markdown content (tools + resources)

Each module exposes ``build_server()`` and a ``main()`` entry point that
serves over stdio.
"""
