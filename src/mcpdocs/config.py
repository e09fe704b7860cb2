"""Runtime settings for the documentation generator and bundled servers.

Values come from environment variables, with CLI options taking precedence.

Environment Variables:
    MCPDOCS_CONTENT_DIR: Starlight content directory (default: src/content/docs)
    MCPDOCS_OPENAPI_SPEC: OpenAPI JSON document served by the Pet Store server
    MCPDOCS_REQUEST_TIMEOUT: Seconds to wait for each MCP response (default: 10)
    MCPDOCS_STARTUP_TIMEOUT: Seconds allowed for server startup and handshake (default: 5)
    MCPDOCS_READY_MARKER: Optional stderr substring to wait for before the handshake
    MCPDOCS_PYTHON: Interpreter used to launch the bundled servers
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from mcpdocs.mcp.client import DEFAULT_STARTUP_TIMEOUT
from mcpdocs.mcp.correlator import DEFAULT_REQUEST_TIMEOUT
from mcpdocs.openapi import DEFAULT_SPEC_PATH

ENV_CONTENT_DIR = "MCPDOCS_CONTENT_DIR"
ENV_OPENAPI_SPEC = "MCPDOCS_OPENAPI_SPEC"
ENV_REQUEST_TIMEOUT = "MCPDOCS_REQUEST_TIMEOUT"
ENV_STARTUP_TIMEOUT = "MCPDOCS_STARTUP_TIMEOUT"
ENV_READY_MARKER = "MCPDOCS_READY_MARKER"
ENV_PYTHON = "MCPDOCS_PYTHON"

DEFAULT_CONTENT_DIR = Path("src/content/docs")

PETSTORE_SERVER = "petstore"
STARLIGHT_SERVER = "starlight"
SERVER_NAMES: tuple[str, ...] = (PETSTORE_SERVER, STARLIGHT_SERVER)

_TIMEOUT_FIELDS = ("request_timeout", "startup_timeout")


def _float_from_env(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number of seconds, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


@dataclass(frozen=True)
class DocsSettings:
    """Where documentation lives and how servers are launched."""

    content_dir: Path = DEFAULT_CONTENT_DIR
    openapi_spec: Path = DEFAULT_SPEC_PATH
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    startup_timeout: float = DEFAULT_STARTUP_TIMEOUT
    ready_marker: str | None = None
    python: str = field(default_factory=lambda: sys.executable)

    @classmethod
    def from_env(cls, **overrides: Any) -> DocsSettings:
        """Build settings from the environment; non-None overrides win.

        Raises:
            ValueError: A timeout from the environment or an override is not a
                positive number of seconds.
        """
        for name in _TIMEOUT_FIELDS:
            value = overrides.get(name)
            if value is not None and value <= 0:
                raise ValueError(f"{name} must be positive, got {value!r}")
        settings = cls(
            content_dir=Path(os.environ.get(ENV_CONTENT_DIR) or DEFAULT_CONTENT_DIR),
            openapi_spec=Path(os.environ.get(ENV_OPENAPI_SPEC) or DEFAULT_SPEC_PATH),
            request_timeout=_float_from_env(ENV_REQUEST_TIMEOUT, DEFAULT_REQUEST_TIMEOUT),
            startup_timeout=_float_from_env(ENV_STARTUP_TIMEOUT, DEFAULT_STARTUP_TIMEOUT),
            ready_marker=os.environ.get(ENV_READY_MARKER) or None,
            python=os.environ.get(ENV_PYTHON) or sys.executable,
        )
        return replace(settings, **{k: v for k, v in overrides.items() if v is not None})

    def server_command(self, server: str) -> list[str]:
        """Command line launching one of the bundled servers."""
        if server == PETSTORE_SERVER:
            return [self.python, "-m", "mcpdocs.servers.petstore", "--spec", str(self.openapi_spec)]
        if server == STARLIGHT_SERVER:
            return [
                self.python,
                "-m",
                "mcpdocs.servers.starlight",
                "--content-dir",
                str(self.content_dir),
            ]
        raise ValueError(f"Unknown server: {server}. Expected one of {', '.join(SERVER_NAMES)}")

    def client_options(self, server: str) -> dict[str, Any]:
        """Keyword arguments for MCPClient / connected() for ``server``."""
        return {
            "server_name": server,
            "request_timeout": self.request_timeout,
            "startup_timeout": self.startup_timeout,
            "ready_marker": self.ready_marker,
        }
