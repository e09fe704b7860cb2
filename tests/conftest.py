"""Shared pytest fixtures for mcpdocs tests.

Fixtures from mcpdocs.testing (memory_transport, stub_command, docs_dir) are
loaded as a plugin; this module adds settings pointing the bundled servers
at temporary directories.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from mcpdocs.config import DocsSettings
from mcpdocs.openapi import DEFAULT_SPEC_PATH

# Load mcpdocs.testing fixtures (memory_transport, stub_command, docs_dir)
pytest_plugins = ["mcpdocs.testing.fixtures"]

# Generous timeouts: servers are real subprocesses on possibly slow CI hosts
SUBPROCESS_REQUEST_TIMEOUT = 20.0
SUBPROCESS_STARTUP_TIMEOUT = 20.0


@pytest.fixture
def docs_settings(docs_dir: Path) -> DocsSettings:
    """Settings for the bundled servers over the sample content directory."""
    return DocsSettings(
        content_dir=docs_dir,
        openapi_spec=DEFAULT_SPEC_PATH,
        request_timeout=SUBPROCESS_REQUEST_TIMEOUT,
        startup_timeout=SUBPROCESS_STARTUP_TIMEOUT,
    )
