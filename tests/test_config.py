"""Tests for runtime settings."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from mcpdocs.config import (
    DEFAULT_CONTENT_DIR,
    ENV_CONTENT_DIR,
    ENV_PYTHON,
    ENV_READY_MARKER,
    ENV_REQUEST_TIMEOUT,
    ENV_STARTUP_TIMEOUT,
    DocsSettings,
)
from mcpdocs.mcp.client import DEFAULT_STARTUP_TIMEOUT
from mcpdocs.mcp.correlator import DEFAULT_REQUEST_TIMEOUT
from mcpdocs.openapi import DEFAULT_SPEC_PATH

_ENV_NAMES = (
    ENV_CONTENT_DIR,
    ENV_PYTHON,
    ENV_READY_MARKER,
    ENV_REQUEST_TIMEOUT,
    ENV_STARTUP_TIMEOUT,
    "MCPDOCS_OPENAPI_SPEC",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


class TestFromEnv:
    """Tests for DocsSettings.from_env."""

    def test_defaults(self) -> None:
        settings = DocsSettings.from_env()
        assert settings.content_dir == DEFAULT_CONTENT_DIR
        assert settings.openapi_spec == DEFAULT_SPEC_PATH
        assert settings.request_timeout == DEFAULT_REQUEST_TIMEOUT
        assert settings.startup_timeout == DEFAULT_STARTUP_TIMEOUT
        assert settings.ready_marker is None
        assert settings.python == sys.executable

    def test_environment_values(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(ENV_CONTENT_DIR, "/srv/docs")
        monkeypatch.setenv(ENV_REQUEST_TIMEOUT, "2.5")
        monkeypatch.setenv(ENV_STARTUP_TIMEOUT, "7")
        monkeypatch.setenv(ENV_READY_MARKER, "started")
        monkeypatch.setenv(ENV_PYTHON, "/usr/bin/python3")

        settings = DocsSettings.from_env()

        assert settings.content_dir == Path("/srv/docs")
        assert settings.request_timeout == 2.5
        assert settings.startup_timeout == 7.0
        assert settings.ready_marker == "started"
        assert settings.python == "/usr/bin/python3"

    def test_overrides_win_and_none_is_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(ENV_CONTENT_DIR, "/srv/docs")
        settings = DocsSettings.from_env(content_dir=Path("site/docs"), request_timeout=None)
        assert settings.content_dir == Path("site/docs")
        assert settings.request_timeout == DEFAULT_REQUEST_TIMEOUT

    @pytest.mark.parametrize("value", ["soon", "0", "-1"])
    def test_invalid_timeout(self, monkeypatch: pytest.MonkeyPatch, value: str) -> None:
        monkeypatch.setenv(ENV_REQUEST_TIMEOUT, value)
        with pytest.raises(ValueError, match=ENV_REQUEST_TIMEOUT):
            DocsSettings.from_env()

    @pytest.mark.parametrize("field", ["request_timeout", "startup_timeout"])
    @pytest.mark.parametrize("value", [0, -1.0])
    def test_non_positive_timeout_override(self, field: str, value: float) -> None:
        with pytest.raises(ValueError, match=f"{field} must be positive"):
            DocsSettings.from_env(**{field: value})


class TestServerCommand:
    """Tests for server launch commands."""

    def test_petstore_command(self) -> None:
        settings = DocsSettings(python="py", openapi_spec=Path("api.json"))
        assert settings.server_command("petstore") == [
            "py",
            "-m",
            "mcpdocs.servers.petstore",
            "--spec",
            "api.json",
        ]

    def test_starlight_command(self) -> None:
        settings = DocsSettings(python="py", content_dir=Path("docs"))
        assert settings.server_command("starlight")[2:] == [
            "mcpdocs.servers.starlight",
            "--content-dir",
            "docs",
        ]

    def test_unknown_server(self) -> None:
        with pytest.raises(ValueError, match="Unknown server: redis"):
            DocsSettings().server_command("redis")

    def test_client_options(self) -> None:
        settings = DocsSettings(request_timeout=3.0, startup_timeout=4.0, ready_marker="up")
        assert settings.client_options("petstore") == {
            "server_name": "petstore",
            "request_timeout": 3.0,
            "startup_timeout": 4.0,
            "ready_marker": "up",
        }
