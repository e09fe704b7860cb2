"""Unit tests for MCP client (state machine, error mapping, concurrency)."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from mcpdocs.errors import (
    ConnectionClosedError,
    FramingError,
    InvalidTransitionError,
    RequestTimeoutError,
    ResourceNotFoundError,
    SpawnError,
    StartupTimeoutError,
    ToolError,
)
from mcpdocs.mcp.client import ConnectionState, MCPClient, connect, connected
from mcpdocs.testing.fixtures import stub_client
from mcpdocs.testing.mocks import MemoryTransport
from mcpdocs.testing.stub_server import STUB_API_INFO_TEXT, stub_response


def _make_client(transport: MemoryTransport, **kwargs: Any) -> MCPClient:
    return MCPClient(["stub-server", "--flag"], server_name="stub", transport=transport, **kwargs)


class TestConnectionLifecycle:
    """Tests for the UNCONNECTED -> STARTING -> READY -> CLOSED state machine."""

    @pytest.mark.asyncio
    async def test_new_client_is_unconnected(self, memory_transport: MemoryTransport) -> None:
        client = _make_client(memory_transport)
        assert client.state is ConnectionState.UNCONNECTED
        assert client.init_result is None

    @pytest.mark.asyncio
    async def test_connect_performs_handshake(self, memory_transport: MemoryTransport) -> None:
        client = _make_client(memory_transport)
        init = await client.connect()

        assert client.state is ConnectionState.READY
        assert init.server_info.name == "stub-mcp-server"
        assert memory_transport.start_calls == [("stub-server", ["--flag"], None)]
        assert memory_transport.methods() == ["initialize", "notifications/initialized"]
        assert memory_transport.sent[0]["params"]["clientInfo"]["name"] == "mcpdocs-client"
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_disconnect_closes_and_terminates(self, memory_transport: MemoryTransport) -> None:
        client = _make_client(memory_transport)
        await client.connect()
        await client.disconnect()

        assert client.state is ConnectionState.CLOSED
        assert memory_transport.terminated

    @pytest.mark.asyncio
    async def test_disconnect_twice_is_noop(self, memory_transport: MemoryTransport) -> None:
        client = _make_client(memory_transport)
        await client.connect()
        await client.disconnect()
        await client.disconnect()
        assert client.state is ConnectionState.CLOSED

    @pytest.mark.asyncio
    async def test_disconnect_before_connect_keeps_state(
        self, memory_transport: MemoryTransport
    ) -> None:
        client = _make_client(memory_transport)
        await client.disconnect()
        assert client.state is ConnectionState.UNCONNECTED

    @pytest.mark.asyncio
    async def test_reconnect_after_close_raises(self, memory_transport: MemoryTransport) -> None:
        """A closed handle is never reused; reconnecting needs a new client."""
        client = _make_client(memory_transport)
        await client.connect()
        await client.disconnect()

        with pytest.raises(InvalidTransitionError) as exc_info:
            await client.connect()
        assert exc_info.value.from_state == "closed"
        assert exc_info.value.to_state == "starting"

    @pytest.mark.asyncio
    async def test_connect_twice_raises(self, memory_transport: MemoryTransport) -> None:
        client = _make_client(memory_transport)
        await client.connect()
        try:
            with pytest.raises(InvalidTransitionError):
                await client.connect()
            assert client.state is ConnectionState.READY
        finally:
            await client.disconnect()

    @pytest.mark.asyncio
    async def test_spawn_failure_marks_failed(self) -> None:
        transport = MemoryTransport(start_error=SpawnError(["missing"], "No such file"))
        client = _make_client(transport)

        with pytest.raises(SpawnError):
            await client.connect()
        assert client.state is ConnectionState.FAILED
        assert transport.terminated

    @pytest.mark.asyncio
    async def test_silent_server_times_out_handshake(self) -> None:
        transport = MemoryTransport(responder=None)
        client = _make_client(transport, startup_timeout=0.1)

        with pytest.raises(StartupTimeoutError) as exc_info:
            await client.connect()
        assert exc_info.value.details["stage"] == "initialize"
        assert client.state is ConnectionState.FAILED

    @pytest.mark.asyncio
    async def test_ready_marker_is_awaited_before_handshake(self) -> None:
        transport = MemoryTransport(responder=stub_response, status_lines=["stub started"])
        client = _make_client(transport, ready_marker="stub started")
        await client.connect()
        assert client.state is ConnectionState.READY
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_missing_ready_marker_fails_startup(self) -> None:
        transport = MemoryTransport(responder=stub_response, status_lines=["booting"])
        client = _make_client(transport, ready_marker="stub started", startup_timeout=0.05)

        with pytest.raises(StartupTimeoutError):
            await client.connect()
        assert client.state is ConnectionState.FAILED
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_requests_before_connect_raise(self, memory_transport: MemoryTransport) -> None:
        client = _make_client(memory_transport)
        with pytest.raises(ConnectionClosedError, match="Not connected"):
            await client.list_tools()

    @pytest.mark.asyncio
    async def test_requests_after_disconnect_raise(self, memory_transport: MemoryTransport) -> None:
        client = _make_client(memory_transport)
        await client.connect()
        await client.disconnect()
        with pytest.raises(ConnectionClosedError):
            await client.call_tool("echo", {"text": "hi"})

    @pytest.mark.asyncio
    async def test_server_exit_fails_pending_requests(self) -> None:
        transport = MemoryTransport(responder=stub_response)
        client = _make_client(transport)
        await client.connect()
        transport.responder = None

        pending = asyncio.create_task(client.call_tool("get_api_info"))
        while client.pending_requests == 0:
            await asyncio.sleep(0)
        transport.close_stream()

        with pytest.raises(ConnectionClosedError, match="Server closed the connection"):
            await pending
        assert client.state is ConnectionState.FAILED
        await client.disconnect()
        assert client.state is ConnectionState.FAILED

    @pytest.mark.asyncio
    async def test_framing_error_fails_connection(self) -> None:
        transport = MemoryTransport(responder=stub_response)
        client = _make_client(transport, max_buffer_size=128)
        await client.connect()
        transport.responder = None

        pending = asyncio.create_task(client.ping())
        while client.pending_requests == 0:
            await asyncio.sleep(0)
        transport.emit(b'{"jsonrpc": "2.0", "id": 2, "result": "' + b"z" * 500)

        with pytest.raises(FramingError):
            await pending
        assert client.state is ConnectionState.FAILED
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_context_manager_disconnects(self, memory_transport: MemoryTransport) -> None:
        async with _make_client(memory_transport) as client:
            assert client.state is ConnectionState.READY
        assert client.state is ConnectionState.CLOSED


class TestTools:
    """Tests for tools/list and tools/call."""

    @pytest.mark.asyncio
    async def test_list_tools_in_server_order(self) -> None:
        async with stub_client() as client:
            tools = await client.list_tools()
        assert [tool.name for tool in tools] == ["get_api_info", "echo"]
        assert tools[1].input_schema["required"] == ["text"]

    @pytest.mark.asyncio
    async def test_list_tools_follows_cursor(self) -> None:
        pages = {
            None: {"tools": [{"name": "a", "inputSchema": {}}], "nextCursor": "page-2"},
            "page-2": {"tools": [{"name": "b", "inputSchema": {}}]},
        }

        def responder(message: dict[str, Any]) -> dict[str, Any] | None:
            if message.get("method") == "tools/list":
                cursor = (message.get("params") or {}).get("cursor")
                return {"jsonrpc": "2.0", "id": message["id"], "result": pages[cursor]}
            return stub_response(message)

        async with stub_client(MemoryTransport(responder=responder)) as client:
            tools = await client.list_tools()
        assert [tool.name for tool in tools] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_call_tool_returns_content_unmodified(self) -> None:
        async with stub_client() as client:
            result = await client.call_tool("get_api_info", {})
        assert result.is_error is False
        assert result.content == [{"type": "text", "text": STUB_API_INFO_TEXT}]
        assert result.text == STUB_API_INFO_TEXT

    @pytest.mark.asyncio
    async def test_unknown_tool_raises_tool_error(self) -> None:
        async with stub_client() as client:
            with pytest.raises(ToolError) as exc_info:
                await client.call_tool("does_not_exist", {})
        assert exc_info.value.name == "does_not_exist"
        assert exc_info.value.details["rpc_code"] == -32602
        assert "Unknown tool" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_tool_reported_failure_is_data(self) -> None:
        async with stub_client() as client:
            result = await client.call_tool("echo", {})
        assert result.is_error is True
        assert result.text == "Error: text is required"

    @pytest.mark.asyncio
    async def test_concurrent_calls_get_their_own_results(self) -> None:
        """Replies delivered in reverse order still reach the right callers."""
        held: list[dict[str, Any]] = []
        transport = MemoryTransport(responder=stub_response)

        async with stub_client(transport) as client:

            def holding_responder(message: dict[str, Any]) -> None:
                held.append(stub_response(message) or {})
                return None

            transport.responder = holding_responder
            calls = [
                asyncio.create_task(client.call_tool("echo", {"text": f"msg-{i}"}))
                for i in range(5)
            ]
            while len(held) < 5:
                await asyncio.sleep(0)
            for reply in reversed(held):
                transport.emit(reply)
            results = await asyncio.gather(*calls)

        assert [r.text for r in results] == [f"msg-{i}" for i in range(5)]

    @pytest.mark.asyncio
    async def test_replies_in_tiny_chunks(self) -> None:
        transport = MemoryTransport(responder=stub_response, chunk_size=3)
        async with stub_client(transport) as client:
            result = await client.call_tool("echo", {"text": "chunked"})
        assert result.text == "chunked"

    @pytest.mark.asyncio
    async def test_call_timeout_leaves_connection_usable(self) -> None:
        transport = MemoryTransport(responder=stub_response)
        async with stub_client(transport) as client:
            transport.responder = None
            with pytest.raises(RequestTimeoutError):
                await client.call_tool("get_api_info", timeout=0.05)
            transport.responder = stub_response
            result = await client.call_tool("echo", {"text": "after"})
            assert client.pending_requests == 0
        assert result.text == "after"

    @pytest.mark.asyncio
    async def test_unmatched_callback_receives_stray_responses(self) -> None:
        stray: list[dict[str, Any]] = []
        transport = MemoryTransport(responder=stub_response)
        async with stub_client(transport, on_unmatched=stray.append) as client:
            transport.emit({"jsonrpc": "2.0", "id": 4242, "result": {}})
            await client.ping()
        assert stray == [{"jsonrpc": "2.0", "id": 4242, "result": {}}]


class TestResources:
    """Tests for resources/list and resources/read."""

    @pytest.mark.asyncio
    async def test_list_and_read_resource(self) -> None:
        async with stub_client() as client:
            resources = await client.list_resources()
            contents = await client.read_resource(resources[0].uri)
        assert resources[0].uri == "memo://readme"
        assert resources[0].mime_type == "text/plain"
        assert contents.text == "Stub server readme"

    @pytest.mark.asyncio
    async def test_unknown_resource_raises_not_found(self) -> None:
        async with stub_client() as client:
            with pytest.raises(ResourceNotFoundError) as exc_info:
                await client.read_resource("memo://missing")
        assert exc_info.value.uri == "memo://missing"


class TestModuleHelpers:
    """Tests for connect() and connected()."""

    @pytest.mark.asyncio
    async def test_connect_returns_ready_handle(self) -> None:
        transport = MemoryTransport(responder=stub_response)
        client = await connect(["stub"], transport=transport)
        try:
            assert client.state is ConnectionState.READY
            assert client.server_name == "stub"
        finally:
            await client.disconnect()

    @pytest.mark.asyncio
    async def test_connected_disconnects_on_error(self) -> None:
        transport = MemoryTransport(responder=stub_response)
        with pytest.raises(ToolError):
            async with connected(["stub"], transport=transport) as client:
                await client.call_tool("nope")
        assert client.state is ConnectionState.CLOSED
        assert transport.terminated

    @pytest.mark.asyncio
    async def test_connected_terminates_after_failed_startup(self) -> None:
        transport = MemoryTransport(responder=None)
        with pytest.raises(StartupTimeoutError):
            async with connected(["stub"], transport=transport, startup_timeout=0.05):
                pass
        assert transport.terminated

    def test_empty_command_rejected(self) -> None:
        with pytest.raises(ValueError):
            MCPClient([])
