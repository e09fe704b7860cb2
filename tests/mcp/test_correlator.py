"""Unit tests for the request correlator (framing, matching, timeouts)."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from mcpdocs.errors import ConnectionClosedError, FramingError, RequestTimeoutError, RpcError
from mcpdocs.mcp.correlator import RequestCorrelator


class Wire:
    """Captures what a correlator sends."""

    def __init__(self) -> None:
        self.lines: list[dict[str, Any]] = []

    async def send(self, data: bytes) -> None:
        for line in data.decode("utf-8").splitlines():
            self.lines.append(json.loads(line))


def response(request_id: Any, result: Any) -> bytes:
    return (json.dumps({"jsonrpc": "2.0", "id": request_id, "result": result}) + "\n").encode()


async def _start_call(
    correlator: RequestCorrelator, method: str = "ping", **kwargs: Any
) -> asyncio.Task[Any]:
    task = asyncio.create_task(correlator.call(method, **kwargs))
    await asyncio.sleep(0)
    return task


@pytest.mark.asyncio
async def test_call_writes_newline_delimited_request() -> None:
    """call() writes one JSON-RPC 2.0 request with a fresh integer id."""
    wire = Wire()
    correlator = RequestCorrelator(wire.send, default_timeout=1.0)
    task = await _start_call(correlator, "tools/list", params={"cursor": "c1"})

    assert wire.lines == [
        {"jsonrpc": "2.0", "id": 1, "method": "tools/list", "params": {"cursor": "c1"}}
    ]
    correlator.feed(response(1, {"tools": []}))
    assert await task == {"tools": []}


@pytest.mark.asyncio
async def test_ids_are_unique_per_correlator() -> None:
    wire = Wire()
    correlator = RequestCorrelator(wire.send, default_timeout=1.0)
    tasks = [await _start_call(correlator) for _ in range(3)]

    ids = [line["id"] for line in wire.lines]
    assert len(set(ids)) == 3
    assert sorted(correlator.pending_ids) == sorted(ids)
    for request_id in ids:
        correlator.feed(response(request_id, {}))
    await asyncio.gather(*tasks)
    assert correlator.pending_ids == []


@pytest.mark.asyncio
async def test_out_of_order_responses_reach_their_callers() -> None:
    """Responses are matched by id, not by arrival order."""
    wire = Wire()
    correlator = RequestCorrelator(wire.send, default_timeout=1.0)
    first = await _start_call(correlator, "tools/list")
    second = await _start_call(correlator, "resources/list")

    correlator.feed(response(2, "second"))
    correlator.feed(response(1, "first"))

    assert await first == "first"
    assert await second == "second"


@pytest.mark.asyncio
async def test_response_split_across_chunks() -> None:
    wire = Wire()
    correlator = RequestCorrelator(wire.send, default_timeout=1.0)
    task = await _start_call(correlator)

    data = response(1, {"title": "Pet Store API"})
    correlator.feed(data[:7])
    correlator.feed(data[7:20])
    assert not task.done()
    correlator.feed(data[20:])

    assert await task == {"title": "Pet Store API"}


@pytest.mark.asyncio
async def test_two_responses_in_one_chunk() -> None:
    wire = Wire()
    correlator = RequestCorrelator(wire.send, default_timeout=1.0)
    first = await _start_call(correlator)
    second = await _start_call(correlator)

    correlator.feed(response(1, "a") + response(2, "b"))

    assert await first == "a"
    assert await second == "b"


@pytest.mark.asyncio
async def test_json_document_spanning_lines_is_carried_over() -> None:
    """A pretty-printed response is reassembled from its lines."""
    wire = Wire()
    correlator = RequestCorrelator(wire.send, default_timeout=1.0)
    task = await _start_call(correlator)

    pretty = json.dumps({"jsonrpc": "2.0", "id": 1, "result": {"ok": True}}, indent=2) + "\n"
    correlator.feed(pretty.encode())

    assert await task == {"ok": True}


@pytest.mark.asyncio
async def test_non_json_line_is_ignored() -> None:
    wire = Wire()
    correlator = RequestCorrelator(wire.send, default_timeout=1.0)
    task = await _start_call(correlator)

    correlator.feed(b"server says hello\n" + response(1, "ok"))

    assert await task == "ok"


@pytest.mark.asyncio
async def test_broken_fragment_is_discarded_when_next_line_parses() -> None:
    wire = Wire()
    correlator = RequestCorrelator(wire.send, default_timeout=1.0)
    task = await _start_call(correlator)

    correlator.feed(b'{"jsonrpc": "2.0", "id": \n' + response(1, "ok"))

    assert await task == "ok"


@pytest.mark.asyncio
async def test_unknown_id_goes_to_unmatched_callback() -> None:
    wire = Wire()
    unmatched: list[dict[str, Any]] = []
    correlator = RequestCorrelator(wire.send, default_timeout=1.0, on_unmatched=unmatched.append)
    task = await _start_call(correlator)

    correlator.feed(response(99, "stray"))
    assert not task.done()
    correlator.feed(response(1, "mine"))

    assert await task == "mine"
    assert unmatched == [{"jsonrpc": "2.0", "id": 99, "result": "stray"}]


@pytest.mark.asyncio
async def test_server_notification_goes_to_unmatched_callback() -> None:
    wire = Wire()
    unmatched: list[dict[str, Any]] = []
    correlator = RequestCorrelator(wire.send, on_unmatched=unmatched.append)

    correlator.feed(b'{"jsonrpc": "2.0", "method": "notifications/tools/list_changed"}\n')

    assert unmatched[0]["method"] == "notifications/tools/list_changed"


@pytest.mark.asyncio
async def test_error_envelope_raises_rpc_error() -> None:
    wire = Wire()
    correlator = RequestCorrelator(wire.send, default_timeout=1.0)
    task = await _start_call(correlator, "tools/call")

    correlator.feed(
        b'{"jsonrpc": "2.0", "id": 1, "error": {"code": -32602, "message": "Unknown tool: x"}}\n'
    )

    with pytest.raises(RpcError) as exc_info:
        await task
    assert exc_info.value.rpc_code == -32602
    assert exc_info.value.message == "Unknown tool: x"


@pytest.mark.asyncio
async def test_response_without_result_or_error_is_rejected() -> None:
    wire = Wire()
    correlator = RequestCorrelator(wire.send, default_timeout=1.0)
    task = await _start_call(correlator)

    correlator.feed(b'{"jsonrpc": "2.0", "id": 1}\n')

    with pytest.raises(RpcError):
        await task


@pytest.mark.asyncio
async def test_batch_response_settles_each_request() -> None:
    wire = Wire()
    correlator = RequestCorrelator(wire.send, default_timeout=1.0)
    first = await _start_call(correlator)
    second = await _start_call(correlator)

    batch = [
        {"jsonrpc": "2.0", "id": 2, "result": "b"},
        {"jsonrpc": "2.0", "id": 1, "result": "a"},
    ]
    correlator.feed((json.dumps(batch) + "\n").encode())

    assert (await first, await second) == ("a", "b")


@pytest.mark.asyncio
async def test_timeout_removes_pending_entry() -> None:
    wire = Wire()
    correlator = RequestCorrelator(wire.send)

    with pytest.raises(RequestTimeoutError) as exc_info:
        await correlator.call("tools/list", timeout=0.05)

    assert exc_info.value.method == "tools/list"
    assert exc_info.value.request_id == 1
    assert correlator.pending_ids == []


@pytest.mark.asyncio
async def test_late_response_after_timeout_is_unmatched() -> None:
    """A response arriving after its caller timed out settles nothing."""
    wire = Wire()
    unmatched: list[dict[str, Any]] = []
    correlator = RequestCorrelator(wire.send, on_unmatched=unmatched.append)

    with pytest.raises(RequestTimeoutError):
        await correlator.call("ping", timeout=0.05)
    correlator.feed(response(1, {}))

    assert unmatched == [{"jsonrpc": "2.0", "id": 1, "result": {}}]


@pytest.mark.asyncio
async def test_timeout_does_not_affect_other_requests() -> None:
    wire = Wire()
    correlator = RequestCorrelator(wire.send)
    slow = await _start_call(correlator, timeout=0.05)
    other = await _start_call(correlator, timeout=5.0)

    with pytest.raises(RequestTimeoutError):
        await slow
    correlator.feed(response(2, "still fine"))

    assert await other == "still fine"


@pytest.mark.asyncio
async def test_close_rejects_pending_and_future_calls() -> None:
    wire = Wire()
    correlator = RequestCorrelator(wire.send, default_timeout=5.0)
    task = await _start_call(correlator)

    correlator.close()

    with pytest.raises(ConnectionClosedError):
        await task
    with pytest.raises(ConnectionClosedError):
        await correlator.call("ping")
    assert correlator.is_closed


@pytest.mark.asyncio
async def test_close_with_error_propagates_it() -> None:
    wire = Wire()
    correlator = RequestCorrelator(wire.send, default_timeout=5.0)
    task = await _start_call(correlator)

    correlator.close(FramingError(10, 5))

    with pytest.raises(FramingError):
        await task


@pytest.mark.asyncio
async def test_oversized_unterminated_output_raises_framing_error() -> None:
    wire = Wire()
    correlator = RequestCorrelator(wire.send, max_buffer_size=64)

    with pytest.raises(FramingError) as exc_info:
        correlator.feed(b'{"jsonrpc": "2.0", "result": "' + b"x" * 100)

    assert exc_info.value.limit == 64
    assert exc_info.value.buffered > 64


@pytest.mark.asyncio
async def test_oversized_carried_fragment_raises_framing_error() -> None:
    wire = Wire()
    correlator = RequestCorrelator(wire.send, max_buffer_size=64)

    with pytest.raises(FramingError):
        for _ in range(10):
            correlator.feed(b'{"partial": "' + b"y" * 20 + b"\n")


@pytest.mark.asyncio
async def test_notify_has_no_id() -> None:
    wire = Wire()
    correlator = RequestCorrelator(wire.send)

    await correlator.notify("notifications/initialized")

    assert wire.lines == [{"jsonrpc": "2.0", "method": "notifications/initialized"}]
    assert correlator.pending_ids == []
