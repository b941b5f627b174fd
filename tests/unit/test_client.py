"""Unit tests for the Client facade over an in-memory transport."""

import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest

from cdpwire.client import Client
from cdpwire.config import Configuration
from cdpwire.dispatcher import StopReason
from cdpwire.exceptions import (
    CDPTimeoutError,
    CommandFailedError,
    ConnectionClosedError,
    InvalidCommandError,
    TargetNotFoundError,
)
from cdpwire.protocol import Command
from cdpwire.transport import ConnectionState


def echo_result(command):
    return {"id": command["id"], "result": {"echo": command["method"]}}


@pytest.mark.unit
@pytest.mark.asyncio
class TestSend:
    async def test_send_writes_command_frame(self, fake_transport, start_client):
        client = start_client()

        await client.send(Command(1, "Network.enable", {"maxTotalBufferSize": 100}))

        assert fake_transport.sent == [
            {"id": 1, "method": "Network.enable", "params": {"maxTotalBufferSize": 100}}
        ]
        await client.close()

    async def test_send_sync_returns_matching_reply(self, fake_transport, start_client):
        fake_transport.responder = echo_result
        client = start_client()

        reply = await asyncio.wait_for(client.send_sync(Command(9, "Page.enable")), 1)

        assert reply.id == 9
        assert reply.result == {"echo": "Page.enable"}
        await client.close()

    async def test_replies_out_of_order(self, fake_transport, start_client, wait):
        client = start_client()

        first = asyncio.create_task(client.send_sync(Command(1, "Runtime.evaluate")))
        second = asyncio.create_task(client.send_sync(Command(2, "Page.navigate")))
        await wait(lambda: len(fake_transport.sent) == 2)

        fake_transport.feed({"id": 2, "result": {"frameId": "F"}})
        fake_transport.feed({"id": 1, "result": {"result": {"value": 2}}})

        reply1, reply2 = await asyncio.wait_for(asyncio.gather(first, second), 1)
        assert reply1.id == 1 and reply1.result == {"result": {"value": 2}}
        assert reply2.id == 2 and reply2.result == {"frameId": "F"}
        await client.close()

    async def test_error_reply_is_returned(self, fake_transport, start_client):
        fake_transport.responder = lambda c: {
            "id": c["id"],
            "error": {"code": -32601, "message": "'Nope.nope' wasn't found"},
        }
        client = start_client()

        reply = await asyncio.wait_for(client.send_sync(Command(4, "Nope.nope")), 1)

        assert reply.id == 4
        assert not reply.ok
        assert reply.error["code"] == -32601
        await client.close()

    async def test_send_sync_timeout(self, fake_transport, start_client):
        client = start_client()

        with pytest.raises(CDPTimeoutError, match="timed out after 0.05s"):
            await client.send_sync(Command(1, "Page.navigate"), timeout=0.05)

        assert not client.correlator.is_pending(1)
        await client.close()

    async def test_duplicate_pending_id(self, fake_transport, start_client, wait):
        client = start_client()
        pending = asyncio.create_task(client.send_sync(Command(1, "Page.enable")))
        await wait(lambda: client.correlator.is_pending(1))

        with pytest.raises(InvalidCommandError):
            await client.send_sync(Command(1, "Network.enable"))

        fake_transport.feed({"id": 1, "result": {}})
        assert (await asyncio.wait_for(pending, 1)).id == 1
        await client.close()

    async def test_execute_assigns_ids(self, fake_transport, start_client):
        fake_transport.responder = echo_result
        client = start_client()

        assert await client.execute("Page.enable") == {"echo": "Page.enable"}
        assert await client.execute("Network.enable") == {"echo": "Network.enable"}

        assert [c["id"] for c in fake_transport.sent] == [1, 2]
        await client.close()

    async def test_execute_raises_on_error_reply(self, fake_transport, start_client):
        fake_transport.responder = lambda c: {"id": c["id"], "error": {"message": "boom"}}
        client = start_client()

        with pytest.raises(CommandFailedError, match="boom"):
            await client.execute("Runtime.evaluate", {"expression": "throw 1"})
        await client.close()


@pytest.mark.unit
@pytest.mark.asyncio
class TestEvents:
    async def test_on_and_off(self, fake_transport, start_client, wait):
        client = start_client()
        received = []
        client.on("Network.requestWillBeSent", received.append)

        fake_transport.feed({"method": "Network.requestWillBeSent", "params": {"n": 1}})
        fake_transport.feed({"method": "Network.responseReceived", "params": {}})
        await wait(lambda: len(received) == 1)

        client.off("Network.requestWillBeSent", received.append)
        client.off("Network.requestWillBeSent", received.append)
        fake_transport.feed({"method": "Network.requestWillBeSent", "params": {"n": 2}})
        fake_transport.feed({"method": "Page.loadEventFired", "params": {}})
        await client.wait_for("Page.loadEventFired", timeout=1)

        assert [e.params for e in received] == [{"n": 1}]
        await client.close()

    async def test_reply_with_method_field_not_broadcast(self, fake_transport, start_client, wait):
        client = start_client()
        received = []
        client.on("Page.enable", received.append)

        task = asyncio.create_task(client.send_sync(Command(1, "Page.enable")))
        await wait(lambda: len(fake_transport.sent) == 1)
        fake_transport.feed({"id": 1, "method": "Page.enable", "result": {}})

        await asyncio.wait_for(task, 1)
        await asyncio.sleep(0.01)
        assert received == []
        await client.close()

    async def test_stop_on_event(self, fake_transport, start_client):
        client = start_client(stop_on="Page.loadEventFired")

        fake_transport.feed({"method": "Page.loadEventFired", "params": {}})
        await asyncio.wait_for(client.dispatcher.wait_stopped(), 1)

        # Fire-and-forget still works; correlated sends cannot be answered.
        await client.send(Command(5, "Page.reload"))
        with pytest.raises(ConnectionClosedError, match="dispatcher stopped"):
            await client.send_sync(Command(6, "Page.reload"))
        await client.close()


@pytest.mark.unit
@pytest.mark.asyncio
class TestClose:
    async def test_operations_after_close(self, fake_transport, start_client):
        client = start_client()
        await client.close()

        with pytest.raises(ConnectionClosedError):
            await client.send(Command(1, "Page.enable"))
        with pytest.raises(ConnectionClosedError):
            await asyncio.wait_for(client.send_sync(Command(2, "Page.enable")), 1)
        with pytest.raises(ConnectionClosedError):
            client.on("Page.loadEventFired", print)
        assert not client.is_connected
        assert fake_transport.close_calls == 1

    async def test_close_twice(self, fake_transport, start_client):
        client = start_client()
        await client.close()
        await client.close()
        assert fake_transport.close_calls == 1

    async def test_concurrent_close_waits_for_shutdown(self, fake_transport, start_client):
        client = start_client()
        release = asyncio.Event()
        original_close = fake_transport.close

        async def slow_close():
            await release.wait()
            await original_close()

        fake_transport.close = slow_close

        first = asyncio.create_task(client.close())
        second = asyncio.create_task(client.close())
        await asyncio.sleep(0.05)
        assert not first.done()
        assert not second.done()

        release.set()
        await asyncio.wait_for(asyncio.gather(first, second), 1)
        assert fake_transport.close_calls == 1
        assert fake_transport.state is ConnectionState.CLOSED

    async def test_close_fails_pending_send_sync(self, fake_transport, start_client, wait):
        client = start_client()
        pending = asyncio.create_task(client.send_sync(Command(1, "Page.navigate")))
        await wait(lambda: client.correlator.is_pending(1))

        await client.close()

        with pytest.raises(ConnectionClosedError):
            await asyncio.wait_for(pending, 1)

    async def test_connection_lost_closes_client(self, fake_transport, start_client, wait):
        client = start_client()
        pending = asyncio.create_task(client.send_sync(Command(1, "Page.navigate")))
        await wait(lambda: client.correlator.is_pending(1))

        fake_transport.feed(ConnectionClosedError("peer went away"))

        with pytest.raises(ConnectionClosedError):
            await asyncio.wait_for(pending, 1)
        assert client.dispatcher.stop_reason is StopReason.CONNECTION_LOST
        await client.close()
        assert not client.is_connected
        assert fake_transport.close_calls == 1
        with pytest.raises(ConnectionClosedError):
            await client.send(Command(2, "Page.enable"))

    async def test_async_context_manager(self, fake_transport, start_client):
        async with start_client() as client:
            assert client.is_connected
        assert fake_transport.state is ConnectionState.CLOSED


@pytest.mark.unit
@pytest.mark.asyncio
class TestConstruction:
    @patch("cdpwire.client.Transport")
    async def test_dial_starts_dispatcher(self, mock_transport_cls, fake_transport):
        fake_transport.connect = AsyncMock()
        mock_transport_cls.return_value = fake_transport

        client = await Client.dial("ws://localhost:9222/devtools/page/X", queue_size=5)

        fake_transport.connect.assert_awaited_once()
        assert client.dispatcher.is_running
        assert client.registry.queue_size == 5
        await client.close()

    @patch("cdpwire.client.resolve", return_value="ws://localhost:9222/devtools/page/B")
    @patch("cdpwire.client.Client.dial", new_callable=AsyncMock)
    async def test_new_resolves_then_dials(self, mock_dial, mock_resolve):
        await Client.new("http://localhost:9222", 1, stop_on="Page.loadEventFired")

        mock_resolve.assert_called_once_with("http://localhost:9222", 1, 5.0)
        mock_dial.assert_awaited_once_with(
            "ws://localhost:9222/devtools/page/B", stop_on="Page.loadEventFired"
        )

    @patch("cdpwire.client.resolve", side_effect=TargetNotFoundError("x", index=1, count=1))
    async def test_new_surfaces_resolution_errors(self, mock_resolve):
        with pytest.raises(TargetNotFoundError):
            await Client.new("http://localhost:9222", 1)

    @patch("cdpwire.client.Client.new", new_callable=AsyncMock)
    async def test_from_config(self, mock_new, fake_transport):
        mock_new.return_value = Client(fake_transport)
        config = Configuration()
        config.merge(base_url="http://chrome:9333", target_index=2, timeout=12.0, queue_size=10)

        client = await Client.from_config(config)

        mock_new.assert_awaited_once_with(
            "http://chrome:9333",
            2,
            max_size=2_097_152,
            open_timeout=10.0,
            queue_size=10,
        )
        assert client.default_timeout == 12.0
