"""Shared fixtures: an in-memory transport standing in for the WebSocket."""

import asyncio
import json
from typing import Callable, List, Optional, Union

import pytest

from cdpwire.client import Client
from cdpwire.exceptions import ConnectionClosedError
from cdpwire.transport import ConnectionState

WS_URL = "ws://localhost:9222/devtools/page/TEST"


class FakeTransport:
    """Transport double fed by the test.

    feed() queues inbound frames (dicts are JSON-encoded, str/bytes are sent
    as-is, exceptions are raised from receive()). Sent messages are decoded
    into self.sent. If responder is set, it is called with each sent command
    and any frame it returns is fed back.
    """

    def __init__(self, ws_url: str = WS_URL):
        self.ws_url = ws_url
        self.sent: List[dict] = []
        self.state = ConnectionState.OPEN
        self.close_calls = 0
        self.responder: Optional[Callable[[dict], Optional[dict]]] = None
        self._inbox: asyncio.Queue = asyncio.Queue()

    @property
    def is_open(self) -> bool:
        return self.state is ConnectionState.OPEN

    def feed(self, frame: Union[dict, str, bytes, BaseException]) -> None:
        if isinstance(frame, dict):
            frame = json.dumps(frame)
        self._inbox.put_nowait(frame)

    async def send(self, message: str) -> None:
        if not self.is_open:
            raise ConnectionClosedError("Cannot send: connection not active")
        command = json.loads(message)
        self.sent.append(command)
        if self.responder is not None:
            reply = self.responder(command)
            if reply is not None:
                self.feed(reply)

    async def receive(self):
        if not self.is_open:
            raise ConnectionClosedError("Cannot receive: connection not active")
        item = await self._inbox.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self) -> None:
        self.close_calls += 1
        self.state = ConnectionState.CLOSED


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the event loop until predicate() holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def start_client(fake_transport):
    """Factory building a Client over fake_transport with its dispatcher running."""

    def _start(**options) -> Client:
        client = Client(fake_transport, **options)
        client.dispatcher.start()
        return client

    return _start


@pytest.fixture
def wait():
    return wait_until


@pytest.fixture
def targets_listing():
    """Mock Chrome /json endpoint response."""
    return [
        {
            "description": "",
            "devtoolsFrontendUrl": "/devtools/inspector.html?ws=localhost:9222/devtools/page/page-1",
            "faviconUrl": "https://example.com/favicon.ico",
            "id": "page-1",
            "title": "Example Domain",
            "type": "page",
            "url": "https://example.com",
            "webSocketDebuggerUrl": "ws://localhost:9222/devtools/page/page-1",
        },
        {
            "description": "",
            "devtoolsFrontendUrl": "/devtools/inspector.html?ws=localhost:9222/devtools/page/page-2",
            "faviconUrl": "https://github.com/favicon.ico",
            "id": "page-2",
            "title": "GitHub",
            "type": "page",
            "url": "https://github.com",
            "webSocketDebuggerUrl": "ws://localhost:9222/devtools/page/page-2",
        },
        {
            "description": "",
            "devtoolsFrontendUrl": "",
            "faviconUrl": "",
            "id": "worker-1",
            "type": "service_worker",
            "title": "Service Worker",
            "url": "https://example.com/sw.js",
            "webSocketDebuggerUrl": "ws://localhost:9222/devtools/page/worker-1",
        },
    ]
