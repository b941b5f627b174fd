"""WebSocket transport for a single CDP target.

Transport owns the socket: it is the only object that reads from or writes
to it. Messages are whole WebSocket frames; no reassembly happens here.
"""

import asyncio
import enum
import logging
from typing import Optional, Union

try:
    import websockets
    from websockets.asyncio.client import ClientConnection
    from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI
except ImportError:
    raise ImportError(
        "websockets library not found. Install with: pip3 install websockets"
    )

from .exceptions import ConnectionClosedError, ConnectionFailedError, TransportError

logger = logging.getLogger(__name__)

HANDSHAKE_HEADERS = {"Content-Type": "application/json"}


class ConnectionState(enum.Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class Transport:
    """Full-duplex message channel to a webSocketDebuggerUrl.

    Usage:
        transport = Transport(ws_url)
        await transport.connect()
        await transport.send('{"id": 1, "method": "Page.enable", "params": {}}')
        frame = await transport.receive()
        await transport.close()

    Attributes:
        ws_url: WebSocket debugger URL
        max_size: Maximum WebSocket message size in bytes (for large DOMs)
        open_timeout: Handshake timeout in seconds
        read_timeout: Idle time after which receive() raises a transient
            TransportError; None waits indefinitely
    """

    def __init__(
        self,
        ws_url: str,
        *,
        max_size: int = 2_097_152,  # 2MB default buffer
        open_timeout: Optional[float] = 10.0,
        read_timeout: Optional[float] = None,
    ):
        if not ws_url.startswith(("ws://", "wss://")):
            raise ValueError(f"Invalid WebSocket URL: {ws_url}")

        self.ws_url = ws_url
        self.max_size = max_size
        self.open_timeout = open_timeout
        self.read_timeout = read_timeout

        self._ws: Optional[ClientConnection] = None
        self._state: Optional[ConnectionState] = None

    @property
    def state(self) -> Optional[ConnectionState]:
        """None before connect(), then CONNECTING -> OPEN -> CLOSED."""
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is ConnectionState.OPEN

    async def connect(self) -> None:
        """Perform the WebSocket handshake.

        Raises:
            ConnectionFailedError: If the handshake fails
            TransportError: If connect() was already called
        """
        if self._state is not None:
            raise TransportError(
                f"Transport already used (state: {self._state.value})",
                details={"url": self.ws_url},
            )

        self._state = ConnectionState.CONNECTING
        logger.info(f"Connecting to {self.ws_url}")
        try:
            self._ws = await websockets.connect(
                self.ws_url,
                additional_headers=HANDSHAKE_HEADERS,
                max_size=self.max_size,
                open_timeout=self.open_timeout,
            )
        except (OSError, InvalidURI, InvalidHandshake, asyncio.TimeoutError) as e:
            self._state = ConnectionState.CLOSED
            raise ConnectionFailedError(
                f"Failed to connect to {self.ws_url}: {e}",
                details={"url": self.ws_url, "error": str(e)},
            ) from e

        self._state = ConnectionState.OPEN
        logger.info("CDP connection established")

    async def send(self, message: str) -> None:
        """Write one text message.

        Raises:
            ConnectionClosedError: If the transport is not open
            TransportError: If the write fails
        """
        ws = self._require_open("send")
        try:
            await ws.send(message)
        except ConnectionClosed as e:
            self._state = ConnectionState.CLOSED
            raise ConnectionClosedError(f"Connection closed: {e}") from e
        except OSError as e:
            raise TransportError(f"Write failed: {e}", details={"url": self.ws_url}) from e

    async def receive(self) -> Union[str, bytes]:
        """Read the next whole message.

        Raises:
            ConnectionClosedError: If the transport or the peer closed (fatal)
            TransportError: transient=True on read_timeout expiry, otherwise
                fatal
        """
        ws = self._require_open("receive")
        try:
            if self.read_timeout is None:
                return await ws.recv()
            return await asyncio.wait_for(ws.recv(), timeout=self.read_timeout)
        except asyncio.TimeoutError as e:
            raise TransportError(
                f"No message within {self.read_timeout}s",
                transient=True,
            ) from e
        except ConnectionClosed as e:
            self._state = ConnectionState.CLOSED
            raise ConnectionClosedError(f"Connection closed: {e}") from e
        except OSError as e:
            raise TransportError(f"Read failed: {e}", details={"url": self.ws_url}) from e

    async def close(self) -> None:
        """Close the socket. Safe to call more than once."""
        if self._state is ConnectionState.CLOSED and self._ws is None:
            return

        self._state = ConnectionState.CLOSED
        ws, self._ws = self._ws, None
        if ws is None:
            return

        try:
            await ws.close()
        except Exception as e:
            logger.warning(f"Error closing WebSocket: {e}")
        logger.info("CDP connection closed")

    def _require_open(self, operation: str) -> ClientConnection:
        if self._state is not ConnectionState.OPEN or self._ws is None:
            raise ConnectionClosedError(
                f"Cannot {operation}: connection not active",
                details={"url": self.ws_url},
            )
        return self._ws
