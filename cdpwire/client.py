"""Client facade over transport, dispatcher, correlator and registry.

Usage:
    async with await Client.new("http://localhost:9222", target_index=0) as client:
        client.on("Network.requestWillBeSent", on_request)
        await client.send(Command(1, "Network.enable"))
        reply = await client.send_sync(Command(2, "Page.navigate", {"url": url}))
        await client.wait_for("Page.loadEventFired", timeout=30)
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from .config import Configuration
from .correlator import RequestCorrelator
from .dispatcher import Dispatcher, StopReason
from .exceptions import CDPTimeoutError, ConnectionClosedError
from .protocol import Command, Event, Reply
from .registry import DEFAULT_QUEUE_SIZE, EventRegistry, Sink, Subscription
from .targets import resolve
from .transport import ConnectionState, Transport

logger = logging.getLogger(__name__)


class Client:
    """A connection to one CDP target.

    Construct with Client.dial() or Client.new(); both return a connected
    client with its dispatcher running.

    Attributes:
        transport: Underlying Transport
        correlator: Pending-request table for send_sync()
        registry: Event subscriptions for on()/off()
        dispatcher: The reader loop for this connection
    """

    def __init__(
        self,
        transport: Transport,
        *,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        stop_on: Optional[str] = None,
        max_transient_errors: Optional[int] = None,
    ):
        self.transport = transport
        self.correlator = RequestCorrelator()
        self.registry = EventRegistry(queue_size=queue_size)
        self.dispatcher = Dispatcher(
            transport,
            self.correlator,
            self.registry,
            stop_on=stop_on,
            max_transient_errors=max_transient_errors,
            on_stop=self._on_dispatcher_stop,
        )
        self.default_timeout: Optional[float] = None
        self._closed = False
        self._close_task: Optional[asyncio.Task] = None

    @classmethod
    async def dial(
        cls,
        ws_url: str,
        *,
        max_size: int = 2_097_152,
        open_timeout: Optional[float] = 10.0,
        read_timeout: Optional[float] = None,
        **options: Any,
    ) -> "Client":
        """Connect to a webSocketDebuggerUrl and start the dispatcher.

        Raises:
            ConnectionFailedError: If the handshake fails
        """
        transport = Transport(
            ws_url,
            max_size=max_size,
            open_timeout=open_timeout,
            read_timeout=read_timeout,
        )
        await transport.connect()
        client = cls(transport, **options)
        client.dispatcher.start()
        return client

    @classmethod
    async def new(
        cls,
        base_url: str,
        target_index: int = 0,
        *,
        http_timeout: float = 5.0,
        **options: Any,
    ) -> "Client":
        """Resolve the target_index-th target at base_url and dial it.

        Raises:
            TargetNotFoundError: If target_index is out of range
            TransportError: If the directory or the socket is unreachable
            DecodeError: If the directory listing is malformed
        """
        ws_url = await asyncio.to_thread(resolve, base_url, target_index, http_timeout)
        return await cls.dial(ws_url, **options)

    @classmethod
    async def from_config(cls, config: Configuration, **options: Any) -> "Client":
        """Build a client from a Configuration; keyword options take precedence."""
        settings: Dict[str, Any] = {
            "max_size": config.max_size,
            "open_timeout": config.open_timeout,
            "queue_size": config.queue_size,
        }
        settings.update(options)
        client = await cls.new(config.base_url, config.target_index, **settings)
        client.default_timeout = config.timeout
        return client

    @property
    def ws_url(self) -> str:
        return self.transport.ws_url

    @property
    def state(self) -> Optional[ConnectionState]:
        return self.transport.state

    @property
    def is_connected(self) -> bool:
        return not self._closed and self.transport.is_open

    async def __aenter__(self) -> "Client":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def send(self, command: Command) -> None:
        """Write command without waiting for its reply.

        Raises:
            ConnectionClosedError: If the client is closed
            TransportError: If the write fails
        """
        self._check_open("send")
        await self.transport.send(command.to_json())
        logger.debug(f"Sent command {command.id}: {command.method}")

    async def send_sync(self, command: Command, timeout: Optional[float] = None) -> Reply:
        """Send command and wait for the reply carrying the same id.

        Error replies are returned, not raised; see Reply.raise_for_error().

        Args:
            command: Command with an id not already awaiting a reply
            timeout: Seconds to wait for the reply; None waits until the reply
                arrives or the connection closes

        Raises:
            ConnectionClosedError: If the client is closed or closes while
                waiting
            InvalidCommandError: If command.id is already awaiting a reply
            CDPTimeoutError: If no reply arrives within timeout
        """
        self._check_open("send command")
        if not self.dispatcher.is_running:
            raise ConnectionClosedError(
                "Cannot send command: dispatcher stopped",
                details={"reason": getattr(self.dispatcher.stop_reason, "value", None)},
            )

        future = self.correlator.register(command.id)
        try:
            await self.transport.send(command.to_json())
            logger.debug(f"Sent command {command.id}: {command.method}")
            if timeout is None:
                return await future
            return await asyncio.wait_for(future, timeout=timeout)
        except asyncio.TimeoutError:
            raise CDPTimeoutError(
                "Command timed out",
                command_method=command.method,
                timeout=timeout,
                details={"id": command.id},
            )
        finally:
            self.correlator.discard(command.id)

    async def execute(
        self,
        method: str,
        params: Optional[dict] = None,
        *,
        timeout: Optional[float] = None,
    ) -> dict:
        """Send method with an auto-assigned id and return its result.

        Raises:
            CommandFailedError: If Chrome returns an error reply
            CDPTimeoutError: If the command times out
            ConnectionClosedError: If the connection is not active
        """
        command = Command(self.correlator.next_id(), method, params or {})
        if timeout is None:
            timeout = self.default_timeout
        reply = await self.send_sync(command, timeout=timeout)
        reply.raise_for_error(method)
        return reply.result or {}

    def on(self, method: str, sink: Sink) -> Subscription:
        """Subscribe sink to events named method (or "<Domain>.*")."""
        self._check_open("subscribe")
        return self.registry.subscribe(method, sink)

    def off(self, method: str, sink: Sink) -> None:
        """Unsubscribe sink from method; no-op if it is not subscribed."""
        self.registry.unsubscribe(method, sink)

    async def wait_for(self, method: str, timeout: Optional[float] = None) -> Event:
        """Wait for the next event named method."""
        self._check_open("wait for event")
        return await self.registry.wait_for(method, timeout=timeout)

    async def close(self) -> None:
        """Stop the dispatcher and close the socket.

        Repeated and concurrent calls all wait for the same shutdown.
        """
        if self._close_task is None:
            self._closed = True
            logger.info("Disconnecting CDP connection")
            self._close_task = asyncio.get_running_loop().create_task(self._shutdown())
        await asyncio.shield(self._close_task)

    async def _shutdown(self) -> None:
        await self.dispatcher.stop()
        self.correlator.fail_all(ConnectionClosedError("Connection closed"))
        self.registry.close()
        await self.transport.close()

    def _check_open(self, operation: str) -> None:
        if self._closed or not self.transport.is_open:
            raise ConnectionClosedError(
                f"Cannot {operation}: connection not active",
                details={"url": self.ws_url},
            )

    def _on_dispatcher_stop(self, reason: StopReason) -> None:
        if reason is not StopReason.CONNECTION_LOST or self._closed:
            return
        # Lost connection: release everything without waiting for the caller.
        self._closed = True
        self.registry.close()
        self._close_task = asyncio.get_running_loop().create_task(self.transport.close())

    def __repr__(self):
        state = self.state.value if self.state else "new"
        return f"Client(ws_url={self.ws_url!r}, state={state})"
