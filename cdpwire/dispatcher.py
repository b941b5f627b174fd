"""Reader loop that demultiplexes inbound CDP frames.

Exactly one Dispatcher runs per connection. Each frame is classified as:
- a reply, if its "id" matches a pending command (handed to the correlator)
- an event, if it carries a "method" (broadcast through the registry)
- otherwise dropped

Malformed frames and transient read errors are logged and skipped. A closed
connection or a fatal read error stops the loop and fails every pending
command with ConnectionClosedError.
"""

import asyncio
import enum
import logging
from typing import Callable, Optional

from .correlator import RequestCorrelator
from .exceptions import ConnectionClosedError, DecodeError, TransportError
from .protocol import Event, Reply, decode_frame
from .registry import EventRegistry
from .transport import Transport

logger = logging.getLogger(__name__)


class DispatcherState(enum.Enum):
    RUNNING = "running"
    STOPPED = "stopped"


class StopReason(enum.Enum):
    CLOSED = "closed"  # stop() called
    CONNECTION_LOST = "connection_lost"  # fatal transport error
    STOP_EVENT = "stop_event"  # stop_on event observed


class Dispatcher:
    """Background task routing frames from a Transport.

    Attributes:
        stop_on: Event method that ends the loop once broadcast
            (e.g. "Page.loadEventFired"); None runs until the connection ends
        max_transient_errors: Consecutive transient read errors tolerated
            before the loop gives up; None tolerates any number
        on_stop: Called with the StopReason once the loop has stopped
    """

    def __init__(
        self,
        transport: Transport,
        correlator: RequestCorrelator,
        registry: EventRegistry,
        *,
        stop_on: Optional[str] = None,
        max_transient_errors: Optional[int] = None,
        on_stop: Optional[Callable[[StopReason], None]] = None,
    ):
        self.transport = transport
        self.correlator = correlator
        self.registry = registry
        self.stop_on = stop_on
        self.max_transient_errors = max_transient_errors
        self.on_stop = on_stop

        self._task: Optional[asyncio.Task] = None
        self._state: Optional[DispatcherState] = None
        self._stop_reason: Optional[StopReason] = None
        self._stopped = asyncio.Event()

    @property
    def state(self) -> Optional[DispatcherState]:
        return self._state

    @property
    def stop_reason(self) -> Optional[StopReason]:
        return self._stop_reason

    @property
    def is_running(self) -> bool:
        return self._state is DispatcherState.RUNNING

    def start(self) -> None:
        """Start the reader task. Only one start per Dispatcher."""
        if self._task is not None:
            raise RuntimeError("Dispatcher already started")
        self._state = DispatcherState.RUNNING
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        """Cancel the reader task and wait until it has finished."""
        if self._task is None:
            self._finish(StopReason.CLOSED)
            return
        if not self._task.done():
            self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._finish(StopReason.CLOSED)

    async def wait_stopped(self) -> StopReason:
        await self._stopped.wait()
        assert self._stop_reason is not None
        return self._stop_reason

    async def _run(self) -> None:
        transient_errors = 0
        reason = StopReason.CONNECTION_LOST
        try:
            while True:
                try:
                    message = await self.transport.receive()
                except ConnectionClosedError as e:
                    logger.warning(f"WebSocket connection closed: {e}")
                    break
                except TransportError as e:
                    if not e.transient:
                        logger.error(f"Receive loop error: {e}")
                        break
                    transient_errors += 1
                    if (
                        self.max_transient_errors is not None
                        and transient_errors > self.max_transient_errors
                    ):
                        logger.error(
                            f"Giving up after {transient_errors} consecutive read errors: {e}"
                        )
                        break
                    logger.debug(f"Transient read error, retrying: {e}")
                    continue

                transient_errors = 0
                if self.dispatch(message):
                    reason = StopReason.STOP_EVENT
                    break
        except asyncio.CancelledError:
            self._finish(StopReason.CLOSED)
            raise
        self._finish(reason)

    def dispatch(self, message) -> bool:
        """Classify and route one raw frame.

        Returns:
            True if the frame was the stop_on event
        """
        try:
            frame = decode_frame(message)
        except DecodeError as e:
            logger.warning(f"Discarding frame: {e}")
            return False

        command_id = frame.get("id")
        if isinstance(command_id, int) and self.correlator.is_pending(command_id):
            self.correlator.resolve(Reply.from_frame(frame))
            logger.debug(f"Received reply {command_id}")
            return False

        method = frame.get("method")
        if isinstance(method, str):
            event = Event.from_frame(frame)
            logger.debug(f"Received event: {method}")
            self.registry.broadcast(event)
            return self.stop_on is not None and method == self.stop_on

        if command_id is not None:
            logger.debug(f"Dropping reply {command_id!r} with no pending command")
        else:
            logger.debug(f"Dropping unclassifiable frame: {sorted(frame)}")
        return False

    def _finish(self, reason: StopReason) -> None:
        if self._stopped.is_set():
            return
        self._state = DispatcherState.STOPPED
        self._stop_reason = reason
        logger.info(f"Dispatcher stopped ({reason.value})")

        self.correlator.fail_all(
            ConnectionClosedError(
                "Connection closed during command execution",
                details={"reason": reason.value},
            )
        )
        self._stopped.set()
        if self.on_stop is not None:
            self.on_stop(reason)
