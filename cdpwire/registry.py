"""Event subscription registry.

Maps CDP event method names to subscriptions and fans each broadcast event
out to them. Every subscription owns a bounded asyncio.Queue drained by its
own worker task, so a slow sink delays only itself. When a subscription's
queue is full the event is dropped for that subscription and counted in
Subscription.dropped.

Subscribing to "<Domain>.*" receives every event of that domain.
"""

import asyncio
import inspect
import logging
import threading
from typing import Awaitable, Callable, Dict, List, Optional, Union

from .exceptions import CDPTimeoutError, ConnectionClosedError
from .protocol import Event

logger = logging.getLogger(__name__)

Sink = Callable[[Event], Union[None, Awaitable[None]]]

DEFAULT_QUEUE_SIZE = 1000


def _domain_key(domain: str) -> str:
    return f"{domain}.*"


class Subscription:
    """One sink registered for one method.

    The queue and worker task are created on first delivery, inside the
    event loop that runs the dispatcher.

    Attributes:
        method: Event method name (or "<Domain>.*")
        sink: Callable receiving Event; may be a coroutine function
        queue_size: Maximum queued events; 0 means unbounded
        delivered: Events handed to the sink without raising
        dropped: Events discarded because the queue was full
    """

    def __init__(self, method: str, sink: Sink, queue_size: int = DEFAULT_QUEUE_SIZE):
        self.method = method
        self.sink = sink
        self.queue_size = queue_size
        self.delivered = 0
        self.dropped = 0

        self._closed = False
        self._queue: Optional[asyncio.Queue] = None
        self._task: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def active(self) -> bool:
        return not self._closed

    def push(self, event: Event) -> bool:
        """Queue event for delivery without blocking.

        Must be called from the event loop thread.

        Returns:
            False if the subscription is closed or its queue is full
        """
        if self._closed:
            return False

        if self._queue is None:
            self._loop = asyncio.get_running_loop()
            self._queue = asyncio.Queue(maxsize=self.queue_size)
            self._task = self._loop.create_task(self._run())

        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                f"Subscriber queue full for {self.method}, dropped event "
                f"({self.dropped} dropped so far)"
            )
            return False
        return True

    async def _run(self) -> None:
        assert self._queue is not None
        while not self._closed:
            event = await self._queue.get()
            if self._closed:
                break
            try:
                result = self.sink(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Event handler error for {event.method}: {e}", exc_info=True)
            else:
                self.delivered += 1

    def close(self) -> None:
        """Stop delivery. Queued events are discarded."""
        if self._closed:
            return
        self._closed = True

        task, loop = self._task, self._loop
        if task is None or task.done() or loop is None or loop.is_closed():
            return

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            task.cancel()
        else:
            loop.call_soon_threadsafe(task.cancel)

    def __repr__(self):
        state = "active" if self.active else "closed"
        return f"Subscription(method={self.method!r}, {state}, dropped={self.dropped})"


class EventRegistry:
    """Thread-safe method -> subscriptions map with fan-out broadcast.

    Usage:
        registry = EventRegistry()
        registry.subscribe("Network.requestWillBeSent", on_request)
        registry.broadcast(Event("Network.requestWillBeSent", {...}))
        registry.unsubscribe("Network.requestWillBeSent", on_request)
    """

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE):
        self.queue_size = queue_size
        self._lock = threading.Lock()
        self._subscriptions: Dict[str, List[Subscription]] = {}
        self._waiters: Dict[str, List[asyncio.Future]] = {}
        self._closed = False

    def subscribe(self, method: str, sink: Sink) -> Subscription:
        """Register sink for method.

        Raises:
            ConnectionClosedError: If the registry has been closed
        """
        subscription = Subscription(method, sink, queue_size=self.queue_size)
        with self._lock:
            if self._closed:
                raise ConnectionClosedError(
                    f"Cannot subscribe to {method}: connection closed"
                )
            self._subscriptions.setdefault(method, []).append(subscription)
        logger.debug(f"Subscribed to event: {method}")
        return subscription

    def unsubscribe(self, method: str, sink: Sink) -> None:
        """Remove the first subscription of sink for method; no-op if absent."""
        removed: Optional[Subscription] = None
        with self._lock:
            subscriptions = self._subscriptions.get(method, [])
            for index, subscription in enumerate(subscriptions):
                if subscription.sink == sink:
                    removed = subscriptions.pop(index)
                    break
            if not subscriptions:
                self._subscriptions.pop(method, None)

        if removed is None:
            logger.debug(f"No subscription to remove for event: {method}")
            return
        removed.close()
        logger.debug(f"Unsubscribed from event: {method}")

    def subscribers(self, method: str) -> List[Subscription]:
        """Snapshot of subscriptions registered under method."""
        with self._lock:
            return list(self._subscriptions.get(method, []))

    def broadcast(self, event: Event) -> int:
        """Queue event on every current subscriber of its method and domain.

        Must be called from the event loop thread.

        Returns:
            Number of subscriptions the event was queued on
        """
        with self._lock:
            targets = list(self._subscriptions.get(event.method, []))
            targets.extend(self._subscriptions.get(_domain_key(event.domain), []))
            waiters = self._waiters.pop(event.method, [])

        for future in waiters:
            if not future.done():
                future.set_result(event)

        queued = 0
        for subscription in targets:
            if subscription.push(event):
                queued += 1
        if not targets:
            logger.debug(f"No subscribers for event: {event.method}")
        return queued

    async def wait_for(self, method: str, timeout: Optional[float] = None) -> Event:
        """Wait for the next event named method.

        Waiters are resolved inside broadcast() itself, so the event is
        observed even if the registry is closed right after it arrives.

        Raises:
            CDPTimeoutError: If no such event arrives within timeout
            ConnectionClosedError: If the registry is or becomes closed
        """
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        with self._lock:
            if self._closed:
                raise ConnectionClosedError(
                    f"Cannot wait for {method}: connection closed"
                )
            self._waiters.setdefault(method, []).append(future)
        try:
            if timeout is None:
                return await future
            return await asyncio.wait_for(future, timeout=timeout)
        except asyncio.TimeoutError:
            raise CDPTimeoutError(
                f"Event {method} not received within {timeout}s",
                details={"method": method, "timeout": timeout},
            )
        finally:
            with self._lock:
                waiters = self._waiters.get(method, [])
                if future in waiters:
                    waiters.remove(future)
                if not waiters:
                    self._waiters.pop(method, None)

    def close(self) -> None:
        """Close every subscription and fail pending wait_for() calls."""
        with self._lock:
            self._closed = True
            subscriptions = [s for subs in self._subscriptions.values() for s in subs]
            self._subscriptions.clear()
            waiters = [f for futures in self._waiters.values() for f in futures]
            self._waiters.clear()

        for subscription in subscriptions:
            subscription.close()
        for future in waiters:
            loop = future.get_loop()
            if not future.done() and not loop.is_closed():
                loop.call_soon_threadsafe(
                    _fail_waiter, future, ConnectionClosedError("Connection closed")
                )


def _fail_waiter(future: asyncio.Future, exc: BaseException) -> None:
    if not future.done():
        future.set_exception(exc)
