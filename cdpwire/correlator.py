"""Reply correlation for synchronous commands.

Each in-flight command id maps to an asyncio.Future that the dispatcher
completes when the matching reply arrives. The table is only touched from
the event loop thread.
"""

import asyncio
import itertools
import logging
from typing import Dict

from .exceptions import InvalidCommandError
from .protocol import Reply

logger = logging.getLogger(__name__)


class RequestCorrelator:
    """Pending-request table keyed by command id."""

    def __init__(self):
        self._pending: Dict[int, asyncio.Future] = {}
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._pending)

    def is_pending(self, command_id: int) -> bool:
        return command_id in self._pending

    def next_id(self) -> int:
        """Return a fresh id that is not currently awaiting a reply."""
        while True:
            candidate = next(self._ids)
            if candidate not in self._pending:
                return candidate

    def register(self, command_id: int) -> asyncio.Future:
        """Create the future a caller awaits for command_id's reply.

        Raises:
            InvalidCommandError: If command_id already awaits a reply
        """
        if command_id in self._pending:
            raise InvalidCommandError(
                f"Command id {command_id} is already awaiting a reply",
                details={"id": command_id},
            )
        future = asyncio.get_running_loop().create_future()
        self._pending[command_id] = future
        return future

    def resolve(self, reply: Reply) -> bool:
        """Hand reply to its waiter.

        Returns:
            True if a request was pending for reply.id. The first reply wins;
            a duplicate finds the entry gone or the future done.
        """
        future = self._pending.pop(reply.id, None)
        if future is None:
            return False
        if not future.done():
            future.set_result(reply)
        return True

    def discard(self, command_id: int) -> None:
        self._pending.pop(command_id, None)

    def fail_all(self, exc: BaseException) -> None:
        """Fail every pending request with exc and empty the table."""
        pending, self._pending = self._pending, {}
        for command_id, future in pending.items():
            if not future.done():
                future.set_exception(exc)
        if pending:
            logger.debug(f"Failed {len(pending)} pending command(s): {exc}")
