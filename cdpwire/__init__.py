"""Asyncio client for the Chrome DevTools Protocol.

This package provides:
- resolve/list_targets: Target discovery via the HTTP /json endpoint
- Client: One WebSocket connection with send, send_sync and event subscription
- Configuration and logging setup for host applications
- CLI: targets, send and listen subcommands
"""

__version__ = "0.1.0"

from .client import Client
from .exceptions import (
    CDPError,
    CDPTimeoutError,
    CommandFailedError,
    ConnectionClosedError,
    DecodeError,
    TargetNotFoundError,
    TransportError,
)
from .protocol import Command, Event, Reply, Target
from .targets import list_targets, resolve

__all__ = [
    "CDPError",
    "CDPTimeoutError",
    "Client",
    "Command",
    "CommandFailedError",
    "ConnectionClosedError",
    "DecodeError",
    "Event",
    "Reply",
    "Target",
    "TargetNotFoundError",
    "TransportError",
    "list_targets",
    "resolve",
]
