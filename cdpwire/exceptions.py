"""Exception hierarchy for cdpwire.

All client errors inherit from CDPError. Connection-level failures sit under
CDPConnectionError, protocol-level failures under CDPCommandError.
"""

from typing import Optional


class CDPError(Exception):
    """Base exception for all cdpwire errors.

    Attributes:
        message: Human-readable error message
        details: Optional dictionary with additional error context
    """

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class CDPConnectionError(CDPError):
    """Base class for failures of the WebSocket connection itself."""

    pass


class TransportError(CDPConnectionError):
    """Connect, handshake, write or read failure on the transport.

    A transient error (e.g. an idle read timeout) leaves the connection
    usable; the dispatcher keeps reading. Any other TransportError is fatal.
    """

    def __init__(
        self,
        message: str,
        transient: bool = False,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details)
        self.transient = transient


class ConnectionFailedError(TransportError):
    """Initial connection failed.

    Raised when the directory endpoint or the WebSocket handshake is
    unreachable. Common causes: wrong port, Chrome not running.
    """

    pass


class ConnectionClosedError(CDPConnectionError):
    """Operation attempted on a closed connection.

    Raised by send/receive after close(), when the peer closes the socket,
    and to every request still pending when the connection goes away.
    """

    pass


class DecodeError(CDPError):
    """Payload did not parse into the expected shape.

    Raised for malformed inbound frames and for invalid /json listings.
    """

    pass


class CDPCommandError(CDPError):
    """Command execution failures."""

    def __init__(
        self,
        message: str,
        method: Optional[str] = None,
        error_code: Optional[int] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details)
        self.method = method
        self.error_code = error_code


class CommandFailedError(CDPCommandError):
    """Chrome answered a command with an error reply.

    Example: invalid JavaScript expression in Runtime.evaluate
    """

    pass


class InvalidCommandError(CDPCommandError):
    """Command rejected before it was sent.

    Example: an id that is already awaiting a reply on this connection.
    """

    pass


class CDPTimeoutError(CDPError):
    """No reply arrived within the requested timeout."""

    def __init__(
        self,
        message: str,
        command_method: Optional[str] = None,
        timeout: Optional[float] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details)
        self.command_method = command_method
        self.timeout = timeout

    def __str__(self):
        if self.command_method and self.timeout:
            return f"Command '{self.command_method}' timed out after {self.timeout}s"
        return self.message


class TargetNotFoundError(CDPError):
    """Requested target index is not in the /json listing."""

    def __init__(
        self,
        message: str,
        index: Optional[int] = None,
        count: Optional[int] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details)
        self.index = index
        self.count = count

    def __str__(self):
        if self.index is not None and self.count is not None:
            return f"Target not found: index {self.index} (found {self.count} targets)"
        return self.message
