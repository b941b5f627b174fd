"""Wire-level data model for the DevTools protocol.

Target descriptors come from the HTTP directory endpoint; Command, Reply and
Event mirror the three JSON frame shapes that travel over the WebSocket.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from .exceptions import CommandFailedError, DecodeError


@dataclass(frozen=True)
class Target:
    """A debuggable Chrome target (page, iframe, worker, ...) from /json.

    Attributes mirror the endpoint's field names so that a descriptor can be
    round-tripped through to_dict() without renaming. Chrome omits
    webSocketDebuggerUrl for a target that already has a DevTools client
    attached; such a target keeps an empty URL.
    """

    id: str
    webSocketDebuggerUrl: str = ""
    type: str = ""
    title: str = ""
    url: str = ""
    description: str = ""
    devtoolsFrontendUrl: str = ""
    faviconUrl: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Target":
        """Build a Target from one element of the /json array.

        Raises:
            DecodeError: If the element is not an object or lacks id
        """
        if not isinstance(data, dict):
            raise DecodeError(
                "Target descriptor is not a JSON object",
                details={"descriptor": data},
            )
        try:
            return cls(
                id=data["id"],
                webSocketDebuggerUrl=data.get("webSocketDebuggerUrl", ""),
                type=data.get("type", ""),
                title=data.get("title", ""),
                url=data.get("url", ""),
                description=data.get("description", ""),
                devtoolsFrontendUrl=data.get("devtoolsFrontendUrl", ""),
                faviconUrl=data.get("faviconUrl", ""),
            )
        except KeyError as e:
            raise DecodeError(
                f"Target descriptor missing field {e.args[0]!r}",
                details={"descriptor_id": data.get("id")},
            ) from e

    def to_dict(self) -> Dict[str, Any]:
        """Convert target to dictionary for JSON serialization."""
        return {
            "description": self.description,
            "devtoolsFrontendUrl": self.devtoolsFrontendUrl,
            "faviconUrl": self.faviconUrl,
            "id": self.id,
            "title": self.title,
            "type": self.type,
            "url": self.url,
            "webSocketDebuggerUrl": self.webSocketDebuggerUrl,
        }


@dataclass
class Command:
    """Outbound request. The id is chosen by the caller."""

    id: int
    method: str
    params: Dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        return json.dumps({"id": self.id, "method": self.method, "params": self.params})


@dataclass
class Reply:
    """Response to a Command, matched by id."""

    id: int
    error: Optional[Dict[str, Any]] = None
    result: Optional[Dict[str, Any]] = None

    @classmethod
    def from_frame(cls, frame: Dict[str, Any]) -> "Reply":
        return cls(id=frame["id"], error=frame.get("error"), result=frame.get("result"))

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self, method: Optional[str] = None) -> None:
        """Raise CommandFailedError if Chrome answered with an error."""
        if self.error is None:
            return
        error = self.error if isinstance(self.error, dict) else {"message": str(self.error)}
        raise CommandFailedError(
            error.get("message", "Unknown CDP error"),
            method=method,
            error_code=error.get("code"),
            details={"id": self.id, "error": error},
        )


@dataclass
class Event:
    """Unsolicited notification pushed by the browser."""

    method: str
    params: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_frame(cls, frame: Dict[str, Any]) -> "Event":
        params = frame.get("params")
        return cls(method=frame["method"], params=params if isinstance(params, dict) else {})

    @property
    def domain(self) -> str:
        """Protocol domain, e.g. "Network" for "Network.requestWillBeSent"."""
        return self.method.split(".", 1)[0]


def decode_frame(raw: Union[str, bytes]) -> Dict[str, Any]:
    """Parse one inbound WebSocket message into a JSON object.

    Raises:
        DecodeError: If the message is not valid JSON or not a JSON object
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DecodeError(f"Malformed CDP message: {e}") from e

    if not isinstance(data, dict):
        raise DecodeError(
            "CDP message is not a JSON object",
            details={"type": type(data).__name__},
        )
    return data
