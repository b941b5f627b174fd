"""
Target discovery through Chrome's HTTP directory endpoint.

Chrome started with --remote-debugging-port serves GET /json, a JSON array
describing every debuggable target. resolve() picks one by position and
returns its WebSocket debugger URL.
"""

import json
import logging
import urllib.error
import urllib.request
from typing import List

from .exceptions import DecodeError, TargetNotFoundError, TransportError
from .logging_setup import log_with_context
from .protocol import Target

logger = logging.getLogger(__name__)


def list_targets(base_url: str, timeout: float = 5.0) -> List[Target]:
    """
    Fetch all targets from the directory endpoint.

    Args:
        base_url: Chrome HTTP endpoint (e.g. "http://localhost:9222")
        timeout: HTTP request timeout in seconds

    Returns:
        Targets in the order Chrome listed them

    Raises:
        TransportError: If the endpoint is unreachable
        DecodeError: If the body is not a JSON array of target descriptors
    """
    endpoint_url = f"{base_url.rstrip('/')}/json"
    logger.debug(f"Fetching targets from {endpoint_url}")

    try:
        with urllib.request.urlopen(endpoint_url, timeout=timeout) as response:
            body = response.read()
    except (urllib.error.URLError, OSError) as e:
        raise TransportError(
            f"Failed to connect to Chrome at {endpoint_url}: {e}",
            details={
                "endpoint": endpoint_url,
                "recovery": "Ensure Chrome is running with --remote-debugging-port",
            },
        ) from e

    try:
        targets_data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DecodeError(
            f"Invalid JSON response from Chrome endpoint: {e}",
            details={"endpoint": endpoint_url},
        ) from e

    if not isinstance(targets_data, list):
        raise DecodeError(
            "Chrome endpoint did not return a JSON array",
            details={"endpoint": endpoint_url},
        )

    return [Target.from_dict(data) for data in targets_data]


def resolve(base_url: str, index: int, timeout: float = 5.0) -> str:
    """
    Return the WebSocket debugger URL of the index-th target.

    Raises:
        TargetNotFoundError: If index is negative or >= number of targets,
            or the selected target has no webSocketDebuggerUrl
        TransportError: If the endpoint is unreachable
        DecodeError: If the listing cannot be parsed
    """
    targets = list_targets(base_url, timeout=timeout)

    if index < 0 or index >= len(targets):
        raise TargetNotFoundError(
            "Target not found",
            index=index,
            count=len(targets),
        )

    target = targets[index]
    if not target.webSocketDebuggerUrl:
        raise TargetNotFoundError(
            f"Target {index} ({target.id}) has no webSocketDebuggerUrl",
            index=index,
            details={
                "target_id": target.id,
                "recovery": "Close the DevTools client already attached to this target",
            },
        )

    log_with_context(
        logger,
        logging.INFO,
        f"Resolved target {index}: {target.id}",
        url=target.url,
        ws_url=target.webSocketDebuggerUrl,
    )
    return target.webSocketDebuggerUrl
