"""
Lock/status call conventions spoken by the managed I2S services.

Two conventions exist in the field:

``LockProtocol.PLAYER`` (usbOverI2S media player)
    GET  /api/v1/player/status  -> {"success": true, "data": {...}}
    POST /api/v1/lock           -> lock
    DELETE /api/v1/lock         -> unlock

``LockProtocol.BRIDGE`` (usbAudio bridge, and the default for unknown services)
    GET  /api/v1/status         -> flat JSON object
    POST /api/v1/lock           -> body {"locked": true|false}

Every call is a single attempt bounded by the client timeout.  Failures are
raised as ``LockCallFailed`` / ``StatusCallFailed`` and retried implicitly by
the next poll cycle.
"""

import logging
from enum import Enum
from typing import Any

import httpx

from i2s_arbiter.errors import LockCallFailed, StatusCallFailed
from i2s_arbiter.models import ServiceStatus

logger = logging.getLogger(__name__)

LOCK_PATH = "/api/v1/lock"


class LockProtocol(str, Enum):
    PLAYER = "player"
    BRIDGE = "bridge"

    @property
    def status_path(self) -> str:
        if self is LockProtocol.PLAYER:
            return "/api/v1/player/status"
        return "/api/v1/status"


_PROTOCOL_BY_SERVICE: dict[str, LockProtocol] = {
    "usboveri2s": LockProtocol.PLAYER,
    "usbaudio": LockProtocol.BRIDGE,
}

DEFAULT_PROTOCOL = LockProtocol.BRIDGE


def resolve_protocol(service_name: str) -> LockProtocol:
    """Return the call convention for *service_name* (exact match, bridge otherwise)."""
    return _PROTOCOL_BY_SERVICE.get(service_name, DEFAULT_PROTOCOL)


def _describe(exc: Exception) -> str:
    # httpx timeouts frequently carry an empty message
    return str(exc) or exc.__class__.__name__


async def set_lock(
    client: httpx.AsyncClient, base_url: str, protocol: LockProtocol, locked: bool
) -> None:
    """
    Lock or unlock a service.

    Raises ``LockCallFailed`` on a transport error or any non-200 response;
    the response body becomes the failure detail.
    """
    url = base_url + LOCK_PATH
    try:
        if protocol is LockProtocol.PLAYER:
            if locked:
                response = await client.post(url)
            else:
                response = await client.delete(url)
        else:
            response = await client.post(url, json={"locked": locked})
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise LockCallFailed(_describe(exc)) from exc

    if response.status_code != httpx.codes.OK:
        raise LockCallFailed(f"lock request failed: {response.text}")

    logger.debug("%s %s -> locked=%s", protocol.value, base_url, locked)


async def fetch_status(
    client: httpx.AsyncClient, base_url: str, protocol: LockProtocol
) -> dict[str, Any]:
    """
    Fetch and decode a service's status document.

    The player's ``{"success": ..., "data": {...}}`` envelope is unwrapped.
    Raises ``StatusCallFailed`` for transport errors, non-200 responses and
    bodies that are not a JSON object.
    """
    try:
        response = await client.get(base_url + protocol.status_path)
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise StatusCallFailed(_describe(exc)) from exc

    if response.status_code != httpx.codes.OK:
        raise StatusCallFailed(f"status code: {response.status_code}")

    try:
        payload = response.json()
    except ValueError as exc:
        raise StatusCallFailed(f"invalid status response: {exc}") from exc

    if not isinstance(payload, dict):
        raise StatusCallFailed("invalid status response: expected a JSON object")

    if protocol is LockProtocol.PLAYER and isinstance(payload.get("data"), dict):
        payload = payload["data"]

    return payload


def apply_status(status: ServiceStatus, payload: dict[str, Any]) -> None:
    """
    Copy the recognised fields of a status document onto *status*.

    - ``locked`` (bool) overwrites the lock flag.
    - ``state`` (str) sets ``active`` to ``state == "playing"``.
    - ``active`` (bool) overwrites ``active``, taking precedence over ``state``.

    Missing or wrongly typed fields leave the previous value untouched.
    """
    locked = payload.get("locked")
    if isinstance(locked, bool):
        status.locked = locked

    state = payload.get("state")
    if isinstance(state, str):
        status.active = state == "playing"

    active = payload.get("active")
    if isinstance(active, bool):
        status.active = active
