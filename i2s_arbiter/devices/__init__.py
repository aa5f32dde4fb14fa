# Device call conventions and HTTP client
from i2s_arbiter.devices.http import create_client
from i2s_arbiter.devices.protocols import (
    LockProtocol,
    apply_status,
    fetch_status,
    resolve_protocol,
    set_lock,
)

__all__ = [
    "create_client",
    "LockProtocol",
    "apply_status",
    "fetch_status",
    "resolve_protocol",
    "set_lock",
]
