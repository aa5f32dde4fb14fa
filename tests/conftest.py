"""
Shared fixtures: an in-memory "device network" served through
``httpx.MockTransport`` so the arbiter talks real HTTP shapes without sockets.

Hosts map to fake devices:

    http://player  -> usboveri2s (player convention)
    http://bridge  -> usbaudio   (bridge convention)
    http://spare   -> spare      (unknown name, bridge convention by default)
"""

import json
from dataclasses import dataclass, field

import httpx
import pytest

from i2s_arbiter.arbiter import Arbiter
from i2s_arbiter.devices import create_client
from i2s_arbiter.models import ServiceDescriptor


@dataclass
class FakeDevice:
    locked: bool = True
    active: bool = False
    online: bool = True
    fail_lock: bool = False
    status_code: int = 200
    raw_status: str | None = None  # overrides the JSON status body when set


@dataclass
class FakeNetwork:
    devices: dict[str, FakeDevice] = field(default_factory=dict)
    calls: list[tuple[str, str, str]] = field(default_factory=list)

    def lock_calls(self) -> list[tuple[str, str]]:
        """(host, method) for every lock/unlock request, in order."""
        return [(host, method) for host, method, path in self.calls if path == "/api/v1/lock"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        path = request.url.path
        self.calls.append((host, request.method, path))
        device = self.devices[host]

        if not device.online:
            raise httpx.ConnectError("Connection refused", request=request)

        if path in ("/api/v1/status", "/api/v1/player/status"):
            if device.status_code != 200:
                return httpx.Response(device.status_code, text="unavailable")
            if device.raw_status is not None:
                return httpx.Response(200, text=device.raw_status)
            if path == "/api/v1/player/status":
                return httpx.Response(
                    200,
                    json={
                        "success": True,
                        "data": {
                            "state": "playing" if device.active else "stopped",
                            "locked": device.locked,
                        },
                    },
                )
            return httpx.Response(
                200, json={"locked": device.locked, "active": device.active}
            )

        if path == "/api/v1/lock":
            if device.fail_lock:
                return httpx.Response(500, text="device busy")
            if request.method == "DELETE":
                device.locked = False
            elif request.content:
                device.locked = json.loads(request.content)["locked"]
            else:
                device.locked = True
            return httpx.Response(200, json={"success": True})

        return httpx.Response(404, text="not found")


DESCRIPTORS = [
    ServiceDescriptor(
        name="usboveri2s", display_name="USB Media Player", base_url="http://player", priority=1
    ),
    ServiceDescriptor(
        name="usbaudio", display_name="USB Audio Bridge", base_url="http://bridge", priority=2
    ),
    ServiceDescriptor(
        name="spare", display_name="Spare Input", base_url="http://spare", priority=3
    ),
]


@pytest.fixture
def network() -> FakeNetwork:
    return FakeNetwork(
        devices={"player": FakeDevice(), "bridge": FakeDevice(), "spare": FakeDevice()}
    )


@pytest.fixture
def http_client(network: FakeNetwork) -> httpx.AsyncClient:
    return create_client(transport=httpx.MockTransport(network.handler))


@pytest.fixture
def make_arbiter(http_client: httpx.AsyncClient):
    def _make(
        descriptors: list[ServiceDescriptor] | None = None, default_service: str = ""
    ) -> Arbiter:
        return Arbiter(
            descriptors if descriptors is not None else DESCRIPTORS,
            http_client,
            poll_interval=0.01,
            default_service=default_service,
        )

    return _make


@pytest.fixture
def arbiter(make_arbiter) -> Arbiter:
    return make_arbiter()
