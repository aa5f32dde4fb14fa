"""
Errors raised by the arbiter and its device adapters.

Route handlers map ``ServiceNotFound`` to 404 and every other
``ArbiterError`` to 400.
"""


class ArbiterError(Exception):
    """Base class for all arbitration failures."""


class ServiceNotFound(ArbiterError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"service not found: {name}")


class ServiceOffline(ArbiterError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"service is offline: {name}")


class DeviceCallFailed(ArbiterError):
    """A downstream HTTP call did not succeed; ``detail`` is kept on the status."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


class LockCallFailed(DeviceCallFailed):
    pass


class StatusCallFailed(DeviceCallFailed):
    pass


class PartialFailure(ArbiterError):
    """A best-effort sweep finished but at least one service call failed."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)
