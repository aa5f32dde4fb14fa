"""
Arbitration engine: keeps at most one I2S service unlocked.

State
-----
One ``ServiceStatus`` per configured service plus ``active_service`` (the
name of the service currently producing output, or ``""``).  Everything is
guarded by a single ``StatusLock``:

- queries take the shared side and never touch the network;
- the poll cycle and every mutating operation take the exclusive side for
  their full duration, device calls included.  Each call is bounded by the
  HTTP client timeout, so the lock is never held indefinitely.

Error tiers
-----------
- ``_apply_lock()`` is the critical path: it raises ``LockCallFailed`` and
  the caller's operation fails with it.
- ``_lock_best_effort()`` is housekeeping (locking peers, enforcement): it
  logs each failure, keeps going and never raises.

Nothing here retries.  A failed call is retried implicitly by the next poll
cycle or the next caller-driven operation.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Iterable, Sequence

import httpx

from i2s_arbiter.devices import protocols
from i2s_arbiter.devices.protocols import LockProtocol
from i2s_arbiter.errors import (
    LockCallFailed,
    PartialFailure,
    ServiceNotFound,
    ServiceOffline,
    StatusCallFailed,
)
from i2s_arbiter.locking import StatusLock
from i2s_arbiter.models import ServiceDescriptor, ServiceStatus
from i2s_arbiter.workers.status_poller import run_status_poller

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL: float = 2.0


def _precedence(status: ServiceStatus) -> tuple[int, str]:
    return status.priority, status.name


class Arbiter:
    def __init__(
        self,
        services: Sequence[ServiceDescriptor],
        client: httpx.AsyncClient,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        default_service: str = "",
    ) -> None:
        self._client = client
        self.poll_interval = poll_interval
        self._lock = StatusLock()
        self._services: dict[str, ServiceStatus] = {}
        self._protocols: dict[str, LockProtocol] = {}
        self._active_service = ""
        self._poll_task: asyncio.Task | None = None

        for descriptor in services:
            self._services[descriptor.name] = ServiceStatus.from_descriptor(descriptor)
            self._protocols[descriptor.name] = protocols.resolve_protocol(
                descriptor.name
            )

        if default_service and default_service not in self._services:
            logger.warning("Default service %r is not configured, ignoring", default_service)
            default_service = ""
        self._default_service = default_service

    # ── Queries ───────────────────────────────────────────────────────────────

    async def get_all_status(self) -> list[ServiceStatus]:
        """Snapshots of every service, highest precedence first."""
        async with self._lock.shared():
            return [
                status.snapshot()
                for status in sorted(self._services.values(), key=_precedence)
            ]

    async def get_service_status(self, name: str) -> ServiceStatus:
        async with self._lock.shared():
            return self._require(name).snapshot()

    async def get_active_service(self) -> str:
        async with self._lock.shared():
            return self._active_service

    async def get_overview(self) -> tuple[str, list[ServiceStatus]]:
        """``active_service`` and every status, read under one shared acquisition."""
        async with self._lock.shared():
            return self._active_service, [
                status.snapshot()
                for status in sorted(self._services.values(), key=_precedence)
            ]

    # ── Operations ────────────────────────────────────────────────────────────

    async def activate_service(self, name: str) -> None:
        """
        Make *name* the only unlocked service.

        Every other online service is locked first (best effort); then the
        target is unlocked.  If that unlock fails the error propagates and
        ``active_service`` is not set to *name*.
        """
        async with self._lock.exclusive():
            target = self._require(name)
            if not target.online:
                raise ServiceOffline(name)
            await self._activate(name)

    async def lock_service(self, name: str, locked: bool) -> None:
        """
        Lock or unlock a single service.

        Before unlocking, every other online unlocked service is locked so
        that two services are never unlocked at once.
        """
        async with self._lock.exclusive():
            self._require(name)
            if not locked:
                await self._lock_best_effort(
                    other
                    for other, status in self._services.items()
                    if other != name and status.online and not status.locked
                )
            await self._apply_lock(name, locked)

    async def deactivate_all(self) -> None:
        """
        Lock every online service.

        All services are attempted and ``active_service`` is always cleared;
        if any call failed, ``PartialFailure`` carries the last error.
        """
        async with self._lock.exclusive():
            logger.info("Deactivating all services")
            last_error = await self._lock_best_effort(
                name for name, status in self._services.items() if status.online
            )
            self._active_service = ""

        if last_error is not None:
            raise PartialFailure(str(last_error)) from last_error

    async def poll_all_services(self) -> None:
        """One poll cycle: refresh every status, track activity, enforce the invariant."""
        async with self._lock.exclusive():
            for name in self._services:
                await self._poll_service(name)
            self._track_active_service()
            await self._activate_default_service()
            await self._enforce_single_unlocked()

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def start_polling(self) -> None:
        """Launch the background poll loop; a no-op if it is already running."""
        if self._poll_task is not None and not self._poll_task.done():
            return
        self._poll_task = asyncio.create_task(
            run_status_poller(self), name="status_poller"
        )
        logger.info("Service monitoring started")

    async def stop_polling(self) -> None:
        """Cancel the poll loop and wait for it to exit; a no-op if not running."""
        task, self._poll_task = self._poll_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Service monitoring stopped")

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    # ── Internals (exclusive lock held) ───────────────────────────────────────

    def _require(self, name: str) -> ServiceStatus:
        status = self._services.get(name)
        if status is None:
            raise ServiceNotFound(name)
        return status

    async def _activate(self, name: str) -> None:
        logger.info("Activating service %s", name)
        await self._lock_best_effort(
            other
            for other, status in self._services.items()
            if other != name and status.online
        )
        await self._apply_lock(name, False)
        self._active_service = name
        logger.info("Service %s activated", name)

    async def _apply_lock(self, name: str, locked: bool) -> None:
        status = self._services[name]
        try:
            await protocols.set_lock(
                self._client, status.base_url, self._protocols[name], locked
            )
        except LockCallFailed as exc:
            status.error = str(exc)
            raise

        status.locked = locked
        status.error = None
        if locked and self._active_service == name:
            self._active_service = ""

    async def _lock_best_effort(
        self, names: Iterable[str], level: int = logging.WARNING
    ) -> LockCallFailed | None:
        """Lock each service in *names*, logging failures.  Returns the last failure."""
        last_error: LockCallFailed | None = None
        for name in list(names):
            try:
                await self._apply_lock(name, True)
            except LockCallFailed as exc:
                logger.log(level, "Failed to lock service %s: %s", name, exc)
                last_error = exc
        return last_error

    async def _poll_service(self, name: str) -> None:
        status = self._services[name]
        status.last_check = datetime.now(timezone.utc).isoformat(timespec="seconds")
        try:
            payload = await protocols.fetch_status(
                self._client, status.base_url, self._protocols[name]
            )
        except StatusCallFailed as exc:
            if status.online:
                logger.warning("Service %s went offline: %s", name, exc)
            status.online = False
            status.active = False
            status.error = str(exc)
            return

        if not status.online:
            logger.info("Service %s is online", name)
        status.online = True
        status.error = None
        protocols.apply_status(status, payload)
        logger.debug(
            "Polled %s: locked=%s active=%s", name, status.locked, status.active
        )

    def _track_active_service(self) -> None:
        playing = sorted(
            (
                status
                for status in self._services.values()
                if status.online and status.active and not status.locked
            ),
            key=_precedence,
        )
        if any(status.name == self._active_service for status in playing):
            return
        previous = self._active_service
        self._active_service = playing[0].name if playing else ""
        if self._active_service != previous:
            logger.info(
                "Active service changed: %s -> %s",
                previous or "none",
                self._active_service or "none",
            )

    async def _activate_default_service(self) -> None:
        """Activate the configured default the first time it is seen online."""
        if not self._default_service:
            return
        target = self._services[self._default_service]
        if not target.online:
            return
        name, self._default_service = self._default_service, ""
        if self._active_service:
            return
        try:
            await self._activate(name)
        except LockCallFailed as exc:
            logger.warning("Failed to activate default service %s: %s", name, exc)

    async def _enforce_single_unlocked(self) -> None:
        unlocked = sorted(
            (s for s in self._services.values() if s.online and not s.locked),
            key=_precedence,
        )
        if len(unlocked) <= 1:
            return

        logger.warning(
            "%d services unlocked, enforcing single unlock constraint", len(unlocked)
        )
        keep = next(
            (s for s in unlocked if s.name == self._active_service), unlocked[0]
        )
        others = [s.name for s in unlocked if s is not keep]
        logger.info("Keeping %s unlocked, auto-locking %s", keep.name, ", ".join(others))
        await self._lock_best_effort(others, level=logging.ERROR)
