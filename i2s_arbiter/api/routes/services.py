"""
Service arbitration endpoints.

GET    /api/v1/status                    active service + every service status
GET    /api/v1/services                  every service status
GET    /api/v1/services/{name}           one service status
POST   /api/v1/services/{name}/activate  unlock *name*, lock everything else
POST   /api/v1/services/{name}/lock      lock *name*
DELETE /api/v1/services/{name}/lock      unlock *name* (others are locked first)
POST   /api/v1/deactivate-all            lock every online service

Errors
------
- **404** unknown service name.
- **400** service offline, or a device lock call failed.
"""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from i2s_arbiter.api.deps import get_arbiter
from i2s_arbiter.arbiter import Arbiter
from i2s_arbiter.errors import ArbiterError, ServiceNotFound
from i2s_arbiter.models import ServiceStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1")


class ServiceStatusItem(BaseModel):
    name: str
    display_name: str
    base_url: str
    online: bool
    locked: bool
    active: bool
    priority: int
    last_check: str
    error: str | None = None

    @classmethod
    def from_status(cls, status: ServiceStatus) -> "ServiceStatusItem":
        return cls(**asdict(status))


class ArbiterStatusResponse(BaseModel):
    active_service: str
    services: list[ServiceStatusItem]


class ActivateResponse(BaseModel):
    success: bool
    active_service: str


class LockResponse(BaseModel):
    success: bool
    service: str
    locked: bool


def _to_http_error(exc: ArbiterError) -> HTTPException:
    if isinstance(exc, ServiceNotFound):
        return HTTPException(status_code=404, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


@router.get("/status", response_model=ArbiterStatusResponse)
async def get_status(arbiter: Arbiter = Depends(get_arbiter)) -> ArbiterStatusResponse:
    """Overall arbiter state: the active service name (``""`` if none) and all statuses."""
    active, services = await arbiter.get_overview()
    return ArbiterStatusResponse(
        active_service=active,
        services=[ServiceStatusItem.from_status(s) for s in services],
    )


@router.get("/services", response_model=list[ServiceStatusItem])
async def list_services(
    arbiter: Arbiter = Depends(get_arbiter),
) -> list[ServiceStatusItem]:
    services = await arbiter.get_all_status()
    return [ServiceStatusItem.from_status(s) for s in services]


@router.get("/services/{name}", response_model=ServiceStatusItem)
async def get_service(
    name: str, arbiter: Arbiter = Depends(get_arbiter)
) -> ServiceStatusItem:
    try:
        status = await arbiter.get_service_status(name)
    except ServiceNotFound as exc:
        raise _to_http_error(exc) from exc
    return ServiceStatusItem.from_status(status)


@router.post("/services/{name}/activate", response_model=ActivateResponse)
async def activate_service(
    name: str, arbiter: Arbiter = Depends(get_arbiter)
) -> ActivateResponse:
    """
    Unlock *name* after locking every other online service.

    Fails with 400 if the service is offline or refuses to unlock.
    """
    try:
        await arbiter.activate_service(name)
    except ArbiterError as exc:
        logger.warning("Activation of %s failed: %s", name, exc)
        raise _to_http_error(exc) from exc
    return ActivateResponse(success=True, active_service=name)


async def _set_lock(arbiter: Arbiter, name: str, locked: bool) -> LockResponse:
    try:
        await arbiter.lock_service(name, locked)
    except ArbiterError as exc:
        logger.warning("Setting lock=%s on %s failed: %s", locked, name, exc)
        raise _to_http_error(exc) from exc
    return LockResponse(success=True, service=name, locked=locked)


@router.post("/services/{name}/lock", response_model=LockResponse)
async def lock_service(
    name: str, arbiter: Arbiter = Depends(get_arbiter)
) -> LockResponse:
    return await _set_lock(arbiter, name, True)


@router.delete("/services/{name}/lock", response_model=LockResponse)
async def unlock_service(
    name: str, arbiter: Arbiter = Depends(get_arbiter)
) -> LockResponse:
    """Unlock *name*; any other unlocked service is locked first."""
    return await _set_lock(arbiter, name, False)


@router.post("/deactivate-all", response_model=ActivateResponse)
async def deactivate_all(arbiter: Arbiter = Depends(get_arbiter)) -> ActivateResponse:
    """
    Lock every online service.

    The active service is cleared even when a device fails to lock; the last
    failure is then reported as 400.
    """
    try:
        await arbiter.deactivate_all()
    except ArbiterError as exc:
        raise _to_http_error(exc) from exc
    return ActivateResponse(success=True, active_service="")
