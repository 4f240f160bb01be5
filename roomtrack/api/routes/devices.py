# =======================================================================================
# roomtrack/api/routes/devices.py - Tablet Sync & Status Endpoints
# =======================================================================================
from typing import List
from fastapi import APIRouter, Depends, Path, Query, Request
from ...models.schemas import (
    AppStatus,
    DeviceRegistration,
    DeviceSyncRecord,
    DeviceSyncRequest,
    DeviceSyncResponse,
    TagRead,
)
from ...services import Services
from ..dependencies import get_services, get_transaction

router = APIRouter()


@router.post("/app/sync", response_model=DeviceSyncResponse)
def sync_device(
    body: DeviceSyncRequest,
    request: Request,
    tx=Depends(get_transaction),
    services: Services = Depends(get_services),
):
    """Upload the tag reads a registered tablet collected."""
    ip_address = request.client.host if request.client else None
    with tx as conn:
        return services.device_sync.sync(
            conn, body.device_id, body.data, app_version=body.app_version, ip_address=ip_address
        )


@router.get("/app/status", response_model=AppStatus)
def app_status(
    tx=Depends(get_transaction),
    services: Services = Depends(get_services),
):
    with tx as conn:
        return services.device_sync.status(conn)


@router.get("/devices/{device_id}", response_model=DeviceRegistration)
def get_device(
    device_id: str = Path(..., min_length=1, max_length=100),
    tx=Depends(get_transaction),
    services: Services = Depends(get_services),
):
    with tx as conn:
        return services.room_sessions.get_registration(conn, device_id)


@router.get("/devices/{device_id}/sync-history", response_model=List[DeviceSyncRecord])
def device_sync_history(
    device_id: str = Path(..., min_length=1, max_length=100),
    limit: int = Query(50, ge=1, le=500),
    tx=Depends(get_transaction),
    services: Services = Depends(get_services),
):
    with tx as conn:
        return services.device_sync.history(conn, device_id, limit=limit)


@router.get("/tags", response_model=List[TagRead])
def list_tags(
    limit: int = Query(100, ge=1, le=1000),
    tx=Depends(get_transaction),
    services: Services = Depends(get_services),
):
    """Most recent raw tag reads."""
    with tx as conn:
        return services.tag_log.list_reads(conn, limit=limit)
