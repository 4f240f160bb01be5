# =======================================================================================
# roomtrack/api/routes/rooms.py - Room Endpoints
# =======================================================================================
from fastapi import APIRouter, Depends, Path
from ...models.schemas import (
    CombinedGroup,
    DeviceRegistration,
    RegisterDeviceRequest,
    SuccessResponse,
    UnregisterDeviceRequest,
)
from ...services import Services
from ..dependencies import get_services, get_transaction

router = APIRouter()


@router.get("/rooms/{room_id}/combined_group", response_model=CombinedGroup)
def room_combined_group(
    room_id: int = Path(..., gt=0),
    tx=Depends(get_transaction),
    services: Services = Depends(get_services),
):
    """The active combined group the room's group belongs to."""
    with tx as conn:
        return services.combined_groups.get_combined_group_for_room(conn, room_id)


# ---- tablet sessions ----

@router.post("/rooms/{room_id}/register", response_model=DeviceRegistration, status_code=201)
def register_device(
    request: RegisterDeviceRequest,
    room_id: int = Path(..., gt=0),
    tx=Depends(get_transaction),
    services: Services = Depends(get_services),
):
    with tx as conn:
        return services.room_sessions.register_device(
            conn, room_id, request.device_id,
            supervisor_ids=request.supervisors, group_id=request.group_id, ag_id=request.ag_id,
        )


@router.post("/rooms/{room_id}/unregister", response_model=SuccessResponse)
def unregister_device(
    request: UnregisterDeviceRequest,
    room_id: int = Path(..., gt=0),
    tx=Depends(get_transaction),
    services: Services = Depends(get_services),
):
    with tx as conn:
        services.room_sessions.unregister_device(conn, room_id, request.device_id)
    return SuccessResponse(success=True, message="Device unregistered")
