# =======================================================================================
# roomtrack/api/routes/presence.py - Presence Endpoints
# =======================================================================================
from fastapi import APIRouter, Depends
from ...models.schemas import (
    OccupancyResponse,
    RoomEntryRequest,
    RoomExitRequest,
    StudentTrackingRequest,
    StudentTrackingResponse,
)
from ...services import Services
from ..dependencies import get_services, get_transaction

router = APIRouter()


@router.post("/room-entry", response_model=OccupancyResponse)
def room_entry(
    request: RoomEntryRequest,
    tx=Depends(get_transaction),
    services: Services = Depends(get_services),
):
    """Process a tag read at a room's entry reader."""
    with tx as conn:
        return services.presence.room_entry(conn, request.tag_id, request.room_id, request.reader_id)


@router.post("/room-exit", response_model=OccupancyResponse)
def room_exit(
    request: RoomExitRequest,
    tx=Depends(get_transaction),
    services: Services = Depends(get_services),
):
    with tx as conn:
        return services.presence.room_exit(conn, request.tag_id, request.room_id, request.reader_id)


@router.post("/student-tracking", response_model=StudentTrackingResponse)
def student_tracking(
    request: StudentTrackingRequest,
    tx=Depends(get_transaction),
    services: Services = Depends(get_services),
):
    """Location check-in from an entrance, bathroom or schoolyard reader."""
    with tx as conn:
        return services.presence.track_location(conn, request.tag_id, request.reader_id, request.location_type)
