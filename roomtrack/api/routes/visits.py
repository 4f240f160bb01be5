# =======================================================================================
# roomtrack/api/routes/visits.py - Occupancy & Visit Endpoints
# =======================================================================================
from datetime import date
from typing import List, Optional, Union
from fastapi import APIRouter, Depends, Path, Query
from ...models.schemas import RoomOccupancy, StudentLocation, Visit
from ...services import Services
from ..dependencies import get_services, get_transaction

router = APIRouter()


@router.get("/room-occupancy", response_model=Union[RoomOccupancy, List[RoomOccupancy]])
def room_occupancy(
    room_id: Optional[int] = Query(None, gt=0, description="Room to report; all occupied rooms when omitted"),
    tx=Depends(get_transaction),
    services: Services = Depends(get_services),
):
    with tx as conn:
        if room_id is not None:
            return services.occupancy.get_room_occupancy(conn, room_id)
        return services.occupancy.get_current_rooms(conn)


@router.get("/student/{student_id}/visits", response_model=List[Visit])
def student_visits(
    student_id: int = Path(..., gt=0),
    day: Optional[date] = Query(None, alias="date", description="YYYY-MM-DD"),
    tx=Depends(get_transaction),
    services: Services = Depends(get_services),
):
    with tx as conn:
        return services.ledger.list_by_subject(conn, student_id, day=day)


@router.get("/student/{student_id}/location", response_model=StudentLocation)
def student_location(
    student_id: int = Path(..., gt=0),
    tx=Depends(get_transaction),
    services: Services = Depends(get_services),
):
    with tx as conn:
        location = services.locations.get_location(conn, student_id)
    return StudentLocation(
        student_id=student_id,
        location=location,
        in_house=location.in_house,
        in_wc=location.in_wc,
        in_school_yard=location.in_school_yard,
    )


@router.get("/room/{room_id}/visits", response_model=List[Visit])
def room_visits(
    room_id: int = Path(..., gt=0),
    day: Optional[date] = Query(None, alias="date", description="YYYY-MM-DD"),
    active: bool = Query(False, description="Only visits whose timespan is still open"),
    tx=Depends(get_transaction),
    services: Services = Depends(get_services),
):
    with tx as conn:
        return services.ledger.list_by_room(conn, room_id, day=day, active_only=active)


@router.get("/visits/today", response_model=List[Visit])
def today_visits(
    tx=Depends(get_transaction),
    services: Services = Depends(get_services),
):
    with tx as conn:
        return services.occupancy.get_today_visits(conn)
