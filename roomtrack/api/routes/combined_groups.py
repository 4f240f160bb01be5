# =======================================================================================
# roomtrack/api/routes/combined_groups.py - Combined Group Endpoints
# =======================================================================================
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Path, Query
from ...models.schemas import (
    CombinedGroup,
    MergeRoomsRequest,
    MergeRoomsResponse,
    SuccessResponse,
    Visit,
)
from ...services import Services
from ..dependencies import get_services, get_transaction

router = APIRouter()


@router.post("/combined_groups/merge", response_model=MergeRoomsResponse, status_code=201)
def merge_rooms(
    request: MergeRoomsRequest,
    tx=Depends(get_transaction),
    services: Services = Depends(get_services),
):
    """Temporarily merge the groups of two rooms into one combined group."""
    with tx as conn:
        combined = services.combined_groups.merge_rooms(
            conn,
            request.source_room_id,
            request.target_room_id,
            name=request.name,
            valid_until=request.valid_until,
            access_policy=request.access_policy,
        )
    return MergeRoomsResponse(
        success=True,
        message="Rooms merged successfully",
        combined_group=combined,
    )


@router.get("/combined_groups", response_model=List[CombinedGroup])
def list_combined_groups(
    tx=Depends(get_transaction),
    services: Services = Depends(get_services),
):
    """Active combined groups. Expired ones are deactivated first."""
    with tx as conn:
        services.combined_groups.reap_expired(conn)
        return services.combined_groups.find_active_combined_groups(conn)


@router.get("/combined_groups/{combined_group_id}", response_model=CombinedGroup)
def get_combined_group(
    combined_group_id: int = Path(..., gt=0),
    tx=Depends(get_transaction),
    services: Services = Depends(get_services),
):
    with tx as conn:
        return services.combined_groups.get_combined_group(conn, combined_group_id)


@router.get("/combined_groups/{combined_group_id}/visits", response_model=List[Visit])
def combined_group_visits(
    combined_group_id: int = Path(..., gt=0),
    day: Optional[date] = Query(None, alias="date", description="YYYY-MM-DD"),
    active: bool = Query(False),
    tx=Depends(get_transaction),
    services: Services = Depends(get_services),
):
    with tx as conn:
        return services.combined_groups.list_visits(conn, combined_group_id, day=day, active_only=active)


@router.delete("/combined_groups/{combined_group_id}", response_model=SuccessResponse)
def deactivate_combined_group(
    combined_group_id: int = Path(..., gt=0),
    tx=Depends(get_transaction),
    services: Services = Depends(get_services),
):
    with tx as conn:
        services.combined_groups.deactivate_combined_group(conn, combined_group_id)
    return SuccessResponse(success=True, message="Combined group deactivated")
