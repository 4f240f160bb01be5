# =======================================================================================
# roomtrack/models/schemas.py - Pydantic Models
# =======================================================================================
from datetime import date, datetime
from typing import Optional, List
from pydantic import BaseModel, Field, model_validator
from .enums import AccessPolicyType, LocationEventType, Location

# ========== Ledger records ==========

class Timespan(BaseModel):
    """A bounded-or-open interval; the unit of how long a presence session lasted."""
    id: int
    start_time: datetime
    end_time: Optional[datetime] = None
    created_at: datetime

    def is_active(self, now: datetime) -> bool:
        return self.end_time is None or self.end_time > now

    def duration(self, now: datetime) -> float:
        """Length in seconds; open timespans are measured up to now."""
        end = self.end_time if self.end_time is not None else now
        return (end - self.start_time).total_seconds()

class Visit(BaseModel):
    """Immutable record linking a student, a room and a timespan."""
    id: int
    day: date
    student_id: int
    room_id: int
    timespan_id: int
    combined_group_id: Optional[int] = None
    created_at: datetime
    student_name: Optional[str] = None
    timespan: Optional[Timespan] = None

    def is_active(self, now: datetime) -> bool:
        return self.timespan is not None and self.timespan.is_active(now)

class Subject(BaseModel):
    """A tracked student resolved from a tag."""
    id: int
    person_id: int
    name: str
    location: Location = Location.OUT

# ========== Occupancy ==========

class OccupancyStudent(BaseModel):
    id: int
    name: str
    entered_at: datetime

class RoomOccupancy(BaseModel):
    room_id: int
    room_name: str
    capacity: int
    student_count: int = 0
    students: List[OccupancyStudent] = Field(default_factory=list)

# ========== Presence events ==========

class RoomEntryRequest(BaseModel):
    """Tag read at a room reader."""
    tag_id: str = Field(..., min_length=1, max_length=100, description="RFID tag identifier")
    room_id: int = Field(..., gt=0, description="Room the reader belongs to")
    reader_id: str = Field(..., min_length=1, max_length=100, description="Reader that captured the scan")

class RoomExitRequest(RoomEntryRequest):
    pass

class OccupancyResponse(BaseModel):
    success: bool
    message: str
    student_id: Optional[int] = None
    room_id: Optional[int] = None
    student_count: Optional[int] = None

class StudentTrackingRequest(BaseModel):
    tag_id: str = Field(..., min_length=1, max_length=100)
    reader_id: str = Field(..., min_length=1, max_length=100)
    location_type: LocationEventType

class StudentTrackingResponse(BaseModel):
    success: bool
    message: str
    student_id: Optional[int] = None
    name: Optional[str] = None
    location: Optional[str] = None

class StudentLocation(BaseModel):
    student_id: int
    location: Location
    in_house: bool
    in_wc: bool
    in_school_yard: bool

# ========== Groups ==========

class GroupInfo(BaseModel):
    id: int
    name: str
    room_id: Optional[int] = None

class CombinedGroup(BaseModel):
    id: int
    name: str
    is_active: bool
    created_at: datetime
    valid_until: Optional[datetime] = None
    access_policy: AccessPolicyType
    groups: List[GroupInfo] = Field(default_factory=list)
    access_supervisor_ids: List[int] = Field(default_factory=list)

class MergeRoomsRequest(BaseModel):
    source_room_id: int = Field(..., gt=0)
    target_room_id: int = Field(..., gt=0)
    name: Optional[str] = Field(None, max_length=255)
    valid_until: Optional[datetime] = None
    access_policy: Optional[AccessPolicyType] = None

    @model_validator(mode="after")
    def _rooms_differ(self):
        if self.source_room_id == self.target_room_id:
            raise ValueError("source and target rooms must be different")
        return self

class MergeRoomsResponse(BaseModel):
    success: bool
    message: str
    combined_group: CombinedGroup

class SuccessResponse(BaseModel):
    success: bool
    message: str

# ========== Device registrations ==========

class RegisterDeviceRequest(BaseModel):
    device_id: str = Field(..., min_length=1, max_length=100)
    supervisors: List[int] = Field(default_factory=list)
    group_id: Optional[int] = None
    ag_id: Optional[int] = None

class UnregisterDeviceRequest(BaseModel):
    device_id: str = Field(..., min_length=1, max_length=100)

class DeviceRegistration(BaseModel):
    id: int
    device_id: str
    room_id: int
    timespan_id: int
    group_id: Optional[int] = None
    ag_id: Optional[int] = None
    supervisor_ids: List[int] = Field(default_factory=list)
    created_at: datetime

# ========== Device sync ==========

class SyncTag(BaseModel):
    tag_id: str = Field(..., min_length=1, max_length=100)
    reader_id: str = Field(..., min_length=1, max_length=100)
    read_at: Optional[datetime] = None   # when the device saw it; server time if omitted

class DeviceSyncRequest(BaseModel):
    """Batch of tag reads a tablet collected while offline."""
    device_id: str = Field(..., min_length=1, max_length=100)
    data: List[SyncTag] = Field(default_factory=list)
    app_version: Optional[str] = Field(None, max_length=50)

class DeviceSyncResponse(BaseModel):
    success: bool
    message: str
    tags_saved: int = 0
    students_updated: int = 0

class DeviceSyncRecord(BaseModel):
    id: int
    device_id: str
    sync_at: datetime
    ip_address: Optional[str] = None
    tags_count: int
    app_version: Optional[str] = None

class TagRead(BaseModel):
    id: int
    tag_id: str
    reader_id: str
    read_at: datetime

class AppStats(BaseModel):
    tag_reads: int
    students_in_house: int
    students_in_wc: int
    students_in_school_yard: int

class AppStatus(BaseModel):
    status: str
    timestamp: datetime
    version: str
    stats: AppStats

# ========== Health / errors ==========

class HealthResponse(BaseModel):
    status: str                 # "ok" | "error"
    dataAvailable: bool
    message: Optional[str] = None

class ErrorResponse(BaseModel):
    success: bool = False
    status: str
    error: Optional[str] = None
