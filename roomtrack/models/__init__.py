# =======================================================================================
# roomtrack/models/__init__.py - Models Package
# =======================================================================================
from .schemas import *
from .enums import *

__all__ = [
    "Timespan", "Visit", "Subject", "OccupancyStudent", "RoomOccupancy",
    "RoomEntryRequest", "RoomExitRequest", "OccupancyResponse",
    "StudentTrackingRequest", "StudentTrackingResponse", "StudentLocation", "GroupInfo",
    "CombinedGroup", "MergeRoomsRequest", "MergeRoomsResponse", "SuccessResponse",
    "RegisterDeviceRequest", "UnregisterDeviceRequest", "DeviceRegistration",
    "SyncTag", "DeviceSyncRequest", "DeviceSyncResponse", "DeviceSyncRecord", "TagRead",
    "AppStats", "AppStatus",
    "HealthResponse", "ErrorResponse", "AccessPolicy", "AccessPolicyType",
    "LocationEvent", "LocationEventType", "Location", "LOCATION_TRANSITIONS",
]
