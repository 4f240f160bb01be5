# =======================================================================================
# roomtrack/services/__init__.py - Services Package
# =======================================================================================
from .combined_groups import GroupMergeCoordinator
from .device_sync import DeviceSyncService
from .groups import GroupDirectory
from .identity import IdentityResolver
from .location import LocationStateMachine
from .occupancy import OccupancyAggregator
from .presence import PresenceService
from .room_sessions import RoomSessionService
from .tag_log import TagLog
from .timespans import TimespanManager
from .visits import VisitLedger


class Services:
    """All services, wired once through their constructors."""

    def __init__(self):
        self.timespans = TimespanManager()
        self.directory = GroupDirectory()
        self.identity = IdentityResolver()
        self.tag_log = TagLog()
        self.locations = LocationStateMachine()
        self.ledger = VisitLedger(self.timespans, self.directory)
        self.occupancy = OccupancyAggregator(self.ledger, self.directory)
        self.combined_groups = GroupMergeCoordinator(self.directory, self.ledger)
        self.room_sessions = RoomSessionService(self.timespans, self.directory)
        self.device_sync = DeviceSyncService(self.tag_log, self.room_sessions, self.identity, self.locations)
        self.presence = PresenceService(
            self.identity, self.tag_log, self.timespans, self.ledger,
            self.locations, self.occupancy, self.directory,
        )


__all__ = [
    "Services", "TimespanManager", "GroupDirectory", "IdentityResolver", "TagLog",
    "LocationStateMachine", "VisitLedger", "OccupancyAggregator",
    "GroupMergeCoordinator", "RoomSessionService", "DeviceSyncService", "PresenceService",
]
