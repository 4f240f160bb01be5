# =======================================================================================
# roomtrack/models/enums.py - Enums and Constants
# =======================================================================================
from enum import Enum
from typing import Literal

# Type aliases for better type hints
AccessPolicyType = Literal["all", "first", "specific", "manual"]
LocationEventType = Literal["entry", "wc", "schoolyard", "exit"]

class AccessPolicy(str, Enum):
    """Which supervisors keep access to a combined group. Persisted, not enforced here."""
    ALL = "all"
    FIRST = "first"
    SPECIFIC = "specific"
    MANUAL = "manual"

class LocationEvent(str, Enum):
    """Event tag sent by a reader or check-in."""
    ENTRY = "entry"
    WC = "wc"
    SCHOOLYARD = "schoolyard"
    EXIT = "exit"

class Location(str, Enum):
    """Coarse-grained whereabouts of a student. Exactly one holds at a time."""
    OUT = "out"
    IN_HOUSE = "in_house"
    IN_HOUSE_WC = "in_house_wc"
    SCHOOL_YARD = "school_yard"

    @property
    def in_house(self) -> bool:
        return self in (Location.IN_HOUSE, Location.IN_HOUSE_WC)

    @property
    def in_wc(self) -> bool:
        return self is Location.IN_HOUSE_WC

    @property
    def in_school_yard(self) -> bool:
        return self is Location.SCHOOL_YARD

    @property
    def label(self) -> str:
        """Human-readable label returned by the tracking endpoint."""
        return _LOCATION_LABELS[self]

_LOCATION_LABELS = {
    Location.OUT: "out",
    Location.IN_HOUSE: "in-house",
    Location.IN_HOUSE_WC: "bathroom",
    Location.SCHOOL_YARD: "schoolyard",
}

# Transition table: the resulting state depends only on the event
LOCATION_TRANSITIONS = {
    LocationEvent.ENTRY: Location.IN_HOUSE,
    LocationEvent.WC: Location.IN_HOUSE_WC,
    LocationEvent.SCHOOLYARD: Location.SCHOOL_YARD,
    LocationEvent.EXIT: Location.OUT,
}
