# =======================================================================================
# roomtrack/utils/__init__.py - Utils Package
# =======================================================================================
from .exceptions import *
from .clock import utcnow, to_naive_utc
from .deadline import Deadline

__all__ = [
    "RoomTrackError", "ValidationError", "NotFoundError", "ConflictError",
    "AlreadyClosedError", "InternalError", "DeadlineExceededError",
    "utcnow", "to_naive_utc", "Deadline",
]
