# =======================================================================================
# roomtrack/utils/exceptions.py - Custom Exceptions
# =======================================================================================
class RoomTrackError(Exception):
    """Base exception for the room occupancy service."""
    status_code = 500
    status_text = "Internal server error."

class ValidationError(RoomTrackError):
    """Raised for malformed ids, missing or contradictory fields and invalid enum values."""
    status_code = 422
    status_text = "Invalid request."

class NotFoundError(RoomTrackError):
    """Raised when a room, group, subject or combined group does not exist."""
    status_code = 404
    status_text = "Resource not found."

class ConflictError(RoomTrackError):
    """Raised when the request conflicts with current state."""
    status_code = 409
    status_text = "Conflict."

class AlreadyClosedError(ConflictError):
    """Raised when closing a timespan that already has an end time."""
    pass

class InternalError(RoomTrackError):
    """Raised when a store or transaction failure occurs. Details are logged, not exposed."""
    pass

class DeadlineExceededError(InternalError):
    """Raised when a request runs past its deadline; the transaction is rolled back."""
    status_code = 504
    status_text = "Request deadline exceeded."
