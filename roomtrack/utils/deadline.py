# =======================================================================================
# roomtrack/utils/deadline.py - Request Deadlines
# =======================================================================================
import time
from typing import Optional
from .exceptions import DeadlineExceededError


class Deadline:
    """A point in monotonic time after which the current request must give up."""

    def __init__(self, seconds: float):
        self.seconds = seconds
        self._expires_at = time.monotonic() + seconds

    @classmethod
    def from_header(cls, value: Optional[str], default: float) -> "Deadline":
        """Parse the X-Request-Timeout header, falling back to the configured default."""
        if value:
            try:
                seconds = float(value)
            except ValueError:
                seconds = default
            if seconds > 0:
                return cls(seconds)
        return cls(default)

    def remaining(self) -> float:
        return max(0.0, self._expires_at - time.monotonic())

    def expired(self) -> bool:
        return time.monotonic() >= self._expires_at

    def check(self) -> None:
        if self.expired():
            raise DeadlineExceededError(f"deadline of {self.seconds:.3f}s exceeded")
