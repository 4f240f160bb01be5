# =======================================================================================
# roomtrack/services/location.py - Location State Machine
# =======================================================================================
from typing import Dict, Union
from sqlalchemy import func, select, update
from sqlalchemy.engine import Connection
from ..models.enums import LOCATION_TRANSITIONS, Location, LocationEvent
from ..models.tables import students
from ..utils.clock import utcnow
from ..utils.exceptions import NotFoundError, ValidationError


class LocationStateMachine:
    """Derives a student's coarse location from scan events."""

    @staticmethod
    def transition(event: Union[LocationEvent, str]) -> Location:
        """Resulting state for an event. The previous state does not matter."""
        try:
            return LOCATION_TRANSITIONS[LocationEvent(event)]
        except ValueError:
            raise ValidationError(f"unknown location event: {event!r}")

    def update_location(self, conn: Connection, subject_id: int, event: Union[LocationEvent, str]) -> Location:
        """Apply the event unconditionally (idempotent, last write wins)."""
        location = self.transition(event)
        result = conn.execute(
            update(students)
            .where(students.c.id == subject_id)
            .values(location=location.value, modified_at=utcnow())
        )
        if result.rowcount == 0:
            raise NotFoundError(f"student {subject_id} not found")
        return location

    def get_location(self, conn: Connection, subject_id: int) -> Location:
        row = conn.execute(select(students.c.location).where(students.c.id == subject_id)).first()
        if not row:
            raise NotFoundError(f"student {subject_id} not found")
        return Location(row[0])

    def count_by_location(self, conn: Connection) -> Dict[str, int]:
        """Students per location, every location present."""
        rows = conn.execute(
            select(students.c.location, func.count()).group_by(students.c.location)
        ).all()
        counts = {location.value: 0 for location in Location}
        for location, count in rows:
            counts[location] = count
        return counts
