# =======================================================================================
# roomtrack/services/occupancy.py - Occupancy Aggregator
# =======================================================================================
import logging
from datetime import date, datetime
from typing import List, Optional
from sqlalchemy.engine import Connection
from ..models.schemas import OccupancyStudent, RoomOccupancy, Visit
from ..utils.clock import utcnow
from ..utils.exceptions import NotFoundError
from .groups import GroupDirectory
from .visits import VisitLedger

logger = logging.getLogger(__name__)


class OccupancyAggregator:
    """Who is in which room right now, computed from open visits."""

    def __init__(self, ledger: VisitLedger, groups: GroupDirectory):
        self.ledger = ledger
        self.groups = groups

    def get_room_occupancy(self, conn: Connection, room_id: int, now: Optional[datetime] = None) -> RoomOccupancy:
        now = now or utcnow()
        room = self.groups.get_room(conn, room_id)
        active = self.ledger.list_by_room(conn, room_id, active_only=True, now=now)

        students = [
            OccupancyStudent(
                id=visit.student_id,
                name=visit.student_name or f"Student {visit.student_id}",
                entered_at=visit.timespan.start_time,
            )
            for visit in active
        ]
        students.sort(key=lambda s: (s.entered_at, s.id))

        return RoomOccupancy(
            room_id=room["id"],
            room_name=room["room_name"],
            capacity=room["capacity"],
            student_count=len(students),
            students=students,
        )

    def get_current_rooms(self, conn: Connection, now: Optional[datetime] = None) -> List[RoomOccupancy]:
        now = now or utcnow()
        rooms = []
        for room_id in self.ledger.active_room_ids(conn, now):
            try:
                rooms.append(self.get_room_occupancy(conn, room_id, now))
            except NotFoundError:
                logger.warning("Active visits reference missing room %s; skipped", room_id)
        return rooms

    def get_today_visits(self, conn: Connection, today: Optional[date] = None) -> List[Visit]:
        """Today's visits, active or not, for every room that is occupied right now."""
        now = utcnow()
        today = today or now.date()
        result: List[Visit] = []
        for room in self.get_current_rooms(conn, now):
            result.extend(self.ledger.list_by_room(conn, room.room_id, day=today))
        return result
