# =======================================================================================
# roomtrack/services/presence.py - Presence Event Processing
# =======================================================================================
import logging
from typing import Optional, Tuple
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError
from ..models.enums import LocationEvent
from ..models.schemas import OccupancyResponse, StudentTrackingResponse, Subject
from ..utils.clock import utcnow
from ..utils.exceptions import RoomTrackError
from .groups import GroupDirectory
from .identity import IdentityResolver
from .location import LocationStateMachine
from .occupancy import OccupancyAggregator
from .tag_log import TagLog
from .timespans import TimespanManager
from .visits import VisitLedger

logger = logging.getLogger(__name__)

NO_USER_MESSAGE = "No user found with this tag ID"
NO_STUDENT_MESSAGE = "User found but no student record"


class PresenceService:
    """Handles room entry, room exit and location check-ins from tag reads."""

    def __init__(
        self,
        identity: IdentityResolver,
        tag_log: TagLog,
        timespan_manager: TimespanManager,
        ledger: VisitLedger,
        locations: LocationStateMachine,
        occupancy: OccupancyAggregator,
        directory: GroupDirectory,
    ):
        self.identity = identity
        self.tag_log = tag_log
        self.timespans = timespan_manager
        self.ledger = ledger
        self.locations = locations
        self.occupancy = occupancy
        self.groups = directory

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def resolve_subject(self, conn: Connection, tag_id: str,
                        lock: bool = False) -> Tuple[Optional[Subject], str]:
        """Return (subject, "") or (None, reason) when the tag does not lead to a student.

        With lock=True the student row is held FOR UPDATE, so two events for
        the same student never interleave.
        """
        person = self.identity.person_for_tag(conn, tag_id)
        if person is None:
            logger.info("Tag %s scanned but no user found", tag_id)
            return None, NO_USER_MESSAGE
        subject = self.identity.subject_for_person(conn, person, for_update=lock)
        if subject is None:
            logger.info("User %s found but no student record", person["id"])
            return None, NO_STUDENT_MESSAGE
        return subject, ""

    def _update_location_best_effort(self, conn: Connection, subject_id: int, event: LocationEvent) -> None:
        # the entry is already recorded; a failure here must not undo it
        try:
            with conn.begin_nested():
                self.locations.update_location(conn, subject_id, event)
        except (SQLAlchemyError, RoomTrackError):
            logger.warning("Failed to update location of student %s, but room entry was recorded",
                           subject_id, exc_info=True)

    # ------------------------------------------------------------------
    # Room entry / exit
    # ------------------------------------------------------------------
    def room_entry(self, conn: Connection, tag_id: str, room_id: int, reader_id: str) -> OccupancyResponse:
        """
        Process a student entering a room:
        - Logs the raw tag read (best effort)
        - Resolves tag -> person -> student
        - Closes any visit the student still has open (at most one open visit per student)
        - Opens a timespan and records the visit
        - Sets location to in-house (best effort)
        - Returns the room's occupancy count

        Re-entering a room the student is already in replaces the open visit
        instead of adding a second one, so the count stays the same.
        """
        logger.info("Processing room entry (tag=%s, room=%s, reader=%s)", tag_id, room_id, reader_id)
        self.tag_log.save_tag(conn, tag_id, reader_id)

        subject, reason = self.resolve_subject(conn, tag_id, lock=True)
        if subject is None:
            return OccupancyResponse(success=False, message=reason)

        self.groups.get_room(conn, room_id)
        now = utcnow()

        stale_rooms = sorted({visit.room_id for visit in self.ledger.list_open_by_subject(conn, subject.id)})
        if stale_rooms:
            logger.warning("Data integrity: student %s entered room %s with open visits in rooms %s; closing them",
                           subject.id, room_id, stale_rooms)
            for stale_room_id in stale_rooms:
                self.ledger.record_exit(conn, subject.id, stale_room_id, now)

        timespan = self.timespans.open(conn, now)
        visit = self.ledger.record_entry(conn, subject.id, room_id, timespan.id)
        logger.info("Created visit %s (student %s, room %s, timespan %s)",
                    visit.id, subject.id, room_id, timespan.id)

        self._update_location_best_effort(conn, subject.id, LocationEvent.ENTRY)

        occupancy = self.occupancy.get_room_occupancy(conn, room_id)
        logger.info("Student %s entered room %s (count=%d)", subject.id, room_id, occupancy.student_count)
        return OccupancyResponse(
            success=True,
            message="Student entered room successfully",
            student_id=subject.id,
            room_id=room_id,
            student_count=occupancy.student_count,
        )

    def room_exit(self, conn: Connection, tag_id: str, room_id: int, reader_id: str) -> OccupancyResponse:
        """Close the student's open visit(s) in the room and report the remaining count."""
        logger.info("Processing room exit (tag=%s, room=%s, reader=%s)", tag_id, room_id, reader_id)
        self.tag_log.save_tag(conn, tag_id, reader_id)

        subject, reason = self.resolve_subject(conn, tag_id, lock=True)
        if subject is None:
            return OccupancyResponse(success=False, message=reason)

        self.groups.get_room(conn, room_id)
        closed = self.ledger.record_exit(conn, subject.id, room_id, utcnow())
        message = "Student exited room successfully"
        if not closed:
            logger.info("Student %s exited room %s without an open visit", subject.id, room_id)
            message = "No active visit found for student in this room"

        occupancy = self.occupancy.get_room_occupancy(conn, room_id)
        logger.info("Student %s exited room %s (count=%d)", subject.id, room_id, occupancy.student_count)
        return OccupancyResponse(
            success=True,
            message=message,
            student_id=subject.id,
            room_id=room_id,
            student_count=occupancy.student_count,
        )

    # ------------------------------------------------------------------
    # Location check-ins
    # ------------------------------------------------------------------
    def track_location(self, conn: Connection, tag_id: str, reader_id: str,
                       location_type: str) -> StudentTrackingResponse:
        self.tag_log.save_tag(conn, tag_id, reader_id)

        subject, reason = self.resolve_subject(conn, tag_id)
        if subject is None:
            return StudentTrackingResponse(success=False, message=reason)

        location = self.locations.update_location(conn, subject.id, location_type)
        logger.info("Student %s location tracked: %s via reader %s", subject.id, location.value, reader_id)
        return StudentTrackingResponse(
            success=True,
            message="Location tracking recorded",
            student_id=subject.id,
            name=subject.name,
            location=location.label,
        )
