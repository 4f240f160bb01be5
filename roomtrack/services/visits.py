# =======================================================================================
# roomtrack/services/visits.py - Visit Ledger
# =======================================================================================
import logging
from datetime import date, datetime
from typing import List, Optional
from sqlalchemy import insert, or_, select
from sqlalchemy.engine import Connection
from sqlalchemy.sql import Select
from ..models.schemas import Timespan, Visit
from ..models.tables import persons, students, timespans, visits
from ..utils.clock import utcnow
from ..utils.exceptions import AlreadyClosedError
from .groups import GroupDirectory
from .timespans import TimespanManager

logger = logging.getLogger(__name__)


def _visit_query() -> Select:
    return (
        select(
            visits,
            timespans.c.start_time,
            timespans.c.end_time,
            timespans.c.created_at.label("timespan_created_at"),
            persons.c.first_name,
            persons.c.second_name,
        )
        .select_from(
            visits.join(timespans, timespans.c.id == visits.c.timespan_id)
            .outerjoin(students, students.c.id == visits.c.student_id)
            .outerjoin(persons, persons.c.id == students.c.person_id)
        )
    )


def _active(now: datetime):
    return or_(timespans.c.end_time.is_(None), timespans.c.end_time > now)


def _visit_from_row(row) -> Visit:
    name = None
    if row["first_name"] is not None:
        name = f"{row['first_name']} {row['second_name'] or ''}".strip()
    return Visit(
        id=row["id"],
        day=row["day"],
        student_id=row["student_id"],
        room_id=row["room_id"],
        timespan_id=row["timespan_id"],
        combined_group_id=row["combined_group_id"],
        created_at=row["created_at"],
        student_name=name,
        timespan=Timespan(
            id=row["timespan_id"],
            start_time=row["start_time"],
            end_time=row["end_time"],
            created_at=row["timespan_created_at"],
        ),
    )


class VisitLedger:
    """Append-only record of which student was in which room, and when."""

    def __init__(self, timespan_manager: TimespanManager, groups: GroupDirectory):
        self.timespans = timespan_manager
        self.groups = groups

    # ---------------------------------------------------------------
    # Writes
    # ---------------------------------------------------------------
    def record_entry(self, conn: Connection, subject_id: int, room_id: int, timespan_id: int) -> Visit:
        """
        Append a visit row. No check is made for other open visits of the
        same student; callers that want that invariant close them first.
        """
        now = utcnow()
        combined_group_id = self.groups.active_combined_group_id_for_room(conn, room_id, now)
        result = conn.execute(
            insert(visits).values(
                day=now.date(),
                student_id=subject_id,
                room_id=room_id,
                timespan_id=timespan_id,
                combined_group_id=combined_group_id,
                created_at=now,
            )
        )
        return self.get(conn, result.inserted_primary_key[0])

    def record_exit(self, conn: Connection, subject_id: int, room_id: int,
                    now: Optional[datetime] = None) -> List[Visit]:
        """
        Close every open visit of the student in the room.

        More than one open visit means an earlier exit was missed; all of
        them are closed and the anomaly is logged rather than raised. A
        timespan closed by a concurrent request in the meantime is skipped.
        """
        now = now or utcnow()
        rows = conn.execute(
            select(visits.c.id, visits.c.timespan_id)
            .join(timespans, timespans.c.id == visits.c.timespan_id)
            .where(
                visits.c.room_id == room_id,
                visits.c.student_id == subject_id,
                timespans.c.end_time.is_(None),
            )
            .order_by(visits.c.id)
            .with_for_update()
        ).mappings().all()

        if len(rows) > 1:
            logger.warning(
                "Data integrity: student %s had %d open visits in room %s; closing all",
                subject_id, len(rows), room_id,
            )

        closed = []
        for row in rows:
            try:
                self.timespans.close(conn, row["timespan_id"], now)
            except AlreadyClosedError:
                logger.info("Visit %s already closed by a concurrent request", row["id"])
                continue
            logger.info("Ended visit %s (student %s, room %s, timespan %s)",
                        row["id"], subject_id, room_id, row["timespan_id"])
            closed.append(self.get(conn, row["id"]))
        return closed

    # ---------------------------------------------------------------
    # Reads
    # ---------------------------------------------------------------
    def get(self, conn: Connection, visit_id: int) -> Visit:
        row = conn.execute(_visit_query().where(visits.c.id == visit_id)).mappings().first()
        return _visit_from_row(row)

    def list_by_subject(self, conn: Connection, subject_id: int, day: Optional[date] = None) -> List[Visit]:
        query = _visit_query().where(visits.c.student_id == subject_id)
        if day is not None:
            query = query.where(visits.c.day == day)
        rows = conn.execute(query.order_by(visits.c.created_at.desc(), visits.c.id.desc())).mappings().all()
        return [_visit_from_row(row) for row in rows]

    def list_open_by_subject(self, conn: Connection, subject_id: int) -> List[Visit]:
        """Visits of the student whose timespan has no end time yet, in any room."""
        rows = conn.execute(
            _visit_query()
            .where(visits.c.student_id == subject_id, timespans.c.end_time.is_(None))
            .order_by(visits.c.id)
        ).mappings().all()
        return [_visit_from_row(row) for row in rows]

    def list_by_room(self, conn: Connection, room_id: int, day: Optional[date] = None,
                     active_only: bool = False, now: Optional[datetime] = None) -> List[Visit]:
        query = _visit_query().where(visits.c.room_id == room_id)
        if day is not None:
            query = query.where(visits.c.day == day)
        if active_only:
            query = query.where(_active(now or utcnow()))
        rows = conn.execute(query.order_by(visits.c.created_at.desc(), visits.c.id.desc())).mappings().all()
        return [_visit_from_row(row) for row in rows]

    def list_by_combined_group(self, conn: Connection, combined_group_id: int, day: Optional[date] = None,
                               active_only: bool = False, now: Optional[datetime] = None) -> List[Visit]:
        query = _visit_query().where(visits.c.combined_group_id == combined_group_id)
        if day is not None:
            query = query.where(visits.c.day == day)
        if active_only:
            query = query.where(_active(now or utcnow()))
        rows = conn.execute(query.order_by(visits.c.created_at.desc(), visits.c.id.desc())).mappings().all()
        return [_visit_from_row(row) for row in rows]

    def active_room_ids(self, conn: Connection, now: Optional[datetime] = None) -> List[int]:
        """Distinct rooms with at least one active visit."""
        rows = conn.execute(
            select(visits.c.room_id)
            .join(timespans, timespans.c.id == visits.c.timespan_id)
            .where(_active(now or utcnow()))
            .distinct()
            .order_by(visits.c.room_id)
        ).all()
        return [row[0] for row in rows]
