# =======================================================================================
# roomtrack/services/timespans.py - Timespan Lifecycle
# =======================================================================================
from datetime import datetime
from typing import Optional
from sqlalchemy import insert, select, update
from sqlalchemy.engine import Connection
from ..models.schemas import Timespan
from ..models.tables import timespans
from ..utils.clock import utcnow
from ..utils.exceptions import AlreadyClosedError, NotFoundError, ValidationError


class TimespanManager:
    """Opens and closes timespans. A timespan is closed at most once."""

    def open(self, conn: Connection, start: Optional[datetime] = None) -> Timespan:
        now = utcnow()
        start = start or now
        result = conn.execute(
            insert(timespans).values(start_time=start, end_time=None, created_at=now)
        )
        return Timespan(id=result.inserted_primary_key[0], start_time=start, end_time=None, created_at=now)

    def get(self, conn: Connection, timespan_id: int, for_update: bool = False) -> Timespan:
        query = select(timespans).where(timespans.c.id == timespan_id)
        if for_update:
            query = query.with_for_update()
        row = conn.execute(query).mappings().first()
        if not row:
            raise NotFoundError(f"timespan {timespan_id} not found")
        return Timespan(**row)

    def close(self, conn: Connection, timespan_id: int, end: Optional[datetime] = None) -> Timespan:
        """
        Set the end time of an open timespan.

        The row is read with a lock and the update only matches while end_time
        is still NULL, so two concurrent closes cannot both succeed.
        """
        end = end or utcnow()
        current = self.get(conn, timespan_id, for_update=True)
        if current.end_time is not None:
            raise AlreadyClosedError(f"timespan {timespan_id} already closed at {current.end_time.isoformat()}")
        if end < current.start_time:
            raise ValidationError("timespan end must not be before its start")

        result = conn.execute(
            update(timespans)
            .where(timespans.c.id == timespan_id, timespans.c.end_time.is_(None))
            .values(end_time=end)
        )
        if result.rowcount != 1:
            raise AlreadyClosedError(f"timespan {timespan_id} was closed concurrently")

        return current.model_copy(update={"end_time": end})
