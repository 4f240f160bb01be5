# =======================================================================================
# roomtrack/services/tag_log.py - Raw Tag Read Log
# =======================================================================================
import logging
from datetime import datetime
from typing import Iterable, List, Optional
from sqlalchemy import func, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.engine import Connection
from ..models.schemas import SyncTag, TagRead
from ..models.tables import tag_reads
from ..utils.clock import to_naive_utc, utcnow

logger = logging.getLogger(__name__)


class TagLog:
    """Best-effort log of every tag read, kept for auditing."""

    def save_tag(self, conn: Connection, tag_id: str, reader_id: str,
                 read_at: Optional[datetime] = None) -> bool:
        """
        Record a tag read inside a savepoint. A failure is logged and only
        rolls back this insert; the caller's request goes on.
        """
        try:
            with conn.begin_nested():
                conn.execute(
                    insert(tag_reads).values(tag_id=tag_id, reader_id=reader_id, read_at=read_at or utcnow())
                )
            return True
        except SQLAlchemyError:
            logger.exception("Failed to save tag read (tag=%s, reader=%s)", tag_id, reader_id)
            return False

    def save_tags(self, conn: Connection, tags: Iterable[SyncTag]) -> int:
        """Store a device's batch. Unlike save_tag, errors propagate."""
        now = utcnow()
        rows = [
            {
                "tag_id": tag.tag_id,
                "reader_id": tag.reader_id,
                "read_at": to_naive_utc(tag.read_at) or now,
            }
            for tag in tags
        ]
        if rows:
            conn.execute(insert(tag_reads), rows)
        return len(rows)

    def list_reads(self, conn: Connection, limit: int = 100) -> List[TagRead]:
        """Most recent reads first."""
        rows = conn.execute(
            select(tag_reads).order_by(tag_reads.c.read_at.desc(), tag_reads.c.id.desc()).limit(limit)
        ).mappings().all()
        return [TagRead(**row) for row in rows]

    def count(self, conn: Connection) -> int:
        return conn.execute(select(func.count()).select_from(tag_reads)).scalar_one()
