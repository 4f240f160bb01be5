# =======================================================================================
# roomtrack/services/groups.py - Room/Group Directory
# =======================================================================================
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional
from sqlalchemy import or_, select
from sqlalchemy.engine import Connection
from ..models.schemas import GroupInfo
from ..models.tables import combined_group_groups, combined_groups, group_supervisors, groups, rooms
from ..utils.exceptions import NotFoundError

logger = logging.getLogger(__name__)


class GroupDirectory:
    """
    Read access to rooms, their bound group and group supervisors.

    A room is bound to at most one group (unique groups.room_id). The
    accessor still tolerates legacy data with several rows and picks the
    lowest id, logging the anomaly.
    """

    def get_room(self, conn: Connection, room_id: int) -> Dict:
        row = conn.execute(select(rooms).where(rooms.c.id == room_id)).mappings().first()
        if not row:
            raise NotFoundError(f"room {room_id} not found")
        return dict(row)

    def group_for_room(self, conn: Connection, room_id: int) -> Optional[GroupInfo]:
        rows = conn.execute(
            select(groups.c.id, groups.c.name, groups.c.room_id)
            .where(groups.c.room_id == room_id)
            .order_by(groups.c.id)
        ).mappings().all()
        if not rows:
            return None
        if len(rows) > 1:
            logger.warning("Room %s is bound to %d groups; using group %s", room_id, len(rows), rows[0]["id"])
        return GroupInfo(**rows[0])

    def supervisor_ids(self, conn: Connection, group_ids: Iterable[int]) -> List[int]:
        """Distinct supervisor ids across the given groups, in first-seen order."""
        ids = list(group_ids)
        if not ids:
            return []
        rows = conn.execute(
            select(group_supervisors.c.group_id, group_supervisors.c.supervisor_id)
            .where(group_supervisors.c.group_id.in_(ids))
            .order_by(group_supervisors.c.id)
        ).all()

        by_group: Dict[int, List[int]] = {}
        for group_id, supervisor_id in rows:
            by_group.setdefault(group_id, []).append(supervisor_id)

        seen = []
        for group_id in ids:
            for supervisor_id in by_group.get(group_id, []):
                if supervisor_id not in seen:
                    seen.append(supervisor_id)
        return seen

    def active_combined_group_id_for_room(self, conn: Connection, room_id: int, now: datetime) -> Optional[int]:
        """Most recently linked active, unexpired combined group containing the room's group."""
        row = conn.execute(
            select(combined_group_groups.c.combined_group_id)
            .join(groups, groups.c.id == combined_group_groups.c.group_id)
            .join(combined_groups, combined_groups.c.id == combined_group_groups.c.combined_group_id)
            .where(
                groups.c.room_id == room_id,
                combined_groups.c.is_active.is_(True),
                or_(combined_groups.c.valid_until.is_(None), combined_groups.c.valid_until > now),
            )
            .order_by(combined_group_groups.c.id.desc())
            .limit(1)
        ).first()
        return row[0] if row else None
