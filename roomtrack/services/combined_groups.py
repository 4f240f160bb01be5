# =======================================================================================
# roomtrack/services/combined_groups.py - Group Merge Coordinator
# =======================================================================================
import logging
from datetime import date, datetime
from typing import Dict, List, Optional
from sqlalchemy import insert, or_, select, update
from sqlalchemy.engine import Connection
from ..models.enums import AccessPolicy
from ..models.schemas import CombinedGroup, GroupInfo, Visit
from ..models.tables import combined_group_groups, combined_group_supervisors, combined_groups, groups
from ..utils.clock import to_naive_utc, utcnow
from ..utils.exceptions import NotFoundError, ValidationError
from .groups import GroupDirectory
from .visits import VisitLedger

logger = logging.getLogger(__name__)


class GroupMergeCoordinator:
    """
    Creates, queries and expires combined groups.

    Lifecycle of a combined group: active -> expired | deactivated. Both end
    states are terminal. Expiry is applied by ``reap_expired``; reads never
    write.
    """

    def __init__(self, directory: GroupDirectory, ledger: VisitLedger):
        self.groups = directory
        self.ledger = ledger

    # ------------------------------------------------------------------
    # Merge
    # ------------------------------------------------------------------
    def merge_rooms(
        self,
        conn: Connection,
        source_room_id: int,
        target_room_id: int,
        name: Optional[str] = None,
        valid_until: Optional[datetime] = None,
        access_policy: Optional[str] = None,
    ) -> CombinedGroup:
        """
        Combine the groups bound to two rooms into one combined group.

        Every distinct group found is linked and the union of their
        supervisors is granted access. The insert and all links happen in
        one savepoint inside the caller's transaction, so a failure leaves
        no combined group, no links and no grants behind.
        """
        if source_room_id == target_room_id:
            raise ValidationError("source and target rooms must be different")

        now = utcnow()
        source_room = self.groups.get_room(conn, source_room_id)
        target_room = self.groups.get_room(conn, target_room_id)

        source_group = self.groups.group_for_room(conn, source_room_id)
        target_group = self.groups.group_for_room(conn, target_room_id)
        if source_group is None and target_group is None:
            raise ValidationError("no group for either room")

        if not name:
            source_name = source_group.name if source_group else source_room["room_name"]
            target_name = target_group.name if target_group else target_room["room_name"]
            name = f"{source_name} + {target_name}"

        try:
            policy = AccessPolicy(access_policy or AccessPolicy.ALL.value)
        except ValueError:
            raise ValidationError("access_policy must be one of: all, first, specific, manual")

        valid_until = to_naive_utc(valid_until)
        if valid_until is not None and valid_until <= now:
            raise ValidationError("valid_until must be in the future")

        member_ids: List[int] = []
        for group in (source_group, target_group):
            if group is not None and group.id not in member_ids:
                member_ids.append(group.id)

        with conn.begin_nested():
            result = conn.execute(
                insert(combined_groups).values(
                    name=name,
                    is_active=True,
                    created_at=now,
                    valid_until=valid_until,
                    access_policy=policy.value,
                )
            )
            combined_group_id = result.inserted_primary_key[0]
            self._link_groups(conn, combined_group_id, member_ids, now)
            supervisor_ids = self.groups.supervisor_ids(conn, member_ids)
            self._grant_access(conn, combined_group_id, supervisor_ids, now)

        logger.info(
            "Merged rooms %s and %s into combined group %s (groups=%s, supervisors=%d, policy=%s)",
            source_room_id, target_room_id, combined_group_id, member_ids, len(supervisor_ids), policy.value,
        )
        return self.get_combined_group(conn, combined_group_id)

    def _link_groups(self, conn: Connection, combined_group_id: int, group_ids: List[int], now: datetime) -> None:
        for group_id in group_ids:
            conn.execute(
                insert(combined_group_groups).values(
                    combined_group_id=combined_group_id, group_id=group_id, created_at=now
                )
            )

    def _grant_access(self, conn: Connection, combined_group_id: int, supervisor_ids: List[int], now: datetime) -> None:
        for supervisor_id in supervisor_ids:
            conn.execute(
                insert(combined_group_supervisors).values(
                    combined_group_id=combined_group_id, supervisor_id=supervisor_id, created_at=now
                )
            )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_combined_group(self, conn: Connection, combined_group_id: int) -> CombinedGroup:
        row = conn.execute(
            select(combined_groups).where(combined_groups.c.id == combined_group_id)
        ).mappings().first()
        if not row:
            raise NotFoundError(f"combined group {combined_group_id} not found")
        return self._hydrate(conn, [row])[0]

    def get_combined_group_for_room(self, conn: Connection, room_id: int,
                                    now: Optional[datetime] = None) -> CombinedGroup:
        now = now or utcnow()
        if self.groups.group_for_room(conn, room_id) is None:
            raise NotFoundError(f"no group found for room {room_id}")
        combined_group_id = self.groups.active_combined_group_id_for_room(conn, room_id, now)
        if combined_group_id is None:
            raise NotFoundError(f"no active combined group found for room {room_id}")
        return self.get_combined_group(conn, combined_group_id)

    def find_active_combined_groups(self, conn: Connection, now: Optional[datetime] = None) -> List[CombinedGroup]:
        """Active, unexpired combined groups ordered by name. Does not write."""
        now = now or utcnow()
        rows = conn.execute(
            select(combined_groups)
            .where(
                combined_groups.c.is_active.is_(True),
                or_(combined_groups.c.valid_until.is_(None), combined_groups.c.valid_until > now),
            )
            .order_by(combined_groups.c.name, combined_groups.c.id)
        ).mappings().all()
        return self._hydrate(conn, rows)

    def list_visits(self, conn: Connection, combined_group_id: int, day: Optional[date] = None,
                    active_only: bool = False) -> List[Visit]:
        self.get_combined_group(conn, combined_group_id)
        return self.ledger.list_by_combined_group(conn, combined_group_id, day=day, active_only=active_only)

    def _hydrate(self, conn: Connection, rows) -> List[CombinedGroup]:
        ids = [row["id"] for row in rows]
        if not ids:
            return []

        members: Dict[int, List[GroupInfo]] = {i: [] for i in ids}
        member_rows = conn.execute(
            select(combined_group_groups.c.combined_group_id, groups.c.id, groups.c.name, groups.c.room_id)
            .join(groups, groups.c.id == combined_group_groups.c.group_id)
            .where(combined_group_groups.c.combined_group_id.in_(ids))
            .order_by(combined_group_groups.c.id)
        ).mappings().all()
        for m in member_rows:
            members[m["combined_group_id"]].append(GroupInfo(id=m["id"], name=m["name"], room_id=m["room_id"]))

        supervisors: Dict[int, List[int]] = {i: [] for i in ids}
        supervisor_rows = conn.execute(
            select(combined_group_supervisors.c.combined_group_id, combined_group_supervisors.c.supervisor_id)
            .where(combined_group_supervisors.c.combined_group_id.in_(ids))
            .order_by(combined_group_supervisors.c.id)
        ).all()
        for combined_group_id, supervisor_id in supervisor_rows:
            supervisors[combined_group_id].append(supervisor_id)

        return [
            CombinedGroup(
                id=row["id"],
                name=row["name"],
                is_active=bool(row["is_active"]),
                created_at=row["created_at"],
                valid_until=row["valid_until"],
                access_policy=row["access_policy"],
                groups=members[row["id"]],
                access_supervisor_ids=supervisors[row["id"]],
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Expiry / deactivation
    # ------------------------------------------------------------------
    def reap_expired(self, conn: Connection, now: Optional[datetime] = None) -> int:
        """
        Deactivate combined groups whose valid_until has passed.

        Idempotent: concurrent callers may race on the same rows and both
        write is_active = false. Nothing else is done on this path.
        """
        now = now or utcnow()
        result = conn.execute(
            update(combined_groups)
            .where(
                combined_groups.c.is_active.is_(True),
                combined_groups.c.valid_until.is_not(None),
                combined_groups.c.valid_until <= now,
            )
            .values(is_active=False)
        )
        if result.rowcount:
            logger.info("Expired %d combined group(s)", result.rowcount)
        return result.rowcount

    def deactivate_combined_group(self, conn: Connection, combined_group_id: int) -> None:
        """Set is_active = false. Calling it on an inactive group is a no-op."""
        exists = conn.execute(
            select(combined_groups.c.id).where(combined_groups.c.id == combined_group_id)
        ).first()
        if not exists:
            raise NotFoundError(f"combined group {combined_group_id} not found")
        conn.execute(
            update(combined_groups)
            .where(combined_groups.c.id == combined_group_id)
            .values(is_active=False)
        )
        logger.info("Deactivated combined group %s", combined_group_id)
