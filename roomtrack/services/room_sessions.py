# =======================================================================================
# roomtrack/services/room_sessions.py - Tablet Room Sessions
# =======================================================================================
import logging
from typing import Iterable, Optional
from sqlalchemy import delete, insert, select
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError
from ..models.schemas import DeviceRegistration
from ..models.tables import device_registration_supervisors, device_registrations
from ..utils.clock import utcnow
from ..utils.exceptions import ConflictError, NotFoundError
from .groups import GroupDirectory
from .timespans import TimespanManager

logger = logging.getLogger(__name__)


class RoomSessionService:
    """Binds a tablet to a room for the length of a supervised session."""

    def __init__(self, timespan_manager: TimespanManager, directory: GroupDirectory):
        self.timespans = timespan_manager
        self.groups = directory

    def register_device(self, conn: Connection, room_id: int, device_id: str,
                        supervisor_ids: Iterable[int] = (), group_id: Optional[int] = None,
                        ag_id: Optional[int] = None) -> DeviceRegistration:
        self.groups.get_room(conn, room_id)

        existing = conn.execute(
            select(device_registrations.c.id, device_registrations.c.room_id)
            .where(device_registrations.c.device_id == device_id)
            .with_for_update()
        ).first()
        if existing:
            raise ConflictError(f"device {device_id} is already registered to room {existing.room_id}")

        now = utcnow()
        timespan = self.timespans.open(conn, now)
        supervisors = list(dict.fromkeys(supervisor_ids))
        try:
            # a concurrent register of the same device passes the check above
            with conn.begin_nested():
                result = conn.execute(
                    insert(device_registrations).values(
                        device_id=device_id,
                        room_id=room_id,
                        timespan_id=timespan.id,
                        group_id=group_id,
                        ag_id=ag_id,
                        created_at=now,
                    )
                )
                registration_id = result.inserted_primary_key[0]
                for supervisor_id in supervisors:
                    conn.execute(
                        insert(device_registration_supervisors).values(
                            registration_id=registration_id, supervisor_id=supervisor_id, created_at=now
                        )
                    )
        except IntegrityError:
            raise ConflictError(f"device {device_id} is already registered")

        logger.info("Registered device %s to room %s (timespan %s)", device_id, room_id, timespan.id)
        return DeviceRegistration(
            id=registration_id,
            device_id=device_id,
            room_id=room_id,
            timespan_id=timespan.id,
            group_id=group_id,
            ag_id=ag_id,
            supervisor_ids=supervisors,
            created_at=now,
        )

    def get_registration(self, conn: Connection, device_id: str) -> DeviceRegistration:
        row = conn.execute(
            select(device_registrations).where(device_registrations.c.device_id == device_id)
        ).mappings().first()
        if not row:
            raise NotFoundError(f"device {device_id} is not registered")
        supervisor_ids = conn.execute(
            select(device_registration_supervisors.c.supervisor_id)
            .where(device_registration_supervisors.c.registration_id == row["id"])
            .order_by(device_registration_supervisors.c.id)
        ).scalars().all()
        return DeviceRegistration(**row, supervisor_ids=list(supervisor_ids))

    def unregister_device(self, conn: Connection, room_id: int, device_id: str) -> None:
        """Close the session timespan and drop the registration."""
        row = conn.execute(
            select(device_registrations.c.id, device_registrations.c.timespan_id)
            .where(device_registrations.c.room_id == room_id, device_registrations.c.device_id == device_id)
            .with_for_update()
        ).mappings().first()
        if not row:
            raise NotFoundError(f"device {device_id} is not registered to room {room_id}")

        self.timespans.close(conn, row["timespan_id"], utcnow())
        conn.execute(
            delete(device_registration_supervisors)
            .where(device_registration_supervisors.c.registration_id == row["id"])
        )
        conn.execute(delete(device_registrations).where(device_registrations.c.id == row["id"]))
        logger.info("Unregistered device %s from room %s", device_id, room_id)
