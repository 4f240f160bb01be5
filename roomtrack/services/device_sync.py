# =======================================================================================
# roomtrack/services/device_sync.py - Tablet Batch Sync
# =======================================================================================
import logging
from typing import List, Optional, Sequence
from sqlalchemy import insert, select
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError
from .. import __version__
from ..models.enums import Location, LocationEvent
from ..models.schemas import (
    AppStats,
    AppStatus,
    DeviceSyncRecord,
    DeviceSyncResponse,
    SyncTag,
)
from ..models.tables import device_syncs
from ..utils.clock import utcnow
from ..utils.exceptions import RoomTrackError
from .identity import IdentityResolver
from .location import LocationStateMachine
from .room_sessions import RoomSessionService
from .tag_log import TagLog

logger = logging.getLogger(__name__)


class DeviceSyncService:
    """Accepts tag batches uploaded by registered tablets."""

    def __init__(
        self,
        tag_log: TagLog,
        room_sessions: RoomSessionService,
        identity: IdentityResolver,
        locations: LocationStateMachine,
    ):
        self.tag_log = tag_log
        self.room_sessions = room_sessions
        self.identity = identity
        self.locations = locations

    def sync(self, conn: Connection, device_id: str, tags: Sequence[SyncTag],
             app_version: Optional[str] = None, ip_address: Optional[str] = None) -> DeviceSyncResponse:
        """
        Process a tablet's batch upload:
        - The device must be registered to a room
        - All tags are stored; a failure here fails the sync
        - The sync is audited (best effort)
        - Every tag that resolves to a student marks them in-house (best effort)
        """
        self.room_sessions.get_registration(conn, device_id)
        logger.info("Processing sync from device %s (%d tags, app %s)", device_id, len(tags), app_version)

        saved = self.tag_log.save_tags(conn, tags)
        self._record_sync(conn, device_id, saved, app_version, ip_address)

        updated = 0
        for subject_id in self._students_for_tags(conn, tags):
            try:
                with conn.begin_nested():
                    self.locations.update_location(conn, subject_id, LocationEvent.ENTRY)
                updated += 1
            except (SQLAlchemyError, RoomTrackError):
                logger.warning("Failed to update location of student %s during sync", subject_id, exc_info=True)

        return DeviceSyncResponse(
            success=True,
            message=f"Successfully synced {saved} tags, processed {updated} student locations",
            tags_saved=saved,
            students_updated=updated,
        )

    def _students_for_tags(self, conn: Connection, tags: Sequence[SyncTag]) -> List[int]:
        subject_ids = []
        for tag_id in dict.fromkeys(tag.tag_id for tag in tags):
            person = self.identity.person_for_tag(conn, tag_id)
            if person is None:
                logger.debug("No user found for synced tag %s", tag_id)
                continue
            subject = self.identity.subject_for_person(conn, person)
            if subject is None:
                logger.debug("User %s found but no student record", person["id"])
                continue
            subject_ids.append(subject.id)
        return subject_ids

    def _record_sync(self, conn: Connection, device_id: str, tags_count: int,
                     app_version: Optional[str], ip_address: Optional[str]) -> None:
        # the tags are stored already; a failed audit only rolls back itself
        try:
            with conn.begin_nested():
                self._insert_sync_row(conn, device_id, tags_count, app_version, ip_address)
        except SQLAlchemyError:
            logger.warning("Failed to record sync of device %s", device_id, exc_info=True)

    def _insert_sync_row(self, conn: Connection, device_id: str, tags_count: int,
                         app_version: Optional[str], ip_address: Optional[str]) -> None:
        now = utcnow()
        conn.execute(
            insert(device_syncs).values(
                device_id=device_id,
                sync_at=now,
                ip_address=ip_address,
                tags_count=tags_count,
                app_version=app_version,
                created_at=now,
            )
        )

    def history(self, conn: Connection, device_id: str, limit: int = 50) -> List[DeviceSyncRecord]:
        """Syncs of one device, newest first."""
        rows = conn.execute(
            select(device_syncs)
            .where(device_syncs.c.device_id == device_id)
            .order_by(device_syncs.c.sync_at.desc(), device_syncs.c.id.desc())
            .limit(limit)
        ).mappings().all()
        return [DeviceSyncRecord(**row) for row in rows]

    def status(self, conn: Connection) -> AppStatus:
        counts = self.locations.count_by_location(conn)
        return AppStatus(
            status="ok",
            timestamp=utcnow(),
            version=__version__,
            stats=AppStats(
                tag_reads=self.tag_log.count(conn),
                students_in_house=counts[Location.IN_HOUSE.value] + counts[Location.IN_HOUSE_WC.value],
                students_in_wc=counts[Location.IN_HOUSE_WC.value],
                students_in_school_yard=counts[Location.SCHOOL_YARD.value],
            ),
        )
