# =======================================================================================
# roomtrack/models/tables.py - Table Definitions
# =======================================================================================
from sqlalchemy import (
    BigInteger, Boolean, Column, Date, DateTime, ForeignKey, Integer,
    MetaData, String, Table, UniqueConstraint, true,
)

metadata = MetaData()

# SQLite only autoincrements INTEGER PRIMARY KEY
Id = BigInteger().with_variant(Integer(), "sqlite")


def _pk() -> Column:
    return Column("id", Id, primary_key=True, autoincrement=True)


# ---------- reference data read by the core ----------

persons = Table(
    "persons", metadata,
    _pk(),
    Column("first_name", String(100), nullable=False),
    Column("second_name", String(100), nullable=False, server_default=""),
    Column("tag_id", String(100), unique=True),
)

rooms = Table(
    "rooms", metadata,
    _pk(),
    Column("room_name", String(100), nullable=False),
    Column("floor", Integer, nullable=False, server_default="0"),
    Column("capacity", Integer, nullable=False, server_default="0"),
)

groups = Table(
    "groups", metadata,
    _pk(),
    Column("name", String(100), nullable=False, unique=True),
    # a room is bound to at most one group
    Column("room_id", Id, ForeignKey("rooms.id", ondelete="SET NULL"), unique=True),
    Column("representative_id", Id),
)

group_supervisors = Table(
    "group_supervisors", metadata,
    _pk(),
    Column("group_id", Id, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False),
    Column("supervisor_id", Id, nullable=False),
    Column("created_at", DateTime, nullable=False),
    UniqueConstraint("group_id", "supervisor_id"),
)

students = Table(
    "students", metadata,
    _pk(),
    Column("person_id", Id, ForeignKey("persons.id", ondelete="CASCADE"), nullable=False, unique=True),
    Column("group_id", Id, ForeignKey("groups.id", ondelete="SET NULL")),
    Column("location", String(20), nullable=False, server_default="out"),
    Column("modified_at", DateTime),
)

# ---------- ledger ----------

timespans = Table(
    "timespans", metadata,
    _pk(),
    Column("start_time", DateTime, nullable=False),
    Column("end_time", DateTime, index=True),
    Column("created_at", DateTime, nullable=False),
)

combined_groups = Table(
    "combined_groups", metadata,
    _pk(),
    Column("name", String(255), nullable=False),
    Column("is_active", Boolean, nullable=False, server_default=true()),
    Column("created_at", DateTime, nullable=False),
    Column("valid_until", DateTime),
    Column("access_policy", String(20), nullable=False, server_default="all"),
)

visits = Table(
    "visits", metadata,
    _pk(),
    Column("day", Date, nullable=False, index=True),
    Column("student_id", Id, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("room_id", Id, ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("timespan_id", Id, ForeignKey("timespans.id", ondelete="RESTRICT"), nullable=False),
    Column("combined_group_id", Id, ForeignKey("combined_groups.id", ondelete="SET NULL")),
    Column("created_at", DateTime, nullable=False),
)

combined_group_groups = Table(
    "combined_group_groups", metadata,
    _pk(),
    Column("combined_group_id", Id, ForeignKey("combined_groups.id", ondelete="CASCADE"), nullable=False),
    Column("group_id", Id, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False),
    Column("created_at", DateTime, nullable=False),
    UniqueConstraint("combined_group_id", "group_id"),
)

combined_group_supervisors = Table(
    "combined_group_supervisors", metadata,
    _pk(),
    Column("combined_group_id", Id, ForeignKey("combined_groups.id", ondelete="CASCADE"), nullable=False),
    Column("supervisor_id", Id, nullable=False),
    Column("created_at", DateTime, nullable=False),
    UniqueConstraint("combined_group_id", "supervisor_id"),
)

# ---------- ingestion / devices ----------

tag_reads = Table(
    "tag_reads", metadata,
    _pk(),
    Column("tag_id", String(100), nullable=False),
    Column("reader_id", String(100), nullable=False),
    Column("read_at", DateTime, nullable=False),
)

device_registrations = Table(
    "device_registrations", metadata,
    _pk(),
    Column("device_id", String(100), nullable=False, unique=True),
    Column("room_id", Id, ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False),
    Column("timespan_id", Id, ForeignKey("timespans.id"), nullable=False),
    Column("group_id", Id, ForeignKey("groups.id", ondelete="SET NULL")),
    Column("ag_id", Id),
    Column("created_at", DateTime, nullable=False),
)

device_registration_supervisors = Table(
    "device_registration_supervisors", metadata,
    _pk(),
    Column("registration_id", Id, ForeignKey("device_registrations.id", ondelete="CASCADE"), nullable=False),
    Column("supervisor_id", Id, nullable=False),
    Column("created_at", DateTime, nullable=False),
)

device_syncs = Table(
    "device_syncs", metadata,
    _pk(),
    Column("device_id", String(100), nullable=False, index=True),
    Column("sync_at", DateTime, nullable=False),
    Column("ip_address", String(45)),
    Column("tags_count", Integer, nullable=False, server_default="0"),
    Column("app_version", String(50)),
    Column("created_at", DateTime, nullable=False),
)
