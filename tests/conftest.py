"""
Shared fixtures: a fresh file-backed SQLite database per test, seeded with
a handful of rooms, groups, supervisors and students.

Seed layout:
- Room 101 "Room 101" <- group 1 "Class 1A" (supervisors 10, 11)
- Room 102 "Room 102" <- group 2 "Class 1B" (supervisors 11, 12)
- Room 103, Room 104: no group
- Student 456: Anna Schmidt, tag STUDENT0001
- Student 457: Ben Meier, tag STUDENT0002
- Person 3: Carla Vogt, tag STAFF0001, not a student
"""

import pytest
from datetime import datetime
from fastapi.testclient import TestClient
from sqlalchemy import func, insert, select

from roomtrack.config import config
from roomtrack.database import DatabaseManager
from roomtrack.main import create_app
from roomtrack.models.tables import group_supervisors, groups, persons, rooms, students
from roomtrack.services import Services


STUDENT_TAG = "STUDENT0001"
OTHER_STUDENT_TAG = "STUDENT0002"
STAFF_TAG = "STAFF0001"
STUDENT_ID = 456
OTHER_STUDENT_ID = 457


def seed(conn):
    created = datetime(2025, 1, 1, 8, 0, 0)
    conn.execute(insert(rooms), [
        {"id": 101, "room_name": "Room 101", "floor": 1, "capacity": 30},
        {"id": 102, "room_name": "Room 102", "floor": 1, "capacity": 20},
        {"id": 103, "room_name": "Room 103", "floor": 2, "capacity": 15},
        {"id": 104, "room_name": "Room 104", "floor": 2, "capacity": 15},
    ])
    conn.execute(insert(groups), [
        {"id": 1, "name": "Class 1A", "room_id": 101},
        {"id": 2, "name": "Class 1B", "room_id": 102},
    ])
    conn.execute(insert(group_supervisors), [
        {"group_id": 1, "supervisor_id": 10, "created_at": created},
        {"group_id": 1, "supervisor_id": 11, "created_at": created},
        {"group_id": 2, "supervisor_id": 11, "created_at": created},
        {"group_id": 2, "supervisor_id": 12, "created_at": created},
    ])
    conn.execute(insert(persons), [
        {"id": 1, "first_name": "Anna", "second_name": "Schmidt", "tag_id": STUDENT_TAG},
        {"id": 2, "first_name": "Ben", "second_name": "Meier", "tag_id": OTHER_STUDENT_TAG},
        {"id": 3, "first_name": "Carla", "second_name": "Vogt", "tag_id": STAFF_TAG},
    ])
    conn.execute(insert(students), [
        {"id": STUDENT_ID, "person_id": 1, "group_id": 1, "location": "out"},
        {"id": OTHER_STUDENT_ID, "person_id": 2, "group_id": 1, "location": "out"},
    ])


def count_rows(conn, table):
    return conn.execute(select(func.count()).select_from(table)).scalar_one()


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def db(tmp_path):
    manager = DatabaseManager(f"sqlite:///{tmp_path / 'roomtrack.db'}")
    manager.create_schema()
    with manager.get_connection() as conn:
        seed(conn)
    yield manager
    manager.dispose()


@pytest.fixture
def conn(db):
    """One transaction for service-level tests."""
    with db.get_connection() as connection:
        yield connection


@pytest.fixture
def services():
    return Services()


@pytest.fixture
def app(db, monkeypatch):
    monkeypatch.setattr(config, "EXPIRY_SWEEP_INTERVAL", 0.0)
    monkeypatch.setattr(config, "DB_AUTO_CREATE", False)
    return create_app(db=db)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
