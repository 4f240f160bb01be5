"""Tests for tablet room sessions."""

import pytest
from sqlalchemy import insert

from roomtrack.models.tables import device_registration_supervisors, device_registrations
from roomtrack.utils.clock import utcnow
from roomtrack.utils.exceptions import ConflictError, NotFoundError

from conftest import count_rows


def test_register_opens_session(conn, services):
    registration = services.room_sessions.register_device(
        conn, 101, "tablet-1", supervisor_ids=[10, 11, 10], group_id=1
    )

    assert registration.room_id == 101
    assert registration.group_id == 1
    assert registration.supervisor_ids == [10, 11]
    assert services.timespans.get(conn, registration.timespan_id).is_active(utcnow())

    stored = services.room_sessions.get_registration(conn, "tablet-1")
    assert stored.id == registration.id
    assert stored.supervisor_ids == [10, 11]


def test_device_registers_once(conn, services):
    services.room_sessions.register_device(conn, 101, "tablet-1")

    with pytest.raises(ConflictError):
        services.room_sessions.register_device(conn, 102, "tablet-1")


def test_unregister_closes_session(conn, services):
    registration = services.room_sessions.register_device(conn, 101, "tablet-1", supervisor_ids=[12])

    services.room_sessions.unregister_device(conn, 101, "tablet-1")

    assert services.timespans.get(conn, registration.timespan_id).end_time is not None
    assert count_rows(conn, device_registration_supervisors) == 0
    with pytest.raises(NotFoundError):
        services.room_sessions.get_registration(conn, "tablet-1")


def test_unregister_from_wrong_room(conn, services):
    services.room_sessions.register_device(conn, 101, "tablet-1")

    with pytest.raises(NotFoundError):
        services.room_sessions.unregister_device(conn, 102, "tablet-1")


def test_register_unknown_room(conn, services):
    with pytest.raises(NotFoundError):
        services.room_sessions.register_device(conn, 999, "tablet-1")


def test_concurrent_register_is_a_conflict(conn, services, monkeypatch):
    # another transaction registers the device after the duplicate check ran
    real_open = services.timespans.open

    def open_then_race(connection, start=None):
        span = real_open(connection, start)
        connection.execute(insert(device_registrations).values(
            device_id="tablet-1", room_id=102, timespan_id=span.id, created_at=utcnow(),
        ))
        return span

    monkeypatch.setattr(services.timespans, "open", open_then_race)

    with pytest.raises(ConflictError):
        services.room_sessions.register_device(conn, 101, "tablet-1", supervisor_ids=[10])

    # only the savepoint was rolled back
    assert services.room_sessions.get_registration(conn, "tablet-1").room_id == 102
    assert count_rows(conn, device_registrations) == 1
    assert count_rows(conn, device_registration_supervisors) == 0
