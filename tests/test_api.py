"""End-to-end tests through the HTTP surface."""

import time
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import insert
from sqlalchemy.exc import OperationalError

from roomtrack.config import config
from roomtrack.models.tables import (
    combined_group_groups,
    combined_group_supervisors,
    combined_groups,
    device_syncs,
    tag_reads,
)

from conftest import OTHER_STUDENT_TAG, STAFF_TAG, STUDENT_ID, STUDENT_TAG, count_rows


def _entry(client, tag=STUDENT_TAG, room_id=101):
    return client.post("/room-entry", json={"tag_id": tag, "room_id": room_id, "reader_id": f"reader-{room_id}"})


def _exit(client, tag=STUDENT_TAG, room_id=101):
    return client.post("/room-exit", json={"tag_id": tag, "room_id": room_id, "reader_id": f"reader-{room_id}"})


def _merge(client, headers=None, **body):
    payload = {"source_room_id": 101, "target_room_id": 102}
    payload.update(body)
    return client.post("/combined_groups/merge", json=payload, headers=headers)


# =============================================================================
# HEALTH
# =============================================================================


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "dataAvailable": True, "message": None}


# =============================================================================
# PRESENCE
# =============================================================================


def test_entry_exit_round_trip(client):
    response = _entry(client)
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Student entered room successfully"
    assert body["student_id"] == STUDENT_ID
    assert body["student_count"] == 1

    occupancy = client.get("/room-occupancy", params={"room_id": 101}).json()
    assert occupancy["student_count"] == 1
    assert occupancy["students"][0]["name"] == "Anna Schmidt"

    response = _exit(client)
    assert response.status_code == 200
    assert response.json()["message"] == "Student exited room successfully"
    assert response.json()["student_count"] == 0

    assert client.get("/room-occupancy", params={"room_id": 101}).json()["student_count"] == 0

    visits = client.get(f"/student/{STUDENT_ID}/visits").json()
    assert len(visits) == 1
    assert visits[0]["room_id"] == 101
    assert visits[0]["timespan"]["end_time"] is not None


@pytest.mark.parametrize(
    "tag, message",
    [("NOPE", "No user found with this tag ID"), (STAFF_TAG, "User found but no student record")],
)
def test_entry_with_unresolved_tag(client, db, tag, message):
    response = _entry(client, tag=tag)

    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["message"] == message
    with db.get_connection() as conn:
        assert count_rows(conn, tag_reads) == 1


def test_entry_unknown_room(client):
    response = _entry(client, room_id=999)

    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert "999" in body["error"]


def test_entry_invalid_body(client):
    response = client.post("/room-entry", json={"tag_id": STUDENT_TAG, "room_id": "abc", "reader_id": "r"})
    assert response.status_code == 422

    response = client.post("/room-entry", json={"tag_id": STUDENT_TAG, "room_id": 101})
    assert response.status_code == 422


def test_entry_survives_location_failure(client, app):
    def broken(*args, **kwargs):
        raise OperationalError("UPDATE students", {}, Exception("deadlock"))

    app.state.services.locations.update_location = broken

    response = _entry(client)

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["student_count"] == 1


def test_student_tracking(client):
    response = client.post(
        "/student-tracking",
        json={"tag_id": STUDENT_TAG, "reader_id": "yard-1", "location_type": "schoolyard"},
    )
    assert response.status_code == 200
    assert response.json()["location"] == "schoolyard"
    assert response.json()["name"] == "Anna Schmidt"

    response = client.post(
        "/student-tracking",
        json={"tag_id": STUDENT_TAG, "reader_id": "yard-1", "location_type": "roof"},
    )
    assert response.status_code == 422


# =============================================================================
# VISITS
# =============================================================================


def test_current_rooms_and_today(client):
    _entry(client, room_id=101)
    _entry(client, tag=OTHER_STUDENT_TAG, room_id=102)

    rooms = client.get("/room-occupancy").json()
    assert [r["room_id"] for r in rooms] == [101, 102]

    today = client.get("/visits/today").json()
    assert sorted(v["room_id"] for v in today) == [101, 102]


def test_room_visits_filters(client):
    _entry(client, room_id=101)
    _exit(client, room_id=101)
    _entry(client, tag=OTHER_STUDENT_TAG, room_id=101)

    all_visits = client.get("/room/101/visits").json()
    assert len(all_visits) == 2

    active = client.get("/room/101/visits", params={"active": "true"}).json()
    assert len(active) == 1

    yesterday = (datetime.now(timezone.utc) - timedelta(days=1)).date().isoformat()
    assert client.get("/room/101/visits", params={"date": yesterday}).json() == []


@pytest.mark.parametrize(
    "path",
    ["/student/abc/visits", "/room/xyz/visits", "/room/101/visits?date=not-a-date", "/student/0/visits"],
)
def test_visit_queries_reject_bad_parameters(client, path):
    assert client.get(path).status_code == 422


# =============================================================================
# COMBINED GROUPS
# =============================================================================


def test_merge_lifecycle(client):
    response = _merge(client)
    assert response.status_code == 201
    combined = response.json()["combined_group"]
    assert combined["name"] == "Class 1A + Class 1B"
    assert [g["id"] for g in combined["groups"]] == [1, 2]
    assert combined["access_supervisor_ids"] == [10, 11, 12]

    listed = client.get("/combined_groups").json()
    assert [c["id"] for c in listed] == [combined["id"]]

    assert client.get(f"/combined_groups/{combined['id']}").json()["name"] == combined["name"]
    assert client.get("/rooms/102/combined_group").json()["id"] == combined["id"]

    # entries into a merged room are attributed to the combined group
    _entry(client, room_id=102)
    visits = client.get(f"/combined_groups/{combined['id']}/visits").json()
    assert [v["room_id"] for v in visits] == [102]

    assert client.delete(f"/combined_groups/{combined['id']}").status_code == 200
    assert client.delete(f"/combined_groups/{combined['id']}").status_code == 200
    assert client.get("/combined_groups").json() == []
    assert client.get("/rooms/102/combined_group").status_code == 404


@pytest.mark.parametrize(
    "body",
    [
        {"target_room_id": 101},
        {"source_room_id": 103, "target_room_id": 104},
        {"access_policy": "everyone"},
        {"valid_until": "2000-01-01T00:00:00Z"},
        {"source_room_id": -1},
    ],
)
def test_merge_rejects_invalid_requests(client, body):
    assert _merge(client, **body).status_code == 422


def test_merge_unknown_room(client):
    assert _merge(client, target_room_id=999).status_code == 404


def test_merge_failure_leaves_nothing_behind(client, app, db):
    def broken(*args, **kwargs):
        raise OperationalError("INSERT INTO combined_group_supervisors", {}, Exception("connection lost"))

    app.state.services.combined_groups._grant_access = broken

    response = _merge(client)

    assert response.status_code == 500
    assert response.json()["error"] is None
    with db.get_connection() as conn:
        assert count_rows(conn, combined_groups) == 0
        assert count_rows(conn, combined_group_groups) == 0
        assert count_rows(conn, combined_group_supervisors) == 0


def test_list_expires_elapsed_groups(client, db):
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    with db.get_connection() as conn:
        expired_id = conn.execute(
            insert(combined_groups).values(
                name="Last week", is_active=True, created_at=now - timedelta(days=7),
                valid_until=now - timedelta(minutes=1), access_policy="all",
            )
        ).inserted_primary_key[0]

    assert client.get(f"/combined_groups/{expired_id}").json()["is_active"] is True
    assert client.get("/combined_groups").json() == []
    assert client.get(f"/combined_groups/{expired_id}").json()["is_active"] is False


def test_unknown_combined_group(client):
    assert client.get("/combined_groups/4242").status_code == 404
    assert client.get("/combined_groups/4242/visits").status_code == 404
    assert client.delete("/combined_groups/4242").status_code == 404


def test_room_without_group_has_no_combined_group(client):
    _merge(client)
    assert client.get("/rooms/103/combined_group").status_code == 404


# =============================================================================
# DEVICE REGISTRATION
# =============================================================================


def test_device_registration(client):
    response = client.post("/rooms/101/register", json={"device_id": "tablet-7", "supervisors": [10, 10, 11]})
    assert response.status_code == 201
    assert response.json()["supervisor_ids"] == [10, 11]
    assert response.json()["room_id"] == 101

    response = client.post("/rooms/102/register", json={"device_id": "tablet-7"})
    assert response.status_code == 409

    response = client.post("/rooms/101/unregister", json={"device_id": "tablet-7"})
    assert response.status_code == 200

    response = client.post("/rooms/101/unregister", json={"device_id": "tablet-7"})
    assert response.status_code == 404

    assert client.post("/rooms/102/register", json={"device_id": "tablet-7"}).status_code == 201


def test_device_registration_unknown_room(client):
    assert client.post("/rooms/999/register", json={"device_id": "tablet-1"}).status_code == 404


# =============================================================================
# DEADLINES
# =============================================================================


def test_expired_deadline_aborts_request(client, db, monkeypatch):
    monkeypatch.setattr(config, "REQUEST_TIMEOUT", 0.0)

    response = _merge(client)

    assert response.status_code == 504
    assert response.json()["status"] == "Request deadline exceeded."
    with db.get_connection() as conn:
        assert count_rows(conn, combined_groups) == 0


def test_request_timeout_header_overrides_default(client, monkeypatch):
    monkeypatch.setattr(config, "REQUEST_TIMEOUT", 0.0)

    response = client.get("/combined_groups", headers={"X-Request-Timeout": "30"})
    assert response.status_code == 200


def test_deadline_expiring_during_request_rolls_back(client, app, db):
    real_merge = app.state.services.combined_groups.merge_rooms

    def slow_merge(*args, **kwargs):
        combined = real_merge(*args, **kwargs)
        time.sleep(0.5)
        return combined

    app.state.services.combined_groups.merge_rooms = slow_merge

    response = _merge(client, headers={"X-Request-Timeout": "0.2"}, name="Too slow")

    assert response.status_code == 504
    assert response.json()["success"] is False
    with db.get_connection() as conn:
        assert count_rows(conn, combined_groups) == 0
        assert count_rows(conn, combined_group_groups) == 0


# =============================================================================
# DEVICE SYNC
# =============================================================================


def _register(client, device_id="tablet-7", room_id=101):
    return client.post(f"/rooms/{room_id}/register", json={"device_id": device_id, "supervisors": [10]})


def _sync(client, device_id="tablet-7", tags=(STUDENT_TAG, "UNKNOWN0001")):
    data = [{"tag_id": tag, "reader_id": "tablet-reader"} for tag in tags]
    return client.post("/app/sync", json={"device_id": device_id, "data": data, "app_version": "1.4.0"})


def test_device_sync_round_trip(client):
    _register(client)

    response = _sync(client)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["tags_saved"] == 2
    assert body["students_updated"] == 1
    assert client.get(f"/student/{STUDENT_ID}/location").json()["in_house"] is True

    history = client.get("/devices/tablet-7/sync-history").json()
    assert len(history) == 1
    assert history[0]["tags_count"] == 2
    assert history[0]["app_version"] == "1.4.0"
    assert history[0]["ip_address"] == "testclient"

    tags = client.get("/tags", params={"limit": 1}).json()
    assert len(tags) == 1
    assert tags[0]["reader_id"] == "tablet-reader"


def test_device_sync_requires_registration(client, db):
    response = _sync(client, device_id="stranger")

    assert response.status_code == 404
    with db.get_connection() as conn:
        assert count_rows(conn, tag_reads) == 0
        assert count_rows(conn, device_syncs) == 0


def test_device_sync_survives_audit_failure(client, app, db):
    def broken(*args, **kwargs):
        raise OperationalError("INSERT INTO device_syncs", {}, Exception("disk full"))

    app.state.services.device_sync._insert_sync_row = broken
    _register(client)

    response = _sync(client)

    assert response.status_code == 200
    assert response.json()["success"] is True
    with db.get_connection() as conn:
        assert count_rows(conn, tag_reads) == 2
        assert count_rows(conn, device_syncs) == 0
    assert client.get(f"/student/{STUDENT_ID}/location").json()["location"] == "in_house"


def test_get_device(client):
    _register(client)

    response = client.get("/devices/tablet-7")
    assert response.status_code == 200
    assert response.json()["room_id"] == 101
    assert response.json()["supervisor_ids"] == [10]

    assert client.get("/devices/tablet-8").status_code == 404


def test_app_status(client):
    client.post("/student-tracking", json={"tag_id": STUDENT_TAG, "reader_id": "wc-1", "location_type": "wc"})
    client.post(
        "/student-tracking",
        json={"tag_id": OTHER_STUDENT_TAG, "reader_id": "yard-1", "location_type": "schoolyard"},
    )

    response = client.get("/app/status")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["stats"] == {
        "tag_reads": 2,
        "students_in_house": 1,
        "students_in_wc": 1,
        "students_in_school_yard": 1,
    }


def test_student_location(client):
    assert client.get(f"/student/{STUDENT_ID}/location").json() == {
        "student_id": STUDENT_ID,
        "location": "out",
        "in_house": False,
        "in_wc": False,
        "in_school_yard": False,
    }
    assert client.get("/student/99999/location").status_code == 404
