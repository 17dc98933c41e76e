# tests/test_api.py

import pytest
from fastapi.testclient import TestClient

from course_matching.config import settings
from course_matching.database import get_db
from course_matching.main import app
from course_matching.utils.auth import create_access_token, get_current_user, require_admin, require_student

from conftest import ts


@pytest.fixture
def users(make_user):
    return {"admin": make_user(role="admin"), "student": make_user(role="student")}


@pytest.fixture
def client(db, users):
    """TestClient on the test session, with the role guards resolved to fixed users."""
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_current_user] = lambda: users["student"]
    app.dependency_overrides[require_admin] = lambda: users["admin"]
    app.dependency_overrides[require_student] = lambda: users["student"]
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def test_create_windows_and_list_slots(client, make_course):
    course = make_course()

    res = client.post(f"/courses/{course.id}/time-windows",
                      json={"day_of_week": 1, "start_time": "10:00", "end_time": "12:00"})
    assert res.status_code == 200
    assert [w["start_time"] for w in res.json()] == ["10:00", "11:00"]

    res = client.get(f"/courses/{course.id}/time-windows/slots",
                     params={"days": 7, "from": "2026-10-19T00:00:00+09:00"})
    assert res.status_code == 200
    assert len(res.json()) == 2


def test_invalid_window_is_400(client, make_course):
    course = make_course()

    res = client.post(f"/courses/{course.id}/time-windows",
                      json={"day_of_week": 1, "start_time": "10:00", "end_time": "11:30"})

    assert res.status_code == 400
    assert "divisible" in res.json()["detail"]


def test_apply_twice_is_409(client, make_course, make_window):
    course = make_course()
    w = make_window(course)

    first = client.post(f"/courses/{course.id}/applications", json={"window_ids": [w.id]})
    second = client.post(f"/courses/{course.id}/applications", json={"window_ids": [w.id]})

    assert first.status_code == 200
    assert first.json()["status"] == "pending"
    assert second.status_code == 409
    assert second.json() == {"detail": "You have already applied to this course."}


def test_proposals_and_confirm(client, users, make_course, make_window, make_application):
    course = make_course(capacity=1)
    w = make_window(course)
    make_application(course, users["student"], [w.id], created_at=ts(10))

    proposals = client.post(f"/admin/courses/{course.id}/proposals").json()
    assert proposals["mode"] == "popular"
    proposal = proposals["proposals"][0]

    body = {
        "slot_start_at": proposal["slot_start_at"],
        "slot_end_at": proposal["slot_end_at"],
        "window_id": w.id,
        "student_ids": [users["student"].id, users["admin"].id],
    }
    too_many = client.post(f"/admin/courses/{course.id}/matches", json=body)
    assert too_many.status_code == 400

    body["student_ids"] = [users["student"].id]
    res = client.post(f"/admin/courses/{course.id}/matches", json=body)
    assert res.status_code == 200
    assert res.json()["status"] == "confirmed"
    assert [s["student_id"] for s in res.json()["students"]] == [users["student"].id]


def test_unknown_course_is_404(client):
    res = client.post("/admin/courses/999/proposals")

    assert res.status_code == 404
    assert res.json() == {"detail": "Course not found"}


def test_auto_match_accepts_from_to(client, make_course):
    course = make_course()

    res = client.post(f"/admin/courses/{course.id}/auto-match",
                      json={"from": "2026-10-01T00:00:00Z", "to": "2026-10-31T00:00:00Z"})

    assert res.status_code == 200
    assert res.json()["matched"] == 0


# --- real bearer tokens through the role guards ---

@pytest.fixture
def token_client(db, monkeypatch):
    monkeypatch.setattr(settings, "JWT_SECRET", "test-secret")
    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _auth(user):
    return {"Authorization": f"Bearer {create_access_token({'sub': user.username})}"}


def test_admin_token_manages_notification_emails(token_client, users):
    headers = _auth(users["admin"])

    added = token_client.post("/admin/notification-emails", json={"email": " Ops@Example.com ", "label": "ops"},
                              headers=headers)
    duplicate = token_client.post("/admin/notification-emails", json={"email": "ops@example.com"}, headers=headers)
    listed = token_client.get("/admin/notification-emails", headers=headers)

    assert added.status_code == 200
    assert added.json()["email"] == "ops@example.com"
    assert duplicate.status_code == 409
    assert [e["label"] for e in listed.json()] == ["ops"]

    deleted = token_client.delete(f"/admin/notification-emails/{added.json()['id']}", headers=headers)
    assert deleted.status_code == 200
    assert token_client.get("/admin/notification-emails", headers=headers).json() == []


def test_student_token_is_rejected_by_admin_routes(token_client, users):
    res = token_client.get("/admin/notification-emails", headers=_auth(users["student"]))

    assert res.status_code == 403


def test_missing_or_bad_token(token_client, make_user):
    assert token_client.get("/admin/notification-emails").status_code == 401
    assert token_client.get("/admin/notification-emails",
                            headers={"Authorization": "Bearer not-a-jwt"}).status_code == 403

    ghost = create_access_token({"sub": "nobody"})
    res = token_client.get("/admin/notification-emails", headers={"Authorization": f"Bearer {ghost}"})
    assert res.status_code == 401


def test_instructor_declares_availability_range(token_client, make_user, make_course):
    instructor = make_user(role="instructor")
    course = make_course()

    res = token_client.post(
        "/availability",
        json={"course_id": course.id, "start_at": "2026-10-19T10:00:00+09:00", "end_at": "2026-10-19T12:30:00+09:00"},
        headers=_auth(instructor),
    )

    assert res.status_code == 200
    assert [(s["role"], s["capacity"]) for s in res.json()] == [("instructor", 4), ("instructor", 4)]
    mine = token_client.get("/availability", params={"course_id": course.id}, headers=_auth(instructor))
    assert len(mine.json()) == 2
