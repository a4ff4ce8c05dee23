import os
from datetime import datetime, timezone
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import SQLAlchemyError

from learning_portal.infrastructure.models import ReadingProgressORM, StudentORM
from learning_portal.infrastructure.repositories import AnalyticsRepository, HandbookRepository, months_before

from conftest import ADMIN_EMAIL, auth, register_student, upload_handbook


def test_admin_login_success(client):
    """Тест входа администратора, созданного при старте"""
    response = client.post("/api/admin/login", json={"email": ADMIN_EMAIL.upper(), "password": "admin-password"})
    assert response.status_code == 200
    body = response.json()
    assert body["admin"]["email"] == ADMIN_EMAIL
    assert body["admin"]["permission"] == "super-admin"
    assert body["token"]


def test_admin_login_invalid_credentials(client):
    wrong = client.post("/api/admin/login", json={"email": ADMIN_EMAIL, "password": "bad-password"})
    unknown = client.post("/api/admin/login", json={"email": "nobody@example.com", "password": "bad-password"})
    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json() == unknown.json() == {"success": False, "message": "Invalid credentials"}


def test_student_token_rejected_on_admin_routes(client):
    """Тест: токен студента не даёт доступ к админским маршрутам"""
    _, token = register_student(client)
    response = client.get("/api/admin/students", headers=auth(token))
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid token type"


def test_admin_routes_require_token(client):
    response = client.get("/api/admin/analytics")
    assert response.status_code == 401


def test_list_students_with_filters(client, admin_token):
    """Тест списка студентов с фильтрами"""
    register_student(client, email="web@example.com", full_name="Web Person", track="Web Development")
    register_student(client, email="photo@example.com", full_name="Photo Person", track="Photography")

    response = client.get("/api/admin/students", headers=auth(admin_token))
    assert response.status_code == 200
    assert response.json()["count"] == 2

    response = client.get("/api/admin/students?track=Photography", headers=auth(admin_token))
    data = response.json()["data"]
    assert [s["email"] for s in data] == ["photo@example.com"]

    response = client.get("/api/admin/students?search=WEB", headers=auth(admin_token))
    assert [s["email"] for s in response.json()["data"]] == ["web@example.com"]

    response = client.get("/api/admin/students?status=suspended", headers=auth(admin_token))
    assert response.json()["count"] == 0


def test_update_student_status(client, admin_token):
    """Тест блокировки студента"""
    student_id, token = register_student(client)
    response = client.put(f"/api/admin/students/{student_id}", json={"status": "suspended"}, headers=auth(admin_token))
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "suspended"

    # существующий токен больше не проходит guard
    me = client.get("/api/auth/me", headers=auth(token))
    assert me.status_code == 403
    assert me.json()["message"] == "Your account has been suspended"

    response = client.put(f"/api/admin/students/{student_id}", json={"status": "active"}, headers=auth(admin_token))
    assert response.status_code == 200
    assert client.get("/api/auth/me", headers=auth(token)).status_code == 200


def test_update_student_invalid_status(client, admin_token):
    student_id, _ = register_student(client)
    response = client.put(f"/api/admin/students/{student_id}", json={"status": "banned"}, headers=auth(admin_token))
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid status value"


def test_update_student_not_found(client, admin_token):
    response = client.put("/api/admin/students/missing", json={"status": "active"}, headers=auth(admin_token))
    assert response.status_code == 404
    assert response.json()["message"] == "Student not found"


def test_get_student_with_progress(client, admin_token):
    student_id, token = register_student(client)
    handbook = upload_handbook(client, admin_token, total_pages=20)
    client.post("/api/student/progress", json={"handbook_id": handbook["id"], "last_page_read": 5},
                headers=auth(token))

    response = client.get(f"/api/admin/students/{student_id}", headers=auth(admin_token))
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["student"]["id"] == student_id
    assert len(data["progress"]) == 1
    assert data["progress"][0]["handbook"]["title"] == "Handbook"
    assert data["progress"][0]["completion_percentage"] == 25


def test_delete_student_cascades(client, app, admin_token):
    """Тест удаления студента вместе с прогрессом"""
    student_id, token = register_student(client)
    handbook = upload_handbook(client, admin_token)
    client.post("/api/student/progress", json={"handbook_id": handbook["id"], "last_page_read": 2},
                headers=auth(token))

    response = client.delete(f"/api/admin/students/{student_id}", headers=auth(admin_token))
    assert response.status_code == 200
    assert response.json()["message"] == "Student deleted successfully"

    assert client.get(f"/api/admin/students/{student_id}", headers=auth(admin_token)).status_code == 404

    db = app.state.session_factory()
    try:
        assert db.query(ReadingProgressORM).filter(ReadingProgressORM.student_id == student_id).count() == 0
    finally:
        db.close()

    # токен удалённого студента отклоняется как 401, не 500
    me = client.get("/api/auth/me", headers=auth(token))
    assert me.status_code == 401
    assert me.json()["message"] == "Student not found"

    assert client.delete(f"/api/admin/students/{student_id}", headers=auth(admin_token)).status_code == 404


def test_upload_handbook(client, settings, admin_token):
    """Тест загрузки справочника"""
    data = upload_handbook(client, admin_token, title="Intro to HTML", total_pages=42)
    assert data["title"] == "Intro to HTML"
    assert data["track"] == "Web Development"
    assert data["total_pages"] == 42
    assert data["view_count"] == 0
    assert data["file_name"].endswith(".pdf")
    assert os.path.isfile(os.path.join(settings.UPLOAD_DIR, data["file_name"]))


def test_upload_handbook_requires_file(client, admin_token):
    response = client.post(
        "/api/admin/handbooks",
        data={"title": "No file", "track": "Photography"},
        headers=auth(admin_token),
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Please upload a PDF file"


def test_upload_handbook_rejects_non_pdf(client, settings, admin_token):
    response = client.post(
        "/api/admin/handbooks",
        data={"title": "Notes", "track": "Photography"},
        files={"handbook": ("notes.txt", b"plain text", "text/plain")},
        headers=auth(admin_token),
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Only PDF files are allowed"
    assert not os.path.isdir(settings.UPLOAD_DIR) or not os.listdir(settings.UPLOAD_DIR)


def test_upload_handbook_requires_title_and_track(client, admin_token):
    response = client.post(
        "/api/admin/handbooks",
        data={"description": "missing title"},
        files={"handbook": ("guide.pdf", b"%PDF-1.4", "application/pdf")},
        headers=auth(admin_token),
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Title and track are required"

    response = client.post(
        "/api/admin/handbooks",
        data={"title": "Guide", "track": "Cooking"},
        files={"handbook": ("guide.pdf", b"%PDF-1.4", "application/pdf")},
        headers=auth(admin_token),
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid track selected"


def test_upload_handbook_db_failure_removes_file(app, client, settings, admin_token):
    """Тест: если запись в БД не удалась, загруженный файл удаляется"""
    failing = TestClient(app, raise_server_exceptions=False)
    with patch.object(HandbookRepository, "create", side_effect=SQLAlchemyError("database is down")):
        response = failing.post(
            "/api/admin/handbooks",
            data={"title": "Guide", "track": "Photography"},
            files={"handbook": ("guide.pdf", b"%PDF-1.4", "application/pdf")},
            headers=auth(admin_token),
        )
    assert response.status_code == 500
    assert response.json() == {"success": False, "message": "Server error"}
    assert os.listdir(settings.UPLOAD_DIR) == []

def test_list_and_update_handbooks(client, admin_token):
    upload_handbook(client, admin_token, title="Web", track="Web Development")
    photo = upload_handbook(client, admin_token, title="Photo", track="Photography")

    response = client.get("/api/admin/handbooks", headers=auth(admin_token))
    assert response.json()["count"] == 2
    response = client.get("/api/admin/handbooks?track=Photography", headers=auth(admin_token))
    assert [h["title"] for h in response.json()["data"]] == ["Photo"]

    response = client.put(f"/api/admin/handbooks/{photo['id']}", json={"total_pages": 12},
                          headers=auth(admin_token))
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total_pages"] == 12
    assert data["title"] == "Photo"

    response = client.put("/api/admin/handbooks/missing", json={"title": "x"}, headers=auth(admin_token))
    assert response.status_code == 404


def test_delete_handbook_removes_file(client, settings, admin_token):
    """Тест удаления справочника вместе с файлом"""
    data = upload_handbook(client, admin_token)
    path = os.path.join(settings.UPLOAD_DIR, data["file_name"])
    assert os.path.isfile(path)

    response = client.delete(f"/api/admin/handbooks/{data['id']}", headers=auth(admin_token))
    assert response.status_code == 200
    assert not os.path.exists(path)
    assert client.get("/api/admin/handbooks", headers=auth(admin_token)).json()["count"] == 0


def test_delete_handbook_missing_file_is_not_fatal(client, settings, admin_token):
    data = upload_handbook(client, admin_token)
    os.remove(os.path.join(settings.UPLOAD_DIR, data["file_name"]))
    response = client.delete(f"/api/admin/handbooks/{data['id']}", headers=auth(admin_token))
    assert response.status_code == 200


def test_analytics(client, admin_token):
    """Тест аналитики"""
    _, token = register_student(client, email="a@example.com", track="Web Development")
    register_student(client, email="b@example.com", track="Photography")
    client.post("/api/auth/login", json={"email": "a@example.com", "password": "secret123"})
    handbook = upload_handbook(client, admin_token)
    client.get(f"/api/student/handbook/{handbook['id']}", headers=auth(token))
    client.get("/")

    response = client.get("/api/admin/analytics", headers=auth(admin_token))
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total_students"] == 2
    assert {(t["track"], t["count"]) for t in data["students_by_track"]} == {
        ("Web Development", 1), ("Photography", 1)
    }
    assert data["total_handbooks"] == 1
    assert data["recent_registrations"] == 2
    assert data["active_students"] == 1
    assert data["total_handbook_views"] == 1
    assert sum(p["count"] for p in data["registrations_trend"]) == 2
    assert data["visitors"] == {"unique_visitors": 1, "total_visits": 1}


@pytest.mark.parametrize("moment, months, expected", [
    (datetime(2024, 3, 15, 10), 12, datetime(2023, 3, 15, 10)),
    (datetime(2024, 1, 31), 1, datetime(2023, 12, 31)),
    (datetime(2024, 2, 29), 12, datetime(2023, 3, 1)),
    (datetime(2024, 3, 31), 1, datetime(2024, 3, 2)),
])
def test_months_before(moment, months, expected):
    assert months_before(moment, months) == expected


def test_registration_trend_covers_twelve_calendar_months(client, app):
    """Тест: окно тренда регистраций считается в календарных месяцах"""
    db = app.state.session_factory()
    try:
        # внутри 12 месяцев, но старше 365 дней (високосный год)
        db.add(StudentORM(full_name="Edge", email="edge@example.com", whatsapp_number="+1",
                          password_hash="x", track="Photography",
                          registration_date=datetime(2023, 3, 15, 12, 0)))
        db.add(StudentORM(full_name="Old", email="old@example.com", whatsapp_number="+1",
                          password_hash="x", track="Photography",
                          registration_date=datetime(2023, 3, 15, 8, 0)))
        db.commit()
        data = AnalyticsRepository(db).summary(now=datetime(2024, 3, 15, 10, 0, tzinfo=timezone.utc))
    finally:
        db.close()
    assert data["registrations_trend"] == [{"year": 2023, "month": 3, "count": 1}]
