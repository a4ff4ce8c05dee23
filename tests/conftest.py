import os
import sys

import pytest

CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.dirname(CURRENT_DIR)
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from fastapi.testclient import TestClient

from learning_portal.config import Settings
from learning_portal.main import create_app

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-password"


@pytest.fixture
def settings(tmp_path):
    """Настройки тестового окружения"""
    return Settings(
        DATABASE_URL="sqlite://",
        SECRET_KEY="test-secret",
        BCRYPT_ROUNDS=4,
        RATE_LIMIT_ENABLED=False,
        UPLOAD_DIR=str(tmp_path / "uploads"),
        ADMIN_EMAIL=ADMIN_EMAIL,
        ADMIN_PASSWORD=ADMIN_PASSWORD,
        EMAIL_ENABLED=False,
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    # startup creates the tables and seeds the admin
    with TestClient(app) as c:
        yield c


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register_student(client, email="student@example.com", password="secret123",
                     track="Web Development", full_name="Test Student"):
    response = client.post("/api/auth/register", json={
        "full_name": full_name,
        "email": email,
        "whatsapp_number": "+10000000000",
        "password": password,
        "track": track,
    })
    assert response.status_code == 201, response.text
    body = response.json()
    return body["user"]["id"], body["token"]


def login_admin(client) -> str:
    response = client.post("/api/admin/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert response.status_code == 200, response.text
    return response.json()["token"]


def upload_handbook(client, admin_token, title="Handbook", track="Web Development",
                    total_pages=10, content=b"%PDF-1.4 test document"):
    response = client.post(
        "/api/admin/handbooks",
        data={"title": title, "description": "desc", "track": track, "total_pages": str(total_pages)},
        files={"handbook": ("guide.pdf", content, "application/pdf")},
        headers=auth(admin_token),
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.fixture
def admin_token(client):
    return login_admin(client)
