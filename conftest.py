import os

os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ["DATABASE_PATH"] = ":memory:"
os.environ["SEED_MOCK_DATA"] = "0"

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from passlib.hash import bcrypt

from database import Database, get_db
from main import app
from models import User


def future_date(days=30, hour=10):
    return (datetime.now() + timedelta(days=days)).replace(hour=hour, minute=0, second=0, microsecond=0)


def event_payload(**overrides):
    payload = {
        "name": "Test Event",
        "location": "Main Hall",
        "date": future_date().isoformat(),
        "description": "An event for tests",
        "category": "technology",
        "limit": 50,
    }
    payload.update(overrides)
    return payload


def add_user(db, user_id, name, email, password="password123"):
    user = User(id=user_id, name=name, email=email, password=bcrypt.hash(password), created_at=datetime.now())
    db.add_user(user)
    return user


def login(client, email, password="password123"):
    """Bearer headers for a user; the session cookie is dropped so every request names its user."""
    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    client.cookies.clear()
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def db():
    database = Database(":memory:")
    yield database
    database.close()


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def organizer_user(db):
    return add_user(db, "user1", "Test Organizer", "organizer@example.com")


@pytest.fixture
def participant_user(db):
    return add_user(db, "user2", "Test Participant", "participant@example.com")


@pytest.fixture
def auth_headers(client, organizer_user):
    return login(client, "organizer@example.com")


@pytest.fixture
def participant_headers(client, participant_user):
    return login(client, "participant@example.com")
