"""
Shared fixtures.

The environment is set BEFORE the application modules are imported:
  - DATABASE_URL=sqlite:// → one in-memory database shared by every session
  - AI_API_KEY empty       → no real AI provider, canned replies by default
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AI_API_KEY"] = ""
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ.pop("MINDWELL_SEED_DEMO_USER", None)

import pytest
from fastapi.testclient import TestClient

from database import SessionLocal, init_db, drop_db
from errors import UpstreamError
from gamification import seed_achievements, seed_exercises
from main import app
from models import User
from storage import RecordStore


class StubProvider:
    """Answers every prompt with the same text and remembers what it was sent"""

    def __init__(self, answer="Let's try a short grounding exercise together."):
        self.answer = answer
        self.calls = []

    def complete(self, system_prompt, messages):
        self.calls.append((system_prompt, list(messages)))
        return self.answer


class FailingProvider:
    def complete(self, system_prompt, messages):
        raise UpstreamError("provider is down")


@pytest.fixture(autouse=True)
def fresh_database():
    drop_db()
    init_db()
    session = SessionLocal()
    try:
        seed_achievements(session)
        seed_exercises(session)
    finally:
        session.close()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(db):
    return RecordStore(db)


@pytest.fixture
def make_user(store):
    def _make_user(username="alice", **fields):
        fields.setdefault("email", f"{username}@example.com")
        fields.setdefault("password_hash", "not-a-real-hash")
        fields.setdefault("first_name", username.title())
        return store.create(User, username=username, **fields)
    return _make_user


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def register(client, username="alice", password="secret123"):
    response = client.post("/api/auth/register", json={
        "username": username,
        "password": password,
        "email": f"{username}@example.com",
        "first_name": username.title(),
    })
    assert response.status_code == 201, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def auth_headers(client):
    return register(client, "alice")


@pytest.fixture
def other_headers(client):
    return register(client, "bob")
