"""
Shared fixtures.

Every test gets its own application wired to a fresh in-memory SQLite
database, so tests never touch the configured DATABASE_URL.
"""

import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app

TEST_SECRET = "test-secret"


def make_settings(**overrides):
    values = {
        "database_url": "sqlite://",
        "jwt_secret": TEST_SECRET,
        "jwt_expires_in": "90d",
        "environment": "development",
        "require_auth": False,
        "bcrypt_rounds": 4,
        "log_level": "WARNING",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def raw_client(app):
    """Client that returns 500 responses instead of re-raising server errors."""
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client


@pytest.fixture
def db_session(app, client):
    session = app.state.database.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def user_payload():
    return {
        "name": "Test User",
        "email": "test@expendi.io",
        "password": "password123",
        "pin": "1234",
    }


@pytest.fixture
def registered(client, user_payload):
    """Register a user; returns the response body (token + user)."""
    res = client.post("/api/v1/auth/register", json=user_payload)
    assert res.status_code == 201
    return res.json()


@pytest.fixture
def user_id(registered):
    return registered["data"]["user"]["id"]
