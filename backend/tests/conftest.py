"""Shared test fixtures.

Every test gets a fresh in-memory SQLite database; services and the API
app are bound to it.
"""

import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENV", "test")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-not-for-production")

import pytest
from fastapi.testclient import TestClient

from partnerhub.api.main import create_app
from partnerhub.auth.local import UserService
from partnerhub.auth.models import CallerContext
from partnerhub.storage.db import Database
from partnerhub.teams.service import TeamService

PASSWORD = "Passw0rd1"


@pytest.fixture
def database():
    database = Database("sqlite://")
    database.create_tables()
    yield database
    database.drop_tables()
    database.dispose()


@pytest.fixture
def user_service(database):
    return UserService(database)


@pytest.fixture
def team_service(database):
    return TeamService(database)


@pytest.fixture
def make_user(user_service):
    """Register a user and return their caller context."""

    def _make_user(username: str, password: str = PASSWORD, is_admin: bool = False) -> CallerContext:
        user_id = user_service.register(username, password, password)
        if is_admin:
            user_service.set_admin(user_id, True)
        return CallerContext(user_id=user_id, username=username, is_admin=is_admin)

    return _make_user


@pytest.fixture
def alice(make_user):
    return make_user("alice")


@pytest.fixture
def bob(make_user):
    return make_user("bob_1")


@pytest.fixture
def admin(make_user):
    return make_user("admin", is_admin=True)


@pytest.fixture
def client(database):
    """API client bound to the test database."""
    return TestClient(create_app(database))


@pytest.fixture
def login(client):
    """Log in through the API and return bearer headers."""

    def _login(username: str, password: str = PASSWORD) -> dict[str, str]:
        res = client.post("/user/login", json={"username": username, "password": password})
        assert res.status_code == 200, res.text
        token = res.json()["data"]["token"]
        return {"Authorization": f"Bearer {token}"}

    return _login
