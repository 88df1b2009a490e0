import pytest
from fastapi.testclient import TestClient

from src.server.app import create_app
from src.server.dependencies import clear_caches


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    """Point every repository at a fresh SQLite file."""
    path = tmp_path / "taskflow.db"
    monkeypatch.setenv("TASKFLOW_DB_PATH", str(path))
    clear_caches()
    yield path
    clear_caches()


@pytest.fixture
def client(db_path) -> TestClient:
    return TestClient(create_app())


@pytest.fixture
def register(client):
    """Register a user and return bearer headers for it."""

    def _register(name="Alice", email="alice@example.com", password="secret123"):
        resp = client.post(
            "/api/auth/register",
            json={
                "name": name,
                "email": email,
                "password": password,
                "password_confirmation": password,
            },
        )
        assert resp.status_code == 201, resp.text
        return {"Authorization": f"Bearer {resp.json()['token']}"}

    return _register


@pytest.fixture
def auth_headers(register):
    return register()


@pytest.fixture
def other_headers(register):
    return register(name="Bob", email="bob@example.com")
