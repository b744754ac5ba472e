"""Pytest configuration and shared fixtures."""

from typing import Callable, Dict

import pytest
from fastapi.testclient import TestClient

from tastetrail.api.server import create_app
from tastetrail.auth.crud import create_user
from tastetrail.config import Config
from tastetrail.db import connect, init_db

TEST_SECRET = "test-secret-0123456789abcdef0123456789"


@pytest.fixture
def cfg(tmp_path) -> Config:
    """Config pointing at a throwaway SQLite file."""
    return Config(
        DB_DSN=str(tmp_path / "tastetrail-test.sqlite"),
        AUTH_JWT_SECRET=TEST_SECRET,
        AUTH_TOKEN_EXPIRE_MINUTES=10080,
        AUTH_BOOTSTRAP_ADMIN_EMAIL="",
        AUTH_BOOTSTRAP_ADMIN_PASSWORD="",
        DEFAULT_PHOTO_URL="https://example.com/default-avatar.png",
        CORS_ALLOW_ORIGINS="*",
    )


@pytest.fixture
def db(cfg) -> str:
    """DSN of an initialized database."""
    init_db(cfg.DB_DSN)
    return cfg.DB_DSN


@pytest.fixture
def client(cfg):
    """Test client; entering it runs start-up (schema creation)."""
    app = create_app(cfg)
    with TestClient(app) as c:
        yield c


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def register(client) -> Callable[..., str]:
    """Register through the API and return the token."""

    def _register(email: str, password: str = "pw123", **extra) -> str:
        resp = client.post("/auth/register", json={"email": email, "password": password, **extra})
        assert resp.status_code == 200, resp.text
        return resp.json()["token"]

    return _register


@pytest.fixture
def admin_token(client, cfg) -> str:
    """Token for a freshly created admin (admins cannot self-register)."""
    with connect(cfg.DB_DSN) as conn:
        create_user(conn, email="chef@example.com", password="admin-pw", role="admin")

    resp = client.post("/auth/login", json={"email": "chef@example.com", "password": "admin-pw"})
    assert resp.status_code == 200, resp.text
    return resp.json()["token"]
