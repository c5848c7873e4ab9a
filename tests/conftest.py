from __future__ import annotations

from typing import Any, Dict, Iterator

import pytest
from fastapi.testclient import TestClient

from outly.api.server import create_app
from outly.auth.crud import create_user
from outly.config import Config
from outly.db import Database, init_db


TEST_SECRET = "test-secret-with-enough-bytes-for-hs256-0123456789"
TEST_ROUNDS = 10
PASSWORD = "longenough"


def make_config(tmp_path, **overrides: Any) -> Config:
    values: Dict[str, Any] = {
        "DB_DSN": str(tmp_path / "outly_test.sqlite"),
        "DB_SSL": "disable",
        "JWT_SECRET": TEST_SECRET,
        "BCRYPT_ROUNDS": TEST_ROUNDS,
        "TOKEN_TTL_DAYS": 30,
        "AUTO_INIT_DB": True,
        "CORS_ALLOW_ORIGINS": "*",
    }
    values.update(overrides)
    return Config(**values)


@pytest.fixture
def cfg(tmp_path) -> Config:
    return make_config(tmp_path)


@pytest.fixture
def db(cfg: Config) -> Database:
    database = Database.from_config(cfg)
    init_db(database)
    return database


@pytest.fixture
def client(cfg: Config, db: Database) -> Iterator[TestClient]:
    app = create_app(cfg)
    with TestClient(app) as c:
        yield c


def add_user(db: Database, *, email: str, username: str, role: str = "user", password: str = PASSWORD) -> Dict[str, Any]:
    """Insert a user directly (the administrative path that can assign any role)."""
    with db.connect() as conn:
        return create_user(conn, email=email, username=username, password=password, role=role, rounds=TEST_ROUNDS)


def login(client: TestClient, email: str, password: str = PASSWORD) -> str:
    r = client.post("/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["token"]


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def business_user(db: Database) -> Dict[str, Any]:
    return add_user(db, email="owner@club.com", username="club_owner", role="business")


@pytest.fixture
def other_business_user(db: Database) -> Dict[str, Any]:
    return add_user(db, email="rival@club.com", username="rival_owner", role="business")


@pytest.fixture
def admin_user(db: Database) -> Dict[str, Any]:
    return add_user(db, email="admin@outly.app", username="admin", role="admin")


@pytest.fixture
def plain_user(db: Database) -> Dict[str, Any]:
    return add_user(db, email="guest@mail.com", username="guest_1")
