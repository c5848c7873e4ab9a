from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from outly.auth import crud
from outly.auth.deps import check_role, extract_bearer_token, require_roles
from outly.auth.security import Identity
from outly.config import Config, is_local_dsn
from outly.db import Database, _qmark_to_pct, is_unique_violation, unique_violation_column
from outly.errors import (
    AuthenticationError,
    AuthorizationError,
    ClientInputError,
    ConfigurationError,
    ConflictError,
)

from .conftest import TEST_ROUNDS, add_user, make_config


def _identity(role: str, user_id: int = 1) -> Identity:
    now = datetime.now(timezone.utc)
    return Identity(
        user_id=user_id,
        email="x@y.z",
        username="xyz",
        role=role,
        issued_at=now,
        expires_at=now + timedelta(days=30),
    )


# -----------------------------
# Gates
# -----------------------------


def test_extract_bearer_token():
    assert extract_bearer_token("Bearer abc.def.ghi") == "abc.def.ghi"
    for bad in (None, "", "abc.def.ghi", "Basic dXNlcjpwYXNz", "bearer abc", "Bearer    "):
        with pytest.raises(AuthenticationError) as ei:
            extract_bearer_token(bad)
        assert ei.value.code == "missing_token"


def test_check_role():
    assert check_role(_identity("business"), ("business", "admin")).role == "business"
    assert check_role(_identity("admin"), ("business", "admin")).role == "admin"
    with pytest.raises(AuthorizationError):
        check_role(_identity("user"), ("business", "admin"))
    with pytest.raises(AuthorizationError):
        check_role(_identity(""), ("business", "admin"))


def test_role_gate_without_identity_rejects():
    with pytest.raises(AuthorizationError):
        check_role(None, ("admin",))


def test_role_gate_needs_roles():
    with pytest.raises(ValueError):
        require_roles()


# -----------------------------
# Store
# -----------------------------


def test_qmark_to_pct():
    sql = "SELECT * FROM t WHERE a=? AND b='?' AND c=\"?\" AND d LIKE 'x%'"
    # Quoted ? stays literal; every % is escaped for psycopg2.
    assert _qmark_to_pct(sql) == "SELECT * FROM t WHERE a=%s AND b='?' AND c=\"?\" AND d LIKE 'x%%'"


def test_sqlite_unique_violation_detection():
    exc = sqlite3.IntegrityError("UNIQUE constraint failed: users.email")
    assert is_unique_violation(exc)
    assert unique_violation_column(exc) == "email"
    assert not is_unique_violation(sqlite3.IntegrityError("NOT NULL constraint failed: users.role"))
    assert not is_unique_violation(RuntimeError("boom"))


def test_postgres_unique_violation_detection():
    class _Diag:
        constraint_name = "users_username_key"

    class _PGError(Exception):
        pgcode = "23505"
        diag = _Diag()

    exc = _PGError("duplicate key value violates unique constraint")
    assert is_unique_violation(exc)
    assert unique_violation_column(exc) == "username"


def test_postgres_unique_violation_prefers_constraint_name():
    class _Diag:
        constraint_name = "users_username_key"

    class _PGError(Exception):
        pgcode = "23505"
        diag = _Diag()

    # The detail line echoes the duplicate value, which may itself contain "email".
    exc = _PGError(
        'duplicate key value violates unique constraint "users_username_key"\n'
        "DETAIL:  Key (username)=(email_fan) already exists."
    )
    assert unique_violation_column(exc) == "username"


def test_late_uniqueness_violation_is_a_conflict(db, monkeypatch):
    add_user(db, email="first@mail.com", username="first")

    # Simulate a concurrent registration that passed the pre-check.
    monkeypatch.setattr(crud, "get_user_by_email", lambda conn, email: None)
    with pytest.raises(ConflictError) as ei:
        with db.connect() as conn:
            crud.create_user(conn, email="first@mail.com", username="second", password="longenough", rounds=TEST_ROUNDS)
    assert ei.value.code == "email_taken"
    assert ei.value.status_code == 409


def test_create_user_rejects_unknown_role(db):
    with pytest.raises(ClientInputError) as ei:
        with db.connect() as conn:
            crud.create_user(conn, email="a@b.com", username="abc", password="longenough", role="root")
    assert ei.value.code == "invalid_role"


def test_admin_creation_rejects_nul_in_password(db, cfg):
    with pytest.raises(ClientInputError) as ei:
        with db.connect() as conn:
            crud.create_user_checked(
                conn, cfg, email="boss@outly.app", username="boss", password="longenough\x00", role="admin"
            )
    assert ei.value.code == "invalid_password"


def test_public_user_never_exposes_hash(db):
    add_user(db, email="a@b.com", username="alice_1")
    with db.connect() as conn:
        row = crud.get_user_by_email(conn, " A@B.com ")
        assert row is not None
        assert row["password_hash"].startswith("$2b$")
        assert "password_hash" not in crud.public_user(row)


# -----------------------------
# Config
# -----------------------------


def test_is_local_dsn():
    assert is_local_dsn("postgresql://u:p@localhost:5432/outly")
    assert is_local_dsn("postgres://u:p@127.0.0.1/outly")
    assert is_local_dsn("./outly.sqlite")
    assert not is_local_dsn("postgresql://u:p@db.render.com:5432/outly")


def test_config_validate(tmp_path):
    assert make_config(tmp_path).validate().BCRYPT_ROUNDS == TEST_ROUNDS
    with pytest.raises(ConfigurationError):
        make_config(tmp_path, BCRYPT_ROUNDS=4).validate()
    with pytest.raises(ConfigurationError):
        make_config(tmp_path, TOKEN_TTL_DAYS=0).validate()
    with pytest.raises(ConfigurationError):
        make_config(tmp_path, DB_SSL="sometimes").validate()



def test_db_ssl_follows_dsn_unless_set():
    remote = "postgresql://u:p@db.render.com:5432/outly"
    local = "postgresql://u:p@localhost:5432/outly"

    assert Config(DB_DSN=remote, DB_SSL="").db_sslmode == "require"
    assert Config(DB_DSN=local, DB_SSL="").db_sslmode == "disable"
    assert Config(DB_DSN=remote, DB_SSL="verify-full").db_sslmode == "verify-full"
    assert Config(DB_DSN=local, DB_SSL="require").db_sslmode == "require"

    assert Database.from_config(Config(DB_DSN=remote, DB_SSL="")).sslmode == "require"
    assert Database.from_config(Config(DB_DSN=local, DB_SSL="")).sslmode == "disable"
