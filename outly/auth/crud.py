from __future__ import annotations

from typing import Any, Dict, Optional

from outly.config import Config
from outly.db import insert_returning_id, is_unique_violation, unique_violation_column
from outly.errors import ClientInputError, ConflictError
from outly.util.time import utcnow_iso

from .security import DEFAULT_BCRYPT_ROUNDS, create_access_token, hash_password, verify_password
from .validation import (
    LoginInput,
    RegistrationInput,
    check_email,
    check_password,
    check_username,
    invalid_credentials,
    normalize_email,
    normalize_username,
)


ROLES = ("user", "business", "admin")
DEFAULT_ROLE = "user"

_PUBLIC_FIELDS = ("id", "email", "username", "role", "created_at")


def public_user(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    d = dict(row)
    return {k: d.get(k) for k in _PUBLIC_FIELDS}


def get_user_by_email(conn: Any, email: str) -> Optional[Any]:
    e = normalize_email(email)
    if not e:
        return None
    return conn.execute(
        "SELECT * FROM users WHERE email=?",
        (e,),
    ).fetchone()


def get_user_by_username(conn: Any, username: str) -> Optional[Any]:
    u = normalize_username(username)
    if not u:
        return None
    return conn.execute(
        "SELECT * FROM users WHERE username=?",
        (u,),
    ).fetchone()


def get_user_by_id(conn: Any, user_id: int) -> Optional[Any]:
    return conn.execute(
        "SELECT * FROM users WHERE id=?",
        (int(user_id),),
    ).fetchone()


def _conflict_from(exc: BaseException) -> ConflictError:
    col = unique_violation_column(exc)
    if col == "email":
        return ConflictError("email_taken")
    if col == "username":
        return ConflictError("username_taken")
    return ConflictError("already_in_use")


def create_user(
    conn: Any,
    *,
    email: str,
    username: str,
    password: str,
    role: str = DEFAULT_ROLE,
    rounds: int = DEFAULT_BCRYPT_ROUNDS,
) -> Dict[str, Any]:
    """Insert a user after the uniqueness pre-checks.

    The pre-checks only pick the friendlier error; the table's UNIQUE constraints
    decide. A duplicate that slips in between check and insert surfaces as the
    same ConflictError.
    """
    if role not in ROLES:
        raise ClientInputError("invalid_role")
    e = normalize_email(email)
    u = normalize_username(username)

    if get_user_by_email(conn, e) is not None:
        raise ConflictError("email_taken")
    if get_user_by_username(conn, u) is not None:
        raise ConflictError("username_taken")

    try:
        user_id = insert_returning_id(
            conn,
            """
            INSERT INTO users (email, username, password_hash, role, created_at)
            VALUES (?,?,?,?,?)
            """,
            (e, u, hash_password(password, rounds=rounds), role, utcnow_iso()),
        )
    except Exception as exc:
        if is_unique_violation(exc):
            raise _conflict_from(exc) from exc
        raise

    row = get_user_by_id(conn, user_id)
    assert row is not None
    return public_user(row)


def register_user(conn: Any, cfg: Config, data: RegistrationInput) -> Dict[str, Any]:
    """Uniqueness checks, hash, insert with the default role."""
    return create_user(
        conn,
        email=data.email,
        username=data.username,
        password=data.password,
        role=DEFAULT_ROLE,
        rounds=cfg.BCRYPT_ROUNDS,
    )


def create_user_checked(
    conn: Any,
    cfg: Config,
    *,
    email: str,
    username: str,
    password: str,
    role: str,
) -> Dict[str, Any]:
    """Administrative creation (any role) with the same field rules as registration."""
    e = normalize_email(email)
    u = normalize_username(username)
    check_email(e)
    check_password(password)
    check_username(u)
    return create_user(conn, email=e, username=u, password=password, role=role, rounds=cfg.BCRYPT_ROUNDS)


def verify_user_credentials(conn: Any, email: str, password: str) -> Optional[Any]:
    row = get_user_by_email(conn, email)
    if row is None:
        return None
    if not verify_password(password, str(row["password_hash"])):
        return None
    return row


def login_user(conn: Any, cfg: Config, data: LoginInput) -> Dict[str, Any]:
    """Check credentials and mint a token. Unknown email and wrong password fail identically."""
    row = verify_user_credentials(conn, data.email, data.password)
    if row is None:
        raise invalid_credentials()

    token = create_access_token(row, secret=cfg.JWT_SECRET, ttl_days=cfg.TOKEN_TTL_DAYS)
    return {"token": token, "token_type": "bearer", "user": public_user(row)}
