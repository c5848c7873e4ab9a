"""Request-body checks for registration and login.

Each check raises on failure, and checks run in a fixed order so the first
failing one decides which error the client sees.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Sequence

from outly.errors import AuthenticationError, ClientInputError


PASSWORD_MIN_LENGTH = 8
USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 20

_USERNAME_RE = re.compile(r"^[A-Za-z0-9_]+$")


@dataclass(frozen=True)
class RegistrationInput:
    email: str
    password: str
    username: str


@dataclass(frozen=True)
class LoginInput:
    email: str
    password: str


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def normalize_username(username: str) -> str:
    return (username or "").strip()


def _require_object(body: Any) -> Dict[str, Any]:
    # No body at all reads as "nothing provided".
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ClientInputError("invalid_body")
    return body


def check_present(body: Dict[str, Any], fields: Sequence[str]) -> None:
    for f in fields:
        v = body.get(f)
        if v is None or v == "":
            raise ClientInputError("missing_fields")


def check_text(body: Dict[str, Any], fields: Sequence[str]) -> None:
    for f in fields:
        if not isinstance(body.get(f), str):
            raise ClientInputError("invalid_types")


def check_email(email: str) -> None:
    if "@" not in email:
        raise ClientInputError("invalid_email")


def check_password(password: str) -> None:
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ClientInputError("password_too_short")
    if "\x00" in password:
        # bcrypt can't hash NUL bytes.
        raise ClientInputError("invalid_password")


def check_username(username: str) -> None:
    if len(username) < USERNAME_MIN_LENGTH:
        raise ClientInputError("username_too_short")
    if len(username) > USERNAME_MAX_LENGTH:
        raise ClientInputError("username_too_long")
    if not _USERNAME_RE.match(username):
        raise ClientInputError("invalid_username")


def parse_registration(body: Any) -> RegistrationInput:
    """Presence, types, normalization and field rules (everything that doesn't need the store)."""
    data = _require_object(body)
    fields = ("email", "password", "username")
    check_present(data, fields)
    check_text(data, fields)

    email = normalize_email(data["email"])
    username = normalize_username(data["username"])
    password = data["password"]

    check_email(email)
    check_password(password)
    check_username(username)
    return RegistrationInput(email=email, password=password, username=username)


def parse_login(body: Any) -> LoginInput:
    data = _require_object(body)
    fields = ("email", "password")
    check_present(data, fields)
    check_text(data, fields)
    return LoginInput(email=normalize_email(data["email"]), password=data["password"])


def invalid_credentials() -> AuthenticationError:
    # Same error for unknown email and wrong password.
    return AuthenticationError("invalid_credentials")
