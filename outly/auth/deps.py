from __future__ import annotations

from typing import Callable, Iterable, Optional

from fastapi import Depends, Request

from outly.config import Config
from outly.db import Database
from outly.errors import AuthenticationError, AuthorizationError, ConfigurationError

from .security import Identity, verify_token


_BEARER_PREFIX = "Bearer "


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


def get_config(request: Request) -> Config:
    cfg = getattr(request.app.state, "cfg", None)
    if cfg is None:
        raise ConfigurationError("server_config_missing")
    return cfg


def get_db(request: Request) -> Database:
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise ConfigurationError("database_not_ready")
    return db


def extract_bearer_token(authorization: Optional[str]) -> str:
    """Return the token from an `Authorization: Bearer <token>` header value."""
    if not authorization or not authorization.startswith(_BEARER_PREFIX):
        raise AuthenticationError("missing_token")
    token = authorization[len(_BEARER_PREFIX) :].strip()
    if not token:
        raise AuthenticationError("missing_token")
    return token


def get_current_identity(request: Request, cfg: Config = Depends(get_config)) -> Identity:
    """Auth Gate.

    Verifies the bearer token and attaches the decoded identity to
    `request.state.identity`. Knows nothing about the handler behind it.
    """
    token = extract_bearer_token(request.headers.get("Authorization"))
    try:
        claims = verify_token(token, secret=cfg.JWT_SECRET)
    except AuthenticationError as e:
        _debug(f"Rejected token ({e.code}) path={request.url.path}")
        raise

    identity = Identity.from_claims(claims)
    request.state.identity = identity
    return identity


def check_role(identity: Optional[Identity], allowed: Iterable[str]) -> Identity:
    """Reject unless `identity` carries one of the `allowed` roles.

    A missing identity means the Auth Gate never ran; that is refused, not waved through.
    """
    if identity is None or not identity.role:
        raise AuthorizationError("forbidden")
    if identity.role not in set(allowed):
        raise AuthorizationError("forbidden")
    return identity


def require_roles(*roles: str) -> Callable[..., Identity]:
    """Role Gate: a dependency that runs after the Auth Gate and checks the role."""
    allowed = tuple(roles)
    if not allowed:
        raise ValueError("require_roles needs at least one role")

    def _dep(identity: Identity = Depends(get_current_identity)) -> Identity:
        return check_role(identity, allowed)

    _dep.__name__ = f"require_roles_{'_'.join(allowed)}"
    return _dep


require_business = require_roles("business", "admin")

