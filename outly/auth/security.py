from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from passlib.context import CryptContext

from outly.errors import AuthenticationError, ConfigurationError


_JWT_ALG = "HS256"
_REQUIRED_CLAIMS = ["sub", "iat", "exp"]
DEFAULT_BCRYPT_ROUNDS = 12

_contexts: Dict[int, CryptContext] = {}


class TokenMalformed(AuthenticationError):
    default_code = "token_malformed"


class TokenInvalidSignature(AuthenticationError):
    default_code = "token_invalid"


class TokenExpired(AuthenticationError):
    default_code = "token_expired"


class SecretMissing(ConfigurationError):
    """No JWT secret configured. Never fall back to a built-in one."""

    default_code = "server_misconfigured"


def _pwd(rounds: int) -> CryptContext:
    ctx = _contexts.get(rounds)
    if ctx is None:
        ctx = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=int(rounds))
        _contexts[rounds] = ctx
    return ctx


def hash_password(password: str, *, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> str:
    """Salted bcrypt digest. Length policy is the caller's job."""
    if not password:
        raise ValueError("password_blank")
    return _pwd(rounds).hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        # The cost is read from the digest, so any context verifies any round count.
        return _pwd(DEFAULT_BCRYPT_ROUNDS).verify(password, password_hash)
    except (ValueError, TypeError):
        # Unknown / corrupt digest format.
        return False


def _require_secret(secret: Optional[str]) -> str:
    s = (secret or "").strip()
    if not s:
        raise SecretMissing()
    return s


def issue_token(
    claims: Dict[str, Any],
    *,
    secret: Optional[str],
    ttl: timedelta,
    now: Optional[datetime] = None,
) -> str:
    """Sign `claims` plus iat/exp into a compact HS256 JWT."""
    key = _require_secret(secret)
    if ttl <= timedelta(0):
        raise ValueError("ttl_not_positive")

    issued = now or datetime.now(timezone.utc)
    payload: Dict[str, Any] = dict(claims)
    payload["iat"] = int(issued.timestamp())
    payload["exp"] = int((issued + ttl).timestamp())
    return jwt.encode(payload, key, algorithm=_JWT_ALG)


def verify_token(token: str, *, secret: Optional[str]) -> Dict[str, Any]:
    """Check signature and expiry; return the decoded claims.

    Raises SecretMissing, TokenMalformed, TokenInvalidSignature or TokenExpired.
    """
    key = _require_secret(secret)
    if not token or not token.strip():
        raise TokenMalformed()
    try:
        return jwt.decode(
            token.strip(),
            key,
            algorithms=[_JWT_ALG],
            options={"require": _REQUIRED_CLAIMS},
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpired()
    except jwt.InvalidSignatureError:
        raise TokenInvalidSignature()
    except jwt.InvalidTokenError:
        # DecodeError, missing claims, wrong algorithm header, immature iat, ...
        raise TokenMalformed()


@dataclass(frozen=True)
class Identity:
    """Decoded token claims attached to an authenticated request."""

    user_id: int
    email: str
    username: str
    role: str
    issued_at: datetime
    expires_at: datetime

    @classmethod
    def from_claims(cls, claims: Dict[str, Any]) -> "Identity":
        try:
            return cls(
                user_id=int(claims["sub"]),
                email=str(claims.get("email") or ""),
                username=str(claims.get("username") or ""),
                role=str(claims.get("role") or ""),
                issued_at=datetime.fromtimestamp(int(claims["iat"]), tz=timezone.utc),
                expires_at=datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc),
            )
        except (KeyError, TypeError, ValueError):
            raise TokenMalformed()


def user_claims(user: Any) -> Dict[str, Any]:
    """Identity claims for a user row (dict-like)."""
    return {
        "sub": str(user["id"]),
        "email": str(user["email"]),
        "username": str(user["username"]),
        "role": str(user["role"]),
    }


def create_access_token(
    user: Any,
    *,
    secret: Optional[str],
    ttl_days: int,
    now: Optional[datetime] = None,
) -> str:
    return issue_token(user_claims(user), secret=secret, ttl=timedelta(days=max(1, int(ttl_days))), now=now)
