import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

# Optional: load a local .env file if present.
try:
    from dotenv import load_dotenv

    load_dotenv()
except Exception:
    # If python-dotenv isn't installed or .env isn't present, that's fine.
    pass

from outly.errors import ConfigurationError


_LOCAL_HOSTS = ("localhost", "127.0.0.1", "::1")


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Parse a boolean environment variable.

    Returns:
      - True/False if the env var is set to a recognizable value
      - default if unset or unrecognized

    Accepted truthy: 1, true, yes, y, on
    Accepted falsy:  0, false, no, n, off
    """

    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "y", "on"):
        return True
    if v in ("0", "false", "no", "n", "off"):
        return False
    return default


def _env_int(name: str, default: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"invalid_int_env:{name}")


def is_local_dsn(dsn: str) -> bool:
    """True when the database target is this machine (no TLS needed)."""
    s = (dsn or "").strip()
    if not s:
        return True
    try:
        parsed = urlparse(s)
    except Exception:
        return False
    if parsed.scheme.lower() not in ("postgres", "postgresql"):
        # SQLite path
        return True
    host = (parsed.hostname or "").lower()
    return host in _LOCAL_HOSTS or host == ""


def _default_db_ssl(dsn: str) -> str:
    return "disable" if is_local_dsn(dsn) else "require"


@dataclass(frozen=True)
class Config:
    """Runtime configuration.

    IMPORTANT: Provide secrets via environment variables or a .env file.
    There is no built-in JWT secret; token operations fail until JWT_SECRET is set.
    """

    # -----------------
    # Database
    # -----------------
    # Postgres URL in production; a SQLite file path for local development.
    DB_DSN: str = os.environ.get("DATABASE_URL", "./outly.sqlite")

    # psycopg2 sslmode. Empty means auto: "disable" for local DB_DSN targets, "require" otherwise.
    DB_SSL: str = (os.environ.get("DATABASE_SSL") or "").strip().lower()
    DB_POOL_MAX: int = _env_int("DB_POOL_MAX", 10)

    # Create missing tables on startup (CREATE TABLE IF NOT EXISTS).
    AUTO_INIT_DB: bool = _env_bool("AUTO_INIT_DB", True) is True

    # -----------------
    # Auth (JWT + bcrypt)
    # -----------------
    JWT_SECRET: Optional[str] = (os.environ.get("JWT_SECRET") or "").strip() or None
    TOKEN_TTL_DAYS: int = _env_int("TOKEN_TTL_DAYS", 30)
    BCRYPT_ROUNDS: int = _env_int("BCRYPT_ROUNDS", 12)

    # -----------------
    # HTTP
    # -----------------
    HOST: str = os.environ.get("HOST", "0.0.0.0")
    PORT: int = _env_int("PORT", 3000)

    # Comma-separated list; "*" allows any origin (mobile app + web).
    CORS_ALLOW_ORIGINS: str = os.environ.get("CORS_ALLOW_ORIGINS", "*")

    def validate(self) -> "Config":
        """Check value ranges once at startup. Returns self for chaining."""
        if not (self.DB_DSN or "").strip():
            raise ConfigurationError("database_url_blank")
        if self.DB_SSL not in ("", "disable", "allow", "prefer", "require", "verify-ca", "verify-full"):
            raise ConfigurationError("invalid_database_ssl")
        if self.DB_POOL_MAX < 1:
            raise ConfigurationError("invalid_db_pool_max")
        if self.BCRYPT_ROUNDS < 10 or self.BCRYPT_ROUNDS > 31:
            raise ConfigurationError("invalid_bcrypt_rounds")
        if self.TOKEN_TTL_DAYS < 1:
            raise ConfigurationError("invalid_token_ttl_days")
        if not (0 < self.PORT < 65536):
            raise ConfigurationError("invalid_port")
        return self

    @property
    def db_sslmode(self) -> str:
        return self.DB_SSL or _default_db_ssl(self.DB_DSN)

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in (self.CORS_ALLOW_ORIGINS or "").split(",") if o.strip()]


def load_config() -> Config:
    return Config()
