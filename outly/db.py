from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional, Sequence
from urllib.parse import urlparse

from outly.config import Config
from outly.schema import get_schema_sql


def _debug(msg: str) -> None:
    print(f"[db] {msg}")


def _detect_dialect(dsn: str) -> str:
    """Return 'postgres' or 'sqlite'."""
    s = (dsn or "").strip()
    if not s:
        return "sqlite"
    try:
        scheme = urlparse(s).scheme.lower()
    except Exception:
        scheme = ""
    if scheme in ("postgres", "postgresql"):
        return "postgres"
    # Allow sqlite:///path style, but default is file path.
    return "sqlite"


def _qmark_to_pct(sql: str) -> str:
    """Convert SQLite qmark placeholders (?) to psycopg2 placeholders (%s).

    This is a lightweight conversion that avoids replacing '?' inside single/double-quoted
    string literals. It's not a full SQL parser, but it is sufficient for this codebase.
    """
    out: List[str] = []
    in_single = False
    in_double = False
    for ch in sql:
        if ch == "'" and not in_double:
            # An escaped '' toggles twice and ends up unchanged.
            in_single = not in_single
        elif ch == '"' and not in_single:
            in_double = not in_double
        elif ch == "?" and not in_single and not in_double:
            out.append("%s")
            continue
        elif ch == "%":
            # psycopg2 formats the whole string, quoted literals included.
            out.append("%%")
            continue
        out.append(ch)
    return "".join(out)


class PGCursor:
    def __init__(self, cur: Any):
        self._cur = cur

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> "PGCursor":
        self._cur.execute(_qmark_to_pct(sql), tuple(params or ()))
        return self

    def fetchone(self) -> Any:
        return self._cur.fetchone()

    def fetchall(self) -> Any:
        return self._cur.fetchall()

    @property
    def rowcount(self) -> int:
        try:
            return int(self._cur.rowcount or 0)
        except Exception:
            return 0

    def close(self) -> None:
        self._cur.close()


class PGConnection:
    """A tiny adapter that makes psycopg2 connections look like sqlite3 connections."""

    dialect = "postgres"

    def __init__(self, conn: Any):
        self._conn = conn

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> PGCursor:
        wrapper = PGCursor(self._conn.cursor())
        wrapper.execute(sql, params)
        return wrapper

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()

    @property
    def closed(self) -> bool:
        return bool(self._conn.closed)


def dialect_of(conn: Any) -> str:
    return getattr(conn, "dialect", "sqlite")


def insert_returning_id(conn: Any, sql: str, params: Sequence[Any]) -> int:
    """Run an INSERT and return the new row's `id` on either engine."""
    if dialect_of(conn) == "postgres":
        row = conn.execute(sql.rstrip().rstrip(";") + " RETURNING id", params).fetchone()
        return int(row["id"])
    cur = conn.execute(sql, params)
    return int(cur.lastrowid)


def is_unique_violation(exc: BaseException) -> bool:
    """True when `exc` is the store rejecting a duplicate key (SQLite or Postgres)."""
    if getattr(exc, "pgcode", None) == "23505":
        return True
    if isinstance(exc, sqlite3.IntegrityError):
        return "UNIQUE" in str(exc).upper()
    return False


def unique_violation_column(exc: BaseException) -> Optional[str]:
    """Best-effort name of the column whose uniqueness was violated.

    SQLite reports "UNIQUE constraint failed: users.email"; Postgres names the
    constraint (e.g. "users_email_key") in the diagnostics. The Postgres message
    also echoes the duplicate value, so it is only searched without a constraint name.
    """
    diag = getattr(exc, "diag", None)
    constraint = getattr(diag, "constraint_name", None) if diag is not None else None
    text = (constraint or str(exc)).lower()
    for col in ("email", "username"):
        if col in text:
            return col
    return None


class Database:
    """Process-scoped handle to the store.

    Created once at startup and passed to every data-access call.

    - Postgres: a psycopg2 ThreadedConnectionPool (RealDictCursor rows behave like dicts).
    - SQLite: a short-lived connection per unit of work (WAL + NORMAL sync).
    """

    def __init__(self, dsn: str, *, sslmode: str = "disable", pool_max: int = 10):
        self.dsn = (dsn or "").strip()
        self.dialect = _detect_dialect(self.dsn)
        self.sslmode = sslmode
        self.pool_max = max(1, int(pool_max))
        self._pool: Any = None
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, cfg: Config) -> "Database":
        return cls(cfg.DB_DSN, sslmode=cfg.db_sslmode, pool_max=cfg.DB_POOL_MAX)

    def open(self) -> "Database":
        if self.dialect != "postgres":
            return self
        with self._lock:
            if self._pool is not None:
                return self
            try:
                import psycopg2.extras
                import psycopg2.pool
            except Exception as e:
                raise RuntimeError(
                    "Postgres selected but psycopg2 is not installed. "
                    "Install psycopg2-binary and try again."
                ) from e

            kwargs: dict[str, Any] = {"cursor_factory": psycopg2.extras.RealDictCursor}
            # An explicit sslmode in the URL wins over the configured default.
            if "sslmode=" not in self.dsn:
                kwargs["sslmode"] = self.sslmode
            self._pool = psycopg2.pool.ThreadedConnectionPool(1, self.pool_max, self.dsn, **kwargs)
            _debug(f"Postgres pool opened (max={self.pool_max} sslmode={kwargs.get('sslmode', 'dsn')})")
        return self

    def close(self) -> None:
        with self._lock:
            if self._pool is not None:
                self._pool.closeall()
                self._pool = None
                _debug("Postgres pool closed")

    @contextmanager
    def connect(self) -> Iterator[Any]:
        """One unit of work: commit on success, roll back on any exception."""
        if self.dialect == "postgres":
            if self._pool is None:
                self.open()
            raw = self._pool.getconn()
            conn = PGConnection(raw)
            try:
                yield conn
                conn.commit()
            except Exception:
                if not conn.closed:
                    conn.rollback()
                raise
            finally:
                self._pool.putconn(raw, close=bool(raw.closed))
            return

        path = self.dsn
        # Support sqlite:///path style
        if path.lower().startswith("sqlite:///"):
            path = path[len("sqlite:///") :]
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(path, timeout=30, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        conn.execute("PRAGMA busy_timeout=5000;")  # 5s
        try:
            conn.execute("PRAGMA foreign_keys = ON;")
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()


def init_db(db: Database) -> None:
    """Create any missing tables."""
    _debug(f"Initializing DB ({db.dialect})")
    with db.connect() as conn:
        ddl = get_schema_sql(db.dialect)
        if db.dialect == "postgres":
            # Ensure only one process runs schema DDL at a time.
            conn.execute("SELECT pg_advisory_lock(2147483647);")
            try:
                # Naive split is OK for our schema
                for stmt in [s.strip() for s in ddl.split(";") if s.strip()]:
                    conn.execute(stmt)
            finally:
                conn.execute("SELECT pg_advisory_unlock(2147483647);")
            return

        # SQLite can run it in one go
        conn.executescript(ddl)
