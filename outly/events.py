from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from outly.auth.security import Identity
from outly.clubs import get_club_row
from outly.db import insert_returning_id
from outly.errors import AuthorizationError, ClientInputError, NotFoundError
from outly.util.time import parse_iso, to_iso, utcnow_iso


def _debug(msg: str) -> None:
    print(f"[events] {msg}")


EVENTS_LIST_MAX = 200
EVENT_STATUSES = ("draft", "scheduled", "cancelled")
DEFAULT_STATUS = "scheduled"


class EventCreate(BaseModel):
    """Body of POST /events. camelCase (app) and snake_case keys are both accepted."""

    model_config = ConfigDict(populate_by_name=True)

    club_id: int = Field(alias="clubId")
    title: str
    description: Optional[str] = None
    starts_at: str = Field(alias="startsAt")
    ends_at: Optional[str] = Field(default=None, alias="endsAt")
    status: Optional[str] = None


def _parse_time(value: Optional[str], code: str) -> datetime:
    try:
        return parse_iso(value or "")
    except ValueError:
        raise ClientInputError(code)


def get_event(conn: Any, event_id: int) -> Dict[str, Any]:
    row = conn.execute("SELECT * FROM events WHERE id=?", (int(event_id),)).fetchone()
    if row is None:
        raise NotFoundError("event_not_found")
    return dict(row)


def list_events(
    conn: Any,
    *,
    club_id: Optional[int] = None,
    upcoming: bool = True,
    limit: int = EVENTS_LIST_MAX,
    now_iso: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Events ordered by start time ascending, capped at EVENTS_LIST_MAX.

    "Upcoming" means the event hasn't finished yet (its end, or its start when
    there is no end, is not in the past).
    """
    sql = "SELECT * FROM events WHERE 1=1"
    params: List[Any] = []

    if club_id is not None:
        sql += " AND club_id=?"
        params.append(int(club_id))

    if upcoming:
        sql += " AND COALESCE(ends_at, starts_at) >= ?"
        params.append(now_iso or utcnow_iso())

    sql += " ORDER BY starts_at ASC, id ASC LIMIT ?"
    params.append(max(1, min(int(limit), EVENTS_LIST_MAX)))

    rows = conn.execute(sql, tuple(params)).fetchall()
    return [dict(r) for r in rows]


def check_club_access(identity: Identity, club: Any) -> None:
    """Admins may act on any club; everyone else only on clubs they own."""
    if identity.role == "admin":
        return
    if int(club["owner_id"]) != int(identity.user_id):
        raise AuthorizationError("not_club_owner")


def create_event(conn: Any, identity: Identity, payload: EventCreate) -> Dict[str, Any]:
    title = (payload.title or "").strip()
    if not title:
        raise ClientInputError("missing_title")
    if len(title) > 160:
        raise ClientInputError("title_too_long")

    starts = _parse_time(payload.starts_at, "invalid_starts_at")
    ends: Optional[datetime] = None
    if payload.ends_at:
        ends = _parse_time(payload.ends_at, "invalid_ends_at")
        if ends <= starts:
            raise ClientInputError("ends_before_starts")

    status = (payload.status or DEFAULT_STATUS).strip().lower()
    if status not in EVENT_STATUSES:
        raise ClientInputError("invalid_status")

    club = get_club_row(conn, payload.club_id)
    if club is None:
        raise NotFoundError("club_not_found")
    check_club_access(identity, club)

    event_id = insert_returning_id(
        conn,
        """
        INSERT INTO events (club_id, created_by, title, description, starts_at, ends_at, status, created_at)
        VALUES (?,?,?,?,?,?,?,?)
        """,
        (
            int(club["id"]),
            int(identity.user_id),
            title,
            (payload.description or "").strip() or None,
            to_iso(starts),
            to_iso(ends) if ends is not None else None,
            status,
            utcnow_iso(),
        ),
    )
    _debug(f"Created event id={event_id} club_id={club['id']} by user_id={identity.user_id} role={identity.role}")
    return get_event(conn, event_id)
