from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from outly.auth.security import Identity
from outly.db import insert_returning_id
from outly.errors import ClientInputError, NotFoundError
from outly.util.time import utcnow_iso


def _debug(msg: str) -> None:
    print(f"[clubs] {msg}")


CLUBS_LIST_MAX = 100
DEFAULT_MIN_AGE = 18
MAX_GENRES = 20


class ClubCreate(BaseModel):
    """Body of POST /clubs. camelCase (app) and snake_case keys are both accepted."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    min_age: Optional[int] = Field(default=None, alias="minAge")
    genres: Optional[List[str]] = None


def _clean_text(v: Optional[str]) -> Optional[str]:
    s = (v or "").strip()
    return s or None


def _clean_genres(genres: Optional[List[str]]) -> List[str]:
    out: List[str] = []
    for g in genres or []:
        s = (g or "").strip().lower()
        if s and s not in out:
            out.append(s)
    if len(out) > MAX_GENRES:
        raise ClientInputError("too_many_genres")
    if any(len(g) > 40 for g in out):
        raise ClientInputError("genre_too_long")
    return out


def public_club(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    d = dict(row)
    raw = d.pop("genres_json", None) or "[]"
    try:
        genres = json.loads(raw)
    except (TypeError, ValueError):
        genres = []
    d["genres"] = genres if isinstance(genres, list) else []
    return d


def get_club_row(conn: Any, club_id: int) -> Optional[Any]:
    return conn.execute("SELECT * FROM clubs WHERE id=?", (int(club_id),)).fetchone()


def get_club(conn: Any, club_id: int) -> Dict[str, Any]:
    row = get_club_row(conn, club_id)
    if row is None:
        raise NotFoundError("club_not_found")
    return public_club(row)


def list_clubs(conn: Any, *, limit: int = CLUBS_LIST_MAX) -> List[Dict[str, Any]]:
    """Newest first, capped at CLUBS_LIST_MAX."""
    n = max(1, min(int(limit), CLUBS_LIST_MAX))
    rows = conn.execute(
        "SELECT * FROM clubs ORDER BY created_at DESC, id DESC LIMIT ?",
        (n,),
    ).fetchall()
    return [public_club(r) for r in rows]


def create_club(conn: Any, owner: Identity, payload: ClubCreate) -> Dict[str, Any]:
    name = (payload.name or "").strip()
    if not name:
        raise ClientInputError("missing_name")
    if len(name) > 120:
        raise ClientInputError("name_too_long")

    min_age = DEFAULT_MIN_AGE if payload.min_age is None else int(payload.min_age)
    if min_age < 0 or min_age > 99:
        raise ClientInputError("invalid_min_age")

    genres = _clean_genres(payload.genres)

    club_id = insert_returning_id(
        conn,
        """
        INSERT INTO clubs (owner_id, name, description, city, address, image_url, min_age, genres_json, created_at)
        VALUES (?,?,?,?,?,?,?,?,?)
        """,
        (
            int(owner.user_id),
            name,
            _clean_text(payload.description),
            _clean_text(payload.city),
            _clean_text(payload.address),
            _clean_text(payload.image_url),
            min_age,
            json.dumps(genres),
            utcnow_iso(),
        ),
    )
    _debug(f"Created club id={club_id} owner_id={owner.user_id}")
    return get_club(conn, club_id)
