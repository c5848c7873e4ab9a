from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import Body, Depends, FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from outly import __version__
from outly.api.errors import register_error_handlers
from outly.auth import Identity, get_current_identity, login_user, register_user, require_business
from outly.auth.crud import get_user_by_id, public_user
from outly.auth.deps import get_config, get_db
from outly.auth.validation import parse_login, parse_registration
from outly.clubs import CLUBS_LIST_MAX, ClubCreate, create_club, get_club, list_clubs
from outly.config import Config, load_config
from outly.db import Database, init_db
from outly.errors import NotFoundError
from outly.events import EVENTS_LIST_MAX, EventCreate, create_event, get_event, list_events


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


def create_app(cfg: Optional[Config] = None) -> FastAPI:
    cfg = cfg or load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        cfg.validate()
        db = Database.from_config(cfg).open()
        if cfg.AUTO_INIT_DB:
            init_db(db)
        if not cfg.JWT_SECRET:
            _debug("JWT_SECRET is not set; login and protected routes will fail with 500")

        # Make config + store available to route dependencies.
        app.state.cfg = cfg
        app.state.db = db
        _debug(f"Started ({db.dialect})")
        try:
            yield
        finally:
            db.close()

    app = FastAPI(title="Outly backend", version=__version__, lifespan=lifespan)

    origins = cfg.cors_origins
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials="*" not in origins,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    register_error_handlers(app)
    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:
    # -----------------------------
    # Health
    # -----------------------------

    @app.get("/", response_class=PlainTextResponse)
    def root() -> str:
        return "Outly backend OK"

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {"status": "ok"}

    # -----------------------------
    # Auth
    # -----------------------------

    @app.post("/auth/register", status_code=201)
    def auth_register(
        payload: Any = Body(default=None),
        cfg: Config = Depends(get_config),
        db: Database = Depends(get_db),
    ) -> Dict[str, Any]:
        data = parse_registration(payload)
        with db.connect() as conn:
            user = register_user(conn, cfg, data)
        _debug(f"Registered user id={user['id']} username={user['username']}")
        return {"user": user}

    @app.post("/auth/login")
    def auth_login(
        payload: Any = Body(default=None),
        cfg: Config = Depends(get_config),
        db: Database = Depends(get_db),
    ) -> Dict[str, Any]:
        data = parse_login(payload)
        with db.connect() as conn:
            out = login_user(conn, cfg, data)
        _debug(f"Login user id={out['user']['id']}")
        return out

    @app.get("/me")
    def me(
        identity: Identity = Depends(get_current_identity),
        db: Database = Depends(get_db),
    ) -> Dict[str, Any]:
        with db.connect() as conn:
            row = get_user_by_id(conn, identity.user_id)
        if row is None:
            raise NotFoundError("user_not_found")
        return public_user(row)

    # -----------------------------
    # Clubs
    # -----------------------------

    @app.get("/clubs")
    def clubs_list(
        limit: int = Query(CLUBS_LIST_MAX, ge=1, le=CLUBS_LIST_MAX),
        db: Database = Depends(get_db),
    ) -> List[Dict[str, Any]]:
        with db.connect() as conn:
            return list_clubs(conn, limit=limit)

    @app.get("/clubs/{club_id}")
    def clubs_get(club_id: int, db: Database = Depends(get_db)) -> Dict[str, Any]:
        with db.connect() as conn:
            return get_club(conn, club_id)

    @app.post("/clubs", status_code=201)
    def clubs_create(
        payload: ClubCreate,
        identity: Identity = Depends(require_business),
        db: Database = Depends(get_db),
    ) -> Dict[str, Any]:
        with db.connect() as conn:
            return create_club(conn, identity, payload)

    # -----------------------------
    # Events
    # -----------------------------

    @app.get("/events")
    def events_list(
        club_id: Optional[int] = Query(None, alias="clubId", ge=1),
        upcoming: bool = True,
        limit: int = Query(EVENTS_LIST_MAX, ge=1, le=EVENTS_LIST_MAX),
        db: Database = Depends(get_db),
    ) -> List[Dict[str, Any]]:
        with db.connect() as conn:
            return list_events(conn, club_id=club_id, upcoming=upcoming, limit=limit)

    @app.get("/events/{event_id}")
    def events_get(event_id: int, db: Database = Depends(get_db)) -> Dict[str, Any]:
        with db.connect() as conn:
            return get_event(conn, event_id)

    @app.post("/events", status_code=201)
    def events_create(
        payload: EventCreate,
        identity: Identity = Depends(require_business),
        db: Database = Depends(get_db),
    ) -> Dict[str, Any]:
        with db.connect() as conn:
            return create_event(conn, identity, payload)


app = create_app()
