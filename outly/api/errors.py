from __future__ import annotations

import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from outly.errors import AppError, ErrorKind, STATUS_BY_KIND


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


def error_response(kind: ErrorKind, code: str) -> JSONResponse:
    status = STATUS_BY_KIND[kind]
    headers = {"WWW-Authenticate": "Bearer"} if status == 401 else None
    return JSONResponse(status_code=status, content={"error": kind.value, "detail": code}, headers=headers)


def register_error_handlers(app: FastAPI) -> None:
    """Map every failure to one error kind at the HTTP boundary.

    - AppError -> its kind's status + code
    - RequestValidationError (bad JSON, bad query values, schema errors) -> 400 invalid_body
    - anything else -> 500 server_error; the traceback stays in the server log
    """

    @app.exception_handler(AppError)
    async def _app_error(request: Request, exc: AppError) -> JSONResponse:
        if exc.kind in (ErrorKind.CONFIGURATION, ErrorKind.SERVER):
            _debug(f"{request.method} {request.url.path} failed: {exc.kind.value}/{exc.code}")
        return error_response(exc.kind, exc.code)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = sorted({".".join(str(p) for p in e.get("loc", ())) for e in exc.errors()})
        _debug(f"{request.method} {request.url.path} invalid request: {', '.join(fields)}")
        return error_response(ErrorKind.CLIENT_INPUT, "invalid_body")

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        tb = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        _debug(f"{request.method} {request.url.path} unhandled error:\n{tb}")
        return error_response(ErrorKind.SERVER, "server_error")
