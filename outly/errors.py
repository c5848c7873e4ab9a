"""Application error taxonomy.

Every failure a handler can surface is an `AppError` carrying one `ErrorKind`
and a short snake_case `code` (e.g. "email_taken"). The kind decides the HTTP
status in exactly one place (`STATUS_BY_KIND`); the code is what clients see.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict


class ErrorKind(str, Enum):
    CLIENT_INPUT = "client_input"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    CONFIGURATION = "configuration"
    SERVER = "server"


STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.CLIENT_INPUT: 400,
    ErrorKind.AUTHENTICATION: 401,
    ErrorKind.AUTHORIZATION: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.CONFIGURATION: 500,
    ErrorKind.SERVER: 500,
}


class AppError(Exception):
    kind: ErrorKind = ErrorKind.SERVER
    default_code: str = "server_error"

    def __init__(self, code: str | None = None):
        self.code = str(code or self.default_code)
        super().__init__(self.code)

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]


class ClientInputError(AppError):
    kind = ErrorKind.CLIENT_INPUT
    default_code = "invalid_body"


class AuthenticationError(AppError):
    kind = ErrorKind.AUTHENTICATION
    default_code = "unauthorized"


class AuthorizationError(AppError):
    kind = ErrorKind.AUTHORIZATION
    default_code = "forbidden"


class NotFoundError(AppError):
    kind = ErrorKind.NOT_FOUND
    default_code = "not_found"


class ConflictError(AppError):
    kind = ErrorKind.CONFLICT
    default_code = "already_in_use"


class ConfigurationError(AppError):
    kind = ErrorKind.CONFIGURATION
    default_code = "server_misconfigured"


class UnclassifiedServerError(AppError):
    kind = ErrorKind.SERVER
    default_code = "server_error"
