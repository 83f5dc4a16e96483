"""Translation of domain errors into HTTP responses.

Error response format::

    {"detail": "Human-readable message", "code": "ERROR_KIND"}

Weak password responses also carry ``"violations": [...]``.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from ..domain.errors import AccountError, ErrorKind, WeakPasswordError

logger = logging.getLogger(__name__)

ERROR_KIND_TO_STATUS: dict[ErrorKind, int] = {
    ErrorKind.DUPLICATE_EMAIL: status.HTTP_409_CONFLICT,
    ErrorKind.WEAK_PASSWORD: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.ACCOUNT_BLOCKED: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CURRENT_PASSWORD_INVALID: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CANNOT_BLOCK_ADMIN: status.HTTP_403_FORBIDDEN,
    ErrorKind.CANNOT_DELETE_ADMIN: status.HTTP_403_FORBIDDEN,
    ErrorKind.TOKEN_INVALID: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.TOKEN_EXPIRED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.TOKEN_MISSING: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

_BEARER_CHALLENGE_KINDS = {
    ErrorKind.TOKEN_INVALID,
    ErrorKind.TOKEN_EXPIRED,
    ErrorKind.TOKEN_MISSING,
}


def account_error_response(exc: AccountError) -> JSONResponse:
    """Build the JSON response for a domain error."""
    status_code = ERROR_KIND_TO_STATUS.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    body: dict[str, object] = {"detail": exc.message, "code": exc.kind.value}
    if isinstance(exc, WeakPasswordError):
        body["violations"] = exc.violations
    headers = {"WWW-Authenticate": "Bearer"} if exc.kind in _BEARER_CHALLENGE_KINDS else None
    return JSONResponse(status_code=status_code, content=body, headers=headers)


async def _handle_account_error(request: Request, exc: AccountError) -> JSONResponse:
    if exc.kind is ErrorKind.INTERNAL_ERROR:
        logger.error("internal error on %s %s", request.method, request.url.path)
    return account_error_response(exc)


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error", "code": ErrorKind.INTERNAL_ERROR.value},
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the domain and fallback exception handlers on the application."""
    app.add_exception_handler(AccountError, _handle_account_error)
    app.add_exception_handler(Exception, _handle_unexpected)
