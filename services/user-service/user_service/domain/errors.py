"""Tagged domain errors raised by the authentication and account cores.

Every failure a caller can observe is one of the ``ErrorKind`` members. The
HTTP layer maps kinds to status codes; nothing downstream inspects messages.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from enum import Enum
from typing import Iterator

from .contracts import StoreConflict, StoreError

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    DUPLICATE_EMAIL = "DUPLICATE_EMAIL"
    WEAK_PASSWORD = "WEAK_PASSWORD"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    ACCOUNT_BLOCKED = "ACCOUNT_BLOCKED"
    NOT_FOUND = "NOT_FOUND"
    CURRENT_PASSWORD_INVALID = "CURRENT_PASSWORD_INVALID"
    CANNOT_BLOCK_ADMIN = "CANNOT_BLOCK_ADMIN"
    CANNOT_DELETE_ADMIN = "CANNOT_DELETE_ADMIN"
    TOKEN_INVALID = "TOKEN_INVALID"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    TOKEN_MISSING = "TOKEN_MISSING"
    FORBIDDEN = "FORBIDDEN"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AccountError(Exception):
    """Base exception for all errors surfaced by the cores."""

    kind: ErrorKind = ErrorKind.INTERNAL_ERROR
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class DuplicateEmailError(AccountError):
    kind = ErrorKind.DUPLICATE_EMAIL
    default_message = "An account with this email already exists"


class WeakPasswordError(AccountError):
    """Raised when a password fails the strength policy; lists every violated rule."""

    kind = ErrorKind.WEAK_PASSWORD
    default_message = "Password does not meet requirements"

    def __init__(self, violations: list[str], message: str | None = None):
        self.violations = list(violations)
        if message is None and self.violations:
            message = f"{self.default_message}: {', '.join(self.violations)}"
        super().__init__(message)


class InvalidCredentialsError(AccountError):
    kind = ErrorKind.INVALID_CREDENTIALS
    default_message = "Invalid email or password"


class AccountBlockedError(AccountError):
    kind = ErrorKind.ACCOUNT_BLOCKED
    default_message = "Account is blocked"


class NotFoundError(AccountError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Account not found"


class CurrentPasswordInvalidError(AccountError):
    kind = ErrorKind.CURRENT_PASSWORD_INVALID
    default_message = "Current password is incorrect"


class CannotBlockAdminError(AccountError):
    kind = ErrorKind.CANNOT_BLOCK_ADMIN
    default_message = "Administrator accounts cannot be blocked"


class CannotDeleteAdminError(AccountError):
    kind = ErrorKind.CANNOT_DELETE_ADMIN
    default_message = "Administrator accounts cannot be deleted"


class TokenInvalidError(AccountError):
    kind = ErrorKind.TOKEN_INVALID
    default_message = "Invalid token"


class TokenExpiredError(AccountError):
    kind = ErrorKind.TOKEN_EXPIRED
    default_message = "Token has expired"


class TokenMissingError(AccountError):
    kind = ErrorKind.TOKEN_MISSING
    default_message = "Authorization header is missing"


class ForbiddenError(AccountError):
    kind = ErrorKind.FORBIDDEN
    default_message = "Insufficient permissions"


class InternalError(AccountError):
    kind = ErrorKind.INTERNAL_ERROR


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Translate store failures raised inside the block into domain errors.

    Unique-index conflicts become ``DuplicateEmailError``; anything else is
    logged with full detail and surfaced as a generic ``InternalError``.
    """
    try:
        yield
    except StoreConflict as exc:
        raise DuplicateEmailError() from exc
    except StoreError as exc:
        logger.exception("account store failure during %s", operation)
        raise InternalError() from exc
