"""Per-request access checks: bearer authentication, role and ownership gates.

The checks are plain functions over an explicit ``RequestContext`` so they can
be composed by any transport and unit tested with a hand-built context.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from ..domain.account import Role
from ..domain.errors import (
    AccountBlockedError,
    ForbiddenError,
    TokenExpiredError,
    TokenInvalidError,
    TokenMissingError,
)
from .tokens import TokenClaims, TokenService, TokenStatus

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer"


@dataclass(frozen=True, slots=True)
class RequestContext:
    """Identity established for a single request."""

    claims: TokenClaims
    token: str

    @property
    def account_id(self) -> int:
        return self.claims.account_id

    @property
    def role(self) -> Role:
        return self.claims.role

    @property
    def is_admin(self) -> bool:
        return self.claims.role is Role.admin


def extract_bearer_token(authorization: str | None) -> str:
    """Return the token part of an ``Authorization: Bearer <token>`` header."""
    if not authorization or not authorization.strip():
        raise TokenMissingError()
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != BEARER_PREFIX:
        raise TokenInvalidError("Malformed authorization header, expected 'Bearer <token>'")
    return parts[1]


def authenticate(authorization: str | None, tokens: TokenService) -> RequestContext:
    """Verify the bearer token and build the request context.

    Raises ``TokenMissingError``, ``TokenInvalidError`` or ``TokenExpiredError``
    for authentication failures and ``AccountBlockedError`` when the token was
    issued to an account that was inactive at issuance.
    """
    token = extract_bearer_token(authorization)
    result = tokens.verify(token)
    if result.status is TokenStatus.expired:
        raise TokenExpiredError()
    if result.status is TokenStatus.invalid_signature:
        raise TokenInvalidError("Invalid token signature")
    if not result.ok or result.claims is None:
        raise TokenInvalidError("Malformed token")

    claims = result.claims
    if not claims.is_active:
        logger.info("rejected token for blocked account %s", claims.account_id)
        raise AccountBlockedError()
    return RequestContext(claims=claims, token=token)


def require_role(context: RequestContext, allowed: Iterable[Role]) -> RequestContext:
    """Allow the request only when the caller's role is in ``allowed``."""
    allowed_roles = set(allowed)
    if context.role not in allowed_roles:
        logger.info(
            "account %s with role %s denied, requires one of %s",
            context.account_id,
            context.role.value,
            sorted(role.value for role in allowed_roles),
        )
        raise ForbiddenError()
    return context


def require_ownership_or_admin(context: RequestContext, owner_id: int) -> RequestContext:
    """Allow admins unconditionally and other callers only for their own account."""
    if context.is_admin or context.account_id == owner_id:
        return context
    logger.info("account %s denied access to account %s", context.account_id, owner_id)
    raise ForbiddenError("You can only access your own account")
