"""FastAPI dependencies resolving services and the per-request identity."""

from __future__ import annotations

from fastapi import Depends, Header, Request

from ..domain.account import Role
from ..domain.authentication import AuthenticationService
from ..domain.service import AccountService
from ..security import access
from ..security.access import RequestContext
from ..security.tokens import TokenService


def get_auth_service(request: Request) -> AuthenticationService:
    """Resolve the `AuthenticationService` stored on the FastAPI application state."""
    service: AuthenticationService = request.app.state.auth_service
    return service


def get_account_service(request: Request) -> AccountService:
    """Resolve the `AccountService` stored on the FastAPI application state."""
    service: AccountService = request.app.state.account_service
    return service


def get_token_service(request: Request) -> TokenService:
    service: TokenService = request.app.state.token_service
    return service


def get_request_context(
    authorization: str | None = Header(default=None),
    tokens: TokenService = Depends(get_token_service),
) -> RequestContext:
    """Authenticate the bearer token carried by the request."""
    return access.authenticate(authorization, tokens)


def require_admin(context: RequestContext = Depends(get_request_context)) -> RequestContext:
    return access.require_role(context, {Role.admin})


def get_bearer_token(authorization: str | None = Header(default=None)) -> str:
    """Extract the raw bearer token without verifying it (used by token refresh)."""
    return access.extract_bearer_token(authorization)
