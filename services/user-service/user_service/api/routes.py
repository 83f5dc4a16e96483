"""HTTP route definitions for the user service."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, Response, status
from pydantic import AfterValidator, BaseModel, EmailStr, Field

from ..domain.account import AccountView, Role
from ..domain.authentication import AuthenticationService, AuthResult
from ..domain.contracts import AccountFilter, AccountPage, CreateAccountInput, ProfilePatch
from ..domain.errors import AccountError
from ..domain.service import AccountService
from ..metrics import record_account_change, record_auth
from ..security import access
from ..security.access import RequestContext
from .dependencies import (
    get_account_service,
    get_auth_service,
    get_bearer_token,
    get_request_context,
    require_admin,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

NAME_MIN, NAME_MAX = 2, 50


def _not_in_future(value: date) -> date:
    if value > date.today():
        raise ValueError("birth date cannot be in the future")
    return value


BirthDate = Annotated[date, AfterValidator(_not_in_future)]


class AccountResponse(BaseModel):
    """Serialised representation of an `AccountView`."""

    id: int
    first_name: str
    last_name: str
    middle_name: str | None
    birth_date: date
    email: EmailStr
    role: Role
    is_active: bool
    created_at: datetime | None
    updated_at: datetime | None

    @classmethod
    def from_domain(cls, account: AccountView) -> "AccountResponse":
        """Build a response model from the domain view."""
        return cls(
            id=account.id,
            first_name=account.first_name,
            last_name=account.last_name,
            middle_name=account.middle_name,
            birth_date=account.birth_date,
            email=account.email,
            role=account.role,
            is_active=account.is_active,
            created_at=account.created_at,
            updated_at=account.updated_at,
        )


class AuthResponse(BaseModel):
    """Account data plus the bearer token issued for it."""

    account: AccountResponse
    access_token: str
    token_type: str = "bearer"
    expires_in: int

    @classmethod
    def from_result(cls, result: AuthResult) -> "AuthResponse":
        return cls(
            account=AccountResponse.from_domain(result.account),
            access_token=result.token.token,
            expires_in=result.token.expires_in,
        )


class AccountListResponse(BaseModel):
    """Envelope for paginated account data."""

    items: list[AccountResponse]
    total: int
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def from_page(cls, page: AccountPage) -> "AccountListResponse":
        return cls(
            items=[AccountResponse.from_domain(item) for item in page.items],
            total=page.total,
            page=page.page,
            limit=page.limit,
            total_pages=page.total_pages,
            has_next=page.has_next,
            has_prev=page.has_prev,
        )


class RegisterRequest(BaseModel):
    """Payload accepted for open self-registration.

    Any ``role`` sent by the client is ignored; registration only creates users.
    """

    first_name: str = Field(..., min_length=NAME_MIN, max_length=NAME_MAX)
    last_name: str = Field(..., min_length=NAME_MIN, max_length=NAME_MAX)
    middle_name: str | None = Field(default=None, max_length=NAME_MAX)
    birth_date: BirthDate
    email: EmailStr
    password: str = Field(..., min_length=1)

    def to_input(self) -> CreateAccountInput:
        return CreateAccountInput(
            first_name=self.first_name,
            last_name=self.last_name,
            middle_name=self.middle_name,
            birth_date=self.birth_date,
            email=self.email,
            password=self.password,
        )


class CreateAccountRequest(RegisterRequest):
    """Admin-only account creation, which may assign a role."""

    role: Role = Role.user


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UpdateProfileRequest(BaseModel):
    """Partial profile update; send ``middle_name: null`` to clear it."""

    first_name: str | None = Field(default=None, min_length=NAME_MIN, max_length=NAME_MAX)
    last_name: str | None = Field(default=None, min_length=NAME_MIN, max_length=NAME_MAX)
    middle_name: str | None = Field(default=None, max_length=NAME_MAX)
    birth_date: BirthDate | None = None
    email: EmailStr | None = None
    password: str | None = Field(default=None, min_length=1)

    def to_patch(self) -> ProfilePatch:
        clear_middle_name = "middle_name" in self.model_fields_set and not self.middle_name
        return ProfilePatch(
            first_name=self.first_name,
            last_name=self.last_name,
            middle_name=None if clear_middle_name else self.middle_name,
            clear_middle_name=clear_middle_name,
            birth_date=self.birth_date,
            email=self.email,
            password=self.password,
        )


class ChangePasswordRequest(BaseModel):
    old_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1)


class BlockRequest(BaseModel):
    is_active: bool


@router.post("/auth/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    service: AuthenticationService = Depends(get_auth_service),
) -> AuthResponse:
    """Register a new regular account and return it with a token."""
    try:
        result = service.register(payload.to_input())
    except AccountError as exc:
        record_auth("register", exc.kind.value.lower())
        raise
    record_auth("register", "success")
    return AuthResponse.from_result(result)


@router.post("/auth/login", response_model=AuthResponse)
def login(
    payload: LoginRequest,
    service: AuthenticationService = Depends(get_auth_service),
) -> AuthResponse:
    """Exchange email and password for a bearer token."""
    try:
        result = service.login(payload.email, payload.password)
    except AccountError as exc:
        record_auth("login", exc.kind.value.lower())
        raise
    record_auth("login", "success")
    return AuthResponse.from_result(result)


@router.post("/auth/refresh", response_model=AuthResponse)
def refresh(
    token: str = Depends(get_bearer_token),
    service: AuthenticationService = Depends(get_auth_service),
) -> AuthResponse:
    """Issue a fresh token for the bearer of a validly signed, possibly expired token."""
    try:
        result = service.refresh(token)
    except AccountError as exc:
        record_auth("refresh", exc.kind.value.lower())
        raise
    record_auth("refresh", "success")
    return AuthResponse.from_result(result)


@router.get("/auth/me", response_model=AccountResponse)
def current_account(
    context: RequestContext = Depends(get_request_context),
    service: AuthenticationService = Depends(get_auth_service),
) -> AccountResponse:
    """Return the live account behind the bearer token."""
    return AccountResponse.from_domain(service.current_account(context.claims))


@router.get("/users", response_model=AccountListResponse)
def list_accounts(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    role: Role | None = Query(default=None),
    is_active: bool | None = Query(default=None),
    _: RequestContext = Depends(require_admin),
    service: AccountService = Depends(get_account_service),
) -> AccountListResponse:
    """Return a newest-first page of accounts (admin only)."""
    result = service.list_accounts(
        page=page,
        limit=limit,
        account_filter=AccountFilter(role=role, is_active=is_active),
    )
    return AccountListResponse.from_page(result)


@router.post("/users", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
def create_account(
    payload: CreateAccountRequest,
    context: RequestContext = Depends(require_admin),
    service: AuthenticationService = Depends(get_auth_service),
) -> AccountResponse:
    """Create an account with an explicit role (admin only)."""
    account = service.create_account(payload.to_input(), payload.role)
    logger.info("admin %s created account %s", context.account_id, account.id)
    record_account_change("create")
    return AccountResponse.from_domain(account)


@router.get("/users/{account_id}", response_model=AccountResponse)
def get_account(
    account_id: int = Path(..., gt=0),
    context: RequestContext = Depends(get_request_context),
    service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    """Retrieve an account; regular users may only read their own."""
    access.require_ownership_or_admin(context, account_id)
    return AccountResponse.from_domain(service.get_account(account_id))


@router.put("/users/{account_id}", response_model=AccountResponse)
def update_profile(
    payload: UpdateProfileRequest,
    account_id: int = Path(..., gt=0),
    context: RequestContext = Depends(get_request_context),
    service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    """Update profile fields and optionally the password."""
    access.require_ownership_or_admin(context, account_id)
    return AccountResponse.from_domain(service.update_profile(account_id, payload.to_patch()))


@router.patch("/users/{account_id}/block", response_model=AccountResponse)
def toggle_block(
    payload: BlockRequest,
    account_id: int = Path(..., gt=0),
    context: RequestContext = Depends(require_admin),
    service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    """Block or unblock an account (admin only)."""
    account = service.toggle_block(account_id, payload.is_active)
    logger.info(
        "admin %s set is_active=%s on account %s", context.account_id, payload.is_active, account_id
    )
    record_account_change("unblock" if payload.is_active else "block")
    return AccountResponse.from_domain(account)


@router.patch("/users/{account_id}/password", status_code=status.HTTP_204_NO_CONTENT)
def change_password(
    payload: ChangePasswordRequest,
    account_id: int = Path(..., gt=0),
    context: RequestContext = Depends(get_request_context),
    service: AccountService = Depends(get_account_service),
) -> Response:
    """Change the password after verifying the current one."""
    access.require_ownership_or_admin(context, account_id)
    service.change_password(account_id, payload.old_password, payload.new_password)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/users/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_account(
    account_id: int = Path(..., gt=0),
    context: RequestContext = Depends(require_admin),
    service: AccountService = Depends(get_account_service),
) -> Response:
    """Permanently delete a non-admin account (admin only)."""
    service.delete_account(account_id)
    logger.info("admin %s deleted account %s", context.account_id, account_id)
    record_account_change("delete")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
