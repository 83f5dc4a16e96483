from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from user_service.api import routes
from user_service.api.errors import setup_exception_handlers
from user_service.config import get_settings
from user_service.domain.account import Account, Role
from user_service.domain.authentication import AuthenticationService
from user_service.domain.contracts import (
    AccountFilter,
    CreateAccountInput,
    NewAccountRecord,
    StoreConflict,
    StoreError,
)
from user_service.domain.service import AccountService
from user_service.main import install_services
from user_service.security.passwords import PasswordHasher
from user_service.security.tokens import TokenService

TEST_SECRET = "test-secret-key-that-is-long-enough-for-hs256"


class FakeRepository:
    """In-memory account store mimicking the Postgres-backed behaviours."""

    def __init__(self) -> None:
        self._accounts: dict[int, Account] = {}
        self._seq = 0
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.fail_with: StoreError | None = None
        self.writes = 0

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def find_by_id(self, account_id: int) -> Account | None:
        self._check()
        account = self._accounts.get(account_id)
        return replace(account) if account else None

    def find_by_email(self, email: str) -> Account | None:
        self._check()
        for account in self._accounts.values():
            if account.email.lower() == email.lower():
                return replace(account)
        return None

    def create(self, record: NewAccountRecord) -> Account:
        self._check()
        if any(a.email.lower() == record.email.lower() for a in self._accounts.values()):
            raise StoreConflict("duplicate email")
        self._seq += 1
        created = self._clock + timedelta(seconds=self._seq)
        account = Account(
            id=self._seq,
            first_name=record.first_name,
            last_name=record.last_name,
            middle_name=record.middle_name,
            birth_date=record.birth_date,
            email=record.email,
            password_hash=record.password_hash,
            role=record.role,
            is_active=record.is_active,
            created_at=created,
            updated_at=created,
        )
        self._accounts[account.id] = account
        self.writes += 1
        return replace(account)

    def update(self, account_id: int, changes: dict[str, Any]) -> Account | None:
        self._check()
        account = self._accounts.get(account_id)
        if account is None:
            return None
        updated = replace(account, **changes, updated_at=datetime.now(timezone.utc))
        self._accounts[account_id] = updated
        self.writes += 1
        return replace(updated)

    def delete(self, account_id: int) -> bool:
        self._check()
        self.writes += 1
        return self._accounts.pop(account_id, None) is not None

    def find_and_count(
        self, account_filter: AccountFilter, *, offset: int, limit: int
    ) -> tuple[list[Account], int]:
        self._check()
        results = list(self._accounts.values())
        if account_filter.role is not None:
            results = [a for a in results if a.role is account_filter.role]
        if account_filter.is_active is not None:
            results = [a for a in results if a.is_active == account_filter.is_active]
        results.sort(key=lambda a: (a.created_at, a.id), reverse=True)
        return [replace(a) for a in results[offset : offset + limit]], len(results)

    def raw(self, account_id: int) -> Account:
        return self._accounts[account_id]


def make_input(
    email: str = "a@x.com",
    password: str = "Aa1111",
    first_name: str = "A",
    last_name: str = "B",
    birth_date: date = date(2000, 1, 1),
    middle_name: str | None = None,
) -> CreateAccountInput:
    return CreateAccountInput(
        first_name=first_name,
        last_name=last_name,
        middle_name=middle_name,
        birth_date=birth_date,
        email=email,
        password=password,
    )


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def hasher() -> PasswordHasher:
    # low cost keeps bcrypt fast in tests
    return PasswordHasher(rounds=4)


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(TEST_SECRET, ttl_seconds=3600)


@pytest.fixture
def auth_service(repository, hasher, tokens) -> AuthenticationService:
    return AuthenticationService(repository, hasher, tokens)


@pytest.fixture
def account_service(repository, hasher) -> AccountService:
    return AccountService(repository, hasher)


@pytest.fixture
def account_input() -> Callable[..., CreateAccountInput]:
    return make_input


@pytest.fixture
def api_client(repository):
    """Provide a FastAPI test client wired to an in-memory store."""
    settings = replace(get_settings(), jwt_secret=TEST_SECRET, bcrypt_rounds=4)

    app = FastAPI()
    app.include_router(routes.router)
    setup_exception_handlers(app)
    install_services(app, repository, settings)

    with TestClient(app) as client:
        yield client, app


@pytest.fixture
def admin_headers(api_client) -> dict[str, str]:
    _, app = api_client
    auth: AuthenticationService = app.state.auth_service
    auth.create_account(make_input(email="admin@example.com", password="Admin123"), Role.admin)
    token = auth.login("admin@example.com", "Admin123").token.token
    return {"Authorization": f"Bearer {token}"}
