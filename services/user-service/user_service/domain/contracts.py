"""Domain-level request contracts and the account store protocol."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Protocol

from .account import Account, AccountView, Role


@dataclass(slots=True)
class CreateAccountInput:
    """Validated inputs required to create an account."""

    first_name: str
    last_name: str
    birth_date: date
    email: str
    password: str
    middle_name: str | None = None


@dataclass(slots=True)
class NewAccountRecord:
    """Values handed to the store once the password has been hashed."""

    first_name: str
    last_name: str
    middle_name: str | None
    birth_date: date
    email: str
    password_hash: str
    role: Role = Role.user
    is_active: bool = True


@dataclass(slots=True)
class ProfilePatch:
    """Partial profile update where ``None`` leaves a field unchanged.

    ``middle_name`` is optional on the account, so removing it is requested
    explicitly through ``clear_middle_name``.
    """

    first_name: str | None = None
    last_name: str | None = None
    middle_name: str | None = None
    clear_middle_name: bool = False
    birth_date: date | None = None
    email: str | None = None
    password: str | None = None


@dataclass(slots=True)
class AccountFilter:
    role: Role | None = None
    is_active: bool | None = None


@dataclass(slots=True)
class AccountPage:
    """One page of accounts plus the numbers a client needs to paginate."""

    items: list[AccountView] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10
    total_pages: int = 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1


class StoreError(RuntimeError):
    """Raised by account stores when the backing storage fails."""


class StoreConflict(StoreError):
    """Raised when a write violates a uniqueness constraint (duplicate email)."""


class AccountStore(Protocol):
    """Persistence operations the cores rely on."""

    def find_by_id(self, account_id: int) -> Account | None: ...

    def find_by_email(self, email: str) -> Account | None: ...

    def create(self, record: NewAccountRecord) -> Account: ...

    def update(self, account_id: int, changes: dict[str, Any]) -> Account | None: ...

    def delete(self, account_id: int) -> bool: ...

    def find_and_count(
        self, account_filter: AccountFilter, *, offset: int, limit: int
    ) -> tuple[list[Account], int]: ...
