from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum


class Role(str, Enum):
    admin = "admin"
    user = "user"


@dataclass(slots=True)
class Account:
    """Aggregate root for a registered user, including the stored credential."""

    id: int
    first_name: str
    last_name: str
    birth_date: date
    email: str
    password_hash: str
    role: Role = Role.user
    is_active: bool = True
    middle_name: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.admin

    def to_view(self) -> AccountView:
        """Project the aggregate onto the outward view, dropping the password hash."""
        return AccountView(
            id=self.id,
            first_name=self.first_name,
            last_name=self.last_name,
            middle_name=self.middle_name,
            birth_date=self.birth_date,
            email=self.email,
            role=self.role,
            is_active=self.is_active,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


@dataclass(frozen=True, slots=True)
class AccountView:
    """Account data that is safe to hand to callers outside the core."""

    id: int
    first_name: str
    last_name: str
    middle_name: str | None
    birth_date: date
    email: str
    role: Role
    is_active: bool
    created_at: datetime | None
    updated_at: datetime | None


def normalize_email(email: str) -> str:
    """Return the canonical (trimmed, lower-cased) form used for lookups and storage."""
    return email.strip().lower()
