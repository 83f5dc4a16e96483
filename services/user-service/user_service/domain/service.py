"""Account service orchestrating profile changes, blocking, deletion and listing."""

from __future__ import annotations

import logging
import math
from typing import Any

from .account import Account, AccountView, normalize_email
from .contracts import AccountFilter, AccountPage, AccountStore, ProfilePatch
from .errors import (
    CannotBlockAdminError,
    CannotDeleteAdminError,
    CurrentPasswordInvalidError,
    DuplicateEmailError,
    NotFoundError,
    store_errors,
)
from ..security.passwords import PasswordHasher

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


class AccountService:
    """Account workflows backed by the account store."""

    def __init__(self, repository: AccountStore, hasher: PasswordHasher) -> None:
        """Store dependencies used to read, mutate and hash account data."""
        self._repository = repository
        self._hasher = hasher

    def get_account(self, account_id: int) -> AccountView:
        """Return the account view or raise ``NotFoundError``."""
        return self._load(account_id).to_view()

    def update_profile(self, account_id: int, patch: ProfilePatch) -> AccountView:
        """Apply a partial profile update, hashing a new password when one is given.

        All changes are persisted in one store write, after validation and
        hashing have succeeded.
        """
        account = self._load(account_id)
        changes: dict[str, Any] = {}

        if patch.first_name is not None:
            changes["first_name"] = patch.first_name
        if patch.last_name is not None:
            changes["last_name"] = patch.last_name
        if patch.clear_middle_name:
            changes["middle_name"] = None
        elif patch.middle_name is not None:
            changes["middle_name"] = patch.middle_name or None
        if patch.birth_date is not None:
            changes["birth_date"] = patch.birth_date
        if patch.email is not None:
            email = normalize_email(patch.email)
            if email != account.email:
                with store_errors("duplicate email check"):
                    holder = self._repository.find_by_email(email)
                if holder is not None and holder.id != account.id:
                    raise DuplicateEmailError()
                changes["email"] = email
        if patch.password is not None:
            self._hasher.ensure_strong(patch.password)
            changes["password_hash"] = self._hasher.hash(patch.password)

        if not changes:
            return account.to_view()

        updated = self._update(account_id, changes, "profile update")
        logger.info("account %s updated fields %s", account_id, sorted(changes))
        return updated.to_view()

    def change_password(self, account_id: int, old_password: str, new_password: str) -> None:
        """Replace the password after verifying the current one.

        Already issued tokens stay valid; the token carries no credential state.
        """
        account = self._load(account_id)
        if not self._hasher.verify(old_password, account.password_hash):
            logger.info("password change refused for account %s: wrong current password", account_id)
            raise CurrentPasswordInvalidError()
        self._hasher.ensure_strong(new_password)
        password_hash = self._hasher.hash(new_password)
        self._update(account_id, {"password_hash": password_hash}, "password change")
        logger.info("password changed for account %s", account_id)

    def toggle_block(self, account_id: int, is_active: bool) -> AccountView:
        """Block (``is_active=False``) or unblock an account; admins cannot be blocked."""
        account = self._load(account_id)
        if account.is_admin and not is_active:
            logger.warning("refused to block administrator account %s", account_id)
            raise CannotBlockAdminError()
        updated = self._update(account_id, {"is_active": is_active}, "block toggle")
        logger.info("account %s is_active set to %s", account_id, is_active)
        return updated.to_view()

    def delete_account(self, account_id: int) -> None:
        """Permanently remove a non-admin account."""
        account = self._load(account_id)
        if account.is_admin:
            logger.warning("refused to delete administrator account %s", account_id)
            raise CannotDeleteAdminError()
        with store_errors("account deletion"):
            deleted = self._repository.delete(account_id)
        if not deleted:
            raise NotFoundError()
        logger.info("account %s deleted", account_id)

    def list_accounts(
        self,
        *,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        account_filter: AccountFilter | None = None,
    ) -> AccountPage:
        """Return a newest-first page of accounts matching the optional filter."""
        page = max(1, page)
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        offset = (page - 1) * limit
        with store_errors("account listing"):
            records, total = self._repository.find_and_count(
                account_filter or AccountFilter(), offset=offset, limit=limit
            )
        return AccountPage(
            items=[record.to_view() for record in records],
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit),
        )

    def _load(self, account_id: int) -> Account:
        with store_errors("account lookup"):
            account = self._repository.find_by_id(account_id)
        if account is None:
            raise NotFoundError()
        return account

    def _update(self, account_id: int, changes: dict[str, Any], operation: str) -> Account:
        with store_errors(operation):
            updated = self._repository.update(account_id, changes)
        if updated is None:
            raise NotFoundError()
        return updated
