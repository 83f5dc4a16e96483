"""Registration, login and token refresh workflows."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from email_validator import EmailNotValidError, validate_email

from .account import Account, AccountView, Role, normalize_email
from .contracts import AccountStore, CreateAccountInput, NewAccountRecord
from .errors import (
    AccountBlockedError,
    DuplicateEmailError,
    InvalidCredentialsError,
    NotFoundError,
    TokenInvalidError,
    store_errors,
)
from ..security.passwords import PasswordHasher
from ..security.tokens import IssuedToken, TokenClaims, TokenService, TokenStatus

logger = logging.getLogger(__name__)

_BOOTSTRAP_BIRTH_DATE = date(1970, 1, 1)
_TIMING_PASSWORD = "Timing-check-0"


@dataclass(slots=True)
class AuthResult:
    """Account view and freshly issued token returned to API consumers."""

    account: AccountView
    token: IssuedToken


class AuthenticationService:
    """Credential workflows on top of the account store.

    The service never returns the stored password hash; every result carries an
    ``AccountView`` instead.
    """

    def __init__(
        self,
        repository: AccountStore,
        hasher: PasswordHasher,
        tokens: TokenService,
    ) -> None:
        self._repository = repository
        self._hasher = hasher
        self._tokens = tokens
        self._timing_hash: str | None = None

    def register(self, payload: CreateAccountInput) -> AuthResult:
        """Open self-registration; always creates a regular ``user`` account."""
        account = self._create(payload, Role.user)
        logger.info("account %s registered", account.id)
        return AuthResult(account=account.to_view(), token=self._tokens.issue(account))

    def create_account(self, payload: CreateAccountInput, role: Role) -> AccountView:
        """Create an account with an explicit role.

        Only reachable from admin-gated callers and the startup bootstrap, so
        privileged roles are never granted through open registration.
        """
        account = self._create(payload, role)
        logger.info("account %s created with role %s", account.id, role.value)
        return account.to_view()

    def login(self, email: str, password: str) -> AuthResult:
        """Verify credentials and issue a token.

        Unknown emails and wrong passwords fail identically so that callers
        cannot discover which emails are registered. Blocked accounts get a
        distinct error because they legitimately exist.
        """
        with store_errors("login"):
            account = self._repository.find_by_email(normalize_email(email))
        if account is None:
            self._hasher.verify(password, self._dummy_hash())
            logger.info("login failed: unknown email")
            raise InvalidCredentialsError()
        if not account.is_active:
            logger.info("login refused for blocked account %s", account.id)
            raise AccountBlockedError()
        if not self._hasher.verify(password, account.password_hash):
            logger.info("login failed for account %s: wrong password", account.id)
            raise InvalidCredentialsError()

        if self._hasher.needs_rehash(account.password_hash):
            with store_errors("password rehash"):
                self._repository.update(
                    account.id, {"password_hash": self._hasher.hash(password)}
                )
            logger.info("password hash for account %s upgraded to the configured cost", account.id)
        return AuthResult(account=account.to_view(), token=self._tokens.issue(account))

    def refresh(self, token: str) -> AuthResult:
        """Exchange a signed (possibly expired) token for a fresh one.

        The account is re-read so that role or status changes made since the
        old token was issued are reflected, and blocked or deleted accounts
        cannot obtain new tokens.
        """
        result = self._tokens.verify(token, ignore_expiration=True)
        if not result.ok or result.claims is None:
            if result.status is TokenStatus.invalid_signature:
                raise TokenInvalidError("Invalid token signature")
            raise TokenInvalidError("Malformed token")

        with store_errors("refresh"):
            account = self._repository.find_by_id(result.claims.account_id)
        if account is None:
            raise TokenInvalidError("Account for this token no longer exists")
        if not account.is_active:
            raise AccountBlockedError()
        logger.debug("token refreshed for account %s", account.id)
        return AuthResult(account=account.to_view(), token=self._tokens.issue(account))

    def current_account(self, claims: TokenClaims) -> AccountView:
        """Return the live account behind authenticated claims."""
        with store_errors("current account lookup"):
            account = self._repository.find_by_id(claims.account_id)
        if account is None:
            raise NotFoundError()
        if not account.is_active:
            raise AccountBlockedError()
        return account.to_view()

    def ensure_admin(self, email: str, password: str) -> AccountView | None:
        """Create the bootstrap administrator unless an account with that email exists.

        An address that the HTTP layer would refuse at login is logged and skipped.
        """
        try:
            validate_email(email, check_deliverability=False)
        except EmailNotValidError as exc:
            logger.error("bootstrap admin email %r is not a valid address: %s", email, exc)
            return None
        with store_errors("admin bootstrap lookup"):
            existing = self._repository.find_by_email(normalize_email(email))
        if existing is not None:
            if not existing.is_admin:
                logger.warning("bootstrap admin email %s belongs to a non-admin account", email)
            return None
        return self.create_account(
            CreateAccountInput(
                first_name="System",
                last_name="Administrator",
                birth_date=_BOOTSTRAP_BIRTH_DATE,
                email=email,
                password=password,
            ),
            Role.admin,
        )

    def _dummy_hash(self) -> str:
        if self._timing_hash is None:
            self._timing_hash = self._hasher.hash(_TIMING_PASSWORD)
        return self._timing_hash

    def _create(self, payload: CreateAccountInput, role: Role) -> Account:
        email = normalize_email(payload.email)
        with store_errors("duplicate email check"):
            existing = self._repository.find_by_email(email)
        if existing is not None:
            raise DuplicateEmailError()

        self._hasher.ensure_strong(payload.password)
        password_hash = self._hasher.hash(payload.password)

        with store_errors("account creation"):
            return self._repository.create(
                NewAccountRecord(
                    first_name=payload.first_name,
                    last_name=payload.last_name,
                    middle_name=payload.middle_name or None,
                    birth_date=payload.birth_date,
                    email=email,
                    password_hash=password_hash,
                    role=role,
                    is_active=True,
                )
            )
