"""Utilities for issuing and validating application JWTs."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

import jwt

from ..config import Settings, get_settings
from ..domain.account import Account, Role

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


class TokenStatus(str, Enum):
    valid = "valid"
    expired = "expired"
    invalid_signature = "invalid_signature"
    malformed = "malformed"


@dataclass(frozen=True, slots=True)
class TokenClaims:
    """Identity claims carried inside an access token."""

    account_id: int
    email: str
    role: Role
    is_active: bool
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True, slots=True)
class TokenVerification:
    """Result of verifying a token: either claims or the reason it was rejected."""

    status: TokenStatus
    claims: TokenClaims | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is TokenStatus.valid


@dataclass(frozen=True, slots=True)
class IssuedToken:
    token: str
    expires_in: int
    expires_at: datetime


class TokenService:
    """Issue and verify HS256-signed identity tokens.

    Verification never touches the account store: a token is valid when its
    signature checks out and, unless explicitly ignored, it has not expired.
    """

    def __init__(self, secret: str, ttl_seconds: int = 86400) -> None:
        """Store the signing secret and the lifetime given to new tokens."""
        if not secret:
            raise ValueError("JWT secret cannot be empty")
        self._secret = secret
        self._ttl = ttl_seconds

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> TokenService:
        settings = settings or get_settings()
        return cls(settings.jwt_secret, settings.jwt_ttl_seconds)

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def issue(self, account: Account, *, now: datetime | None = None) -> IssuedToken:
        """Create a signed JWT for the account.

        Parameters
        ----------
        account:
            Account whose id, email, role and active flag are embedded as claims.
        now:
            Issuance instant; defaults to the current time. Tests pass a past
            instant to obtain an already expired token.

        Returns
        -------
        IssuedToken
            The encoded token together with its lifetime and expiry instant.
        """
        issued_at = (now or datetime.now(timezone.utc)).replace(microsecond=0)
        expires_at = issued_at + timedelta(seconds=self._ttl)
        payload: dict[str, Any] = {
            "sub": str(account.id),
            "email": account.email,
            "role": account.role.value,
            "is_active": account.is_active,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        token = jwt.encode(payload, self._secret, algorithm=ALGORITHM)
        return IssuedToken(token=token, expires_in=self._ttl, expires_at=expires_at)

    def verify(self, token: str, *, ignore_expiration: bool = False) -> TokenVerification:
        """Verify signature (and expiry) and return a typed result; never raises."""
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={
                    "require": ["sub", "iat", "exp"],
                    "verify_exp": not ignore_expiration,
                },
            )
        except jwt.ExpiredSignatureError:
            return TokenVerification(TokenStatus.expired, reason="Token has expired")
        except jwt.InvalidSignatureError:
            return TokenVerification(
                TokenStatus.invalid_signature, reason="Token signature is invalid"
            )
        except jwt.InvalidAlgorithmError:
            return TokenVerification(
                TokenStatus.invalid_signature, reason="Token algorithm is not allowed"
            )
        except jwt.MissingRequiredClaimError as exc:
            return TokenVerification(TokenStatus.malformed, reason=str(exc))
        except jwt.DecodeError:
            return TokenVerification(TokenStatus.malformed, reason="Token is malformed")
        except jwt.InvalidTokenError as exc:
            return TokenVerification(TokenStatus.malformed, reason=f"Invalid token: {exc}")

        claims = _claims_from_payload(payload)
        if claims is None:
            return TokenVerification(TokenStatus.malformed, reason="Token claims are malformed")
        return TokenVerification(TokenStatus.valid, claims=claims)

    def decode_unsafe(self, token: str) -> TokenClaims | None:
        """Read claims without checking the signature.

        Only for diagnostics; the result must never drive an authorization decision.
        """
        try:
            payload = jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError:
            logger.debug("unable to decode token without verification")
            return None
        return _claims_from_payload(payload)


def _claims_from_payload(payload: dict[str, Any]) -> TokenClaims | None:
    try:
        return TokenClaims(
            account_id=int(payload["sub"]),
            email=str(payload["email"]),
            role=Role(payload["role"]),
            is_active=bool(payload["is_active"]),
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
    except (KeyError, TypeError, ValueError, OverflowError):
        return None
