"""Password hashing and strength validation backed by bcrypt."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

import bcrypt

from ..domain.errors import WeakPasswordError

# bcrypt only consumes the first 72 bytes of its input; longer passwords are rejected.
BCRYPT_MAX_BYTES = 72


@dataclass(frozen=True, slots=True)
class PasswordStrength:
    """Outcome of a strength check listing every rule the password broke."""

    valid: bool
    violations: list[str] = field(default_factory=list)


class PasswordHasher:
    """Salted, cost-parameterised one-way hashing of account passwords.

    Examples
    --------
    >>> hasher = PasswordHasher(rounds=4)
    >>> stored = hasher.hash("Secret1")
    >>> hasher.verify("Secret1", stored)
    True
    >>> hasher.verify("secret1", stored)
    False
    """

    MIN_LENGTH = 6
    MAX_LENGTH = 100

    def __init__(self, rounds: int = 10) -> None:
        """Store the bcrypt work factor (log2 of the key expansion rounds)."""
        self._rounds = rounds

    def hash(self, password: str) -> str:
        """Hash a plaintext password with a freshly generated salt.

        Raises
        ------
        WeakPasswordError
            If the password exceeds ``MAX_LENGTH`` characters or
            ``BCRYPT_MAX_BYTES`` bytes; it is rejected before any hashing work
            is done.
        """
        too_long = self._length_violations(password)
        if too_long:
            raise WeakPasswordError(too_long)
        salt = bcrypt.gensalt(rounds=self._rounds)
        return bcrypt.hashpw(self._encode(password), salt).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """Return ``True`` when the password matches; malformed hashes yield ``False``."""
        if not password_hash or self._length_violations(password):
            return False
        try:
            return bcrypt.checkpw(self._encode(password), password_hash.encode("utf-8"))
        except (ValueError, TypeError):
            return False

    def validate_strength(self, password: str) -> PasswordStrength:
        """Check the password policy, reporting all violated rules at once."""
        violations: list[str] = []
        if len(password) < self.MIN_LENGTH:
            violations.append(f"Password must be at least {self.MIN_LENGTH} characters long")
        violations.extend(self._length_violations(password))
        if not re.search(r"[A-Z]", password):
            violations.append("Password must contain at least one uppercase letter")
        if not re.search(r"[a-z]", password):
            violations.append("Password must contain at least one lowercase letter")
        if not re.search(r"\d", password):
            violations.append("Password must contain at least one digit")
        return PasswordStrength(valid=not violations, violations=violations)

    def ensure_strong(self, password: str) -> None:
        """Raise ``WeakPasswordError`` carrying every violation when the policy fails."""
        strength = self.validate_strength(password)
        if not strength.valid:
            raise WeakPasswordError(strength.violations)

    def needs_rehash(self, password_hash: str) -> bool:
        """Return ``True`` when a stored hash was produced with a different cost."""
        try:
            # bcrypt format: $2b$<rounds>$<salt+digest>
            parts = password_hash.split("$")
            if len(parts) >= 4:
                return int(parts[2]) != self._rounds
        except ValueError:
            pass
        return True

    def _length_violations(self, password: str) -> list[str]:
        violations: list[str] = []
        if len(password) > self.MAX_LENGTH:
            violations.append(f"Password must be at most {self.MAX_LENGTH} characters long")
        if len(self._encode(password)) > BCRYPT_MAX_BYTES:
            violations.append(f"Password must be at most {BCRYPT_MAX_BYTES} bytes long")
        return violations

    @staticmethod
    def _encode(password: str) -> bytes:
        return password.encode("utf-8")
