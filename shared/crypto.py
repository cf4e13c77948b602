"""
Cryptographic helpers — one-way hashing of passwords, refresh tokens and OTPs.

Uses argon2id (via argon2-cffi) for every stored secret. Each call to
``hash`` draws a fresh random salt that is embedded in the encoded output,
and ``verify`` relies on argon2's constant-time comparison.
"""

from __future__ import annotations

from typing import Optional

from argon2 import Parameters, PasswordHasher, profiles
from argon2.exceptions import HashingError

from errors import InternalError


def hasher_profile(name: str) -> Parameters:
    """Resolve an ``argon2.profiles`` constant by name (e.g. ``"CHEAPEST"``)."""
    profile = getattr(profiles, name.upper(), None)
    if not isinstance(profile, Parameters):
        raise ValueError(f"Unknown argon2 profile: {name!r}")
    return profile


class SecretHasher:
    """Salted one-way hashing with constant-time verification."""

    def __init__(self, parameters: Optional[Parameters] = None) -> None:
        if parameters is None:
            self._hasher = PasswordHasher()
        else:
            self._hasher = PasswordHasher.from_parameters(parameters)
        self._dummy_hash: Optional[str] = None

    def hash(self, secret: str) -> str:
        """Hash *secret* with argon2id.

        Returns:
            Argon2 hash string (includes algorithm parameters and salt).

        Raises:
            InternalError: argon2 failed to produce a hash.
        """
        try:
            return self._hasher.hash(secret)
        except HashingError as e:
            raise InternalError("Failed to secure credentials") from e

    def verify(self, secret: Optional[str], hashed: Optional[str]) -> bool:
        """Verify *secret* against an argon2 *hashed* value.

        Returns:
            ``True`` if the secret matches, ``False`` for any failure
            (mismatch, missing or malformed hash, non-string input).
        """
        if not secret or not hashed:
            return False
        try:
            return self._hasher.verify(hashed, secret)
        except Exception:
            return False

    def verify_dummy(self, secret: Optional[str]) -> bool:
        """Spend one verification on a throwaway hash; always False.

        Used when there is no stored hash to check against, so a lookup miss
        costs the same as a mismatch.
        """
        if self._dummy_hash is None:
            self._dummy_hash = self.hash("dummy-password-for-timing")
        self.verify(secret or "x", self._dummy_hash)
        return False

    def needs_rehash(self, hashed: str) -> bool:
        """Return True if *hashed* was produced with outdated parameters."""
        try:
            return self._hasher.check_needs_rehash(hashed)
        except Exception:
            return False
