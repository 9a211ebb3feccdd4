"""
Credential Manager

One-way salted password hashing with bcrypt.

Contract:
- hash() returns a different digest on every call (fresh salt each time)
- verify() is case-sensitive and returns False, never raises,
  for an empty or missing plaintext
- a digest that bcrypt cannot parse is a primitive failure (InternalError),
  not a wrong password
"""

from typing import Optional

import bcrypt
import structlog

from expense_tracker.config import get_settings
from expense_tracker.errors import InternalError


# bcrypt only looks at the first 72 bytes of its input
MAX_PASSWORD_BYTES = 72


class CredentialError(InternalError):
    """The hashing primitive itself failed."""
    code = "credential_failure"


class CredentialManager:
    """Hashes and verifies account passwords."""

    def __init__(self, rounds: Optional[int] = None):
        """
        Args:
            rounds: bcrypt work factor. Defaults to AUTH_BCRYPT_ROUNDS.
        """
        self._rounds = rounds or get_settings().auth.bcrypt_rounds
        self._logger = structlog.get_logger(__name__)

    @property
    def rounds(self) -> int:
        return self._rounds

    def hash(self, plaintext: str) -> str:
        """Return a salted digest of `plaintext`."""
        encoded = plaintext.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        try:
            digest = bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self._rounds))
        except ValueError as e:
            raise CredentialError(f"Password hashing failed: {e}") from e
        return digest.decode("utf-8")

    def verify(self, plaintext: Optional[str], digest: str) -> bool:
        """Return True iff `plaintext` is the password `digest` was made from."""
        if not plaintext:
            return False

        encoded = plaintext.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            # hash() never accepts these, so no stored digest can match
            return False

        try:
            return bcrypt.checkpw(encoded, digest.encode("utf-8"))
        except ValueError as e:
            self._logger.error("credential_digest_invalid", error=str(e))
            raise CredentialError("Stored password digest is malformed") from e
