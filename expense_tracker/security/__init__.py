"""Password hashing package."""

from expense_tracker.security.credentials import (
    MAX_PASSWORD_BYTES,
    CredentialError,
    CredentialManager,
)

__all__ = ["MAX_PASSWORD_BYTES", "CredentialError", "CredentialManager"]
