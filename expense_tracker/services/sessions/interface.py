"""
Abstract Session Store Interface

A session binds an opaque token to an account id. The core only needs
create / get / destroy; expiry policy belongs to the store. When a session
has expired the store simply reports it as absent.

destroy() is idempotent: destroying an unknown or already-destroyed token
is not an error.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from expense_tracker.errors import InternalError
from expense_tracker.models.account import Session


class SessionStoreInterface(ABC):
    """Server-side session bookkeeping."""

    @abstractmethod
    async def create(self, account_id: Optional[UUID]) -> Session:
        """
        Open a new session.

        Args:
            account_id: Account to bind, or None for an anonymous session

        Returns:
            The new session, carrying a fresh token
        """
        pass

    @abstractmethod
    async def get(self, token: str) -> Optional[Session]:
        """Return the live session for a token, or None if absent/expired."""
        pass

    @abstractmethod
    async def destroy(self, token: str) -> None:
        """Invalidate a token. No-op if it is already gone."""
        pass

    @abstractmethod
    async def destroy_for_account(self, account_id: UUID) -> int:
        """Invalidate every session bound to an account. Returns the count."""
        pass

    async def resolve(self, token: str) -> Optional[UUID]:
        """Account id bound to a token, or None."""
        session = await self.get(token)
        return session.account_id if session else None


class SessionStoreError(InternalError):
    """The session backend failed."""
    code = "session_store_failure"
