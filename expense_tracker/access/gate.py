"""
Authentication Gate

Turns a session token into an Identity, or refuses.

A request is Authenticated only when, in order:
1. a session exists for the token,
2. the session is bound to an account id,
3. an account with that id exists in the store right now.

Failing any step raises AuthenticationRequiredError and nothing downstream
runs. A failing backend is NOT a failed login: storage and session-store
errors surface as InternalError, never as "unauthenticated".
"""

from typing import Optional
from uuid import UUID

import structlog

from expense_tracker.audit import AuditLogger
from expense_tracker.errors import (
    AccessControlError,
    AuthenticationRequiredError,
    InternalError,
)
from expense_tracker.models.account import Account, Identity
from expense_tracker.services.sessions import SessionStoreInterface
from expense_tracker.services.storage import AccountStorageInterface


class AuthenticationGate:
    """Resolves request identity from a session token."""

    def __init__(
        self,
        sessions: SessionStoreInterface,
        accounts: AccountStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._sessions = sessions
        self._accounts = accounts
        self._audit_logger = audit_logger
        self._logger = structlog.get_logger(__name__)

    async def resolve(
        self,
        token: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> Identity:
        """
        Resolve the identity behind a session token.

        Raises:
            AuthenticationRequiredError: No session, unbound session,
                or the bound account no longer exists
            InternalError: The session store or account store failed
        """
        identity, _ = await self.resolve_account(token, correlation_id)
        return identity

    async def resolve_account(
        self,
        token: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Identity, Account]:
        """Like resolve(), but also return the live account record."""
        if not token:
            await self._reject("no_session", correlation_id)

        try:
            session = await self._sessions.get(token)
        except AccessControlError:
            raise
        except Exception as e:
            raise await self._internal("session_lookup", e, correlation_id) from e

        if session is None:
            await self._reject("no_session", correlation_id)
        if session.account_id is None:
            await self._reject("session_unbound", correlation_id)

        account = await self._fetch_account(session.account_id, correlation_id)

        identity = Identity(
            account_id=account.id,
            role=account.role,
            session_token=token,
        )
        return identity, account

    async def load_account(
        self,
        identity: Identity,
        correlation_id: Optional[UUID] = None,
    ) -> Account:
        """
        Re-read the live account behind an identity.

        The account may have been deleted since the identity was resolved;
        that is reported the same way the gate reports it.
        """
        return await self._fetch_account(identity.account_id, correlation_id)

    async def _fetch_account(
        self,
        account_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> Account:
        try:
            account = await self._accounts.get_account_by_id(account_id)
        except AccessControlError:
            raise
        except Exception as e:
            raise await self._internal("account_lookup", e, correlation_id) from e

        if account is None:
            await self._reject("account_missing", correlation_id)
        return account

    async def _reject(self, reason: str, correlation_id: Optional[UUID] = None) -> None:
        self._logger.info("authentication_rejected", reason=reason)
        if self._audit_logger:
            await self._audit_logger.log_authentication_rejected(
                reason=reason,
                correlation_id=correlation_id,
            )
        raise AuthenticationRequiredError()

    async def _internal(
        self,
        stage: str,
        error: Exception,
        correlation_id: Optional[UUID] = None,
    ) -> InternalError:
        self._logger.error("identity_resolution_failed", stage=stage, error=str(error))
        if self._audit_logger:
            await self._audit_logger.log_error(
                error_type=stage,
                error_message=str(error),
                correlation_id=correlation_id,
            )
        return InternalError(f"Identity resolution failed during {stage}")
