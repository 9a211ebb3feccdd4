"""
Cascading Account Deletion

Removes an account together with every category and expense it owns.

DESIGN DECISION: The cascade is an ordered sequence, not a transaction.
The collections are independent (a spreadsheet has no multi-sheet
transaction), so the order is chosen to keep the window of dangling
references small:
1. Verify the password. Nothing is written if this fails.
2. Delete the account's expenses
3. Delete the account's categories
4. Delete the account record
5. Invalidate the caller's session and every other session of the account

A concurrent reader may briefly see a partially deleted account.
A backend that supports multi-collection transactions should wrap
steps 2-4 in one.
"""

from typing import Optional
from uuid import UUID

import structlog
from pydantic import BaseModel

from expense_tracker.access.gate import AuthenticationGate
from expense_tracker.audit import AuditLogger, create_correlation_id
from expense_tracker.errors import InvalidCredentialError
from expense_tracker.models.account import Identity
from expense_tracker.security import CredentialManager
from expense_tracker.services.sessions import SessionStoreInterface
from expense_tracker.services.storage import (
    AccountStorageInterface,
    CategoryStorageInterface,
    ExpenseStorageInterface,
)


class DeletionSummary(BaseModel):
    """What a cascade removed."""

    account_id: UUID
    expenses_deleted: int = 0
    categories_deleted: int = 0
    sessions_destroyed: int = 0
    orphaned_expenses: int = 0


class CascadingAccountDeletion:
    """Self-service account deletion."""

    def __init__(
        self,
        gate: AuthenticationGate,
        credentials: CredentialManager,
        sessions: SessionStoreInterface,
        accounts: AccountStorageInterface,
        categories: CategoryStorageInterface,
        expenses: ExpenseStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._gate = gate
        self._credentials = credentials
        self._sessions = sessions
        self._accounts = accounts
        self._categories = categories
        self._expenses = expenses
        self._audit_logger = audit_logger
        self._logger = structlog.get_logger(__name__)

    async def execute(
        self,
        identity: Identity,
        password: str,
        correlation_id: Optional[UUID] = None,
    ) -> DeletionSummary:
        """
        Delete the caller's account and everything it owns.

        Args:
            identity: The authenticated caller; only ever deletes itself
            password: The caller's current password

        Raises:
            AuthenticationRequiredError: The account is already gone
            InvalidCredentialError: Wrong password; nothing was deleted
            InternalError: The account store failed; nothing was deleted
        """
        correlation_id = correlation_id or create_correlation_id()
        account = await self._gate.load_account(identity, correlation_id)

        if not self._credentials.verify(password, account.password_hash):
            self._logger.info(
                "account_deletion_refused",
                account_id=str(account.id),
                reason="invalid_password",
            )
            raise InvalidCredentialError("Password is incorrect")

        summary = DeletionSummary(account_id=account.id)

        summary.expenses_deleted = await self._expenses.delete_expenses_by_owner(account.id)

        # Categories are shared: other accounts' expenses may still point here
        owned_categories = await self._categories.list_categories(owner_id=account.id)
        for category in owned_categories:
            summary.orphaned_expenses += await self._expenses.count_expenses(
                category_id=category.id
            )
        if summary.orphaned_expenses:
            self._logger.warning(
                "cascade_orphans_foreign_expenses",
                account_id=str(account.id),
                orphaned_expenses=summary.orphaned_expenses,
            )

        summary.categories_deleted = await self._categories.delete_categories_by_owner(account.id)
        await self._accounts.delete_account(account.id)

        if identity.session_token:
            await self._sessions.destroy(identity.session_token)
            summary.sessions_destroyed += 1
        summary.sessions_destroyed += await self._sessions.destroy_for_account(account.id)

        self._logger.info(
            "account_deleted",
            account_id=str(account.id),
            expenses_deleted=summary.expenses_deleted,
            categories_deleted=summary.categories_deleted,
        )
        if self._audit_logger:
            await self._audit_logger.log_account_deleted(
                account_id=account.id,
                expenses_deleted=summary.expenses_deleted,
                categories_deleted=summary.categories_deleted,
                correlation_id=correlation_id,
            )
        return summary
