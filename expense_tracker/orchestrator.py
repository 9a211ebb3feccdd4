"""
Main Orchestrator for Expense Tracker

This module ties together all the components and defines the
operations the core exposes to a presentation layer:
1. Accounts (register → login → profile → logout / delete)
2. Categories (shared taxonomy, admin-managed)
3. Expenses (private per-owner records)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing runs before the Authentication Gate has produced an Identity
- Every check of an operation completes before its first write
- Every step is audited

Errors surface as the typed exceptions in expense_tracker.errors. Mapping
them to HTTP codes, CLI exit codes or UI messages is the caller's job.

INPUT SHAPE: the service trusts the shape of its arguments. Raw input is
checked upstream by expense_tracker.validation, which the presentation
layer runs first:

    request = RequestValidator.parse(RegisterRequest, form_data)
    account, session = await service.register(
        request.email, request.name, request.password
    )

The request models also build the patches this module accepts
(ProfileUpdateRequest.to_patch(), CategoryRequest.to_patch(),
ExpenseRequest.to_patch()). RequestValidationError is an
AccessControlError, so one handler covers both layers.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from expense_tracker.access import (
    AuthenticationGate,
    AuthorizationPolicy,
    CascadingAccountDeletion,
    DeletionSummary,
    OwnershipEngine,
)
from expense_tracker.audit import AuditLogger, create_correlation_id
from expense_tracker.config import Settings, get_settings
from expense_tracker.errors import ConflictError, InvalidCredentialError, NotFoundError
from expense_tracker.models.account import Account, Identity, ProfilePatch, Role, Session
from expense_tracker.models.ledger import (
    Category,
    CategoryPatch,
    Expense,
    ExpenseFilter,
    ExpensePatch,
)
from expense_tracker.security import CredentialManager
from expense_tracker.services.sessions import InMemorySessionStore, SessionStoreInterface
from expense_tracker.services.storage import (
    AccountStorageInterface,
    CategoryStorageInterface,
    DuplicateRecordError,
    ExpenseStorageInterface,
    GoogleSheetsAccountStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsCategoryStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    InMemoryAccountStorage,
    InMemoryAuditStorage,
    InMemoryCategoryStorage,
    InMemoryExpenseStorage,
    RecordNotFoundError,
)


logger = structlog.get_logger(__name__)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


class ExpenseTrackerService:
    """
    Transport-agnostic facade over the access-control core.

    Every operation except register, login, logout, resolve_identity and
    the public category reads takes an Identity, obtained from
    resolve_identity(), as its first argument.
    """

    def __init__(
        self,
        accounts: AccountStorageInterface,
        categories: CategoryStorageInterface,
        expenses: ExpenseStorageInterface,
        sessions: SessionStoreInterface,
        credentials: Optional[CredentialManager] = None,
        audit_logger: Optional[AuditLogger] = None,
        default_currency: Optional[str] = None,
    ):
        self._accounts = accounts
        self._categories = categories
        self._expenses = expenses
        self._sessions = sessions
        self._credentials = credentials or CredentialManager()
        self._audit_logger = audit_logger

        self.gate = AuthenticationGate(sessions, accounts, audit_logger)
        self.policy = AuthorizationPolicy(self.gate, audit_logger)
        self.ownership = OwnershipEngine(
            accounts,
            categories,
            expenses,
            self.policy,
            audit_logger,
            default_currency=default_currency,
        )
        self._cascade = CascadingAccountDeletion(
            self.gate,
            self._credentials,
            sessions,
            accounts,
            categories,
            expenses,
            audit_logger,
        )

    # =========================================================================
    # ACCOUNTS AND SESSIONS
    # =========================================================================

    async def register(
        self,
        email: str,
        name: str,
        password: str,
        role: Role = Role.STANDARD,
    ) -> tuple[Account, Session]:
        """
        Create an account and log it in.

        Args:
            role: Only for bootstrapping administrators from trusted code.
                  A presentation layer must never let a client choose it.

        Returns:
            (account, session bound to the new account)

        Raises:
            ConflictError: The email is already registered
        """
        correlation_id = create_correlation_id()
        email = _normalize_email(email)

        if await self._accounts.get_account_by_email(email) is not None:
            raise ConflictError("Email is already registered")

        account = Account(
            email=email,
            name=name,
            password_hash=self._credentials.hash(password),
            role=role,
        )
        try:
            await self._accounts.save_account(account)
        except DuplicateRecordError as e:
            raise ConflictError("Email is already registered") from e

        session = await self._sessions.create(account.id)

        if self._audit_logger:
            await self._audit_logger.log_account_registered(
                account_id=account.id,
                email=account.email,
                correlation_id=correlation_id,
            )
        return account, session

    async def login(self, email: str, password: str) -> Session:
        """
        Open a session for valid credentials.

        An unknown email and a wrong password are reported identically.

        Raises:
            InvalidCredentialError: Unknown email or wrong password
        """
        correlation_id = create_correlation_id()
        email = _normalize_email(email)

        account = await self._accounts.get_account_by_email(email)
        if account is None or not self._credentials.verify(password, account.password_hash):
            if self._audit_logger:
                await self._audit_logger.log_login_failed(
                    email=email,
                    reason="unknown_email" if account is None else "wrong_password",
                    correlation_id=correlation_id,
                )
            raise InvalidCredentialError("Invalid email or password")

        session = await self._sessions.create(account.id)

        if self._audit_logger:
            await self._audit_logger.log_login_succeeded(
                account_id=account.id,
                correlation_id=correlation_id,
            )
        return session

    async def logout(self, token: Optional[str]) -> None:
        """Destroy a session. Unknown or already-destroyed tokens are ignored."""
        if not token:
            return
        account_id = await self._sessions.resolve(token)
        await self._sessions.destroy(token)

        if self._audit_logger:
            await self._audit_logger.log_logout(account_id=account_id)

    async def resolve_identity(self, token: Optional[str]) -> Identity:
        """
        Raises:
            AuthenticationRequiredError: No usable session
        """
        return await self.gate.resolve(token)

    async def get_current_account(self, identity: Identity) -> Account:
        """The caller's own live account record."""
        return await self.gate.load_account(identity)

    async def list_accounts(self, identity: Identity) -> list[Account]:
        """Every account (admin only)."""
        await self.policy.require_admin(identity, action="list accounts")
        return await self._accounts.list_accounts()

    async def update_profile(self, identity: Identity, patch: ProfilePatch) -> Account:
        """
        Change the caller's name, email and/or password.

        All checks run before anything is written:
        1. The account still exists
        2. A new email is not taken by another account
        3. A new password comes with the correct current password

        Raises:
            AuthenticationRequiredError: The account no longer exists
            ConflictError: The new email belongs to another account
            InvalidCredentialError: current_password missing or wrong
        """
        correlation_id = create_correlation_id()
        account = await self.gate.load_account(identity, correlation_id)
        if patch.is_empty:
            return account

        update: dict = {}
        if patch.name is not None and patch.name != account.name:
            update["name"] = patch.name

        if patch.email is not None:
            email = _normalize_email(patch.email)
            if email != account.email:
                holder = await self._accounts.get_account_by_email(email)
                if holder is not None and holder.id != account.id:
                    raise ConflictError("Email is already registered")
                update["email"] = email

        if patch.new_password is not None:
            if not self._credentials.verify(patch.current_password, account.password_hash):
                raise InvalidCredentialError("Current password is incorrect")
            update["password_hash"] = self._credentials.hash(patch.new_password)

        if not update:
            return account

        updated = account.model_copy(update={**update, "updated_at": datetime.utcnow()})
        try:
            await self._accounts.update_account(updated)
        except DuplicateRecordError as e:
            raise ConflictError("Email is already registered") from e
        except RecordNotFoundError as e:
            raise NotFoundError("account", account.id) from e

        if self._audit_logger:
            fields = ["password" if key == "password_hash" else key for key in update]
            await self._audit_logger.log_profile_updated(
                account_id=account.id,
                fields=fields,
                correlation_id=correlation_id,
            )
        return updated

    async def delete_account(self, identity: Identity, password: str) -> DeletionSummary:
        """
        Delete the caller's account, its categories and its expenses.

        Raises:
            InvalidCredentialError: Wrong password; nothing was deleted
        """
        return await self._cascade.execute(identity, password)

    # =========================================================================
    # CATEGORIES
    # =========================================================================

    async def list_categories(self) -> list[Category]:
        return await self.ownership.list_categories()

    async def get_category(self, category_id: UUID) -> Category:
        return await self.ownership.get_category(category_id)

    async def create_category(
        self,
        identity: Identity,
        name: str,
        owner_id: Optional[UUID] = None,
    ) -> Category:
        return await self.ownership.create_category(
            identity, name, owner_id=owner_id, correlation_id=create_correlation_id()
        )

    async def update_category(
        self,
        identity: Identity,
        category_id: UUID,
        patch: CategoryPatch,
    ) -> Category:
        return await self.ownership.update_category(
            identity, category_id, patch, correlation_id=create_correlation_id()
        )

    async def delete_category(self, identity: Identity, category_id: UUID) -> None:
        await self.ownership.delete_category(
            identity, category_id, correlation_id=create_correlation_id()
        )

    async def list_category_expenses(
        self,
        identity: Identity,
        category_id: UUID,
    ) -> list[Expense]:
        return await self.ownership.list_category_expenses(identity, category_id)

    # =========================================================================
    # EXPENSES
    # =========================================================================

    async def create_expense(
        self,
        identity: Identity,
        category_id: UUID,
        amount: Decimal,
        currency: Optional[str] = None,
        expense_date: Optional[date] = None,
        note: Optional[str] = None,
        owner_id: Optional[UUID] = None,
    ) -> Expense:
        return await self.ownership.create_expense(
            identity,
            category_id,
            amount,
            currency=currency,
            expense_date=expense_date,
            note=note,
            owner_id=owner_id,
            correlation_id=create_correlation_id(),
        )

    async def get_expense(self, identity: Identity, expense_id: UUID) -> Expense:
        return await self.ownership.get_expense(identity, expense_id)

    async def update_expense(
        self,
        identity: Identity,
        expense_id: UUID,
        patch: ExpensePatch,
    ) -> Expense:
        return await self.ownership.update_expense(
            identity, expense_id, patch, correlation_id=create_correlation_id()
        )

    async def delete_expense(self, identity: Identity, expense_id: UUID) -> None:
        await self.ownership.delete_expense(
            identity, expense_id, correlation_id=create_correlation_id()
        )

    async def list_expenses(
        self,
        identity: Identity,
        expense_filter: Optional[ExpenseFilter] = None,
    ) -> list[Expense]:
        return await self.ownership.list_expenses(identity, expense_filter)


def create_app_components(
    settings: Optional[Settings] = None,
    backend: Optional[str] = None,
) -> ExpenseTrackerService:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to use; defaults to get_settings()
        backend: "memory" or "google_sheets"; defaults to APP storage_backend

    Returns:
        A wired ExpenseTrackerService

    Unlike the audit trail, the ledger cannot run without its store: a
    misconfigured Google Sheets backend raises instead of silently
    falling back to memory.
    """
    settings = settings or get_settings()
    backend = backend or settings.app.storage_backend

    if backend == "google_sheets":
        sheets_client = GoogleSheetsClient(settings.google_sheets)
        accounts = GoogleSheetsAccountStorage(sheets_client)
        categories = GoogleSheetsCategoryStorage(sheets_client)
        expenses = GoogleSheetsExpenseStorage(sheets_client)
        audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
    elif backend == "memory":
        accounts = InMemoryAccountStorage()
        categories = InMemoryCategoryStorage()
        expenses = InMemoryExpenseStorage()
        audit_logger = AuditLogger(InMemoryAuditStorage())
    else:
        raise ValueError(f"Unknown storage backend: {backend}")

    logger.info("app_components_created", backend=backend)

    return ExpenseTrackerService(
        accounts=accounts,
        categories=categories,
        expenses=expenses,
        sessions=InMemorySessionStore(),
        credentials=CredentialManager(settings.auth.bcrypt_rounds),
        audit_logger=audit_logger,
        default_currency=settings.ledger.default_currency,
    )
