"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the access-control core decoupled from storage implementation

Each collection (accounts, categories, expenses) has its own interface.
Implementations must be consistent-read-after-write within one collection;
nothing is promised ACROSS collections. The core orders its multi-collection
writes with that in mind (see access/cascade.py).

All methods are async: any of them may suspend on I/O.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from expense_tracker.errors import InternalError
from expense_tracker.models.account import Account
from expense_tracker.models.audit import AuditEvent
from expense_tracker.models.ledger import Category, Expense, ExpenseFilter


class AccountStorageInterface(ABC):
    """Persistence for Account records."""

    @abstractmethod
    async def get_account_by_id(self, account_id: UUID) -> Optional[Account]:
        """
        Retrieve an account by its ID.

        Returns:
            The account if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_account_by_email(self, email: str) -> Optional[Account]:
        """
        Retrieve an account by its (exact) email.

        Returns:
            The account if found, None otherwise
        """
        pass

    @abstractmethod
    async def list_accounts(self) -> list[Account]:
        """List every account, oldest first."""
        pass

    @abstractmethod
    async def save_account(self, account: Account) -> Account:
        """
        Insert a new account.

        Raises:
            DuplicateRecordError: If the email is already registered
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def update_account(self, account: Account) -> Account:
        """
        Replace an existing account record.

        Raises:
            RecordNotFoundError: If the account doesn't exist
            StorageError: If update fails
        """
        pass

    @abstractmethod
    async def delete_account(self, account_id: UUID) -> bool:
        """
        Delete an account by ID.

        Returns:
            True if a record was deleted, False if none existed
        """
        pass


class CategoryStorageInterface(ABC):
    """Persistence for Category records."""

    @abstractmethod
    async def get_category_by_id(self, category_id: UUID) -> Optional[Category]:
        """Retrieve a category by its ID, or None."""
        pass

    @abstractmethod
    async def find_category(
        self,
        name: str,
        owner_id: UUID,
        exclude_id: Optional[UUID] = None,
    ) -> Optional[Category]:
        """
        Find a category with exactly this (name, owner) pair.

        Args:
            name: Category name (exact match)
            owner_id: Owning account
            exclude_id: Ignore this category (used when updating it)

        Returns:
            The matching category, or None
        """
        pass

    @abstractmethod
    async def list_categories(
        self,
        owner_id: Optional[UUID] = None,
    ) -> list[Category]:
        """
        List categories sorted by name.

        Args:
            owner_id: Only categories owned by this account
        """
        pass

    @abstractmethod
    async def save_category(self, category: Category) -> Category:
        """
        Insert a new category.

        Raises:
            DuplicateRecordError: If (name, owner) already exists
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def update_category(self, category: Category) -> Category:
        """
        Replace an existing category record.

        Raises:
            RecordNotFoundError: If the category doesn't exist
            StorageError: If update fails
        """
        pass

    @abstractmethod
    async def delete_category(self, category_id: UUID) -> bool:
        """Delete a category by ID. Returns True if one was deleted."""
        pass

    @abstractmethod
    async def delete_categories_by_owner(self, owner_id: UUID) -> int:
        """Delete every category owned by an account. Returns the count."""
        pass


class ExpenseStorageInterface(ABC):
    """Persistence for Expense records."""

    @abstractmethod
    async def get_expense_by_id(self, expense_id: UUID) -> Optional[Expense]:
        """Retrieve an expense by its ID, or None."""
        pass

    @abstractmethod
    async def list_expenses(
        self,
        expense_filter: Optional[ExpenseFilter] = None,
        limit: int = 1000,
        offset: int = 0,
    ) -> list[Expense]:
        """
        List expenses matching a filter, newest expense_date first.

        Storage applies the filter as given. Scoping a non-admin caller
        to their own records is the core's job, not the store's.
        """
        pass

    @abstractmethod
    async def count_expenses(
        self,
        category_id: Optional[UUID] = None,
        owner_id: Optional[UUID] = None,
    ) -> int:
        """Count expenses referencing a category and/or owned by an account."""
        pass

    @abstractmethod
    async def save_expense(self, expense: Expense) -> Expense:
        """
        Insert a new expense.

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def update_expense(self, expense: Expense) -> Expense:
        """
        Replace an existing expense record.

        Raises:
            RecordNotFoundError: If the expense doesn't exist
            StorageError: If update fails
        """
        pass

    @abstractmethod
    async def delete_expense(self, expense_id: UUID) -> bool:
        """Delete an expense by ID. Returns True if one was deleted."""
        pass

    @abstractmethod
    async def delete_expenses_by_owner(self, owner_id: UUID) -> int:
        """Delete every expense owned by an account. Returns the count."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for one operation, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_actor(
        self,
        actor_id: UUID,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get events performed by one account, newest first."""
        pass


class StorageError(InternalError):
    """Base exception for storage operations."""
    code = "storage_failure"


class RecordNotFoundError(StorageError):
    """Record to update does not exist in storage."""
    pass


class DuplicateRecordError(StorageError):
    """Attempted to insert a record that violates a unique key."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
