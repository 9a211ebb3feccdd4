"""
In-Memory Storage Implementation

Dict-backed stores used by tests and local development.
Records are copied on the way in and out so callers never share
mutable state with the store.
"""

from typing import Optional
from uuid import UUID

from expense_tracker.models.account import Account
from expense_tracker.models.audit import AuditEvent
from expense_tracker.models.ledger import Category, Expense, ExpenseFilter
from expense_tracker.services.storage.interface import (
    AccountStorageInterface,
    AuditStorageInterface,
    CategoryStorageInterface,
    DuplicateRecordError,
    ExpenseStorageInterface,
    RecordNotFoundError,
)


class InMemoryAccountStorage(AccountStorageInterface):
    """Accounts keyed by ID."""

    def __init__(self):
        self._accounts: dict[UUID, Account] = {}

    async def get_account_by_id(self, account_id: UUID) -> Optional[Account]:
        account = self._accounts.get(account_id)
        return account.model_copy() if account else None

    async def get_account_by_email(self, email: str) -> Optional[Account]:
        for account in self._accounts.values():
            if account.email == email:
                return account.model_copy()
        return None

    async def list_accounts(self) -> list[Account]:
        return sorted(
            (account.model_copy() for account in self._accounts.values()),
            key=lambda account: account.created_at,
        )

    async def save_account(self, account: Account) -> Account:
        if await self.get_account_by_email(account.email):
            raise DuplicateRecordError(f"Email already registered: {account.email}")
        self._accounts[account.id] = account.model_copy()
        return account

    async def update_account(self, account: Account) -> Account:
        if account.id not in self._accounts:
            raise RecordNotFoundError(f"Account not found: {account.id}")
        clash = await self.get_account_by_email(account.email)
        if clash and clash.id != account.id:
            raise DuplicateRecordError(f"Email already registered: {account.email}")
        self._accounts[account.id] = account.model_copy()
        return account

    async def delete_account(self, account_id: UUID) -> bool:
        return self._accounts.pop(account_id, None) is not None


class InMemoryCategoryStorage(CategoryStorageInterface):
    """Categories keyed by ID, with the (name, owner) unique key enforced."""

    def __init__(self):
        self._categories: dict[UUID, Category] = {}

    async def get_category_by_id(self, category_id: UUID) -> Optional[Category]:
        category = self._categories.get(category_id)
        return category.model_copy() if category else None

    async def find_category(
        self,
        name: str,
        owner_id: UUID,
        exclude_id: Optional[UUID] = None,
    ) -> Optional[Category]:
        for category in self._categories.values():
            if category.id == exclude_id:
                continue
            if category.name == name and category.owner_id == owner_id:
                return category.model_copy()
        return None

    async def list_categories(
        self,
        owner_id: Optional[UUID] = None,
    ) -> list[Category]:
        categories = [
            category.model_copy()
            for category in self._categories.values()
            if owner_id is None or category.owner_id == owner_id
        ]
        categories.sort(key=lambda c: c.name)
        return categories

    async def save_category(self, category: Category) -> Category:
        if await self.find_category(category.name, category.owner_id):
            raise DuplicateRecordError(
                f"Category '{category.name}' already exists for owner {category.owner_id}"
            )
        self._categories[category.id] = category.model_copy()
        return category

    async def update_category(self, category: Category) -> Category:
        if category.id not in self._categories:
            raise RecordNotFoundError(f"Category not found: {category.id}")
        if await self.find_category(category.name, category.owner_id, exclude_id=category.id):
            raise DuplicateRecordError(
                f"Category '{category.name}' already exists for owner {category.owner_id}"
            )
        self._categories[category.id] = category.model_copy()
        return category

    async def delete_category(self, category_id: UUID) -> bool:
        return self._categories.pop(category_id, None) is not None

    async def delete_categories_by_owner(self, owner_id: UUID) -> int:
        doomed = [cid for cid, c in self._categories.items() if c.owner_id == owner_id]
        for category_id in doomed:
            del self._categories[category_id]
        return len(doomed)


class InMemoryExpenseStorage(ExpenseStorageInterface):
    """Expenses keyed by ID."""

    def __init__(self):
        self._expenses: dict[UUID, Expense] = {}

    async def get_expense_by_id(self, expense_id: UUID) -> Optional[Expense]:
        expense = self._expenses.get(expense_id)
        return expense.model_copy() if expense else None

    async def list_expenses(
        self,
        expense_filter: Optional[ExpenseFilter] = None,
        limit: int = 1000,
        offset: int = 0,
    ) -> list[Expense]:
        expense_filter = expense_filter or ExpenseFilter()
        expenses = [
            expense.model_copy()
            for expense in self._expenses.values()
            if _matches(expense, expense_filter)
        ]
        # Newest first
        expenses.sort(key=lambda e: (e.expense_date, e.created_at), reverse=True)
        return expenses[offset:offset + limit]

    async def count_expenses(
        self,
        category_id: Optional[UUID] = None,
        owner_id: Optional[UUID] = None,
    ) -> int:
        expense_filter = ExpenseFilter(category_id=category_id, owner_id=owner_id)
        return sum(1 for e in self._expenses.values() if _matches(e, expense_filter))

    async def save_expense(self, expense: Expense) -> Expense:
        self._expenses[expense.id] = expense.model_copy()
        return expense

    async def update_expense(self, expense: Expense) -> Expense:
        if expense.id not in self._expenses:
            raise RecordNotFoundError(f"Expense not found: {expense.id}")
        self._expenses[expense.id] = expense.model_copy()
        return expense

    async def delete_expense(self, expense_id: UUID) -> bool:
        return self._expenses.pop(expense_id, None) is not None

    async def delete_expenses_by_owner(self, owner_id: UUID) -> int:
        doomed = [eid for eid, e in self._expenses.items() if e.owner_id == owner_id]
        for expense_id in doomed:
            del self._expenses[expense_id]
        return len(doomed)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    async def get_events_by_actor(
        self,
        actor_id: UUID,
        limit: int = 100,
    ) -> list[AuditEvent]:
        matching = [e for e in self._events if e.actor_id == actor_id]
        return list(reversed(matching))[:limit]


def _matches(expense: Expense, expense_filter: ExpenseFilter) -> bool:
    if expense_filter.owner_id and expense.owner_id != expense_filter.owner_id:
        return False
    if expense_filter.category_id and expense.category_id != expense_filter.category_id:
        return False
    if expense_filter.date_from and expense.expense_date < expense_filter.date_from:
        return False
    if expense_filter.date_to and expense.expense_date > expense_filter.date_to:
        return False
    return True
