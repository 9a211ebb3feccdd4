"""
Ownership Invariant Engine

Decides who may read, change or delete a Category or Expense, and guards
the referential and uniqueness invariants between the three collections.

RULES:
- Mutate or privately view a record: requester owns it, or is admin.
- Categories are public to read (list and single lookup).
- Expenses are private: owner or admin only, for lists too.
- Creating a category is an admin operation; the admin may create it on
  behalf of any existing account.
- (name, owner) is unique across categories. Re-checked on every rename
  or reassignment, ignoring the category being updated.
- A category may only be deleted while no expense references it.
- An expense must reference an existing category. Its owner does NOT
  need to own that category: categories are a shared taxonomy.
- Only an admin may create or move an expense on someone else's behalf.

Every check runs before the first write. A failed check leaves the store
untouched.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from expense_tracker.access.policy import AuthorizationPolicy
from expense_tracker.audit import AuditLogger
from expense_tracker.config import get_settings
from expense_tracker.errors import (
    ConflictError,
    NotFoundError,
    PreconditionFailedError,
)
from expense_tracker.models.account import Account, Identity
from expense_tracker.models.ledger import (
    Category,
    CategoryPatch,
    Expense,
    ExpenseFilter,
    ExpensePatch,
    merge_category,
    merge_expense,
)
from expense_tracker.services.storage import (
    AccountStorageInterface,
    CategoryStorageInterface,
    DuplicateRecordError,
    ExpenseStorageInterface,
    RecordNotFoundError,
)


class OwnershipEngine:
    """Guarded category and expense operations."""

    def __init__(
        self,
        accounts: AccountStorageInterface,
        categories: CategoryStorageInterface,
        expenses: ExpenseStorageInterface,
        policy: AuthorizationPolicy,
        audit_logger: Optional[AuditLogger] = None,
        default_currency: Optional[str] = None,
    ):
        self._accounts = accounts
        self._categories = categories
        self._expenses = expenses
        self._policy = policy
        self._audit_logger = audit_logger
        self._default_currency = (
            default_currency or get_settings().ledger.default_currency
        ).upper()
        self._logger = structlog.get_logger(__name__)

    # =========================================================================
    # GUARDS
    # =========================================================================

    @staticmethod
    def can_modify(identity: Identity, owner_id: UUID) -> bool:
        """Owner-or-admin rule."""
        return identity.is_admin or identity.owns(owner_id)

    async def ensure_can_modify(
        self,
        identity: Identity,
        owner_id: UUID,
        action: str,
        entity_type: str,
        entity_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        if not self.can_modify(identity, owner_id):
            await self._policy.deny(
                identity,
                action,
                entity_type=entity_type,
                entity_id=entity_id,
                correlation_id=correlation_id,
            )

    async def ensure_may_assign_owner(
        self,
        identity: Identity,
        owner_id: Optional[UUID],
        entity_type: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Only admins may file records under another account."""
        if owner_id is not None and not identity.is_admin and not identity.owns(owner_id):
            await self._policy.deny(
                identity,
                f"assign {entity_type} to another account",
                entity_type=entity_type,
                correlation_id=correlation_id,
            )

    async def require_account(self, account_id: UUID) -> Account:
        account = await self._accounts.get_account_by_id(account_id)
        if account is None:
            raise NotFoundError("account", account_id)
        return account

    async def require_category(self, category_id: UUID) -> Category:
        category = await self._categories.get_category_by_id(category_id)
        if category is None:
            raise NotFoundError("category", category_id)
        return category

    async def require_expense(self, expense_id: UUID) -> Expense:
        expense = await self._expenses.get_expense_by_id(expense_id)
        if expense is None:
            raise NotFoundError("expense", expense_id)
        return expense

    async def ensure_category_name_available(
        self,
        name: str,
        owner_id: UUID,
        exclude_id: Optional[UUID] = None,
    ) -> None:
        existing = await self._categories.find_category(name, owner_id, exclude_id=exclude_id)
        if existing is not None:
            raise ConflictError(f"Category '{name}' already exists for this account")

    async def ensure_category_unreferenced(
        self,
        identity: Identity,
        category: Category,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        count = await self._expenses.count_expenses(category_id=category.id)
        if count > 0:
            self._logger.info(
                "category_delete_blocked",
                category_id=str(category.id),
                expense_count=count,
            )
            if self._audit_logger:
                await self._audit_logger.log_category_delete_blocked(
                    actor_id=identity.account_id,
                    category_id=category.id,
                    expense_count=count,
                    correlation_id=correlation_id,
                )
            raise PreconditionFailedError(
                f"Cannot delete category: {count} expense(s) are assigned to this category",
                count=count,
            )

    # =========================================================================
    # CATEGORIES
    # =========================================================================

    async def list_categories(self) -> list[Category]:
        """Public: every category, sorted by name."""
        return await self._categories.list_categories()

    async def get_category(self, category_id: UUID) -> Category:
        """Public: a single category."""
        return await self.require_category(category_id)

    async def create_category(
        self,
        identity: Identity,
        name: str,
        owner_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Category:
        """
        Create a category (admin operation).

        Args:
            identity: Requesting admin
            name: Category name
            owner_id: Account to own the category; defaults to the admin

        Raises:
            ForbiddenError: Requester is not an admin
            NotFoundError: owner_id does not name an existing account
            ConflictError: The owner already has a category with this name
        """
        await self._policy.require_admin(
            identity, action="create category", correlation_id=correlation_id
        )

        target_owner = owner_id or identity.account_id
        await self.require_account(target_owner)

        category = Category(name=name, owner_id=target_owner)
        await self.ensure_category_name_available(category.name, target_owner)

        try:
            await self._categories.save_category(category)
        except DuplicateRecordError as e:
            # Lost a race with a concurrent create
            raise ConflictError(f"Category '{category.name}' already exists for this account") from e

        if self._audit_logger:
            await self._audit_logger.log_category_created(
                actor_id=identity.account_id,
                category_id=category.id,
                name=category.name,
                owner_id=category.owner_id,
                correlation_id=correlation_id,
            )
        return category

    async def update_category(
        self,
        identity: Identity,
        category_id: UUID,
        patch: CategoryPatch,
        correlation_id: Optional[UUID] = None,
    ) -> Category:
        """
        Rename and/or reassign a category.

        Raises:
            NotFoundError: Category or new owner does not exist
            ForbiddenError: Not owner/admin, or a non-admin tried to reassign
            ConflictError: The new (name, owner) pair is taken
        """
        existing = await self.require_category(category_id)
        await self.ensure_can_modify(
            identity,
            existing.owner_id,
            action="update category",
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
        )

        reassigning = patch.owner_id is not None and patch.owner_id != existing.owner_id
        if reassigning:
            await self._policy.require_admin(
                identity, action="reassign category", correlation_id=correlation_id
            )
            await self.require_account(patch.owner_id)

        updated = merge_category(existing, patch)
        if updated.name != existing.name or updated.owner_id != existing.owner_id:
            await self.ensure_category_name_available(
                updated.name, updated.owner_id, exclude_id=existing.id
            )

        try:
            await self._categories.update_category(updated)
        except DuplicateRecordError as e:
            raise ConflictError(f"Category '{updated.name}' already exists for this account") from e
        except RecordNotFoundError as e:
            raise NotFoundError("category", category_id) from e

        if self._audit_logger:
            await self._audit_logger.log_category_updated(
                actor_id=identity.account_id,
                category_id=updated.id,
                name=updated.name,
                owner_id=updated.owner_id,
                correlation_id=correlation_id,
            )
        return updated

    async def delete_category(
        self,
        identity: Identity,
        category_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Delete a category nobody files expenses under.

        Raises:
            NotFoundError: Category does not exist
            ForbiddenError: Not owner/admin
            PreconditionFailedError: Expenses still reference it (carries count)
        """
        category = await self.require_category(category_id)
        await self.ensure_can_modify(
            identity,
            category.owner_id,
            action="delete category",
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
        )
        await self.ensure_category_unreferenced(identity, category, correlation_id)

        if not await self._categories.delete_category(category_id):
            raise NotFoundError("category", category_id)

        if self._audit_logger:
            await self._audit_logger.log_category_deleted(
                actor_id=identity.account_id,
                category_id=category_id,
                correlation_id=correlation_id,
            )

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
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Record an expense.

        Args:
            owner_id: File the expense under another account (admin only)

        Raises:
            ForbiddenError: Non-admin assigning another owner
            NotFoundError: Category or owner account does not exist
        """
        await self.ensure_may_assign_owner(identity, owner_id, "expense", correlation_id)

        target_owner = owner_id or identity.account_id
        if target_owner != identity.account_id:
            await self.require_account(target_owner)
        category = await self.require_category(category_id)

        expense = Expense(
            owner_id=target_owner,
            category_id=category.id,
            amount=amount,
            currency=currency or self._default_currency,
            expense_date=expense_date or date.today(),
            note=note,
        )
        await self._expenses.save_expense(expense)

        if self._audit_logger:
            await self._audit_logger.log_expense_created(
                actor_id=identity.account_id,
                expense_id=expense.id,
                owner_id=expense.owner_id,
                amount=str(expense.amount),
                currency=expense.currency,
                correlation_id=correlation_id,
            )
        return expense

    async def get_expense(
        self,
        identity: Identity,
        expense_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """Owner or admin may view an expense."""
        expense = await self.require_expense(expense_id)
        await self.ensure_can_modify(
            identity,
            expense.owner_id,
            action="view expense",
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
        )
        return expense

    async def update_expense(
        self,
        identity: Identity,
        expense_id: UUID,
        patch: ExpensePatch,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Patch an expense. Fields left out of the patch are kept.

        Raises:
            NotFoundError: Expense, new category, or new owner does not exist
            ForbiddenError: Not owner/admin, or a non-admin tried to reassign
        """
        existing = await self.require_expense(expense_id)
        await self.ensure_can_modify(
            identity,
            existing.owner_id,
            action="update expense",
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
        )

        if patch.owner_id is not None and patch.owner_id != existing.owner_id:
            await self.ensure_may_assign_owner(identity, patch.owner_id, "expense", correlation_id)
            await self.require_account(patch.owner_id)
        if patch.category_id is not None:
            await self.require_category(patch.category_id)

        updated = merge_expense(existing, patch)
        try:
            await self._expenses.update_expense(updated)
        except RecordNotFoundError as e:
            raise NotFoundError("expense", expense_id) from e

        if self._audit_logger:
            await self._audit_logger.log_expense_updated(
                actor_id=identity.account_id,
                expense_id=updated.id,
                owner_id=updated.owner_id,
                correlation_id=correlation_id,
            )
        return updated

    async def delete_expense(
        self,
        identity: Identity,
        expense_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Owner or admin may delete an expense."""
        expense = await self.require_expense(expense_id)
        await self.ensure_can_modify(
            identity,
            expense.owner_id,
            action="delete expense",
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
        )

        if not await self._expenses.delete_expense(expense_id):
            raise NotFoundError("expense", expense_id)

        if self._audit_logger:
            await self._audit_logger.log_expense_deleted(
                actor_id=identity.account_id,
                expense_id=expense_id,
                correlation_id=correlation_id,
            )

    async def list_expenses(
        self,
        identity: Identity,
        expense_filter: Optional[ExpenseFilter] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[Expense]:
        """
        List expenses, newest first.

        A non-admin only ever sees their own expenses: the owner filter is
        forced to the requester, and asking for someone else's is refused.
        An admin sees everyone's unless they filter by owner.
        """
        expense_filter = expense_filter or ExpenseFilter()

        if not identity.is_admin:
            if expense_filter.owner_id is not None and not identity.owns(expense_filter.owner_id):
                await self._policy.deny(
                    identity,
                    "list another account's expenses",
                    entity_type="expense",
                    correlation_id=correlation_id,
                )
            expense_filter = expense_filter.model_copy(
                update={"owner_id": identity.account_id}
            )

        return await self._expenses.list_expenses(expense_filter)

    async def list_category_expenses(
        self,
        identity: Identity,
        category_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> list[Expense]:
        """Expenses filed under one category, scoped like list_expenses()."""
        await self.require_category(category_id)
        return await self.list_expenses(
            identity,
            ExpenseFilter(category_id=category_id),
            correlation_id=correlation_id,
        )
