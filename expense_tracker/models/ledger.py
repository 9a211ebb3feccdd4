"""
Category and Expense Models

Categories are a shared, publicly readable taxonomy; each one still has
an owning account that is accountable for it. Expenses are private
per-owner records that reference a category. An expense's owner does
NOT have to own its category.

DESIGN DECISION: Partial updates go through explicit patch models and
a single merge function per entity. There is no ad hoc
"new value or old value" logic scattered across operations.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# ENTITIES
# =============================================================================

class Category(BaseModel):
    """
    A named expense category.

    Invariant: (name, owner_id) is unique across all categories.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique category ID"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Category name"
    )
    owner_id: UUID = Field(
        ...,
        description="Account accountable for this category"
    )
    created_at: datetime = Field(
        default_factory=datetime.utcnow
    )
    updated_at: datetime = Field(
        default_factory=datetime.utcnow
    )


class Expense(BaseModel):
    """
    A single spending record.

    Invariant: `category_id` references an existing category at the time
    the expense is written.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique expense ID"
    )
    owner_id: UUID = Field(
        ...,
        description="Account this expense belongs to"
    )
    category_id: UUID = Field(
        ...,
        description="Category this expense is filed under"
    )
    amount: Annotated[
        Decimal,
        Field(ge=0, decimal_places=2, description="Amount spent")
    ]
    currency: str = Field(
        ...,
        min_length=3,
        max_length=3,
        description="ISO 4217 currency code"
    )
    expense_date: date = Field(
        default_factory=date.today,
        description="When the money was spent"
    )
    note: Optional[str] = Field(
        default=None,
        max_length=500,
        description="Free-text note"
    )
    created_at: datetime = Field(
        default_factory=datetime.utcnow
    )
    updated_at: datetime = Field(
        default_factory=datetime.utcnow
    )

    @field_validator('currency')
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()


# =============================================================================
# PATCHES AND FILTERS
# =============================================================================

class CategoryPatch(BaseModel):
    """Requested changes to a category. Omitted fields are kept."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    owner_id: Optional[UUID] = Field(
        default=None,
        description="Reassign to another account (admin only)"
    )


class ExpensePatch(BaseModel):
    """
    Requested changes to an expense.

    Omitted fields are kept. `note` is the only field that can be
    cleared: passing `note=None` explicitly removes it, while leaving
    `note` out keeps the stored one.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    category_id: Optional[UUID] = None
    amount: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    expense_date: Optional[date] = None
    note: Optional[str] = Field(default=None, max_length=500)
    owner_id: Optional[UUID] = Field(
        default=None,
        description="Reassign to another account (admin only)"
    )

    @field_validator('currency')
    @classmethod
    def upper_currency(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v


class ExpenseFilter(BaseModel):
    """Listing filter. Non-admin callers are always scoped to themselves."""

    owner_id: Optional[UUID] = None
    category_id: Optional[UUID] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None


# =============================================================================
# MERGE
# =============================================================================

def merge_category(existing: Category, patch: CategoryPatch) -> Category:
    """
    Apply a patch to a category.

    Precedence, field by field:
    - name: patch.name if given, else existing.name
    - owner_id: patch.owner_id if given, else existing.owner_id
    """
    return existing.model_copy(
        update={
            "name": patch.name if patch.name is not None else existing.name,
            "owner_id": patch.owner_id if patch.owner_id is not None else existing.owner_id,
            "updated_at": datetime.utcnow(),
        }
    )


def merge_expense(existing: Expense, patch: ExpensePatch) -> Expense:
    """
    Apply a patch to an expense.

    Precedence, field by field:
    - category_id, amount, currency, expense_date, owner_id:
      patch value if not None, else existing value
    - note: patch value if the patch explicitly sets `note`
      (including to None), else existing value

    Callers validate any new category/owner reference BEFORE merging.
    """
    def pick(name: str):
        value = getattr(patch, name)
        return value if value is not None else getattr(existing, name)

    note = patch.note if "note" in patch.model_fields_set else existing.note

    return existing.model_copy(
        update={
            "category_id": pick("category_id"),
            "amount": pick("amount"),
            "currency": pick("currency"),
            "expense_date": pick("expense_date"),
            "owner_id": pick("owner_id"),
            "note": note,
            "updated_at": datetime.utcnow(),
        }
    )
