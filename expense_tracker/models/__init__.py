"""
Data Models Package

This package contains all Pydantic models used by the Expense Tracker core.
All data flowing through the system must conform to these schemas.
"""

from expense_tracker.models.account import (
    Account,
    Identity,
    ProfilePatch,
    Role,
    Session,
)
from expense_tracker.models.ledger import (
    Category,
    CategoryPatch,
    Expense,
    ExpenseFilter,
    ExpensePatch,
    merge_category,
    merge_expense,
)
from expense_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Account models
    "Account",
    "Identity",
    "ProfilePatch",
    "Role",
    "Session",
    # Ledger models
    "Category",
    "CategoryPatch",
    "Expense",
    "ExpenseFilter",
    "ExpensePatch",
    "merge_category",
    "merge_expense",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
