"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Ships an in-memory backend (tests, development) and a Google Sheets backend.
"""

from expense_tracker.services.storage.interface import (
    AccountStorageInterface,
    AuditStorageInterface,
    CategoryStorageInterface,
    DuplicateRecordError,
    ExpenseStorageInterface,
    RecordNotFoundError,
    StorageConnectionError,
    StorageError,
)
from expense_tracker.services.storage.memory import (
    InMemoryAccountStorage,
    InMemoryAuditStorage,
    InMemoryCategoryStorage,
    InMemoryExpenseStorage,
)
from expense_tracker.services.storage.google_sheets import (
    GoogleSheetsAccountStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsCategoryStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
)

__all__ = [
    # Interfaces
    "AccountStorageInterface",
    "AuditStorageInterface",
    "CategoryStorageInterface",
    "ExpenseStorageInterface",
    # Exceptions
    "DuplicateRecordError",
    "RecordNotFoundError",
    "StorageConnectionError",
    "StorageError",
    # In-memory implementation
    "InMemoryAccountStorage",
    "InMemoryAuditStorage",
    "InMemoryCategoryStorage",
    "InMemoryExpenseStorage",
    # Google Sheets implementation
    "GoogleSheetsAccountStorage",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsCategoryStorage",
    "GoogleSheetsClient",
    "GoogleSheetsExpenseStorage",
]
