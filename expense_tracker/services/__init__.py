"""Services package."""

from expense_tracker.services.sessions import (
    InMemorySessionStore,
    SessionStoreError,
    SessionStoreInterface,
)
from expense_tracker.services.storage import (
    AccountStorageInterface,
    AuditStorageInterface,
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
    StorageConnectionError,
    StorageError,
)

__all__ = [
    # Session services
    "InMemorySessionStore",
    "SessionStoreError",
    "SessionStoreInterface",
    # Storage services
    "AccountStorageInterface",
    "AuditStorageInterface",
    "CategoryStorageInterface",
    "DuplicateRecordError",
    "ExpenseStorageInterface",
    "GoogleSheetsAccountStorage",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsCategoryStorage",
    "GoogleSheetsClient",
    "GoogleSheetsExpenseStorage",
    "InMemoryAccountStorage",
    "InMemoryAuditStorage",
    "InMemoryCategoryStorage",
    "InMemoryExpenseStorage",
    "RecordNotFoundError",
    "StorageConnectionError",
    "StorageError",
]
