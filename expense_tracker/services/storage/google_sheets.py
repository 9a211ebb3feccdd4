"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is a supported storage backend because:
1. Non-technical users can view their data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data
- No transactions, and certainly none across worksheets. The cascade in
  access/cascade.py orders its deletes so dangling references are short-lived.
- Limited query capabilities (we filter in Python)

Retries live in GoogleSheetsClient: transient API errors are retried with
tenacity there. Every retried write is safe to repeat: appends and
deletes are keyed by the record id in column A, never by a row number
captured before the first attempt. The storage classes above it wrap
anything that still fails into StorageError, which the core reports as
an internal failure.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Optional, TypeVar
from uuid import UUID

import gspread
from gspread.exceptions import APIError
from gspread.utils import rowcol_to_a1
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from expense_tracker.config import GoogleSheetsSettings, get_settings
from expense_tracker.models.account import Account, Role
from expense_tracker.models.audit import AuditEvent, AuditEventType, AuditSeverity
from expense_tracker.models.ledger import Category, Expense, ExpenseFilter
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


ACCOUNT_COLUMNS = [
    "id",
    "email",
    "name",
    "password_hash",
    "role",
    "created_at",
    "updated_at",
]

CATEGORY_COLUMNS = [
    "id",
    "name",
    "owner_id",
    "created_at",
    "updated_at",
]

EXPENSE_COLUMNS = [
    "id",
    "owner_id",
    "category_id",
    "amount",
    "currency",
    "expense_date",
    "note",
    "created_at",
    "updated_at",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "actor_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_code",
    "error_message",
]

T = TypeVar("T")

_api_retry = retry(
    retry=retry_if_exception_type(APIError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication, worksheet creation and retry logic for API
    calls. Row numbers are 1-based and row 1 is always the header.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        """Get or create a worksheet whose first row holds `columns`."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    @_api_retry
    def read_rows(self, title: str, columns: list[str]) -> list[tuple[int, list[str]]]:
        """Return (row_number, values) for every non-empty data row."""
        sheet = self.get_worksheet(title, columns)
        rows = sheet.get_all_values()[1:]
        return [
            (row_number, row)
            for row_number, row in enumerate(rows, start=2)
            if row and row[0]
        ]

    @_api_retry
    def append_record(self, title: str, columns: list[str], row: list) -> bool:
        """
        Append a row keyed by its first column, at most once.

        An append whose response timed out may still have been applied, so
        every attempt first looks for the key in column A. Returns False
        when the row was already there.
        """
        sheet = self.get_worksheet(title, columns)
        if str(row[0]) in sheet.col_values(1)[1:]:
            return False
        sheet.append_row(row, value_input_option="RAW")
        return True

    @_api_retry
    def update_row(self, title: str, columns: list[str], row_number: int, row: list) -> None:
        sheet = self.get_worksheet(title, columns)
        end_column = rowcol_to_a1(row_number, len(columns))
        sheet.update(
            range_name=f"A{row_number}:{end_column}",
            values=[row],
            value_input_option="RAW",
        )

    @_api_retry
    def delete_records(self, title: str, columns: list[str], record_ids: list[str]) -> int:
        """
        Delete every row whose first column is one of `record_ids`.

        Row numbers are looked up again on each attempt. A retry after a
        partial failure only sees the rows still present, so it can never
        hit a row that moved up into a deleted row's place.
        """
        sheet = self.get_worksheet(title, columns)
        wanted = {str(record_id) for record_id in record_ids}
        row_numbers = [
            row_number
            for row_number, record_id in enumerate(sheet.col_values(1)[1:], start=2)
            if record_id in wanted
        ]
        # Bottom-up so earlier deletions don't shift later row numbers
        for row_number in sorted(row_numbers, reverse=True):
            sheet.delete_rows(row_number)
        return len(row_numbers)


def _safe_get(row: list, index: int, default: str = "") -> str:
    """Handle missing columns gracefully."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class _SheetTable:
    """Row-level helpers shared by the per-entity storages."""

    title: str
    columns: list[str]

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._logger = structlog.get_logger(__name__)

    def _rows(self) -> list[tuple[int, list[str]]]:
        return self._client.read_rows(self.title, self.columns)

    def _load(self, parse: Callable[[list], T]) -> list[tuple[int, T]]:
        records = []
        for row_number, row in self._rows():
            try:
                records.append((row_number, parse(row)))
            except Exception as e:
                # Skip malformed rows
                self._logger.warning(
                    "sheets_row_skipped",
                    sheet=self.title,
                    row=row_number,
                    error=str(e),
                )
        return records

    def _find_row_number(self, record_id: UUID) -> Optional[int]:
        for row_number, row in self._rows():
            if row[0] == str(record_id):
                return row_number
        return None


class GoogleSheetsAccountStorage(_SheetTable, AccountStorageInterface):
    """Accounts as rows of the Accounts worksheet."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        super().__init__(client)
        self.title = self._client.settings.accounts_sheet_name
        self.columns = ACCOUNT_COLUMNS

    def _account_to_row(self, account: Account) -> list:
        return [
            str(account.id),
            account.email,
            account.name,
            account.password_hash,
            account.role.value,
            account.created_at.isoformat(),
            account.updated_at.isoformat(),
        ]

    def _row_to_account(self, row: list) -> Account:
        return Account(
            id=UUID(_safe_get(row, 0)),
            email=_safe_get(row, 1),
            name=_safe_get(row, 2),
            password_hash=_safe_get(row, 3),
            role=Role(_safe_get(row, 4, Role.STANDARD.value)),
            created_at=datetime.fromisoformat(_safe_get(row, 5)),
            updated_at=datetime.fromisoformat(_safe_get(row, 6)),
        )

    async def get_account_by_id(self, account_id: UUID) -> Optional[Account]:
        try:
            for _, account in self._load(self._row_to_account):
                if account.id == account_id:
                    return account
            return None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get account: {e}")

    async def get_account_by_email(self, email: str) -> Optional[Account]:
        try:
            for _, account in self._load(self._row_to_account):
                if account.email == email:
                    return account
            return None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get account: {e}")

    async def list_accounts(self) -> list[Account]:
        try:
            accounts = [account for _, account in self._load(self._row_to_account)]
            accounts.sort(key=lambda a: a.created_at)
            return accounts
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list accounts: {e}")

    async def save_account(self, account: Account) -> Account:
        if await self.get_account_by_email(account.email):
            raise DuplicateRecordError(f"Email already registered: {account.email}")
        try:
            self._client.append_record(self.title, self.columns, self._account_to_row(account))
            return account
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save account: {e}")

    async def update_account(self, account: Account) -> Account:
        clash = await self.get_account_by_email(account.email)
        if clash and clash.id != account.id:
            raise DuplicateRecordError(f"Email already registered: {account.email}")
        try:
            row_number = self._find_row_number(account.id)
            if row_number is None:
                raise RecordNotFoundError(f"Account not found: {account.id}")
            self._client.update_row(
                self.title, self.columns, row_number, self._account_to_row(account)
            )
            return account
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update account: {e}")

    async def delete_account(self, account_id: UUID) -> bool:
        try:
            deleted = self._client.delete_records(self.title, self.columns, [str(account_id)])
            return deleted > 0
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete account: {e}")


class GoogleSheetsCategoryStorage(_SheetTable, CategoryStorageInterface):
    """Categories as rows of the Categories worksheet."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        super().__init__(client)
        self.title = self._client.settings.categories_sheet_name
        self.columns = CATEGORY_COLUMNS

    def _category_to_row(self, category: Category) -> list:
        return [
            str(category.id),
            category.name,
            str(category.owner_id),
            category.created_at.isoformat(),
            category.updated_at.isoformat(),
        ]

    def _row_to_category(self, row: list) -> Category:
        return Category(
            id=UUID(_safe_get(row, 0)),
            name=_safe_get(row, 1),
            owner_id=UUID(_safe_get(row, 2)),
            created_at=datetime.fromisoformat(_safe_get(row, 3)),
            updated_at=datetime.fromisoformat(_safe_get(row, 4)),
        )

    def _all(self) -> list[tuple[int, Category]]:
        return self._load(self._row_to_category)

    async def get_category_by_id(self, category_id: UUID) -> Optional[Category]:
        try:
            for _, category in self._all():
                if category.id == category_id:
                    return category
            return None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get category: {e}")

    async def find_category(
        self,
        name: str,
        owner_id: UUID,
        exclude_id: Optional[UUID] = None,
    ) -> Optional[Category]:
        try:
            for _, category in self._all():
                if category.id == exclude_id:
                    continue
                if category.name == name and category.owner_id == owner_id:
                    return category
            return None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to find category: {e}")

    async def list_categories(
        self,
        owner_id: Optional[UUID] = None,
    ) -> list[Category]:
        try:
            categories = [
                category
                for _, category in self._all()
                if owner_id is None or category.owner_id == owner_id
            ]
            categories.sort(key=lambda c: c.name)
            return categories
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list categories: {e}")

    async def save_category(self, category: Category) -> Category:
        if await self.find_category(category.name, category.owner_id):
            raise DuplicateRecordError(
                f"Category '{category.name}' already exists for owner {category.owner_id}"
            )
        try:
            self._client.append_record(self.title, self.columns, self._category_to_row(category))
            return category
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save category: {e}")

    async def update_category(self, category: Category) -> Category:
        if await self.find_category(category.name, category.owner_id, exclude_id=category.id):
            raise DuplicateRecordError(
                f"Category '{category.name}' already exists for owner {category.owner_id}"
            )
        try:
            row_number = self._find_row_number(category.id)
            if row_number is None:
                raise RecordNotFoundError(f"Category not found: {category.id}")
            self._client.update_row(
                self.title, self.columns, row_number, self._category_to_row(category)
            )
            return category
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update category: {e}")

    async def delete_category(self, category_id: UUID) -> bool:
        try:
            deleted = self._client.delete_records(self.title, self.columns, [str(category_id)])
            return deleted > 0
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete category: {e}")

    async def delete_categories_by_owner(self, owner_id: UUID) -> int:
        try:
            record_ids = [
                str(category.id)
                for _, category in self._all()
                if category.owner_id == owner_id
            ]
            if record_ids:
                self._client.delete_records(self.title, self.columns, record_ids)
            return len(record_ids)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete categories: {e}")


class GoogleSheetsExpenseStorage(_SheetTable, ExpenseStorageInterface):
    """Expenses as rows of the Expenses worksheet."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        super().__init__(client)
        self.title = self._client.settings.expenses_sheet_name
        self.columns = EXPENSE_COLUMNS

    def _expense_to_row(self, expense: Expense) -> list:
        return [
            str(expense.id),
            str(expense.owner_id),
            str(expense.category_id),
            str(expense.amount),
            expense.currency,
            expense.expense_date.isoformat(),
            expense.note or "",
            expense.created_at.isoformat(),
            expense.updated_at.isoformat(),
        ]

    def _row_to_expense(self, row: list) -> Expense:
        return Expense(
            id=UUID(_safe_get(row, 0)),
            owner_id=UUID(_safe_get(row, 1)),
            category_id=UUID(_safe_get(row, 2)),
            amount=Decimal(_safe_get(row, 3)),
            currency=_safe_get(row, 4),
            expense_date=date.fromisoformat(_safe_get(row, 5)),
            note=_safe_get(row, 6) or None,
            created_at=datetime.fromisoformat(_safe_get(row, 7)),
            updated_at=datetime.fromisoformat(_safe_get(row, 8)),
        )

    def _all(self) -> list[tuple[int, Expense]]:
        return self._load(self._row_to_expense)

    async def get_expense_by_id(self, expense_id: UUID) -> Optional[Expense]:
        try:
            for _, expense in self._all():
                if expense.id == expense_id:
                    return expense
            return None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get expense: {e}")

    async def list_expenses(
        self,
        expense_filter: Optional[ExpenseFilter] = None,
        limit: int = 1000,
        offset: int = 0,
    ) -> list[Expense]:
        expense_filter = expense_filter or ExpenseFilter()
        try:
            expenses = []
            for _, expense in self._all():
                if expense_filter.owner_id and expense.owner_id != expense_filter.owner_id:
                    continue
                if expense_filter.category_id and expense.category_id != expense_filter.category_id:
                    continue
                if expense_filter.date_from and expense.expense_date < expense_filter.date_from:
                    continue
                if expense_filter.date_to and expense.expense_date > expense_filter.date_to:
                    continue
                expenses.append(expense)

            # Sort by date descending (newest first)
            expenses.sort(key=lambda e: (e.expense_date, e.created_at), reverse=True)
            return expenses[offset:offset + limit]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list expenses: {e}")

    async def count_expenses(
        self,
        category_id: Optional[UUID] = None,
        owner_id: Optional[UUID] = None,
    ) -> int:
        expenses = await self.list_expenses(
            ExpenseFilter(category_id=category_id, owner_id=owner_id),
            limit=1_000_000,
        )
        return len(expenses)

    async def save_expense(self, expense: Expense) -> Expense:
        try:
            self._client.append_record(self.title, self.columns, self._expense_to_row(expense))
            return expense
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save expense: {e}")

    async def update_expense(self, expense: Expense) -> Expense:
        try:
            row_number = self._find_row_number(expense.id)
            if row_number is None:
                raise RecordNotFoundError(f"Expense not found: {expense.id}")
            self._client.update_row(
                self.title, self.columns, row_number, self._expense_to_row(expense)
            )
            return expense
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update expense: {e}")

    async def delete_expense(self, expense_id: UUID) -> bool:
        try:
            deleted = self._client.delete_records(self.title, self.columns, [str(expense_id)])
            return deleted > 0
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete expense: {e}")

    async def delete_expenses_by_owner(self, owner_id: UUID) -> int:
        try:
            record_ids = [
                str(expense.id)
                for _, expense in self._all()
                if expense.owner_id == owner_id
            ]
            if record_ids:
                self._client.delete_records(self.title, self.columns, record_ids)
            return len(record_ids)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete expenses: {e}")


class GoogleSheetsAuditStorage(_SheetTable, AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        super().__init__(client)
        self.title = self._client.settings.audit_sheet_name
        self.columns = AUDIT_COLUMNS

    def _row_to_event(self, row: list) -> AuditEvent:
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            actor_id=UUID(_safe_get(row, 4)) if _safe_get(row, 4) else None,
            entity_type=_safe_get(row, 5) or None,
            entity_id=UUID(_safe_get(row, 6)) if _safe_get(row, 6) else None,
            correlation_id=UUID(_safe_get(row, 7)) if _safe_get(row, 7) else None,
            description=_safe_get(row, 8),
            details=json.loads(_safe_get(row, 9)) if _safe_get(row, 9) else {},
            error_code=_safe_get(row, 10) or None,
            error_message=_safe_get(row, 11) or None,
        )

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            self._client.append_record(self.title, self.columns, event.to_sheets_row())
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            events = [
                event
                for _, event in self._load(self._row_to_event)
                if event.correlation_id == correlation_id
            ]
            # Sort chronologically
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_events_by_actor(
        self,
        actor_id: UUID,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get events by actor, newest first."""
        try:
            events = [
                event
                for _, event in self._load(self._row_to_event)
                if event.actor_id == actor_id
            ]
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
