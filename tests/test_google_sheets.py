"""
Tests for the Google Sheets storage backend.

No network: a fake spreadsheet is injected into the client, so the
tests exercise row mapping, header creation, error wrapping and how
writes behave when the API fails partway through.
"""

import asyncio
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import uuid4

import gspread
import pytest
from gspread.exceptions import APIError
from tenacity import wait_none

from expense_tracker.config import GoogleSheetsSettings
from expense_tracker.models.account import Account, Role
from expense_tracker.models.audit import AuditEventBuilder
from expense_tracker.models.ledger import Category, Expense, ExpenseFilter
from expense_tracker.orchestrator import ExpenseTrackerService
from expense_tracker.security import CredentialManager
from expense_tracker.services.sessions import InMemorySessionStore
from expense_tracker.services.storage import (
    DuplicateRecordError,
    GoogleSheetsAccountStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsCategoryStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    RecordNotFoundError,
    StorageError,
)
from expense_tracker.services.storage.google_sheets import ACCOUNT_COLUMNS


class FakeResponse:
    """The bits of requests.Response that APIError reads."""

    text = "backend unavailable"

    def json(self):
        return {"error": {"code": 503, "message": self.text, "status": "UNAVAILABLE"}}


def unavailable() -> APIError:
    return APIError(FakeResponse())


class FakeWorksheet:
    """Just enough of gspread.Worksheet, backed by a list of string rows."""

    def __init__(self, title: str):
        self.title = title
        self.rows: list[list[str]] = []
        self.fail_reads = False
        # Call number (1-based) of delete_rows / append_row that raises APIError
        self.fail_delete_call: Optional[int] = None
        self.fail_after_append_call: Optional[int] = None
        self.delete_calls = 0
        self.append_calls = 0

    def get_all_values(self) -> list[list[str]]:
        if self.fail_reads:
            raise RuntimeError("quota exceeded")
        return [list(row) for row in self.rows]

    def col_values(self, col: int) -> list[str]:
        if self.fail_reads:
            raise RuntimeError("quota exceeded")
        return [row[col - 1] if len(row) >= col else "" for row in self.rows]

    def append_row(self, values, value_input_option=None):
        self.rows.append([str(v) for v in values])
        self.append_calls += 1
        if self.append_calls == self.fail_after_append_call:
            # Applied server-side, but the response never arrived
            raise unavailable()

    def update(self, range_name=None, values=None, value_input_option=None):
        row_number = int(range_name.split(":")[0][1:])
        self.rows[row_number - 1] = [str(v) for v in values[0]]

    def delete_rows(self, index):
        self.delete_calls += 1
        if self.delete_calls == self.fail_delete_call:
            raise unavailable()
        del self.rows[index - 1]


class FakeSpreadsheet:
    def __init__(self):
        self.sheets: dict[str, FakeWorksheet] = {}

    def worksheet(self, title: str) -> FakeWorksheet:
        if title not in self.sheets:
            raise gspread.WorksheetNotFound(title)
        return self.sheets[title]

    def add_worksheet(self, title: str, rows: int, cols: int) -> FakeWorksheet:
        self.sheets[title] = FakeWorksheet(title)
        return self.sheets[title]


@pytest.fixture
def spreadsheet():
    return FakeSpreadsheet()


@pytest.fixture
def client(tmp_path, spreadsheet):
    credentials_file = tmp_path / "credentials.json"
    credentials_file.write_text("{}")
    settings = GoogleSheetsSettings(
        credentials_path=str(credentials_file),
        spreadsheet_id="test-spreadsheet",
    )
    client = GoogleSheetsClient(settings)
    client._spreadsheet = spreadsheet
    return client


@pytest.fixture
def no_backoff(monkeypatch):
    """Retry transient API errors immediately."""
    for method in ("read_rows", "append_record", "update_row", "delete_records"):
        monkeypatch.setattr(getattr(GoogleSheetsClient, method).retry, "wait", wait_none())


def make_account(email: str = "a@x.com") -> Account:
    return Account(email=email, name="Alice", password_hash="digest", role=Role.ADMIN)


class TestSheetsClient:
    """Worksheet bootstrap."""

    def test_worksheet_created_with_header(self, client, spreadsheet):
        storage = GoogleSheetsAccountStorage(client)
        asyncio.run(storage.list_accounts())
        assert spreadsheet.sheets["Accounts"].rows == [ACCOUNT_COLUMNS]

    def test_backend_failure_becomes_storage_error(self, client, spreadsheet):
        storage = GoogleSheetsAccountStorage(client)
        asyncio.run(storage.list_accounts())
        spreadsheet.sheets["Accounts"].fail_reads = True
        with pytest.raises(StorageError):
            asyncio.run(storage.get_account_by_id(uuid4()))


class TestSheetsAccountStorage:
    """Account rows."""

    def test_round_trip(self, client):
        storage = GoogleSheetsAccountStorage(client)
        account = make_account()
        asyncio.run(storage.save_account(account))

        loaded = asyncio.run(storage.get_account_by_id(account.id))
        assert loaded.model_dump() == account.model_dump()
        assert asyncio.run(storage.get_account_by_email("a@x.com")).id == account.id

    def test_duplicate_email(self, client):
        storage = GoogleSheetsAccountStorage(client)
        asyncio.run(storage.save_account(make_account()))
        with pytest.raises(DuplicateRecordError):
            asyncio.run(storage.save_account(make_account()))

    def test_update(self, client):
        storage = GoogleSheetsAccountStorage(client)
        account = make_account()
        asyncio.run(storage.save_account(account))
        asyncio.run(storage.update_account(account.model_copy(update={"name": "Alicia"})))
        assert asyncio.run(storage.get_account_by_id(account.id)).name == "Alicia"

    def test_update_missing(self, client):
        storage = GoogleSheetsAccountStorage(client)
        with pytest.raises(RecordNotFoundError):
            asyncio.run(storage.update_account(make_account()))

    def test_delete(self, client):
        storage = GoogleSheetsAccountStorage(client)
        account = make_account()
        asyncio.run(storage.save_account(account))
        assert asyncio.run(storage.delete_account(account.id)) is True
        assert asyncio.run(storage.delete_account(account.id)) is False

    def test_malformed_row_is_skipped(self, client, spreadsheet):
        storage = GoogleSheetsAccountStorage(client)
        account = make_account()
        asyncio.run(storage.save_account(account))
        spreadsheet.sheets["Accounts"].rows.append(["not-a-uuid", "x"])
        assert [a.id for a in asyncio.run(storage.list_accounts())] == [account.id]


class TestSheetsLedgerStorage:
    """Category and expense rows."""

    def test_category_unique_key(self, client):
        storage = GoogleSheetsCategoryStorage(client)
        owner_id = uuid4()
        asyncio.run(storage.save_category(Category(name="Food", owner_id=owner_id)))
        with pytest.raises(DuplicateRecordError):
            asyncio.run(storage.save_category(Category(name="Food", owner_id=owner_id)))

    def test_delete_categories_by_owner(self, client):
        storage = GoogleSheetsCategoryStorage(client)
        owner_id, other_id = uuid4(), uuid4()
        for name, owner in [("A", owner_id), ("B", other_id), ("C", owner_id), ("D", owner_id)]:
            asyncio.run(storage.save_category(Category(name=name, owner_id=owner)))

        assert asyncio.run(storage.delete_categories_by_owner(owner_id)) == 3
        assert [c.name for c in asyncio.run(storage.list_categories())] == ["B"]

    def test_expense_round_trip(self, client):
        storage = GoogleSheetsExpenseStorage(client)
        expense = Expense(
            owner_id=uuid4(),
            category_id=uuid4(),
            amount=Decimal("25.50"),
            currency="EUR",
            expense_date=date(2024, 3, 1),
        )
        asyncio.run(storage.save_expense(expense))
        loaded = asyncio.run(storage.get_expense_by_id(expense.id))
        assert loaded.amount == Decimal("25.50")
        assert loaded.note is None
        assert loaded.expense_date == date(2024, 3, 1)

    def test_expense_filter_and_count(self, client):
        storage = GoogleSheetsExpenseStorage(client)
        owner_id, category_id = uuid4(), uuid4()
        for day in (1, 3, 2):
            asyncio.run(storage.save_expense(Expense(
                owner_id=owner_id,
                category_id=category_id,
                amount=Decimal("1.00"),
                currency="EUR",
                expense_date=date(2024, 1, day),
            )))
        asyncio.run(storage.save_expense(Expense(
            owner_id=uuid4(),
            category_id=category_id,
            amount=Decimal("1.00"),
            currency="EUR",
        )))

        mine = asyncio.run(storage.list_expenses(ExpenseFilter(owner_id=owner_id)))
        assert [e.expense_date.day for e in mine] == [3, 2, 1]
        assert asyncio.run(storage.count_expenses(category_id=category_id)) == 4
        assert asyncio.run(storage.delete_expenses_by_owner(owner_id)) == 3
        assert asyncio.run(storage.count_expenses(category_id=category_id)) == 1


class TestSheetsAuditStorage:
    """Append-only audit rows."""

    def test_events_by_correlation_id(self, client):
        storage = GoogleSheetsAuditStorage(client)
        correlation_id = uuid4()
        account_id = uuid4()
        asyncio.run(storage.append_event(
            AuditEventBuilder.login_succeeded(account_id, correlation_id=correlation_id)
        ))
        asyncio.run(storage.append_event(AuditEventBuilder.login_succeeded(account_id)))

        events = asyncio.run(storage.get_events_by_correlation_id(correlation_id))
        assert len(events) == 1
        assert events[0].actor_id == account_id
        assert len(asyncio.run(storage.get_events_by_actor(account_id))) == 2


class TestServiceOverSheets:
    """The core runs unchanged on the Sheets backend."""

    def test_category_lifecycle(self, client):
        service = ExpenseTrackerService(
            accounts=GoogleSheetsAccountStorage(client),
            categories=GoogleSheetsCategoryStorage(client),
            expenses=GoogleSheetsExpenseStorage(client),
            sessions=InMemorySessionStore(),
            credentials=CredentialManager(rounds=4),
            default_currency="EUR",
        )
        admin, session = asyncio.run(service.register("admin@x.com", "Admin", "Secret123!", role=Role.ADMIN))
        identity = asyncio.run(service.resolve_identity(session.token))

        food = asyncio.run(service.create_category(identity, "Food"))
        expense = asyncio.run(service.create_expense(identity, food.id, Decimal("4.20")))
        assert [e.id for e in asyncio.run(service.list_expenses(identity))] == [expense.id]

        summary = asyncio.run(service.delete_account(identity, "Secret123!"))
        assert summary.expenses_deleted == 1
        assert summary.categories_deleted == 1


def always_unavailable(*args, **kwargs):
    raise unavailable()


def make_expense(owner_id) -> Expense:
    return Expense(
        owner_id=owner_id,
        category_id=uuid4(),
        amount=Decimal("1.00"),
        currency="EUR",
    )


@pytest.mark.usefixtures("no_backoff")
class TestSheetsRetries:
    """A retried write must not touch rows it was not asked to touch."""

    def test_interrupted_owner_delete_spares_other_owners(self, client, spreadsheet):
        storage = GoogleSheetsExpenseStorage(client)
        alice, bob = uuid4(), uuid4()
        for owner in (alice, bob, alice, bob):
            asyncio.run(storage.save_expense(make_expense(owner)))
        # Second single-row delete fails after the first already shifted rows
        spreadsheet.sheets["Expenses"].fail_delete_call = 2

        assert asyncio.run(storage.delete_expenses_by_owner(alice)) == 2
        assert asyncio.run(storage.count_expenses(owner_id=alice)) == 0
        assert asyncio.run(storage.count_expenses(owner_id=bob)) == 2

    def test_interrupted_category_delete_spares_other_owners(self, client, spreadsheet):
        storage = GoogleSheetsCategoryStorage(client)
        alice, bob = uuid4(), uuid4()
        for name, owner in [("A", alice), ("B", bob), ("C", alice), ("D", bob)]:
            asyncio.run(storage.save_category(Category(name=name, owner_id=owner)))
        spreadsheet.sheets["Categories"].fail_delete_call = 2

        assert asyncio.run(storage.delete_categories_by_owner(alice)) == 2
        assert [c.name for c in asyncio.run(storage.list_categories())] == ["B", "D"]

    def test_interrupted_single_delete_removes_only_its_row(self, client, spreadsheet):
        storage = GoogleSheetsExpenseStorage(client)
        first, second = make_expense(uuid4()), make_expense(uuid4())
        for expense in (first, second):
            asyncio.run(storage.save_expense(expense))
        spreadsheet.sheets["Expenses"].fail_delete_call = 1

        assert asyncio.run(storage.delete_expense(first.id)) is True
        assert asyncio.run(storage.get_expense_by_id(first.id)) is None
        assert asyncio.run(storage.get_expense_by_id(second.id)) is not None

    def test_timed_out_append_is_not_written_twice(self, client, spreadsheet):
        storage = GoogleSheetsCategoryStorage(client)
        asyncio.run(storage.list_categories())
        sheet = spreadsheet.sheets["Categories"]
        sheet.fail_after_append_call = sheet.append_calls + 1

        category = Category(name="Food", owner_id=uuid4())
        asyncio.run(storage.save_category(category))

        assert [c.id for c in asyncio.run(storage.list_categories())] == [category.id]
        assert len(sheet.rows) == 2

    def test_timed_out_account_append_keeps_email_unique(self, client, spreadsheet):
        storage = GoogleSheetsAccountStorage(client)
        asyncio.run(storage.list_accounts())
        sheet = spreadsheet.sheets["Accounts"]
        sheet.fail_after_append_call = sheet.append_calls + 1

        asyncio.run(storage.save_account(make_account()))
        assert len(asyncio.run(storage.list_accounts())) == 1

    def test_persistent_api_error_becomes_storage_error(self, client, spreadsheet):
        storage = GoogleSheetsExpenseStorage(client)
        expense = make_expense(uuid4())
        asyncio.run(storage.save_expense(expense))
        sheet = spreadsheet.sheets["Expenses"]
        sheet.delete_rows = always_unavailable

        with pytest.raises(StorageError):
            asyncio.run(storage.delete_expense(expense.id))
        assert asyncio.run(storage.get_expense_by_id(expense.id)) is not None
