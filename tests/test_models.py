"""
Tests for Expense Tracker

Test strategy:
1. Unit tests for individual components (models, credentials, validators)
2. Flow tests for the access-control core against in-memory storage
3. No real API calls in tests (Google Sheets is mocked)
"""

import json
from datetime import date, datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

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


class TestAccountModels:
    """Tests for account-related Pydantic models."""

    def test_account_defaults_to_standard_role(self):
        """New accounts are not admins."""
        account = Account(email="a@x.com", name="Alice", password_hash="h")
        assert account.role == Role.STANDARD
        assert account.is_admin is False

    def test_account_strips_whitespace(self):
        """Test that whitespace is stripped from the display name."""
        account = Account(email="a@x.com", name="  Alice  ", password_hash="h")
        assert account.name == "Alice"

    def test_public_view_hides_password_hash(self):
        """The digest never appears in the client-facing view."""
        account = Account(email="a@x.com", name="Alice", password_hash="secret-digest")
        view = account.public_view()
        assert "password_hash" not in view
        assert "secret-digest" not in view.values()
        assert view["role"] == "standard"

    def test_identity_is_frozen(self):
        """Identities cannot be mutated after the gate produced them."""
        identity = Identity(account_id=uuid4(), role=Role.STANDARD)
        with pytest.raises(ValueError):
            identity.role = Role.ADMIN

    def test_identity_owns(self):
        account_id = uuid4()
        identity = Identity(account_id=account_id, role=Role.STANDARD)
        assert identity.owns(account_id)
        assert not identity.owns(uuid4())

    def test_session_expiry(self):
        """Sessions expire at expires_at, not before."""
        now = datetime(2024, 1, 1, 12, 0)
        session = Session(token="t", account_id=uuid4(), expires_at=now)
        assert session.is_expired(now - timedelta(seconds=1)) is False
        assert session.is_expired(now) is True

    def test_session_without_expiry_never_expires(self):
        session = Session(token="t")
        assert session.is_expired() is False
        assert session.account_id is None

    def test_profile_patch_is_empty(self):
        assert ProfilePatch().is_empty is True
        assert ProfilePatch(current_password="x").is_empty is True
        assert ProfilePatch(name="New").is_empty is False

    def test_profile_patch_keeps_password_whitespace(self):
        """Passwords are compared byte-for-byte."""
        patch = ProfilePatch(new_password=" Spaced1 ")
        assert patch.new_password == " Spaced1 "


class TestLedgerModels:
    """Tests for category and expense models."""

    def test_category_name_required(self):
        with pytest.raises(ValueError):
            Category(name="   ", owner_id=uuid4())

    def test_expense_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValueError):
            Expense(
                owner_id=uuid4(),
                category_id=uuid4(),
                amount=Decimal("-1"),
                currency="EUR",
            )

    def test_expense_allows_zero_amount(self):
        expense = Expense(
            owner_id=uuid4(),
            category_id=uuid4(),
            amount=Decimal("0"),
            currency="EUR",
        )
        assert expense.amount == Decimal("0")

    def test_expense_uppercases_currency(self):
        expense = Expense(
            owner_id=uuid4(),
            category_id=uuid4(),
            amount=Decimal("1.00"),
            currency="usd",
        )
        assert expense.currency == "USD"

    def test_expense_defaults_date_to_today(self):
        expense = Expense(
            owner_id=uuid4(),
            category_id=uuid4(),
            amount=Decimal("1.00"),
            currency="EUR",
        )
        assert expense.expense_date == date.today()

    def test_expense_rejects_long_note(self):
        with pytest.raises(ValueError):
            Expense(
                owner_id=uuid4(),
                category_id=uuid4(),
                amount=Decimal("1.00"),
                currency="EUR",
                note="x" * 501,
            )


class TestMerge:
    """Tests for the patch merge functions."""

    @pytest.fixture
    def expense(self):
        return Expense(
            owner_id=uuid4(),
            category_id=uuid4(),
            amount=Decimal("25.50"),
            currency="EUR",
            expense_date=date(2024, 3, 1),
            note="Lunch",
        )

    def test_merge_category_keeps_omitted_fields(self):
        category = Category(name="Food", owner_id=uuid4())
        merged = merge_category(category, CategoryPatch(name="Groceries"))
        assert merged.name == "Groceries"
        assert merged.owner_id == category.owner_id
        assert merged.id == category.id

    def test_merge_category_reassigns_owner(self):
        category = Category(name="Food", owner_id=uuid4())
        new_owner = uuid4()
        merged = merge_category(category, CategoryPatch(owner_id=new_owner))
        assert merged.name == "Food"
        assert merged.owner_id == new_owner

    def test_merge_expense_keeps_omitted_fields(self, expense):
        merged = merge_expense(expense, ExpensePatch(amount=Decimal("30.00")))
        assert merged.amount == Decimal("30.00")
        assert merged.note == "Lunch"
        assert merged.category_id == expense.category_id
        assert merged.expense_date == date(2024, 3, 1)

    def test_merge_expense_explicit_none_clears_note(self, expense):
        merged = merge_expense(expense, ExpensePatch(note=None))
        assert merged.note is None

    def test_merge_expense_omitted_note_is_kept(self, expense):
        merged = merge_expense(expense, ExpensePatch(currency="usd"))
        assert merged.note == "Lunch"
        assert merged.currency == "USD"

    def test_merge_does_not_mutate_original(self, expense):
        merge_expense(expense, ExpensePatch(amount=Decimal("99.00")))
        assert expense.amount == Decimal("25.50")

    def test_merge_bumps_updated_at(self, expense):
        merged = merge_expense(expense, ExpensePatch(amount=Decimal("1.00")))
        assert merged.updated_at >= expense.updated_at
        assert merged.created_at == expense.created_at


class TestAuditModels:
    """Tests for audit event models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.LOGIN_SUCCEEDED,
            description="Login",
        )
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_access_denied_is_warning(self):
        event = AuditEventBuilder.access_denied(
            actor_id=uuid4(),
            action="delete category",
            entity_type="category",
            entity_id=uuid4(),
        )
        assert event.event_type == AuditEventType.ACCESS_DENIED
        assert event.severity == AuditSeverity.WARNING
        assert event.entity_type == "category"

    def test_category_delete_blocked_carries_count(self):
        event = AuditEventBuilder.category_delete_blocked(
            actor_id=uuid4(),
            category_id=uuid4(),
            expense_count=3,
        )
        assert event.details["expense_count"] == 3

    def test_account_deleted_carries_cascade_counts(self):
        event = AuditEventBuilder.account_deleted(
            account_id=uuid4(),
            expenses_deleted=2,
            categories_deleted=1,
        )
        assert event.details == {"expenses_deleted": 2, "categories_deleted": 1}

    def test_to_log_dict_serialises_ids(self):
        correlation_id = uuid4()
        event = AuditEventBuilder.login_succeeded(
            account_id=uuid4(),
            correlation_id=correlation_id,
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "login_succeeded"
        assert log_dict["correlation_id"] == str(correlation_id)

    def test_to_sheets_row(self):
        event = AuditEventBuilder.profile_updated(
            account_id=uuid4(),
            fields=["name"],
        )
        row = event.to_sheets_row()
        assert len(row) == 12
        assert row[2] == "profile_updated"
        assert json.loads(row[9]) == {"fields": ["name"]}

    def test_system_error_is_error(self):
        event = AuditEventBuilder.system_error(
            error_type="storage",
            error_message="boom",
        )
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "boom"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
