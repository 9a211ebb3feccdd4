"""Tests for the in-memory storage backend."""

import asyncio
from decimal import Decimal
from uuid import uuid4

import pytest

from expense_tracker.models.account import Account
from expense_tracker.models.ledger import Category, Expense
from expense_tracker.services.storage import (
    DuplicateRecordError,
    InMemoryAccountStorage,
    InMemoryCategoryStorage,
    InMemoryExpenseStorage,
    RecordNotFoundError,
)


class TestInMemoryAccountStorage:
    """Unique email, copy semantics."""

    def test_email_unique_on_update(self):
        storage = InMemoryAccountStorage()
        a = Account(email="a@x.com", name="A", password_hash="h")
        b = Account(email="b@x.com", name="B", password_hash="h")
        asyncio.run(storage.save_account(a))
        asyncio.run(storage.save_account(b))
        with pytest.raises(DuplicateRecordError):
            asyncio.run(storage.update_account(b.model_copy(update={"email": "a@x.com"})))

    def test_returned_records_are_copies(self):
        """Mutating a returned record never changes the store."""
        storage = InMemoryAccountStorage()
        account = Account(email="a@x.com", name="A", password_hash="h")
        asyncio.run(storage.save_account(account))
        loaded = asyncio.run(storage.get_account_by_id(account.id))
        loaded.name = "Changed"
        assert asyncio.run(storage.get_account_by_id(account.id)).name == "A"

    def test_update_missing(self):
        storage = InMemoryAccountStorage()
        with pytest.raises(RecordNotFoundError):
            asyncio.run(storage.update_account(
                Account(email="a@x.com", name="A", password_hash="h")
            ))


class TestInMemoryCategoryStorage:
    """(name, owner) unique key."""

    def test_find_category_excludes_self(self):
        storage = InMemoryCategoryStorage()
        owner_id = uuid4()
        category = Category(name="Food", owner_id=owner_id)
        asyncio.run(storage.save_category(category))
        assert asyncio.run(storage.find_category("Food", owner_id)) is not None
        assert asyncio.run(storage.find_category("Food", owner_id, exclude_id=category.id)) is None

    def test_update_into_clash(self):
        storage = InMemoryCategoryStorage()
        owner_id = uuid4()
        food = Category(name="Food", owner_id=owner_id)
        rent = Category(name="Rent", owner_id=owner_id)
        asyncio.run(storage.save_category(food))
        asyncio.run(storage.save_category(rent))
        with pytest.raises(DuplicateRecordError):
            asyncio.run(storage.update_category(rent.model_copy(update={"name": "Food"})))

    def test_list_by_owner(self):
        storage = InMemoryCategoryStorage()
        owner_id = uuid4()
        asyncio.run(storage.save_category(Category(name="B", owner_id=owner_id)))
        asyncio.run(storage.save_category(Category(name="A", owner_id=owner_id)))
        asyncio.run(storage.save_category(Category(name="C", owner_id=uuid4())))
        names = [c.name for c in asyncio.run(storage.list_categories(owner_id=owner_id))]
        assert names == ["A", "B"]


class TestInMemoryExpenseStorage:
    """Counting and paging."""

    def test_count_by_category_and_owner(self):
        storage = InMemoryExpenseStorage()
        owner_id, category_id = uuid4(), uuid4()
        for owner in (owner_id, owner_id, uuid4()):
            asyncio.run(storage.save_expense(Expense(
                owner_id=owner,
                category_id=category_id,
                amount=Decimal("1.00"),
                currency="EUR",
            )))
        assert asyncio.run(storage.count_expenses(category_id=category_id)) == 3
        assert asyncio.run(storage.count_expenses(category_id=category_id, owner_id=owner_id)) == 2
        assert asyncio.run(storage.count_expenses(category_id=uuid4())) == 0

    def test_limit_and_offset(self):
        storage = InMemoryExpenseStorage()
        for _ in range(5):
            asyncio.run(storage.save_expense(Expense(
                owner_id=uuid4(),
                category_id=uuid4(),
                amount=Decimal("1.00"),
                currency="EUR",
            )))
        assert len(asyncio.run(storage.list_expenses(limit=2))) == 2
        assert len(asyncio.run(storage.list_expenses(offset=4))) == 1
