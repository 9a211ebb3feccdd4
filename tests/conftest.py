"""
Shared fixtures.

Everything runs against the in-memory backends with bcrypt at its
minimum work factor, so the suite needs no network and stays fast.
"""

import asyncio
from typing import NamedTuple

import pytest

from expense_tracker.audit import AuditLogger
from expense_tracker.models.account import Account, Identity, Role, Session
from expense_tracker.orchestrator import ExpenseTrackerService
from expense_tracker.security import CredentialManager
from expense_tracker.services.sessions import InMemorySessionStore
from expense_tracker.services.storage import (
    InMemoryAccountStorage,
    InMemoryAuditStorage,
    InMemoryCategoryStorage,
    InMemoryExpenseStorage,
)


PASSWORD = "Secret123!"


class Registered(NamedTuple):
    account: Account
    session: Session
    identity: Identity


@pytest.fixture
def credentials() -> CredentialManager:
    return CredentialManager(rounds=4)


@pytest.fixture
def account_storage() -> InMemoryAccountStorage:
    return InMemoryAccountStorage()


@pytest.fixture
def category_storage() -> InMemoryCategoryStorage:
    return InMemoryCategoryStorage()


@pytest.fixture
def expense_storage() -> InMemoryExpenseStorage:
    return InMemoryExpenseStorage()


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def service(
    account_storage,
    category_storage,
    expense_storage,
    session_store,
    credentials,
    audit_logger,
) -> ExpenseTrackerService:
    return ExpenseTrackerService(
        accounts=account_storage,
        categories=category_storage,
        expenses=expense_storage,
        sessions=session_store,
        credentials=credentials,
        audit_logger=audit_logger,
        default_currency="EUR",
    )


def register(
    service: ExpenseTrackerService,
    email: str,
    name: str,
    role: Role = Role.STANDARD,
) -> Registered:
    account, session = asyncio.run(service.register(email, name, PASSWORD, role=role))
    identity = asyncio.run(service.resolve_identity(session.token))
    return Registered(account, session, identity)


@pytest.fixture
def admin(service) -> Registered:
    return register(service, "admin@x.com", "Admin", role=Role.ADMIN)


@pytest.fixture
def alice(service) -> Registered:
    return register(service, "a@x.com", "Alice")


@pytest.fixture
def bob(service) -> Registered:
    return register(service, "b@x.com", "Bob")


@pytest.fixture
def register_account(service):
    """Factory: register another account on the shared service."""
    def _register(email: str, name: str = "Someone", role: Role = Role.STANDARD) -> Registered:
        return register(service, email, name, role=role)
    return _register
