"""Session store package."""

from expense_tracker.services.sessions.interface import (
    SessionStoreError,
    SessionStoreInterface,
)
from expense_tracker.services.sessions.memory import InMemorySessionStore

__all__ = [
    "InMemorySessionStore",
    "SessionStoreError",
    "SessionStoreInterface",
]
