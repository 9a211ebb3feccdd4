"""In-process session store with TTL expiry."""

import secrets
from datetime import datetime, timedelta
from typing import Callable, Optional
from uuid import UUID

from expense_tracker.config import get_settings
from expense_tracker.models.account import Session
from expense_tracker.services.sessions.interface import SessionStoreInterface


class InMemorySessionStore(SessionStoreInterface):
    """
    Sessions kept in a dict, keyed by token.

    Expired sessions are dropped when they are next looked up, and every
    create() sweeps out the ones nobody came back for.
    """

    def __init__(
        self,
        ttl: Optional[timedelta] = None,
        token_bytes: Optional[int] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        auth = get_settings().auth
        self._ttl = ttl or timedelta(hours=auth.session_ttl_hours)
        self._token_bytes = token_bytes or auth.session_token_bytes
        self._clock = clock
        self._sessions: dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    async def create(self, account_id: Optional[UUID]) -> Session:
        now = self._clock()
        self._purge_expired(now)
        session = Session(
            token=secrets.token_urlsafe(self._token_bytes),
            account_id=account_id,
            created_at=now,
            expires_at=now + self._ttl,
        )
        self._sessions[session.token] = session
        return session

    async def get(self, token: str) -> Optional[Session]:
        session = self._sessions.get(token)
        if session is None:
            return None
        if session.is_expired(self._clock()):
            del self._sessions[token]
            return None
        return session

    async def destroy(self, token: str) -> None:
        self._sessions.pop(token, None)

    async def destroy_for_account(self, account_id: UUID) -> int:
        doomed = [
            token
            for token, session in self._sessions.items()
            if session.account_id == account_id
        ]
        for token in doomed:
            del self._sessions[token]
        return len(doomed)

    def _purge_expired(self, now: datetime) -> int:
        expired = [
            token
            for token, session in self._sessions.items()
            if session.is_expired(now)
        ]
        for token in expired:
            del self._sessions[token]
        return len(expired)
