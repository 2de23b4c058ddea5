"""
Session Storage for Workshop.

In-memory store mapping an opaque token to a Session. One store instance is
owned by the application (see workshop.main.create_app) and shared by every
request, so all access goes through a readers-writer lock.

Expiry is lazy: a session older than the TTL is removed by the read that
finds it. Sessions nobody reads again are reclaimed by purge_expired(),
which the application lifespan runs periodically.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from workshop.core.locks import ReadWriteLock
from workshop.core.tokens import generate_token

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL = timedelta(hours=24)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Session
# =============================================================================

@dataclass
class Session:
    """
    An authenticated browser session.

    The real_* fields are populated only while an admin is impersonating
    another role; role/account_id/email are then the displayed identity.
    """
    account_id: str
    email: str
    role: str
    created_at: datetime

    real_account_id: str = ""
    real_email: str = ""
    real_role: str = ""

    def is_impersonating(self) -> bool:
        """True iff a real role is stashed on the session."""
        return self.real_role != ""

    def effective_role(self) -> str:
        """The role of the person behind the session, ignoring impersonation."""
        return self.real_role if self.is_impersonating() else self.role

    def copy(self) -> "Session":
        return replace(self)


# =============================================================================
# Session Store
# =============================================================================

class SessionStore:
    """
    Thread-safe in-memory session store.

    Usage:
        store = SessionStore()
        token = store.create("acct-1", "a@x.com", "member")
        session = store.get(token)
    """

    def __init__(
        self,
        ttl: timedelta = DEFAULT_SESSION_TTL,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._ttl = ttl
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._lock = ReadWriteLock()

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._sessions)

    def create(self, account_id: str, email: str, role: str) -> str:
        """
        Store a new session and return its token.

        Raises ValueError if any field is empty and TokenGenerationError if
        the secure random source fails.
        """
        if not account_id or not email or not role:
            raise ValueError("account_id, email and role are required")

        token = generate_token()
        session = Session(
            account_id=account_id,
            email=email,
            role=role,
            created_at=self._clock(),
        )
        with self._lock.write():
            self._sessions[token] = session

        logger.debug("Session created for account %s (role=%s)", account_id, role)
        return token

    def get(self, token: str) -> Optional[Session]:
        """Return a copy of the session, or None if unknown or expired."""
        if not token:
            return None

        with self._lock.read():
            session = self._sessions.get(token)
            if session is None:
                return None
            if not self._is_expired(session):
                return session.copy()

        # Expired: re-take the lock exclusively and delete only if the same
        # entry is still stored (it may have been replaced meanwhile).
        with self._lock.write():
            current = self._sessions.get(token)
            if current is session:
                del self._sessions[token]
                logger.debug("Session expired for account %s", session.account_id)
                return None
            if current is not None and not self._is_expired(current):
                return current.copy()
            if current is not None:
                del self._sessions[token]
        return None

    def delete(self, token: str) -> None:
        """Remove a session. Unknown tokens are ignored."""
        with self._lock.write():
            self._sessions.pop(token, None)

    def update(self, token: str, session: Session) -> bool:
        """Replace the stored session only if the token already exists."""
        with self._lock.write():
            if token not in self._sessions:
                return False
            self._sessions[token] = session.copy()
            return True

    def purge_expired(self) -> int:
        """Drop every expired session. Returns how many were removed."""
        with self._lock.write():
            expired = [t for t, s in self._sessions.items() if self._is_expired(s)]
            for token in expired:
                del self._sessions[token]
        if expired:
            logger.info("Purged %d expired sessions", len(expired))
        return len(expired)

    def _is_expired(self, session: Session) -> bool:
        return self._clock() - session.created_at > self._ttl
