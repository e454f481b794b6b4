"""Single-use OAuth ``state`` storage."""

import secrets
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable
from uuid import UUID

STATE_TTL_SECONDS = 600


@dataclass(frozen=True)
class PendingAuthorization:
    """What was recorded when the authorization URL was issued.

    ``link_user_id`` is set when a signed-in user started the flow to add
    this provider to their own account rather than to sign in.
    """

    provider_name: str
    redirect_uri: str
    expires_at: float
    link_user_id: UUID | None = None


@runtime_checkable
class OAuthStateStore(Protocol):
    """Storage for pending authorizations keyed by ``state``."""

    def issue(
        self, provider_name: str, redirect_uri: str, link_user_id: UUID | None = None
    ) -> str:
        """Create and remember a new state value."""
        ...

    def consume(self, state: str) -> PendingAuthorization | None:
        """Remove and return the pending authorization, or None if unknown or expired."""
        ...


class InMemoryOAuthStateStore:
    """Process-local state store with expiry."""

    def __init__(
        self,
        ttl_seconds: float = STATE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the store.

        Args:
            ttl_seconds: How long an issued state stays valid.
            clock: Returns the current time in epoch seconds.
        """
        self._ttl = ttl_seconds
        self._clock = clock
        self._pending: dict[str, PendingAuthorization] = {}
        self._lock = threading.Lock()

    def issue(
        self, provider_name: str, redirect_uri: str, link_user_id: UUID | None = None
    ) -> str:
        """Create and remember a new state value."""
        state = secrets.token_urlsafe(32)
        now = self._clock()
        with self._lock:
            self._purge(now)
            self._pending[state] = PendingAuthorization(
                provider_name=provider_name,
                redirect_uri=redirect_uri,
                expires_at=now + self._ttl,
                link_user_id=link_user_id,
            )
        return state

    def consume(self, state: str) -> PendingAuthorization | None:
        """Remove and return the pending authorization, or None if unknown or expired."""
        with self._lock:
            pending = self._pending.pop(state, None)
        if pending is None or self._clock() >= pending.expires_at:
            return None
        return pending

    def _purge(self, now: float) -> None:
        expired = [key for key, value in self._pending.items() if now >= value.expires_at]
        for key in expired:
            del self._pending[key]
