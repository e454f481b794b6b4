"""Fixed-window attempt limiting for login and OAuth callbacks."""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import structlog

logger = structlog.get_logger()


@dataclass
class RateLimitWindow:
    """Attempt counter for one key."""

    count: int
    reset_at: float  # epoch seconds when the window ends

    def expired(self, now: float) -> bool:
        """Whether the window has elapsed."""
        return now >= self.reset_at


@runtime_checkable
class RateLimitStore(Protocol):
    """Storage for rate-limit windows.

    ``increment`` must be atomic per key: it starts a fresh window when the
    current one has elapsed and returns the updated window.
    """

    def increment(self, key: str, window_seconds: float, now: float) -> RateLimitWindow:
        """Count one attempt for ``key`` and return its window."""
        ...

    def reset(self, key: str) -> None:
        """Forget ``key``."""
        ...


class InMemoryRateLimitStore:
    """Process-local store guarded by a lock.

    Elapsed windows are swept from ``increment`` at most once per window
    length, so keys for abandoned attempts do not accumulate.
    """

    def __init__(self) -> None:
        """Initialize an empty store."""
        self._windows: dict[str, RateLimitWindow] = {}
        self._lock = threading.Lock()
        self._next_sweep = 0.0

    def increment(self, key: str, window_seconds: float, now: float) -> RateLimitWindow:
        """Count one attempt for ``key`` and return a copy of its window."""
        with self._lock:
            if now >= self._next_sweep:
                self._drop_expired(now)
                self._next_sweep = now + window_seconds
            window = self._windows.get(key)
            if window is None or window.expired(now):
                window = RateLimitWindow(count=1, reset_at=now + window_seconds)
                self._windows[key] = window
            else:
                window.count += 1
            return RateLimitWindow(count=window.count, reset_at=window.reset_at)

    def reset(self, key: str) -> None:
        """Forget ``key``."""
        with self._lock:
            self._windows.pop(key, None)

    def purge_expired(self, now: float) -> int:
        """Drop elapsed windows. Returns the number removed."""
        with self._lock:
            return self._drop_expired(now)

    def key_count(self) -> int:
        """Number of keys currently tracked."""
        with self._lock:
            return len(self._windows)

    def _drop_expired(self, now: float) -> int:
        stale = [key for key, window in self._windows.items() if window.expired(now)]
        for key in stale:
            del self._windows[key]
        return len(stale)


class RateLimiter:
    """Counts attempts per key inside a fixed window.

    Attempts ``1..max_attempts`` inside one window are allowed; the next is
    rejected until the window (measured from the first attempt) elapses.
    """

    def __init__(
        self,
        store: RateLimitStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Window storage. Defaults to a fresh in-memory store.
            clock: Returns the current time in epoch seconds.
        """
        self._store = store if store is not None else InMemoryRateLimitStore()
        self._clock = clock

    def check_rate(self, key: str, max_attempts: int, window_seconds: float) -> bool:
        """Record an attempt and report whether it is allowed.

        Args:
            key: Limiter key, e.g. ``login:<email>``.
            max_attempts: Attempts allowed per window.
            window_seconds: Window length.

        Returns:
            False once ``max_attempts`` have already been made this window.
        """
        window = self._store.increment(key, window_seconds, self._clock())
        allowed = window.count <= max_attempts
        if not allowed:
            logger.warning("rate_limit_exceeded", key=key, attempts=window.count)
        return allowed

    def reset(self, key: str) -> None:
        """Clear the counter for ``key``."""
        self._store.reset(key)
