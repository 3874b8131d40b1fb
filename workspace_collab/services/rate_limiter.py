"""
Simple in-memory rate limiter for the unauthenticated invitation lookup.
"""

import time
from dataclasses import dataclass, field
from threading import Lock

from fastapi import Request

from workspace_collab.settings import settings


@dataclass
class RateLimitEntry:
    """Request timestamps seen for one key."""

    requests: list[float] = field(default_factory=list)


class RateLimiter:
    """Sliding one-minute window per key.

    Keys whose window has emptied are evicted once per window, so the
    table only holds clients seen in the last minute or so.
    """

    def __init__(self, requests_per_minute: int = 30):
        self.requests_per_minute = requests_per_minute
        self.window_seconds = 60
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = Lock()
        self._last_prune = time.time()

    def is_allowed(self, key: str) -> bool:
        """Record a request for ``key`` and report whether it is within the limit."""
        now = time.time()
        window_start = now - self.window_seconds

        with self._lock:
            if now - self._last_prune >= self.window_seconds:
                self._prune(window_start)
                self._last_prune = now

            entry = self._entries.setdefault(key, RateLimitEntry())
            entry.requests = [t for t in entry.requests if t > window_start]

            if len(entry.requests) < self.requests_per_minute:
                entry.requests.append(now)
                return True

            return False

    def reset_time(self, key: str) -> float:
        """Seconds until the oldest request in the window falls out."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or not entry.requests:
                return 0
            oldest = min(entry.requests)
            return max(0, oldest + self.window_seconds - time.time())

    def _prune(self, window_start: float) -> None:
        stale = [
            key for key, entry in self._entries.items()
            if not any(t > window_start for t in entry.requests)
        ]
        for key in stale:
            del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


def get_client_ip(request: Request, trust_forwarded_for: bool = False) -> str:
    """Get client IP for rate limiting.

    ``X-Forwarded-For`` is client controlled, so it is only honoured when the
    deployment sits behind a proxy that sets it.
    """
    if trust_forwarded_for:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


invitation_lookup_limiter = RateLimiter(
    requests_per_minute=settings.rate_limit_invitation_lookups_per_minute,
)
