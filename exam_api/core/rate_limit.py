"""In-memory rate limiting for the API and the authentication routes."""

import threading
import time
from collections import deque
from typing import Deque, Dict, Tuple

from fastapi import Request

from exam_api.core.config import settings
from exam_api.core.exceptions import RateLimitError

AUTH_PATH_PREFIX = "/api/auth"


class InMemoryRateLimiter:
    """Sliding-window limiter per key. Keys are dropped once their window is empty."""

    def __init__(self, max_requests: int, window_seconds: int):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._hits: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()
        self._last_sweep = time.monotonic()

    def _prune(self, key: str, now: float) -> Deque[float]:
        q = self._hits.get(key)
        if q is None:
            return deque()
        cutoff = now - self.window_seconds
        while q and q[0] <= cutoff:
            q.popleft()
        if not q:
            del self._hits[key]
        return q

    def check(self, key: str) -> Tuple[bool, int]:
        """Return (allowed, retry_after) without recording a hit."""
        now = time.monotonic()
        with self._lock:
            q = self._prune(key, now)
            if len(q) >= self.max_requests:
                return False, max(1, int(self.window_seconds - (now - q[0])))
        return True, 0

    def _sweep(self, now: float) -> None:
        # Clients that never come back would otherwise keep their entry
        if now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        for key in list(self._hits):
            self._prune(key, now)

    def hit(self, key: str) -> None:
        now = time.monotonic()
        with self._lock:
            self._sweep(now)
            self._prune(key, now)
            self._hits.setdefault(key, deque()).append(now)

    def allow(self, key: str) -> Tuple[bool, int]:
        """Check and record in one step."""
        allowed, retry_after = self.check(key)
        if allowed:
            self.hit(key)
        return allowed, retry_after

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()

    def __len__(self) -> int:
        return len(self._hits)


api_limiter = InMemoryRateLimiter(
    settings.rate_limit_max_requests, settings.rate_limit_window_seconds
)
# Only failed /api/auth responses are recorded against this one
auth_limiter = InMemoryRateLimiter(
    settings.auth_rate_limit_max_attempts, settings.rate_limit_window_seconds
)


def client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _raise_limited(message: str, retry_after: int) -> None:
    raise RateLimitError(message, extra={"retryAfter": retry_after})


async def enforce_api_rate_limit(request: Request) -> None:
    if not settings.rate_limit_enabled:
        return
    allowed, retry_after = api_limiter.allow(client_key(request))
    if not allowed:
        _raise_limited("Too many requests from this IP, please try again later.", retry_after)


async def enforce_auth_rate_limit(request: Request) -> None:
    if not settings.rate_limit_enabled:
        return
    allowed, retry_after = auth_limiter.check(client_key(request))
    if not allowed:
        _raise_limited("Too many login attempts, please try again later.", retry_after)


def record_auth_failure(request: Request, status_code: int) -> None:
    """
    Count a failed authentication response against the client

    Rejections by the limiter itself are not counted so the window can drain.
    """
    if not settings.rate_limit_enabled or not request.url.path.startswith(AUTH_PATH_PREFIX):
        return
    if status_code < 400 or status_code == RateLimitError.status_code:
        return
    auth_limiter.hit(client_key(request))
