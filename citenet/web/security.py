# citenet/web/security.py

from __future__ import annotations

import secrets
import threading
import time
from collections import defaultdict, deque
from typing import Deque, Dict

from fastapi import Header, HTTPException, Request, status

from citenet.config.settings import settings


def api_key_auth(x_api_key: str | None = Header(default=None, alias="X-API-Key")):
    """
    Guard for routes that open, close or persist sessions.

    Disabled while settings.API_KEY is unset.
    """
    if settings.API_KEY is None:
        return

    expected = settings.API_KEY.get_secret_value()
    if x_api_key is None or not secrets.compare_digest(x_api_key, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key.",
        )


class SlidingWindowLimiter:
    """
    Per-client request log over the last `settings.rate_limit_window_seconds`.

    Building a session fans out into several provider calls, so only the
    routes that trigger builds are limited. State lives in this process.
    """

    def __init__(self) -> None:
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()

    def hit(self, client: str) -> bool:
        """Record a request from `client`; False once its budget is spent."""
        now = time.monotonic()
        horizon = now - settings.rate_limit_window_seconds
        with self._lock:
            hits = self._hits[client]
            while hits and hits[0] <= horizon:
                hits.popleft()
            if len(hits) >= settings.rate_limit_requests:
                return False
            hits.append(now)
            return True

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


_limiter = SlidingWindowLimiter()


def rate_limiter(request: Request):
    client = request.client.host if request.client else "unknown"
    if not _limiter.hit(client):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many session builds. Try again later.",
        )


def reset_rate_limits() -> None:
    _limiter.reset()
