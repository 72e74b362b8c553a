from __future__ import annotations

import asyncio
import math
import time
from collections import deque
from typing import Callable, Deque, Dict, Iterable, Optional, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

# Credential-guessing surfaces: password sign-in, password changes and the shared-secret seed.
DEFAULT_LIMITED_PATHS: Tuple[str, ...] = (
    "/api/auth/login",
    "/api/auth/change-password",
    "/api/auth/password-reset/request",
    "/api/auth/password-reset/confirm",
    "/api/admin/seed-initial",
)

TOO_MANY_ATTEMPTS = "Too many attempts. Try again later."


class SlidingWindowCounter:
    """Per-key attempt timestamps inside a fixed-length trailing window."""

    def __init__(self, limit: int, window_seconds: float) -> None:
        self.limit = max(1, limit)
        self.window = max(1, window_seconds)
        self._attempts: Dict[str, Deque[float]] = {}
        self._swept_at = time.monotonic()

    def attempt(self, key: str, now: float) -> Optional[float]:
        """Record an attempt; returns seconds to wait instead when over the limit."""
        self._sweep(now)
        attempts = self._attempts.setdefault(key, deque())
        horizon = now - self.window
        while attempts and attempts[0] < horizon:
            attempts.popleft()
        if len(attempts) >= self.limit:
            return attempts[0] + self.window - now
        attempts.append(now)
        return None

    def _sweep(self, now: float) -> None:
        if now - self._swept_at < self.window:
            return
        horizon = now - self.window
        idle = [key for key, attempts in self._attempts.items() if not attempts or attempts[-1] < horizon]
        for key in idle:
            del self._attempts[key]
        self._swept_at = now

    def __len__(self) -> int:
        return len(self._attempts)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    In-memory limiter for the credential-bearing endpoints.

    Attempts are counted per (client IP, path) and only for ``paths``; every
    other route passes straight through.
    """

    def __init__(
        self,
        app,
        *,
        requests: int = 30,
        window_seconds: int = 60,
        paths: Iterable[str] = DEFAULT_LIMITED_PATHS,
        key_func: Callable[[Request], str] | None = None,
    ):
        super().__init__(app)
        self.paths = frozenset(paths)
        self.key_func = key_func or client_path_key
        self.counter = SlidingWindowCounter(requests, window_seconds)
        self._lock = asyncio.Lock()

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path not in self.paths:
            return await call_next(request)

        async with self._lock:
            wait = self.counter.attempt(self.key_func(request), time.monotonic())
        if wait is not None:
            return JSONResponse(
                {"error": TOO_MANY_ATTEMPTS},
                status_code=429,
                headers={"Retry-After": str(max(1, math.ceil(wait)))},
            )
        return await call_next(request)


def client_path_key(request: Request) -> str:
    host = request.client.host if request.client else "unknown"
    return f"{host}:{request.url.path}"
