# kwacha_gateway/middleware_ratelimit.py
from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol, Tuple

from starlette.middleware.base import BaseHTTPMiddleware

from .errors import RateLimitExceeded

log = logging.getLogger("kwacha_gateway.ratelimit")

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."


@dataclass
class Window:
    count: int
    started_at: float


class WindowStore(Protocol):
    """Identity -> current window. Swap in a shared store for multi-process deployments."""

    def consume(self, key: str, now: float, window_s: float, limit: int) -> Tuple[Window, bool]:
        """Atomically count one request against the key's active window.

        Returns the window after the update and whether the request was admitted.
        A rejected request leaves the count unchanged.
        """
        ...

    def reset(self, key: str) -> None:
        ...


class MemoryWindowStore:
    """Process-local store. One mutable cell per identity, guarded by a lock."""

    def __init__(self) -> None:
        self._windows: Dict[str, Window] = {}
        self._lock = threading.Lock()
        self._last_sweep = 0.0

    def consume(self, key: str, now: float, window_s: float, limit: int) -> Tuple[Window, bool]:
        with self._lock:
            self._sweep(now, window_s)
            win = self._windows.get(key)
            if win is None or now - win.started_at >= window_s:
                win = Window(count=1, started_at=now)
                self._windows[key] = win
                return Window(win.count, win.started_at), True
            if win.count >= limit:
                return Window(win.count, win.started_at), False
            win.count += 1
            return Window(win.count, win.started_at), True

    def reset(self, key: str) -> None:
        with self._lock:
            self._windows.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

    def _sweep(self, now: float, window_s: float) -> None:
        # drop expired windows at most once per window so idle clients don't pile up
        if now - self._last_sweep < window_s:
            return
        self._last_sweep = now
        expired = [k for k, w in self._windows.items() if now - w.started_at >= window_s]
        for k in expired:
            del self._windows[k]


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_after: int
    window_s: float

    def headers(self) -> Dict[str, str]:
        # IETF draft-6 "RateLimit" fields, no legacy X-RateLimit-*
        out = {
            "RateLimit-Policy": f"{self.limit};w={int(self.window_s)}",
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_after),
        }
        if not self.allowed:
            out["Retry-After"] = str(self.reset_after)
        return out


class FixedWindowLimiter:
    def __init__(self, max_requests: int, window_s: float,
                 store: Optional[WindowStore] = None,
                 clock: Callable[[], float] = time.monotonic):
        if max_requests <= 0 or window_s <= 0:
            raise ValueError("max_requests and window_s must be positive")
        self.max_requests = max_requests
        self.window_s = window_s
        self.store = store if store is not None else MemoryWindowStore()
        self.clock = clock

    def check(self, identity: str) -> RateLimitDecision:
        now = self.clock()
        win, allowed = self.store.consume(identity, now, self.window_s, self.max_requests)
        remaining = max(0, self.max_requests - win.count) if allowed else 0
        reset_after = max(0, math.ceil(win.started_at + self.window_s - now))
        return RateLimitDecision(
            allowed=allowed,
            limit=self.max_requests,
            remaining=remaining,
            reset_after=reset_after,
            window_s=self.window_s,
        )


def client_identity(request) -> str:
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, limiter: FixedWindowLimiter):
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request, call_next):
        identity = client_identity(request)
        # no await between read and update: the counter is settled before the next stage runs
        decision = self.limiter.check(identity)
        if not decision.allowed:
            log.warning("rate limit exceeded client=%s path=%s limit=%d window_s=%s",
                        identity, request.url.path, decision.limit, decision.window_s)
            return RateLimitExceeded(RATE_LIMIT_MESSAGE, headers=decision.headers()).to_response()
        resp = await call_next(request)
        for name, value in decision.headers().items():
            resp.headers[name] = value
        return resp
