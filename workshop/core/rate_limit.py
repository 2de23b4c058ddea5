"""
Rate Limiting for Workshop.

Per-client-IP token bucket. Each bucket holds up to `capacity` tokens and is
refilled lazily: every whole `interval` elapsed since the visitor was last
seen adds `capacity` tokens, clamped to `capacity`. This is deliberately
coarse; a client straddling an interval boundary can burst past capacity.

Idle visitors are evicted by a background sweep that shares the bucket lock.
"""

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from workshop.core.errors import ErrorResponse, RateLimitError

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_PERIOD = 60.0      # seconds between sweeps
DEFAULT_STALE_AFTER = 300.0      # idle seconds before a visitor is dropped


@dataclass
class Visitor:
    tokens: int
    last_seen: float


class RateLimiter:
    """
    Token bucket limiter keyed by client IP.

    Usage:
        limiter = RateLimiter(capacity=5, interval=1.0)
        limiter.start()          # background sweep
        if not limiter.allow(ip):
            ...                  # answer 429
        limiter.close()
    """

    def __init__(
        self,
        capacity: int,
        interval: float,
        sweep_period: float = DEFAULT_SWEEP_PERIOD,
        stale_after: float = DEFAULT_STALE_AFTER,
        clock: Callable[[], float] = time.monotonic,
    ):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.capacity = capacity
        self.interval = interval
        self.sweep_period = sweep_period
        self.stale_after = stale_after
        self._clock = clock
        self._visitors: dict[str, Visitor] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._sweeper: Optional[threading.Thread] = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._visitors)

    def allow(self, ip: str) -> bool:
        """Spend one token for this IP. Returns False when the bucket is empty."""
        with self._lock:
            now = self._clock()
            visitor = self._visitors.get(ip)
            if visitor is None:
                self._visitors[ip] = Visitor(tokens=self.capacity - 1, last_seen=now)
                return True

            elapsed = max(0.0, now - visitor.last_seen)
            intervals = int(elapsed // self.interval)
            visitor.tokens = min(visitor.tokens + intervals * self.capacity, self.capacity)
            visitor.last_seen = now

            if visitor.tokens <= 0:
                logger.warning("rate_limit_exceeded", extra={"client_ip": ip})
                return False
            visitor.tokens -= 1
            return True

    def retry_after(self) -> int:
        """Seconds a throttled client should wait (one refill interval)."""
        return max(1, math.ceil(self.interval))

    # -------------------------------------------------------------------------
    # Sweep
    # -------------------------------------------------------------------------

    def sweep(self) -> int:
        """Drop visitors idle longer than stale_after. Returns how many."""
        with self._lock:
            now = self._clock()
            stale = [
                ip for ip, v in self._visitors.items()
                if now - v.last_seen > self.stale_after
            ]
            for ip in stale:
                del self._visitors[ip]
        if stale:
            logger.debug("Rate limiter evicted %d idle visitors", len(stale))
        return len(stale)

    def start(self) -> None:
        """Start the background sweep thread (idempotent)."""
        if self.is_sweeping():
            return
        self._stop.clear()
        self._sweeper = threading.Thread(
            target=self._run_sweeper,
            name="rate-limit-sweeper",
            daemon=True,
        )
        self._sweeper.start()

    def close(self, timeout: float = 5.0) -> None:
        """Stop the sweep thread."""
        self._stop.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout)
            self._sweeper = None

    def is_sweeping(self) -> bool:
        return self._sweeper is not None and self._sweeper.is_alive()

    def _run_sweeper(self) -> None:
        while not self._stop.wait(self.sweep_period):
            self.sweep()


# =============================================================================
# Middleware
# =============================================================================

def client_ip_from_scope(scope: Scope) -> str:
    client = scope.get("client")
    if client:
        return client[0]
    return "unknown"


class RateLimitMiddleware:
    """ASGI middleware answering 429 when a client's bucket is empty."""

    def __init__(self, app: ASGIApp, limiter: RateLimiter) -> None:
        self.app = app
        self.limiter = limiter

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        ip = client_ip_from_scope(scope)
        if not self.limiter.allow(ip):
            exc = RateLimitError(self.limiter.retry_after())
            request_id = scope.get("state", {}).get("request_id")
            body = ErrorResponse(
                error=exc.error_code,
                message=exc.message,
                details=exc.details,
                request_id=None if request_id is None else str(request_id),
            )
            response = JSONResponse(
                status_code=exc.status_code,
                content=body.model_dump(),
                headers={"Retry-After": str(exc.retry_after)},
            )
            await response(scope, receive, send)
            return

        await self.app(scope, receive, send)
