"""
Request Timing Middleware for Workshop.

Measures every non-static request, classifies it as slow or normal against a
configurable threshold, logs it, and forwards a TimingEntry to the perf
collector for the admin dashboard.

The status code is captured by wrapping the ASGI `send` callable and reading
the `http.response.start` message.
"""

import itertools
import logging
import time
from datetime import datetime, timezone
from typing import Optional

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from workshop.core.config import get_settings
from workshop.core.perf import Collector, EntryKind, TimingEntry

logger = logging.getLogger("workshop.requests")

SLOW = "slow"
NORMAL = "normal"

# Paths that start with these prefixes are never measured
EXCLUDE_PREFIXES = ("/static/",)

_request_ids = itertools.count(1)


def classify(duration_ns: int, threshold_ms: float) -> str:
    """Slow iff the duration meets or exceeds the threshold."""
    if duration_ns >= threshold_ms * 1_000_000:
        return SLOW
    return NORMAL


class TimingMiddleware:
    """
    ASGI middleware logging request duration.

    Normal requests log at DEBUG as "request"; slow ones at WARNING as
    "slow_request". If a collector is given, each measured request is
    recorded for the perf dashboard.
    """

    def __init__(
        self,
        app: ASGIApp,
        collector: Optional[Collector] = None,
        threshold_ms: Optional[float] = None,
    ) -> None:
        self.app = app
        self.collector = collector
        if threshold_ms is None:
            threshold_ms = get_settings().slow_request_ms
        self.threshold_ms = threshold_ms

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        path = scope["path"]
        if path.startswith(EXCLUDE_PREFIXES):
            await self.app(scope, receive, send)
            return

        request_id = next(_request_ids)
        scope.setdefault("state", {})["request_id"] = request_id
        status_code: Optional[int] = None

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                headers = MutableHeaders(scope=message)
                headers.append("X-Request-Id", str(request_id))
            await send(message)

        started_at = datetime.now(timezone.utc)
        start = time.perf_counter_ns()
        failed = False
        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            failed = True
            raise
        finally:
            duration_ns = time.perf_counter_ns() - start
            if status_code is None:
                status_code = 500 if failed else 200
            self._finish(scope, request_id, status_code, duration_ns, started_at)

    def _finish(
        self,
        scope: Scope,
        request_id: int,
        status_code: int,
        duration_ns: int,
        started_at: datetime,
    ) -> None:
        method = scope["method"]
        path = scope["path"]
        duration_ms = duration_ns / 1_000_000

        log_data = {
            "request_id": request_id,
            "method": method,
            "path": path,
            "status_code": status_code,
            "duration_ms": round(duration_ms, 3),
        }
        if classify(duration_ns, self.threshold_ms) == SLOW:
            logger.warning(
                "slow_request: %s %s -> %d (%.2fms, threshold %sms)",
                method, path, status_code, duration_ms, self.threshold_ms,
                extra=log_data,
            )
        else:
            logger.debug(
                "request: %s %s -> %d (%.2fms)",
                method, path, status_code, duration_ms,
                extra=log_data,
            )

        if self.collector is None:
            return
        try:
            self.collector.record(TimingEntry(
                kind=EntryKind.REQUEST,
                path=f"{method} {path}",
                status_code=status_code,
                duration_ms=duration_ms,
                timestamp=started_at,
            ))
        except Exception:
            logger.exception("Failed to record timing entry for %s %s", method, path)
