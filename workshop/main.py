"""
Workshop - Application Factory

Builds one SessionStore, RateLimiter and perf Collector per application,
stores them on app.state, and installs the middleware chain.

Run with:
    uvicorn --factory workshop.main:get_app
"""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from datetime import timedelta
from typing import Optional, Sequence

from fastapi import FastAPI

from workshop.core.config import Settings, get_settings
from workshop.core.errors import setup_exception_handlers
from workshop.core.headers import SecurityHeadersMiddleware
from workshop.core.logging_config import setup_logging_from_settings
from workshop.core.perf import Collector
from workshop.core.rate_limit import RateLimiter, RateLimitMiddleware
from workshop.core.security import SessionMiddleware
from workshop.core.sessions import SessionStore
from workshop.core.timing import TimingMiddleware
from workshop.routers import admin, auth, devmode, health
from workshop.routers.auth import Authenticator

logger = logging.getLogger(__name__)

# Outermost first
DEFAULT_MIDDLEWARE_ORDER = ("timing", "security_headers", "session", "rate_limit")


async def purge_sessions_periodically(store: SessionStore, period: float) -> None:
    """Reclaim sessions that expired without ever being read again."""
    while True:
        await asyncio.sleep(period)
        store.purge_expired()


@asynccontextmanager
async def lifespan(app: FastAPI):
    limiter: RateLimiter = app.state.rate_limiter
    limiter.start()
    purger = asyncio.create_task(purge_sessions_periodically(
        app.state.sessions, app.state.settings.session_purge_seconds,
    ))
    logger.info("Rate limiter sweep and session purge started")
    try:
        yield
    finally:
        purger.cancel()
        with suppress(asyncio.CancelledError):
            await purger
        limiter.close()
        logger.info("Rate limiter sweep and session purge stopped")


def create_app(
    settings: Optional[Settings] = None,
    authenticator: Optional[Authenticator] = None,
    sessions: Optional[SessionStore] = None,
    rate_limiter: Optional[RateLimiter] = None,
    collector: Optional[Collector] = None,
    middleware_order: Sequence[str] = DEFAULT_MIDDLEWARE_ORDER,
    configure_logging: bool = False,
) -> FastAPI:
    """
    Compose the application.

    Components not passed in are built from settings. middleware_order lists
    middleware names from outermost to innermost; names left out are not
    installed.
    """
    settings = settings or get_settings()
    if configure_logging:
        setup_logging_from_settings(settings)

    if sessions is None:
        sessions = SessionStore(ttl=timedelta(hours=settings.session_ttl_hours))
    if rate_limiter is None:
        rate_limiter = RateLimiter(
            capacity=settings.rate_limit_capacity,
            interval=settings.rate_limit_interval_seconds,
            sweep_period=settings.rate_limit_sweep_seconds,
            stale_after=settings.rate_limit_stale_seconds,
        )
    if collector is None:
        collector = Collector(settings.perf_ring_size)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.sessions = sessions
    app.state.rate_limiter = rate_limiter
    app.state.perf = collector
    app.state.authenticator = authenticator

    setup_exception_handlers(app)
    _install_middleware(app, settings, middleware_order)

    app.include_router(health.router, tags=["health"])
    app.include_router(auth.router, tags=["auth"])
    app.include_router(devmode.router)
    app.include_router(admin.router)

    return app


def _install_middleware(app: FastAPI, settings: Settings, order: Sequence[str]) -> None:
    factories = {
        "timing": lambda: app.add_middleware(
            TimingMiddleware,
            collector=app.state.perf,
            threshold_ms=settings.slow_request_ms,
        ),
        "security_headers": lambda: app.add_middleware(SecurityHeadersMiddleware),
        "session": lambda: app.add_middleware(
            SessionMiddleware,
            store=app.state.sessions,
            cookie_name=settings.session_cookie_name,
        ),
        "rate_limit": lambda: app.add_middleware(
            RateLimitMiddleware,
            limiter=app.state.rate_limiter,
        ),
    }
    unknown = set(order) - factories.keys()
    if unknown:
        raise ValueError(f"Unknown middleware: {sorted(unknown)}")

    # add_middleware wraps the current stack, so install innermost first
    for name in reversed(order):
        factories[name]()


def get_app() -> FastAPI:
    """Server entry point: settings from the environment, process logging configured."""
    return create_app(configure_logging=True)
