"""
Shared fixtures: a fresh application per test, an httpx client over ASGI,
fake clocks, and helpers to log in as a given role.
"""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient, ASGITransport

from workshop.core.config import Settings
from workshop.main import create_app
from workshop.routers.auth import Account


@pytest.fixture
def anyio_backend():
    return "asyncio"


# =============================================================================
# Clocks
# =============================================================================

class FakeClock:
    """Wall clock for the session store (aware datetimes)."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeMonotonic:
    """Monotonic seconds for the rate limiter."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def monotonic():
    return FakeMonotonic()


# =============================================================================
# Application
# =============================================================================

PASSWORD = "correct horse battery staple"

ACCOUNTS = {
    "owner@workshop.test": Account("acct-admin", "owner@workshop.test", "admin"),
    "coach@workshop.test": Account("acct-coach", "coach@workshop.test", "coach"),
    "member@workshop.test": Account("acct-member", "member@workshop.test", "member"),
}


@pytest.fixture
def password():
    return PASSWORD


def fake_authenticator(email: str, password: str):
    account = ACCOUNTS.get(email)
    if account is None or password != PASSWORD:
        return None
    return account


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        rate_limit_capacity=1000,
        rate_limit_interval_seconds=60,
        slow_request_ms=200,
    )


@pytest.fixture
def app(settings):
    return create_app(settings=settings, authenticator=fake_authenticator)


@pytest.fixture
async def client(app):
    """Test client with the application lifespan running."""
    async with app.router.lifespan_context(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac


@pytest.fixture
def session_headers(app):
    """Build a Cookie header carrying a session token."""
    def _headers(token: str) -> dict[str, str]:
        return {"Cookie": f"{app.state.settings.session_cookie_name}={token}"}
    return _headers


@pytest.fixture
def login_as(app, session_headers):
    """Create a session for a role directly in the store; return (token, headers)."""
    def _login(role: str) -> tuple[str, dict[str, str]]:
        token = app.state.sessions.create(f"acct-{role}", f"{role}@workshop.test", role)
        return token, session_headers(token)
    return _login
