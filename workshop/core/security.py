"""
Workshop - Security Module
Cookie sessions, authentication middleware, and role-based authorization.

Flow:
- SessionMiddleware resolves the session cookie against the SessionStore and
  attaches the Session to request.state. It never rejects a request.
- require_auth / require_role(...) are FastAPI dependencies that gate routes:
  no session -> 303 redirect to the login page; wrong role -> 403.
- is_role / is_admin / is_coach_or_admin check the displayed role.
  is_real_admin checks the real role, so an admin who is impersonating a
  member can still leave impersonation and perform audited actions.
"""

import logging
from typing import Callable, Optional, Union

from fastapi import Depends, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from workshop.core.config import Settings
from workshop.core.errors import AuthorizationError, LoginRequired
from workshop.core.roles import Role
from workshop.core.sessions import Session, SessionStore
from workshop.core.tokens import is_well_formed

logger = logging.getLogger("workshop.security")

SESSION_STATE_KEY = "session"
COOKIE_MAX_AGE = 86400  # 24 hours

RoleLike = Union[Role, str]


def _role_value(role: RoleLike) -> str:
    return role.value if isinstance(role, Role) else role


# =============================================================================
# Application-owned components
# =============================================================================

def get_app_settings(request: Request) -> Settings:
    """Settings the application was built with."""
    return request.app.state.settings


def get_session_store(request: Request) -> SessionStore:
    """The application's session store."""
    return request.app.state.sessions


# =============================================================================
# Cookies
# =============================================================================

def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    """Issue the session cookie."""
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=COOKIE_MAX_AGE,
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite="strict",
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    """Expire the session cookie immediately (same attributes as when set)."""
    response.delete_cookie(
        key=settings.session_cookie_name,
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite="strict",
    )


def get_session_token(request: Request) -> Optional[str]:
    """Raw session cookie value, if any."""
    cookie_name = get_app_settings(request).session_cookie_name
    return request.cookies.get(cookie_name) or None


# =============================================================================
# Authentication Middleware
# =============================================================================

class SessionMiddleware(BaseHTTPMiddleware):
    """
    Resolve the session cookie and attach the Session to request.state.

    Absent, malformed, unknown, or expired cookies leave the request
    unauthenticated; rejecting is left to require_auth / require_role.
    """

    def __init__(self, app: ASGIApp, store: SessionStore, cookie_name: str = "workshop_session"):
        super().__init__(app)
        self.store = store
        self.cookie_name = cookie_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        token = request.cookies.get(self.cookie_name)
        if token and is_well_formed(token):
            session = self.store.get(token)
            if session is not None:
                attach_session(request, session)
        return await call_next(request)


def attach_session(request: Request, session: Session) -> None:
    """Set the current session on request-scoped state."""
    setattr(request.state, SESSION_STATE_KEY, session)


def get_current_session(request: Request) -> Optional[Session]:
    """The session attached by SessionMiddleware, or None."""
    return getattr(request.state, SESSION_STATE_KEY, None)


# =============================================================================
# FastAPI Dependencies
# =============================================================================

async def require_auth(request: Request) -> Session:
    """
    Require an authenticated session.
    Unauthenticated requests are redirected to the login page.
    """
    session = get_current_session(request)
    if session is None:
        raise LoginRequired(get_app_settings(request).login_path)
    return session


def require_role(*roles: RoleLike) -> Callable:
    """
    Dependency factory: require one of the given displayed roles.

    Usage:
        @router.get("/coach/attendance")
        async def attendance(session: Session = Depends(require_role(Role.ADMIN, Role.COACH))):
            ...
    """
    allowed = frozenset(_role_value(r) for r in roles)

    async def check_role(session: Session = Depends(require_auth)) -> Session:
        if session.role not in allowed:
            logger.info(
                "Forbidden: account %s with role %s (allowed: %s)",
                session.account_id, session.role, sorted(allowed),
            )
            raise AuthorizationError()
        return session

    return check_role


async def require_real_admin(session: Session = Depends(require_auth)) -> Session:
    """Require that the person behind the session is an admin, impersonating or not."""
    if session.effective_role() != Role.ADMIN.value:
        raise AuthorizationError()
    return session


# =============================================================================
# Role predicates
# =============================================================================

def is_role(request: Request, *roles: RoleLike) -> bool:
    """True if the displayed role is one of the given roles."""
    session = get_current_session(request)
    if session is None:
        return False
    return session.role in {_role_value(r) for r in roles}


def is_admin(request: Request) -> bool:
    return is_role(request, Role.ADMIN)


def is_coach_or_admin(request: Request) -> bool:
    return is_role(request, Role.ADMIN, Role.COACH)


def is_real_admin(request: Request) -> bool:
    """
    True if the underlying (non-impersonated) identity is an admin.

    While impersonating, the real role decides; otherwise the displayed role.
    """
    session = get_current_session(request)
    if session is None:
        return False
    return session.effective_role() == Role.ADMIN.value


__all__ = [
    "SessionMiddleware",
    "attach_session",
    "get_current_session",
    "get_session_store",
    "get_app_settings",
    "get_session_token",
    "set_session_cookie",
    "clear_session_cookie",
    "require_auth",
    "require_role",
    "require_real_admin",
    "is_role",
    "is_admin",
    "is_coach_or_admin",
    "is_real_admin",
]
