"""
Authentication Router

Session login/logout on top of the SessionStore. The credential check itself
belongs to the embedding application and is injected as an Authenticator
(see workshop.main.create_app).
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Request, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from workshop.core.errors import AuthenticationError
from workshop.core.security import (
    clear_session_cookie,
    get_app_settings,
    get_current_session,
    get_session_store,
    get_session_token,
    require_auth,
    set_session_cookie,
)
from workshop.core.sessions import Session

logger = logging.getLogger("workshop.security")

router = APIRouter()

DASHBOARD_PATH = "/dashboard"


@dataclass
class Account:
    """Identity returned by a successful credential check."""
    account_id: str
    email: str
    role: str


# (email, password) -> Account on success, None on bad credentials
Authenticator = Callable[[str, str], Optional[Account]]


# =============================================================================
# Response Schemas
# =============================================================================

class SessionInfoResponse(BaseModel):
    """The displayed identity of the current session."""
    account_id: str
    email: str
    role: str
    created_at: str
    impersonating: bool
    real_role: str | None = None


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/login")
async def login_page(request: Request):
    """Already logged in -> dashboard. Rendering the form is up to the host app."""
    if get_current_session(request) is not None:
        return RedirectResponse(url=DASHBOARD_PATH, status_code=status.HTTP_303_SEE_OTHER)
    return {"login": "POST email and password as form fields"}


@router.post("/login")
async def login(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
):
    """Check credentials, create a session, set the cookie."""
    authenticator: Optional[Authenticator] = request.app.state.authenticator
    if authenticator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Login is not configured",
        )

    account = await run_in_threadpool(authenticator, email, password)
    if account is None:
        logger.info("Login failed for %s", email)
        raise AuthenticationError("Invalid email or password")

    store = get_session_store(request)
    token = store.create(account.account_id, account.email, account.role)

    response = RedirectResponse(url=DASHBOARD_PATH, status_code=status.HTTP_303_SEE_OTHER)
    set_session_cookie(response, token, get_app_settings(request))
    logger.info("Login: account %s (role=%s)", account.account_id, account.role)
    return response


@router.post("/logout")
async def logout(request: Request):
    """Delete the session (if any) and clear the cookie."""
    settings = get_app_settings(request)
    token = get_session_token(request)
    if token:
        get_session_store(request).delete(token)

    response = RedirectResponse(url=settings.login_path, status_code=status.HTTP_303_SEE_OTHER)
    clear_session_cookie(response, settings)
    return response


@router.get("/api/session", response_model=SessionInfoResponse)
async def current_session(session: Session = Depends(require_auth)):
    """Who am I, as the app currently presents me."""
    return SessionInfoResponse(
        account_id=session.account_id,
        email=session.email,
        role=session.role,
        created_at=session.created_at.isoformat(),
        impersonating=session.is_impersonating(),
        real_role=session.real_role or None,
    )
