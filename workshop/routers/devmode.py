"""
Dev Mode Router
Admin impersonation: view the app as another role, then switch back.

Both endpoints gate on the real role, never the displayed one, so an admin
who is currently presenting as a member can still restore.
"""

import logging

from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import RedirectResponse

from workshop.core.errors import AuthenticationError
from workshop.core.impersonation import impersonate, restore
from workshop.core.security import (
    get_session_store,
    get_session_token,
    require_auth,
    require_real_admin,
)
from workshop.core.sessions import Session

logger = logging.getLogger("workshop.security")

router = APIRouter(prefix="/api/devmode", tags=["devmode"])

DASHBOARD_PATH = "/dashboard"


def _persist(request: Request, session: Session) -> None:
    token = get_session_token(request)
    if not token or not get_session_store(request).update(token, session):
        raise AuthenticationError("Session no longer exists")


@router.post("/impersonate")
async def impersonate_role(
    request: Request,
    role: str = Form(...),
    session: Session = Depends(require_real_admin),
):
    """Present as `role`. Choosing "admin" ends impersonation."""
    updated = impersonate(session, role)
    _persist(request, updated)

    logger.info(
        "devmode_event: impersonate",
        extra={
            "event": "impersonate",
            "admin_account_id": updated.real_account_id or updated.account_id,
            "target_role": updated.role,
        },
    )
    return RedirectResponse(url=DASHBOARD_PATH, status_code=status.HTTP_303_SEE_OTHER)


@router.post("/restore")
async def restore_admin(
    request: Request,
    session: Session = Depends(require_auth),
):
    """Return to the admin's own identity."""
    updated = restore(session)
    _persist(request, updated)

    logger.info(
        "devmode_event: restore",
        extra={"event": "restore", "admin_account_id": updated.account_id},
    )
    return RedirectResponse(url=DASHBOARD_PATH, status_code=status.HTTP_303_SEE_OTHER)
