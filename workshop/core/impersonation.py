"""
Workshop - Dev Mode Impersonation

Lets a real admin view the app as another role without losing the link to
their own identity. The admin identity is stashed in the session's real_*
fields; the displayed fields change to the impersonated role.

Only the real role decides who may impersonate or restore. A downgraded
admin session is still recognized as admin here.
"""

from dataclasses import replace

from workshop.core.errors import WorkshopError
from workshop.core.roles import Role, is_valid_role
from workshop.core.sessions import Session


# =============================================================================
# Errors
# =============================================================================

class DevModeError(WorkshopError):
    """Rejected impersonation request."""

    def __init__(self, message: str, error_code: str):
        super().__init__(message=message, error_code=error_code, status_code=400)


class NotAdminError(DevModeError):
    def __init__(self):
        super().__init__("only admins can use devmode impersonation", "devmode_not_admin")


class InvalidRoleError(DevModeError):
    def __init__(self, role: str):
        super().__init__(f"target role is not valid: {role!r}", "devmode_invalid_role")


class NotImpersonatingError(DevModeError):
    def __init__(self):
        super().__init__("not currently impersonating", "devmode_not_impersonating")


# =============================================================================
# Transitions
# =============================================================================

def impersonate(session: Session, target_role: str) -> Session:
    """
    Return a new session presenting as target_role.

    Switching to admin ends impersonation and restores the admin's own
    account id and email. Switching between non-admin roles keeps the
    original admin identity stashed.
    """
    if session.is_impersonating():
        real_account_id = session.real_account_id
        real_email = session.real_email
        real_role = session.real_role
    else:
        real_account_id = session.account_id
        real_email = session.email
        real_role = session.role

    if real_role != Role.ADMIN.value:
        raise NotAdminError()

    if not is_valid_role(target_role):
        raise InvalidRoleError(target_role)

    if target_role == Role.ADMIN.value:
        return replace(
            session,
            account_id=real_account_id,
            email=real_email,
            role=Role.ADMIN.value,
            real_account_id="",
            real_email="",
            real_role="",
        )

    return replace(
        session,
        role=target_role,
        real_account_id=real_account_id,
        real_email=real_email,
        real_role=Role.ADMIN.value,
    )


def restore(session: Session) -> Session:
    """Return the admin's own session, ending impersonation."""
    if not session.is_impersonating():
        raise NotImpersonatingError()
    if session.real_role != Role.ADMIN.value:
        raise NotAdminError()

    return replace(
        session,
        account_id=session.real_account_id,
        email=session.real_email,
        role=Role.ADMIN.value,
        real_account_id="",
        real_email="",
        real_role="",
    )
