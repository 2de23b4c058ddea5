"""
Workshop - Account Roles

A session carries exactly one displayed role. Admins may temporarily present
as another role (dev mode) while keeping their real role on the session.
"""

from enum import Enum


class Role(str, Enum):
    """Closed set of account roles."""
    ADMIN = "admin"        # Owner/operator: full access
    COACH = "coach"        # Runs classes, attendance, grading
    MEMBER = "member"      # Paying student
    TRIAL = "trial"        # Trial student, limited access
    GUEST = "guest"        # Kiosk check-in only


VALID_ROLES = frozenset(role.value for role in Role)


def is_valid_role(role: str) -> bool:
    """Check a raw role string against the known roles."""
    return role in VALID_ROLES
