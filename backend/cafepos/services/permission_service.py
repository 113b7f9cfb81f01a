# Overview: Service-layer operations for permission; encapsulates business logic and database work.

"""
Permission Checking and Security Event Logging

Permissions are derived from the caller's role (see cafepos.permissions).
Every privileged operation re-resolves the caller's SessionContext and checks
the required permission before touching any record.

DESIGN PRINCIPLES:
- Fail closed: a missing or expired session, or an unknown role, is denied
- Log denials only: permission grants are not logged
"""

from ..extensions import db
from ..models import SecurityEvent
from cafepos.time_utils import utcnow


class PermissionDeniedError(Exception):
    """Raised when the caller lacks the required permission."""
    pass


class NotAuthenticatedError(PermissionDeniedError):
    """Raised when there is no valid session at all."""
    pass


def log_security_event(
    admin_user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    commit: bool = True,
) -> SecurityEvent:
    """
    Append an event to the security audit trail.

    event_type examples:
    - LOGIN_FAILED / LOGIN_SUCCESS / ACCOUNT_LOCKED
    - CODE_REDEEMED / CODE_REDEEM_FAILED
    - PERMISSION_DENIED
    - LOGOUT
    - USER_CREATED / ROLE_CHANGED / USER_DELETED
    """
    event = SecurityEvent(
        admin_user_id=admin_user_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow()
    )

    db.session.add(event)
    if commit:
        db.session.commit()

    return event


def require_permission(
    context,
    permission_code: str,
    resource: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """
    Require permission_code for the caller described by context.

    context is a session_service.SessionContext, or None when the caller has no
    valid session. Raises NotAuthenticatedError / PermissionDeniedError and
    logs the denial.
    """
    if context is None:
        raise NotAuthenticatedError("Not authenticated")

    if context.has_permission(permission_code):
        return

    log_security_event(
        admin_user_id=context.admin_user_id,
        event_type="PERMISSION_DENIED",
        success=False,
        resource=resource,
        action=permission_code,
        reason=f"Role {context.role} lacks {permission_code}",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    raise PermissionDeniedError(f"Unauthorized: missing permission {permission_code}")
