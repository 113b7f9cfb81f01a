"""
Login Throttling Service

Lockout for admin sign-in, keyed on the normalized email.

SECURITY FEATURES:
- Failures are LOGIN_FAILED rows in security_events, tracked per email
  whether or not an account exists for it
- Lockout after MAX_FAILED_ATTEMPTS consecutive failures (ACCOUNT_LOCKED row)
- Lockout duration: LOCKOUT_DURATION, counted from the ACCOUNT_LOCKED row
- Any attempt during the lockout is rejected, correct password included
- A LOGIN_SUCCESS or ACCOUNT_LOCKED row starts a new run of failures
- The AdminUser lockout columns mirror this state for existing accounts
"""

from datetime import timedelta
from ..extensions import db
from ..models import AdminUser, SecurityEvent
from ..validation import normalize_email
from cafepos.time_utils import utcnow


# Configuration constants
MAX_FAILED_ATTEMPTS = 5  # Lock after 5 consecutive failures
LOCKOUT_DURATION = timedelta(minutes=15)  # Lockout for 15 minutes

SIGN_IN_RESOURCE = "/api/auth/signin"


def _latest_event(identifier: str, *event_types: str) -> SecurityEvent | None:
    return db.session.query(SecurityEvent).filter(
        SecurityEvent.event_type.in_(event_types),
        SecurityEvent.action == identifier,
    ).order_by(SecurityEvent.id.desc()).first()


def get_consecutive_failures(identifier: str) -> int:
    """
    Count LOGIN_FAILED rows for identifier since its last success or lock.

    Rows are ordered by id; security_events ids only grow.
    """
    query = db.session.query(SecurityEvent).filter(
        SecurityEvent.event_type == "LOGIN_FAILED",
        SecurityEvent.action == identifier,
    )
    reset = _latest_event(identifier, "LOGIN_SUCCESS", "ACCOUNT_LOCKED")
    if reset is not None:
        query = query.filter(SecurityEvent.id > reset.id)
    return query.count()


def is_account_locked(identifier: str) -> tuple[bool, int | None]:
    """
    Check if an identifier is currently locked.

    Returns:
    - (True, seconds_remaining) if locked
    - (False, None) if not locked
    """
    lock = _latest_event(identifier, "ACCOUNT_LOCKED")
    if lock is None:
        return False, None

    success = _latest_event(identifier, "LOGIN_SUCCESS")
    if success is not None and success.id > lock.id:
        return False, None

    remaining = (lock.occurred_at + LOCKOUT_DURATION - utcnow()).total_seconds()
    if remaining <= 0:
        return False, None
    # Round up so the client never sees "0 seconds" while still locked
    return True, int(remaining) + (1 if remaining % 1 else 0)


def record_failed_attempt(
    identifier: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
    reason: str = "Invalid credentials",
) -> int:
    """
    Record a failed sign-in for identifier.

    Reaching MAX_FAILED_ATTEMPTS also records ACCOUNT_LOCKED, which starts the
    lock. Returns the consecutive failure count.
    """
    user = db.session.query(AdminUser).filter_by(email=identifier).first()

    db.session.add(SecurityEvent(
        admin_user_id=user.id if user else None,
        event_type="LOGIN_FAILED",
        resource=SIGN_IN_RESOURCE,
        action=identifier,
        success=False,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    ))
    db.session.flush()

    failed = get_consecutive_failures(identifier)
    locked_at = None
    if failed >= MAX_FAILED_ATTEMPTS:
        locked_at = utcnow()
        db.session.add(SecurityEvent(
            admin_user_id=user.id if user else None,
            event_type="ACCOUNT_LOCKED",
            resource=SIGN_IN_RESOURCE,
            action=identifier,
            success=False,
            reason=f"Locked after {failed} failed attempts",
            ip_address=ip_address,
            user_agent=user_agent,
            occurred_at=locked_at,
        ))

    if user:
        user.failed_login_attempts = failed
        user.locked_until = locked_at + LOCKOUT_DURATION if locked_at else None

    db.session.commit()
    return failed


def record_successful_login(
    user: AdminUser,
    ip_address: str | None = None,
    user_agent: str | None = None,
    commit: bool = True,
) -> None:
    """Record LOGIN_SUCCESS, reset the mirrored counter and stamp last_login_at."""
    db.session.add(SecurityEvent(
        admin_user_id=user.id,
        event_type="LOGIN_SUCCESS",
        resource=SIGN_IN_RESOURCE,
        action=user.email,
        success=True,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    ))
    user.failed_login_attempts = 0
    user.locked_until = None
    user.last_login_at = utcnow()
    if commit:
        db.session.commit()


def get_lockout_status(identifier: str) -> dict:
    """
    Get lockout status for an email.

    Registered and unknown emails are tracked the same way, so the payload does
    not reveal whether an account exists.
    """
    identifier = normalize_email(identifier)
    locked, remaining = is_account_locked(identifier)
    failed = MAX_FAILED_ATTEMPTS if locked else get_consecutive_failures(identifier)

    return {
        "locked": locked,
        "failed_attempts": failed,
        "max_attempts": MAX_FAILED_ATTEMPTS,
        "seconds_until_unlock": remaining,
        "lockout_duration_minutes": int(LOCKOUT_DURATION.total_seconds() / 60),
    }
