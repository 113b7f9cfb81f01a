# Overview: Service-layer operations for access codes; encapsulates business logic and database work.

"""
Access Code Service

Short human-enterable codes that grant a role (cashier or admin) for one
terminal session.

POLICY: bounded multi-use. max_uses=None is unlimited, max_uses=1 is a
single-use code. Codes never expire unless expires_in_days is given.

CONCURRENCY: redemption is one conditional UPDATE that re-checks every
usability condition in its WHERE clause. Two terminals redeeming the last use
of a code cannot both succeed; the loser sees zero affected rows.
"""

import secrets
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import update, or_

from ..extensions import db
from ..models import AccessCode
from ..permissions import ACCESS_CODE_ROLES
from ..validation import ValidationError, parse_positive_int
from . import session_service, permission_service
from .concurrency import run_with_retry
from cafepos.time_utils import utcnow


# Uppercase letters and digits without the look-alikes 0/O, 1/I/L
CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 6

SHIFTS = ("morning", "evening")

# Seeded by early deployments; removed by `flask codes clear-demo`
DEMO_CODES = ("1234", "0000")

INVALID_CODE = "Invalid access code"
DEACTIVATED_CODE = "Access code has been deactivated"
EXPIRED_CODE = "Access code has expired"
EXHAUSTED_CODE = "Access code has reached maximum uses"


class AccessCodeError(Exception):
    """Raised when a code cannot be redeemed or managed."""
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class CodeValidation:
    valid: bool
    code: str
    role: str | None = None
    reason: str | None = None

    def to_dict(self) -> dict:
        if self.valid:
            return {"valid": True, "code": self.code, "role": self.role}
        return {"valid": False, "code": self.code, "error": self.reason}


@dataclass(frozen=True)
class Redemption:
    role: str
    code: str
    session: object
    token: str


def normalize_code(value: str | None) -> str:
    """Normalize to uppercase, no spaces."""
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError("code must be a string")
    return value.upper().strip().replace(" ", "")


def generate_code() -> str:
    """Draw one candidate code from CODE_ALPHABET using a CSPRNG."""
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def _code_exists(code: str) -> bool:
    return db.session.query(AccessCode.id).filter_by(code=code).first() is not None


def generate_access_code(
    role: str,
    *,
    expires_in_days=None,
    max_uses=None,
    shift: str | None = None,
    created_by_user_id: int | None = None,
) -> AccessCode:
    """
    Create a new access code unique across all stored codes.

    Draws candidates until one does not collide with an existing code. With
    31^6 possible codes the loop practically always ends on the first draw.

    Raises ValidationError for an unknown role/shift or a non-positive
    expires_in_days/max_uses.
    """
    if role not in ACCESS_CODE_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ACCESS_CODE_ROLES)}")
    if shift is not None and shift not in SHIFTS:
        raise ValidationError(f"shift must be one of: {', '.join(SHIFTS)}")

    expires_in_days = parse_positive_int(expires_in_days, "expires_in_days", maximum=3650)
    max_uses = parse_positive_int(max_uses, "max_uses")

    code = generate_code()
    while _code_exists(code):
        code = generate_code()

    now = utcnow()
    access_code = AccessCode(
        code=code,
        role=role,
        shift=shift,
        created_by_user_id=created_by_user_id,
        created_at=now,
        expires_at=now + timedelta(days=expires_in_days) if expires_in_days else None,
        used_count=0,
        max_uses=max_uses,
        is_active=True,
    )
    db.session.add(access_code)
    db.session.commit()
    return access_code


def _check_usable(access_code: AccessCode | None, now) -> str | None:
    """Return the first reason access_code is unusable, or None."""
    if not access_code:
        return INVALID_CODE
    if not access_code.is_active:
        return DEACTIVATED_CODE
    if access_code.expires_at is not None and access_code.expires_at <= now:
        return EXPIRED_CODE
    if access_code.max_uses is not None and access_code.used_count >= access_code.max_uses:
        return EXHAUSTED_CODE
    return None


def validate_code(code: str | None) -> CodeValidation:
    """
    Read-only usability check.

    Reasons, in priority order: not found, deactivated, expired, exhausted.
    """
    normalized = normalize_code(code)
    access_code = None
    if normalized:
        access_code = db.session.query(AccessCode).filter_by(code=normalized).first()

    reason = _check_usable(access_code, utcnow())
    if reason:
        return CodeValidation(valid=False, code=normalized, reason=reason)
    return CodeValidation(valid=True, code=normalized, role=access_code.role)


def redeem_code(
    code: str | None,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> Redemption:
    """
    Consume one use of code and open a code session for its role.

    The usage increment and the session insert commit together. If the
    conditional UPDATE matches no row, the reason comes from validate_code and
    is raised as AccessCodeError.
    """
    normalized = normalize_code(code)

    def _op():
        now = utcnow()
        result = db.session.execute(
            update(AccessCode)
            .where(
                AccessCode.code == normalized,
                AccessCode.is_active.is_(True),
                or_(AccessCode.expires_at.is_(None), AccessCode.expires_at > now),
                or_(AccessCode.max_uses.is_(None), AccessCode.used_count < AccessCode.max_uses),
            )
            .values(used_count=AccessCode.used_count + 1, last_used_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.session.rollback()
            return None

        role = db.session.query(AccessCode.role).filter_by(code=normalized).scalar()
        session, token = session_service.create_session(
            role,
            access_code=normalized,
            ttl=session_service.CODE_SESSION_TTL,
            user_agent=user_agent,
            ip_address=ip_address,
            commit=False,
        )
        permission_service.log_security_event(
            admin_user_id=None,
            event_type="CODE_REDEEMED",
            success=True,
            action=normalized,
            reason=f"Granted {role}",
            ip_address=ip_address,
            user_agent=user_agent,
            commit=False,
        )
        db.session.commit()
        return Redemption(role=role, code=normalized, session=session, token=token)

    redemption = run_with_retry(_op) if normalized else None
    if redemption is not None:
        return redemption

    check = validate_code(normalized)
    # Lost a race for the last use between the UPDATE and this read
    reason = check.reason or EXHAUSTED_CODE
    permission_service.log_security_event(
        admin_user_id=None,
        event_type="CODE_REDEEM_FAILED",
        success=False,
        action=normalized or None,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    raise AccessCodeError(reason)


def list_codes() -> list[AccessCode]:
    """All codes, newest first."""
    return db.session.query(AccessCode).order_by(AccessCode.created_at.desc(), AccessCode.id.desc()).all()


def _get_code(code_id: int) -> AccessCode:
    access_code = db.session.get(AccessCode, code_id)
    if not access_code:
        raise AccessCodeError("Access code not found", status_code=404)
    return access_code


def deactivate_code(code_id: int) -> AccessCode:
    """Mark a code inactive. Sessions already issued from it stay valid until they expire."""
    access_code = _get_code(code_id)
    access_code.is_active = False
    db.session.commit()
    return access_code


def delete_code(code_id: int) -> None:
    access_code = _get_code(code_id)
    db.session.delete(access_code)
    db.session.commit()


def clear_demo_codes() -> int:
    """Delete the well-known demo codes. Returns count deleted."""
    deleted = db.session.query(AccessCode).filter(AccessCode.code.in_(DEMO_CODES)).delete(synchronize_session=False)
    db.session.commit()
    return deleted
