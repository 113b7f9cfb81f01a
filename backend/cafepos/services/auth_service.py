# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Admin Authentication Service

Email/password accounts for cafeteria administrators. Cashiers do not have
accounts; they redeem access codes (see access_code_service).

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor BCRYPT_ROUNDS, default 12)
- Minimum 8 characters, with uppercase, lowercase and a digit
- Sign-in failures use one generic message whether or not the email exists
- Lockout per email handled by login_throttle_service, tracked the same way
  for unknown emails
- The first account ever registered becomes superadmin
"""

import bcrypt
import re
from flask import current_app
from ..extensions import db
from ..models import AdminUser
from ..permissions import ADMIN_USER_ROLES, DEFAULT_ADMIN_ROLE, ROLE_SUPERADMIN
from ..validation import ValidationError, validate_email, normalize_email
from . import login_throttle_service, session_service, permission_service
from .session_service import SessionContext


GENERIC_SIGN_IN_ERROR = "Wrong email or password"


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class RegistrationError(Exception):
    """Raised when an account cannot be created (e.g. email already registered)."""
    pass


class InvalidCredentialsError(Exception):
    """Raised for any sign-in failure that is not a lockout."""
    pass


class AccountLockedError(Exception):
    """Raised while an account is locked after repeated failures."""
    def __init__(self, seconds_remaining: int):
        minutes = (seconds_remaining + 59) // 60
        super().__init__(
            f"Account temporarily locked due to too many failed attempts. "
            f"Try again in {minutes} minute{'s' if minutes != 1 else ''}."
        )
        self.seconds_remaining = seconds_remaining


class AdminUserError(Exception):
    """Raised for invalid admin account management requests."""
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns True if password matches hash, False otherwise (including
    malformed hashes). bcrypt.checkpw compares in constant time.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except (ValueError, TypeError):
        return False


_DUMMY_HASHES: dict[int, str] = {}


def _dummy_hash() -> str:
    """A hash at the configured cost, checked against when the email is unknown."""
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    if rounds not in _DUMMY_HASHES:
        salt = bcrypt.gensalt(rounds=rounds)
        _DUMMY_HASHES[rounds] = bcrypt.hashpw(b"not-a-real-password", salt).decode('utf-8')
    return _DUMMY_HASHES[rounds]


def _validate_name(name: str | None) -> str:
    if name is not None and not isinstance(name, str):
        raise ValidationError("name must be a string")
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Name is required")
    if len(cleaned) > 120:
        raise ValidationError("Name must be at most 120 characters")
    return cleaned


def _create_admin(email: str, password: str, name: str, role: str, created_by_user_id: int | None) -> AdminUser:
    email = validate_email(email)
    name = _validate_name(name)
    validate_password_strength(password)

    existing = db.session.query(AdminUser).filter_by(email=email).first()
    if existing:
        raise RegistrationError("Email already registered")

    password_hash = hash_password(password)
    user = AdminUser(
        email=email,
        name=name,
        password_hash=password_hash,
        role=role,
        created_by_user_id=created_by_user_id,
        failed_login_attempts=0,
    )
    db.session.add(user)
    return user


def sign_up(
    email: str,
    password: str,
    name: str,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[AdminUser, object, str]:
    """
    Register a new admin account and open a 24-hour session for it.

    The first account ever created becomes superadmin; every later account
    gets DEFAULT_ADMIN_ROLE. Returns (user, session, token).

    Raises:
        ValidationError: malformed email or missing name
        PasswordValidationError: weak password
        RegistrationError: email already registered
    """
    role = DEFAULT_ADMIN_ROLE if has_admin_users() else ROLE_SUPERADMIN

    user = _create_admin(email, password, name, role, created_by_user_id=None)
    db.session.flush()

    session, token = session_service.create_session(
        user.role,
        admin_user_id=user.id,
        ttl=session_service.ADMIN_SESSION_TTL,
        user_agent=user_agent,
        ip_address=ip_address,
        commit=False,
    )
    permission_service.log_security_event(
        admin_user_id=user.id,
        event_type="USER_CREATED",
        success=True,
        action=user.email,
        reason=f"Self sign-up as {user.role}",
        ip_address=ip_address,
        user_agent=user_agent,
        commit=False,
    )
    db.session.commit()
    return user, session, token


def sign_in(
    email: str,
    password: str,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[AdminUser, object, str]:
    """
    Authenticate by email and password and open a 24-hour session.

    Failures are counted per normalized email whether or not an account
    exists, and unknown emails still pay for a bcrypt check, so neither the
    status sequence nor the timing tells registered emails apart.

    Returns (user, session, token).

    Raises:
        ValidationError: email or password is not a string
        AccountLockedError: the email is locked (also raised by the failure
            that triggers the lock)
        InvalidCredentialsError: unknown email or wrong password, always with
            the same message
    """
    normalized = normalize_email(email)
    if password is not None and not isinstance(password, str):
        raise ValidationError("password must be a string")
    if not normalized:
        raise InvalidCredentialsError(GENERIC_SIGN_IN_ERROR)

    locked, remaining = login_throttle_service.is_account_locked(normalized)
    if locked:
        raise AccountLockedError(remaining)

    user = db.session.query(AdminUser).filter_by(email=normalized).first()
    if user:
        valid = bool(password) and verify_password(password, user.password_hash)
    else:
        verify_password(password or "", _dummy_hash())
        valid = False

    if not valid:
        login_throttle_service.record_failed_attempt(
            normalized,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        locked, remaining = login_throttle_service.is_account_locked(normalized)
        if locked:
            raise AccountLockedError(remaining)
        raise InvalidCredentialsError(GENERIC_SIGN_IN_ERROR)

    login_throttle_service.record_successful_login(
        user,
        ip_address=ip_address,
        user_agent=user_agent,
        commit=False,
    )
    session, token = session_service.create_session(
        user.role,
        admin_user_id=user.id,
        ttl=session_service.ADMIN_SESSION_TTL,
        user_agent=user_agent,
        ip_address=ip_address,
        commit=False,
    )
    db.session.commit()
    return user, session, token


def has_admin_users() -> bool:
    return db.session.query(AdminUser.id).first() is not None


def _require_role_value(role: str) -> str:
    if role not in ADMIN_USER_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ADMIN_USER_ROLES)}")
    return role


def create_admin_user(actor: SessionContext, email: str, password: str, name: str, role: str = DEFAULT_ADMIN_ROLE) -> AdminUser:
    """Create another admin account with an explicit role. Requires MANAGE_ADMINS."""
    permission_service.require_permission(actor, "MANAGE_ADMINS")
    role = _require_role_value(role)

    user = _create_admin(email, password, name, role, created_by_user_id=actor.admin_user_id)
    db.session.flush()
    permission_service.log_security_event(
        admin_user_id=actor.admin_user_id,
        event_type="USER_CREATED",
        success=True,
        action=user.email,
        reason=f"Created as {role}",
        commit=False,
    )
    db.session.commit()
    return user


def list_admin_users(actor: SessionContext) -> list[AdminUser]:
    permission_service.require_permission(actor, "MANAGE_ADMINS")
    return db.session.query(AdminUser).order_by(AdminUser.created_at.asc(), AdminUser.id.asc()).all()


def _get_other_user(actor: SessionContext, user_id: int, verb: str) -> AdminUser:
    if actor.admin_user_id is not None and actor.admin_user_id == user_id:
        raise AdminUserError(f"You cannot {verb} your own account")

    user = db.session.get(AdminUser, user_id)
    if not user:
        raise AdminUserError("User not found", status_code=404)
    return user


def change_role(actor: SessionContext, user_id: int, role: str) -> AdminUser:
    """Change another admin's role. Self-targeting is rejected."""
    permission_service.require_permission(actor, "MANAGE_ADMINS")
    role = _require_role_value(role)
    user = _get_other_user(actor, user_id, "change the role of")

    previous = user.role
    user.role = role
    permission_service.log_security_event(
        admin_user_id=actor.admin_user_id,
        event_type="ROLE_CHANGED",
        success=True,
        action=user.email,
        reason=f"{previous} -> {role}",
        commit=False,
    )
    db.session.commit()
    return user


def delete_admin_user(actor: SessionContext, user_id: int) -> None:
    """Delete another admin account and all of its sessions. Self-deletion is rejected."""
    permission_service.require_permission(actor, "MANAGE_ADMINS")
    user = _get_other_user(actor, user_id, "delete")

    email = user.email
    session_service.delete_user_sessions(user.id, commit=False)
    db.session.delete(user)
    permission_service.log_security_event(
        admin_user_id=actor.admin_user_id,
        event_type="USER_DELETED",
        success=True,
        action=email,
        commit=False,
    )
    db.session.commit()


def create_superadmin(email: str, password: str, name: str) -> AdminUser:
    """Bootstrap a superadmin without an acting session (CLI only)."""
    user = _create_admin(email, password, name, ROLE_SUPERADMIN, created_by_user_id=None)
    db.session.flush()
    permission_service.log_security_event(
        admin_user_id=user.id,
        event_type="USER_CREATED",
        success=True,
        action=user.email,
        reason="Created as superadmin from the CLI",
        commit=False,
    )
    db.session.commit()
    return user
