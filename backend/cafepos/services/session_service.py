# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session Token Management Service

Sessions are issued at admin sign-in/sign-up and at access code redemption.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Fixed TTL: 24 hours for admin credentials, 8 hours for code sessions
- Expiry is checked lazily on every read; expired rows are left in place
- Logout deletes the session row
"""

import secrets
import hashlib
from dataclasses import dataclass
from datetime import datetime, timedelta
from ..extensions import db
from ..models import Session, AdminUser
from ..permissions import get_role_permissions
from cafepos.time_utils import utcnow, to_utc_z


# Configuration constants
ADMIN_SESSION_TTL = timedelta(hours=24)
CODE_SESSION_TTL = timedelta(hours=8)


@dataclass(frozen=True)
class SessionContext:
    """
    Resolved caller identity, passed explicitly to every privileged operation.

    admin_user is None for code-based (cashier) sessions; access_code is None
    for credential sessions.
    """
    session_id: int
    role: str
    expires_at: datetime
    admin_user: AdminUser | None = None
    access_code: str | None = None

    @property
    def admin_user_id(self) -> int | None:
        return self.admin_user.id if self.admin_user else None

    @property
    def permissions(self) -> set[str]:
        return get_role_permissions(self.role)

    def has_permission(self, code: str) -> bool:
        return code in self.permissions

    def to_dict(self) -> dict:
        return {
            "role": self.role,
            "expires_at": to_utc_z(self.expires_at),
            "access_code": self.access_code,
            "user": self.admin_user.to_dict() if self.admin_user else None,
            "permissions": sorted(self.permissions),
        }


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    This is the plaintext token sent to client (never stored).
    """
    return secrets.token_hex(32)  # 32 bytes = 64 hex characters


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    Tokens are high-entropy, so a fast hash is sufficient here (unlike passwords).
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    role: str,
    *,
    admin_user_id: int | None = None,
    access_code: str | None = None,
    ttl: timedelta = ADMIN_SESSION_TTL,
    user_agent: str | None = None,
    ip_address: str | None = None,
    commit: bool = True,
) -> tuple[Session, str]:
    """
    Create a new session.

    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.

    commit=False lets the caller fold the insert into its own transaction
    (code redemption commits the usage increment and the session together).
    """
    if ttl <= timedelta(0):
        raise ValueError("Session TTL must be positive")

    plaintext_token = generate_token()
    now = utcnow()

    session = Session(
        token_hash=hash_token(plaintext_token),
        admin_user_id=admin_user_id,
        access_code=access_code,
        role=role,
        created_at=now,
        expires_at=now + ttl,
        user_agent=user_agent,
        ip_address=ip_address,
    )

    db.session.add(session)
    if commit:
        db.session.commit()
    else:
        db.session.flush()

    return session, plaintext_token


def validate_session(token: str | None) -> SessionContext | None:
    """
    Resolve a bearer token to a SessionContext.

    Returns None if:
    - Token is missing or unknown
    - Session has expired (now >= expires_at)
    - The owning admin account no longer exists

    Credential sessions take the role from the admin account, so role changes
    apply to already-issued sessions on their next request.
    """
    if not token:
        return None

    session = db.session.query(Session).filter_by(token_hash=hash_token(token)).first()
    if not session:
        return None

    if utcnow() >= session.expires_at:
        return None

    role = session.role
    admin_user = None
    if session.admin_user_id is not None:
        admin_user = db.session.get(AdminUser, session.admin_user_id)
        if not admin_user:
            return None
        role = admin_user.role

    return SessionContext(
        session_id=session.id,
        role=role,
        expires_at=session.expires_at,
        admin_user=admin_user,
        access_code=session.access_code,
    )


def delete_session(token: str) -> bool:
    """
    Delete the session for token (logout).

    Returns True if a session was deleted, False if not found.
    """
    deleted = db.session.query(Session).filter_by(token_hash=hash_token(token)).delete()
    db.session.commit()
    return deleted > 0


def delete_user_sessions(admin_user_id: int, *, commit: bool = True) -> int:
    """Delete every session of an admin account. Returns count deleted."""
    deleted = db.session.query(Session).filter_by(admin_user_id=admin_user_id).delete()
    if commit:
        db.session.commit()
    return deleted


def cleanup_expired_sessions(*, older_than_days: int = 30) -> int:
    """
    Delete sessions that expired more than older_than_days ago.

    Returns count of sessions deleted. Run from the CLI; request handling
    never purges sessions.
    """
    cutoff = utcnow() - timedelta(days=older_than_days)
    deleted = db.session.query(Session).filter(Session.expires_at < cutoff).delete()
    db.session.commit()
    return deleted
