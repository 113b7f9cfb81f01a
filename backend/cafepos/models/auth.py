from __future__ import annotations

from ..extensions import db
from cafepos.time_utils import to_utc_z


class AdminUser(db.Model):
    """
    Administrator accounts (email + password).

    Cashiers never get an AdminUser row; they sign in with access codes.
    Email is stored lowercased and is unique across the whole deployment.
    """
    __tablename__ = "admin_users"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_admin_users_email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(255), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    # superadmin | manager | vc (legacy: admin)
    role = db.Column(db.String(16), nullable=False, default="manager")

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("admin_users.id", ondelete="SET NULL"), nullable=True)

    # Lockout state, see login_throttle_service
    failed_login_attempts = db.Column(db.Integer, nullable=False, default=0)
    locked_until = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class Session(db.Model):
    """
    Server-side session record.

    The bearer token handed to the client is never stored, only its SHA-256.
    A session belongs either to an AdminUser (credential sign-in) or to an
    access code redemption (cashier terminals).
    """
    __tablename__ = "sessions"
    __table_args__ = (
        db.UniqueConstraint("token_hash", name="uq_sessions_token_hash"),
        db.CheckConstraint("expires_at > created_at", name="ck_sessions_expiry_after_creation"),
        db.Index("ix_sessions_admin_user", "admin_user_id"),
        db.Index("ix_sessions_access_code", "access_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    token_hash = db.Column(db.String(64), nullable=False)

    admin_user_id = db.Column(db.Integer, db.ForeignKey("admin_users.id", ondelete="CASCADE"), nullable=True)
    access_code = db.Column(db.String(16), nullable=True)

    role = db.Column(db.String(16), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    # Client context for security monitoring
    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)

    admin_user = db.relationship("AdminUser", backref=db.backref("sessions", lazy=True, passive_deletes=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "admin_user_id": self.admin_user_id,
            "access_code": self.access_code,
            "role": self.role,
            "created_at": to_utc_z(self.created_at),
            "expires_at": to_utc_z(self.expires_at),
        }
