from __future__ import annotations

from ..extensions import db
from cafepos.time_utils import to_utc_z

class SecurityEvent(db.Model):
    """
    Security event audit log.

    Records sign-in attempts, lockouts, code redemptions, permission denials
    and admin account changes.

    Append-only; rows are removed only by the retention cleanup in
    maintenance_service.
    """
    __tablename__ = "security_events"
    __table_args__ = (
        db.Index("ix_security_events_user_type", "admin_user_id", "event_type"),
        db.Index("ix_security_events_occurred", "occurred_at"),
        db.Index("ix_security_events_type_action", "event_type", "action"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # No foreign key: events outlive deleted admin accounts
    admin_user_id = db.Column(db.Integer, nullable=True, index=True)  # Nullable for anonymous

    # Event classification
    event_type = db.Column(db.String(64), nullable=False, index=True)  # LOGIN_FAILED, CODE_REDEEMED, PERMISSION_DENIED, etc.
    resource = db.Column(db.String(128), nullable=True)  # e.g., "/api/access-codes/redeem"
    action = db.Column(db.String(255), nullable=True)    # e.g., login email or code

    # Event details
    success = db.Column(db.Boolean, nullable=False, index=True)
    reason = db.Column(db.Text, nullable=True)

    # Client context
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "admin_user_id": self.admin_user_id,
            "event_type": self.event_type,
            "resource": self.resource,
            "action": self.action,
            "success": self.success,
            "reason": self.reason,
            "ip_address": self.ip_address,
            "occurred_at": to_utc_z(self.occurred_at),
        }
