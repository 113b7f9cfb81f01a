from __future__ import annotations

from ..extensions import db
from cafepos.time_utils import to_utc_z


class AccessCode(db.Model):
    """
    Short human-enterable code redeemable for a role.

    Usage is bounded multi-use: max_uses=None means unlimited, max_uses=1 is a
    single-use code. used_count only ever moves through the conditional UPDATE
    in access_code_service.redeem_code.
    """
    __tablename__ = "access_codes"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_access_codes_code"),
        db.CheckConstraint("used_count >= 0", name="ck_access_codes_used_count_non_negative"),
        db.Index("ix_access_codes_role", "role"),
        db.Index("ix_access_codes_is_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(16), nullable=False)

    # cashier | admin
    role = db.Column(db.String(16), nullable=False)
    # morning | evening (optional)
    shift = db.Column(db.String(16), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("admin_users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=True)

    used_count = db.Column(db.Integer, nullable=False, default=0)
    max_uses = db.Column(db.Integer, nullable=True)
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "role": self.role,
            "shift": self.shift,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "expires_at": to_utc_z(self.expires_at) if self.expires_at else None,
            "used_count": self.used_count,
            "max_uses": self.max_uses,
            "last_used_at": to_utc_z(self.last_used_at) if self.last_used_at else None,
            "is_active": self.is_active,
        }
