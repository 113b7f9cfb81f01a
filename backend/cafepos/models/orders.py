from __future__ import annotations

from ..extensions import db
from cafepos.time_utils import to_utc_z


class Order(db.Model):
    """
    Completed checkout.

    Written once by order_service.complete_order together with its lines in a
    single transaction. total_kobo always equals the sum of its lines'
    line_total_kobo. There is no update path for orders.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_status_created", "status", "created_at"),
        db.Index("ix_orders_cashier_code", "cashier_code"),
        db.Index("ix_orders_created_at", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable order number (e.g., "ORD-LQ7ZK3A1")
    order_number = db.Column(db.String(32), nullable=False, index=True)

    total_kobo = db.Column(db.Integer, nullable=False)

    # cash | card | transfer
    payment_method = db.Column(db.String(16), nullable=False)
    # pending | completed | cancelled
    status = db.Column(db.String(16), nullable=False, default="completed")

    # Cashier attribution: the redeemed access code, or the signed-in admin
    cashier_code = db.Column(db.String(16), nullable=True)
    cashier_user_id = db.Column(db.Integer, db.ForeignKey("admin_users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    lines = db.relationship(
        "OrderLine",
        backref="order",
        lazy=True,
        order_by="OrderLine.position",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "total_kobo": self.total_kobo,
            "payment_method": self.payment_method,
            "status": self.status,
            "cashier_code": self.cashier_code,
            "cashier_user_id": self.cashier_user_id,
            "created_at": to_utc_z(self.created_at),
            "items": [line.to_dict() for line in self.lines],
        }


class OrderLine(db.Model):
    """Line item on an order; name and price as captured in the cart."""
    __tablename__ = "order_lines"
    __table_args__ = (
        db.UniqueConstraint("order_id", "position", name="uq_order_lines_order_position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    # Null for custom (ad hoc priced) items
    menu_item_id = db.Column(db.Integer, db.ForeignKey("menu_items.id", ondelete="SET NULL"), nullable=True)
    is_custom = db.Column(db.Boolean, nullable=False, default=False)

    name = db.Column(db.String(120), nullable=False)
    unit_price_kobo = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    line_total_kobo = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "position": self.position,
            "menu_item_id": self.menu_item_id,
            "is_custom": self.is_custom,
            "name": self.name,
            "unit_price_kobo": self.unit_price_kobo,
            "quantity": self.quantity,
            "line_total_kobo": self.line_total_kobo,
        }
