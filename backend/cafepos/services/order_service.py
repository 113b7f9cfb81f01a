# Overview: Service-layer operations for orders; encapsulates business logic and database work.

"""
Order Finalizer

Turns a terminal's cart into a completed Order in one transaction.

ORDER OF OPERATIONS (complete_order):
1. Check permission, payment method, non-empty cart
2. Deep-copy the cart items and compute the total from the copy
3. Insert Order + OrderLines, commit once
4. Clear the cart only after the commit succeeded

A failed write leaves the cart untouched so the cashier can retry without
re-entering items. Orders have no update path once written.
"""

from __future__ import annotations

import string
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError

from ..cart import Cart
from ..extensions import db
from ..models import Order, OrderLine, MenuItem
from ..validation import ValidationError, require_choice
from . import permission_service
from .session_service import SessionContext
from cafepos.time_utils import utcnow, parse_iso_datetime


PAYMENT_METHODS = ("cash", "card", "transfer")
ORDER_STATUSES = ("pending", "completed", "cancelled")

_BASE36 = string.digits + string.ascii_uppercase


class OrderError(Exception):
    """Raised for order operation errors."""
    def __init__(self, message: str, details: dict | None = None, status_code: int = 400):
        super().__init__(message)
        self.details = details or {}
        self.status_code = status_code


class OrderPersistenceError(OrderError):
    """The order could not be written; nothing was saved and the cart is intact."""
    def __init__(self):
        super().__init__("Could not save the order. Please try again.", status_code=503)


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def make_order_number(now: datetime) -> str:
    """ORD-<base36 milliseconds since epoch>; sortable, display only."""
    epoch_ms = (now - datetime(1970, 1, 1)) // timedelta(milliseconds=1)
    return f"ORD-{_base36(epoch_ms)}"


def _check_menu_references(items) -> None:
    menu_ids = {item.menu_item_id for item in items if not item.is_custom and item.menu_item_id is not None}
    if not menu_ids:
        return
    found = {row[0] for row in db.session.query(MenuItem.id).filter(MenuItem.id.in_(menu_ids)).all()}
    missing = sorted(menu_ids - found)
    if missing:
        raise OrderError("Menu item not found", details={"menu_item_ids": missing})


def complete_order(cart: Cart, payment_method: str, *, cashier: SessionContext) -> Order:
    """
    Persist the cart as a completed order and reset the cart.

    Raises:
        PermissionDeniedError: cashier cannot create orders
        ValidationError: unknown payment method
        OrderError: empty cart or unknown menu item
        OrderPersistenceError: database write failed (cart not cleared)
    """
    permission_service.require_permission(cashier, "CREATE_ORDER")
    require_choice(payment_method, "payment_method", PAYMENT_METHODS)

    snapshot = cart.snapshot()
    if not snapshot:
        raise OrderError("Cannot complete an order with an empty cart")

    _check_menu_references(snapshot)

    now = utcnow()
    total = sum(item.unit_price_kobo * item.quantity for item in snapshot)

    order = Order(
        order_number=make_order_number(now),
        total_kobo=total,
        payment_method=payment_method,
        status="completed",
        cashier_code=cashier.access_code,
        cashier_user_id=cashier.admin_user_id,
        created_at=now,
    )
    for position, item in enumerate(snapshot, start=1):
        order.lines.append(OrderLine(
            position=position,
            menu_item_id=None if item.is_custom else item.menu_item_id,
            is_custom=item.is_custom,
            name=item.name,
            unit_price_kobo=item.unit_price_kobo,
            quantity=item.quantity,
            line_total_kobo=item.unit_price_kobo * item.quantity,
        ))

    try:
        db.session.add(order)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise OrderPersistenceError() from exc

    cart.clear()
    return order


def get_order(order_id: int) -> Order | None:
    return db.session.get(Order, order_id)


def list_recent_orders(limit: int = 10) -> list[Order]:
    """Newest orders first."""
    limit = max(1, min(int(limit), 100))
    return db.session.query(Order).order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()


def list_orders(
    *,
    status: str | None = None,
    start: str | None = None,
    end: str | None = None,
    cashier_code: str | None = None,
) -> list[Order]:
    """Orders filtered by status, creation-time range [start, end) and cashier code, oldest first."""
    query = db.session.query(Order)
    if status:
        require_choice(status, "status", ORDER_STATUSES)
        query = query.filter(Order.status == status)

    try:
        start_dt = parse_iso_datetime(start) if start else None
        end_dt = parse_iso_datetime(end) if end else None
    except ValueError:
        raise ValidationError("start/end must be ISO-8601 datetimes")

    if start_dt:
        query = query.filter(Order.created_at >= start_dt)
    if end_dt:
        query = query.filter(Order.created_at < end_dt)
    if cashier_code:
        query = query.filter(Order.cashier_code == cashier_code)
    return query.order_by(Order.created_at.asc(), Order.id.asc()).all()
