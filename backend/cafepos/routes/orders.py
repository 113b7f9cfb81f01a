# Overview: Flask API routes for orders; parses input and returns JSON responses.

# backend/cafepos/routes/orders.py
"""Order routes with permission enforcement"""

from flask import Blueprint, request, jsonify, g, current_app

from ..cart import Cart
from ..services import order_service
from ..services.order_service import OrderError, OrderPersistenceError
from ..validation import ValidationError
from ..decorators import require_auth, require_permission


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
@require_auth
@require_permission("CREATE_ORDER")
def create_order_route():
    """
    Check out a terminal cart.

    Body: {"payment_method": "cash"|"card"|"transfer",
           "items": [{"id", "name", "unit_price_kobo", "category", "quantity",
                      "is_custom"?, "menu_item_id"?}, ...]}

    The total is recomputed from the items; a client-supplied total is ignored.
    """
    try:
        data = request.get_json(silent=True) or {}
        cart = Cart.from_lines(data.get("items", []))

        order = order_service.complete_order(
            cart,
            data.get("payment_method"),
            cashier=g.session_context,
        )
        return jsonify({"order": order.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except OrderPersistenceError as e:
        current_app.logger.exception("Failed to persist order")
        return jsonify({"error": str(e)}), e.status_code
    except OrderError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/recent")
@require_auth
@require_permission("VIEW_REPORTS")
def recent_orders_route():
    limit = request.args.get("limit", default=10, type=int)
    orders = order_service.list_recent_orders(limit)
    return jsonify({"orders": [o.to_dict() for o in orders], "count": len(orders)}), 200


@orders_bp.get("")
@require_auth
@require_permission("VIEW_REPORTS")
def list_orders_route():
    try:
        orders = order_service.list_orders(
            status=request.args.get("status"),
            start=request.args.get("start"),
            end=request.args.get("end"),
            cashier_code=request.args.get("cashier_code"),
        )
        return jsonify({"orders": [o.to_dict() for o in orders], "count": len(orders)}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@orders_bp.get("/<int:order_id>")
@require_auth
@require_permission("CREATE_ORDER")  # Can view orders if can create them
def get_order_route(order_id: int):
    order = order_service.get_order(order_id)
    if not order:
        return jsonify({"error": "Order not found"}), 404
    return jsonify({"order": order.to_dict()}), 200
