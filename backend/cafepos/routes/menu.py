# Overview: Flask API routes for the read-only menu.

from flask import Blueprint, request, jsonify

from ..services import menu_service
from ..decorators import require_auth, require_permission


menu_bp = Blueprint("menu", __name__, url_prefix="/api/menu")


@menu_bp.get("")
@require_auth
@require_permission("VIEW_MENU")
def list_menu_route():
    category = request.args.get("category")
    available_only = request.args.get("available_only", "false").lower() == "true"
    items = menu_service.list_menu_items(category=category, available_only=available_only)
    return jsonify({"items": [item.to_dict() for item in items], "count": len(items)}), 200


@menu_bp.get("/categories")
@require_auth
@require_permission("VIEW_MENU")
def categories_route():
    return jsonify({"categories": menu_service.get_categories()}), 200
