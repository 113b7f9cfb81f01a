# Overview: Flask API routes for access codes; parses input and returns JSON responses.

"""
Access code routes

Public:
- POST /api/access-codes/validate   check a code without consuming it
- POST /api/access-codes/redeem     consume one use and open a code session

Admin (MANAGE_ACCESS_CODES; admin-role codes also need GENERATE_ADMIN_CODES):
- POST   /api/access-codes
- GET    /api/access-codes
- POST   /api/access-codes/<id>/deactivate
- DELETE /api/access-codes/<id>
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import access_code_service, permission_service
from ..services.access_code_service import AccessCodeError
from ..services.permission_service import PermissionDeniedError
from ..permissions import get_role_permissions, ROLE_ADMIN
from ..validation import ValidationError
from ..decorators import require_auth, require_permission


access_codes_bp = Blueprint("access_codes", __name__, url_prefix="/api/access-codes")


@access_codes_bp.post("/validate")
def validate_code_route():
    try:
        data = request.get_json(silent=True) or {}
        result = access_code_service.validate_code(data.get("code"))
        return jsonify(result.to_dict()), 200
    except ValidationError as e:
        return jsonify({"valid": False, "error": str(e)}), 400


@access_codes_bp.post("/redeem")
def redeem_code_route():
    """
    Redeem a code for a terminal session.

    Returns the role and an 8-hour bearer token. Failures carry the specific
    reason (invalid, deactivated, expired, maximum uses reached).
    """
    try:
        data = request.get_json(silent=True) or {}
        code = data.get("code")
        if not code:
            return jsonify({"error": "code required"}), 400

        redemption = access_code_service.redeem_code(
            code,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        return jsonify({
            "role": redemption.role,
            "code": redemption.code,
            "token": redemption.token,
            "session": redemption.session.to_dict(),
            "permissions": sorted(get_role_permissions(redemption.role)),
        }), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except AccessCodeError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to redeem access code")
        return jsonify({"error": "Internal server error"}), 500


@access_codes_bp.post("")
@require_auth
@require_permission("MANAGE_ACCESS_CODES")
def generate_code_route():
    """
    Generate a code.

    Body: {"role": "cashier"|"admin", "expires_in_days"?: int, "max_uses"?: int,
    "shift"?: "morning"|"evening"}
    """
    try:
        data = request.get_json(silent=True) or {}
        role = data.get("role", "cashier")

        if role == ROLE_ADMIN:
            permission_service.require_permission(
                g.session_context,
                "GENERATE_ADMIN_CODES",
                resource=request.path,
                ip_address=request.remote_addr,
                user_agent=request.headers.get("User-Agent"),
            )

        access_code = access_code_service.generate_access_code(
            role,
            expires_in_days=data.get("expires_in_days"),
            max_uses=data.get("max_uses"),
            shift=data.get("shift"),
            created_by_user_id=g.session_context.admin_user_id,
        )
        return jsonify({"access_code": access_code.to_dict()}), 201

    except PermissionDeniedError as e:
        return jsonify({"error": "Unauthorized", "message": str(e)}), 403
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to generate access code")
        return jsonify({"error": "Internal server error"}), 500


@access_codes_bp.get("")
@require_auth
@require_permission("MANAGE_ACCESS_CODES")
def list_codes_route():
    codes = access_code_service.list_codes()
    return jsonify({"access_codes": [c.to_dict() for c in codes], "count": len(codes)}), 200


@access_codes_bp.post("/<int:code_id>/deactivate")
@require_auth
@require_permission("MANAGE_ACCESS_CODES")
def deactivate_code_route(code_id: int):
    try:
        access_code = access_code_service.deactivate_code(code_id)
        return jsonify({"access_code": access_code.to_dict()}), 200
    except AccessCodeError as e:
        return jsonify({"error": str(e)}), e.status_code


@access_codes_bp.delete("/<int:code_id>")
@require_auth
@require_permission("MANAGE_ACCESS_CODES")
def delete_code_route(code_id: int):
    try:
        access_code_service.delete_code(code_id)
        return jsonify({"success": True}), 200
    except AccessCodeError as e:
        return jsonify({"error": str(e)}), e.status_code
