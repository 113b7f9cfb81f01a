# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

# backend/cafepos/routes/admin.py
"""
Admin account management (superadmin only, via MANAGE_ADMINS).

Self-targeting role changes and deletions are rejected.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import auth_service
from ..services.auth_service import PasswordValidationError, RegistrationError, AdminUserError
from ..validation import ValidationError
from ..decorators import require_auth, require_permission

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/users")
@require_auth
@require_permission("MANAGE_ADMINS")
def list_users():
    users = auth_service.list_admin_users(g.session_context)
    return jsonify({"users": [u.to_dict() for u in users], "count": len(users)})


@admin_bp.post("/users")
@require_auth
@require_permission("MANAGE_ADMINS")
def create_user():
    """
    Create an admin account.

    Body: {"email", "password", "name", "role"?: superadmin|manager|vc|admin}
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")
        name = data.get("name")

        if not all([email, password, name]):
            return jsonify({"error": "email, password and name required"}), 400

        user = auth_service.create_admin_user(
            g.session_context,
            email,
            password,
            name,
            role=data.get("role") or "manager",
        )
        return jsonify({"user": user.to_dict()}), 201

    except (ValidationError, PasswordValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except RegistrationError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create admin user")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.patch("/users/<int:user_id>/role")
@require_auth
@require_permission("MANAGE_ADMINS")
def change_role(user_id: int):
    try:
        data = request.get_json(silent=True) or {}
        role = data.get("role")
        if not role:
            return jsonify({"error": "role required"}), 400

        user = auth_service.change_role(g.session_context, user_id, role)
        return jsonify({"user": user.to_dict()}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except AdminUserError as e:
        return jsonify({"error": str(e)}), e.status_code


@admin_bp.delete("/users/<int:user_id>")
@require_auth
@require_permission("MANAGE_ADMINS")
def delete_user(user_id: int):
    try:
        auth_service.delete_admin_user(g.session_context, user_id)
        return jsonify({"success": True}), 200
    except AdminUserError as e:
        return jsonify({"error": str(e)}), e.status_code
