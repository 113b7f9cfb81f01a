# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/cafepos/routes/auth.py
"""
Admin authentication routes

SECURITY FEATURES:
- Password strength validation on sign-up
- One generic error for unknown email and wrong password
- Account lockout after repeated failed attempts (429 with retry hints)
- Bearer session tokens; logout deletes the session
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services import login_throttle_service
from ..services import permission_service
from ..services.auth_service import (
    PasswordValidationError,
    RegistrationError,
    InvalidCredentialsError,
    AccountLockedError,
)
from ..permissions import get_role_permissions
from ..validation import ValidationError
from ..decorators import require_auth, bearer_token


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_payload(user, session, token, message: str) -> dict:
    return {
        "user": user.to_dict(),
        "role": user.role,
        "permissions": sorted(get_role_permissions(user.role)),
        "token": token,
        "session": session.to_dict(),
        "message": message,
    }


@auth_bp.post("/signup")
def signup_route():
    """
    Register an admin account.

    The first account ever registered becomes superadmin; later accounts are
    managers. Disabled when ALLOW_SELF_SIGNUP is false, except for the very
    first account.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")
        name = data.get("name")

        if not all([email, password, name]):
            return jsonify({"error": "email, password and name required"}), 400

        if not current_app.config.get("ALLOW_SELF_SIGNUP", True) and auth_service.has_admin_users():
            return jsonify({
                "error": "Self sign-up is disabled. Ask a superadmin to create your account."
            }), 403

        user, session, token = auth_service.sign_up(
            email,
            password,
            name,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        return jsonify(_session_payload(user, session, token, "Sign-up successful")), 201

    except (ValidationError, PasswordValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except RegistrationError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to sign up admin")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/signin")
def signin_route():
    """
    Authenticate an admin and create a 24-hour session.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        user, session, token = auth_service.sign_in(
            email,
            password,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        return jsonify(_session_payload(user, session, token, "Sign-in successful")), 200

    except AccountLockedError as e:
        return jsonify({
            "error": str(e),
            "locked": True,
            "retry_after_seconds": e.seconds_remaining,
            "retry_after_minutes": (e.seconds_remaining + 59) // 60,
        }), 429  # Too Many Requests
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except InvalidCredentialsError as e:
        return jsonify({"error": str(e)}), 401
    except Exception:
        current_app.logger.exception("Failed to sign in admin")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/lockout-status/<email>")
def lockout_status_route(email: str):
    """Lockout state for an account, so the sign-in page can show remaining lock time."""
    status = login_throttle_service.get_lockout_status(email)
    return jsonify(status)


@auth_bp.post("/logout")
def logout_route():
    """
    Delete the caller's session.

    Expects Authorization header: Bearer <token>
    """
    try:
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authorization header required"}), 401

        context = session_service.validate_session(token)
        deleted = session_service.delete_session(token)
        if not deleted:
            return jsonify({"error": "Invalid or expired session"}), 401

        permission_service.log_security_event(
            admin_user_id=context.admin_user_id if context else None,
            event_type="LOGOUT",
            success=True,
            action=context.access_code if context else None,
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/validate")
@require_auth
def validate_route():
    """
    Resolve the caller's session.

    Returns role, permissions, expiry and (for admin sessions) the user, so the
    terminal can restore its SessionContext on start-up.
    """
    return jsonify({**g.session_context.to_dict(), "message": "Session valid"}), 200
