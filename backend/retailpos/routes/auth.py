# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

SECURITY FEATURES:
- bcrypt password verification
- Opaque session tokens (hashed at rest) with absolute and idle expiry
- Password change revokes every other session of the user
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..services import auth_service, session_service, store_access_service
from ..services.auth_service import PasswordValidationError
from ..validation import ValidationError
from .common import json_body

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _stores_for(user) -> list[dict]:
    from ..services import store_service
    return [s.to_dict() for s in store_service.list_stores(store_access_service.accessible_store_ids(user))]


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Request body: {"username": "...", "password": "..."} (username may be an email)

    Returns user info, the stores the user may select, and the session
    token. Token must be sent as "Authorization: Bearer <token>".
    """
    try:
        data = json_body()
        username = data.get("username") or data.get("email")
        password = data.get("password")

        if not username or not password:
            return jsonify({"error": "username/email and password required"}), 400

        user = auth_service.authenticate(username, password)
        if not user:
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "user": user.to_dict(),
            "stores": _stores_for(user),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful",
        }), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        session_service.revoke_session(g.session_token, reason="User logout")
        return jsonify({"message": "Logout successful"}), 200
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current user, accessible stores, and session expiry."""
    return jsonify({
        "user": g.current_user.to_dict(),
        "stores": _stores_for(g.current_user),
        "session": g.session_context.session.to_dict(),
    })


@auth_bp.post("/verify-password")
@require_auth
def verify_password_route():
    """
    Re-confirm the current user's password before a sensitive action.

    Request body: {"password": "..."}
    """
    data = json_body()
    password = data.get("password")
    if not password:
        return jsonify({"error": "password required"}), 400

    valid = auth_service.verify_password(password, g.current_user.password_hash)
    if not valid:
        return jsonify({"valid": False, "error": "Incorrect password"}), 401
    return jsonify({"valid": True})


@auth_bp.post("/change-password")
@require_auth
def change_password_route():
    """
    Request body: {"current_password": "...", "new_password": "..."}

    Other sessions of the user are revoked; this one stays valid.
    """
    try:
        data = json_body()
        current_password = data.get("current_password")
        new_password = data.get("new_password")
        if not current_password or not new_password:
            return jsonify({"error": "current_password and new_password required"}), 400

        auth_service.change_password(
            g.current_user, current_password, new_password, keep_token=g.session_token
        )
        return jsonify({"message": "Password changed"}), 200

    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to change password")
        return jsonify({"error": "Internal server error"}), 500
