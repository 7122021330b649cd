# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/importdocs/routes/auth.py
"""
Authentication API routes

- Sign-up creates the identity and its profile in one transaction
- Sign-in returns an opaque bearer token (24h absolute, 2h idle)
- Sign-out revokes the presented token
- The acting identity is always the session's profile, never a body field
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import profile_service
from ..services import session_service
from .. import authorization
from ..decorators import SERVICE_ERRORS, bearer_token, error_response, require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/signup")
def signup_route():
    """
    Register a new user.

    Body:
        email, password, confirm_password, full_name, department?, role?

    Returns 201 with the created profile.
    """
    try:
        data = request.get_json(silent=True) or {}
        profile = auth_service.sign_up(
            email=data.get("email"),
            password=data.get("password"),
            full_name=data.get("full_name"),
            department=data.get("department"),
            role=data.get("role"),
            confirm_password=data.get("confirm_password"),
        )
        return jsonify({"profile": profile.to_dict(), "message": "Account created"}), 201

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to sign up user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in the Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        user = auth_service.authenticate(email, password)
        if not user or user.profile is None:
            current_app.logger.info("Failed sign-in for %s", auth_service.normalize_email(email))
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "user": user.to_dict(),
            "profile": user.profile.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful"
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        session_service.revoke_session(bearer_token(), reason="User logout")
        return jsonify({"message": "Logged out"}), 200
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    context = g.session_context
    return jsonify({
        "user": context.user.to_dict(),
        "profile": context.profile.to_dict(),
        "capabilities": authorization.capabilities(context.profile),
    }), 200


@auth_bp.patch("/profile")
@require_auth
def update_profile_route():
    """Self-service update of full_name, department and avatar_url."""
    try:
        data = request.get_json(silent=True) or {}
        profile = profile_service.update_profile(g.current_user, g.current_user.id, data)
        return jsonify({"profile": profile.to_dict()}), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update profile")
        return jsonify({"error": "Internal server error"}), 500
