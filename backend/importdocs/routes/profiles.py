# Overview: Flask API routes for user profiles; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..services import profile_service
from ..decorators import SERVICE_ERRORS, error_response, require_auth


profiles_bp = Blueprint("profiles", __name__, url_prefix="/api/profiles")


@profiles_bp.get("")
@require_auth
def list_profiles_route():
    """
    List profiles, optionally narrowed by ?role=Approver.

    Used by the document form to populate the approver picker.
    """
    try:
        profiles = profile_service.list_profiles(role=request.args.get("role") or None)
        return jsonify({"items": [p.to_dict() for p in profiles], "count": len(profiles)}), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list profiles")
        return jsonify({"error": "Internal server error"}), 500


@profiles_bp.get("/<int:profile_id>")
@require_auth
def get_profile_route(profile_id: int):
    try:
        return jsonify({"profile": profile_service.get_profile(profile_id).to_dict()}), 200
    except SERVICE_ERRORS as e:
        return error_response(e)
