# Overview: Flask API routes for dashboards; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import dashboard_service
from ..decorators import require_auth


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/documents")
@require_auth
def document_dashboard_route():
    """Status counts, recent documents and average approval time over what the caller can see."""
    try:
        recent_limit = request.args.get("recent", dashboard_service.DEFAULT_RECENT_LIMIT, type=int)
        return jsonify(dashboard_service.document_dashboard(g.current_user, recent_limit=recent_limit)), 200
    except Exception:
        current_app.logger.exception("Failed to build document dashboard")
        return jsonify({"error": "Internal server error"}), 500


@dashboard_bp.get("/inventory")
@require_auth
def inventory_dashboard_route():
    try:
        alert_limit = request.args.get("alerts", dashboard_service.DEFAULT_ALERT_LIMIT, type=int)
        return jsonify(dashboard_service.inventory_dashboard(alert_limit=alert_limit)), 200
    except Exception:
        current_app.logger.exception("Failed to build inventory dashboard")
        return jsonify({"error": "Internal server error"}), 500
