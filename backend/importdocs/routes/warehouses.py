# Overview: Flask API routes for warehouses; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import catalog_service
from ..decorators import SERVICE_ERRORS, error_response, require_auth


warehouses_bp = Blueprint("warehouses", __name__, url_prefix="/api/warehouses")


@warehouses_bp.get("")
@require_auth
def list_warehouses_route():
    active_only = (request.args.get("active_only") or "").strip().lower() in {"1", "true", "yes"}
    warehouses = catalog_service.list_warehouses(active_only=active_only)
    return jsonify({"items": [w.to_dict() for w in warehouses], "count": len(warehouses)}), 200


@warehouses_bp.post("")
@require_auth
def create_warehouse_route():
    """Admin only. Body: code, name, location?, is_active?"""
    payload = request.get_json(silent=True) or {}
    try:
        warehouse = catalog_service.create_warehouse(g.current_user, payload)
        return jsonify({"warehouse": warehouse.to_dict()}), 201

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create warehouse")
        return jsonify({"error": "Internal server error"}), 500


@warehouses_bp.patch("/<int:warehouse_id>")
@require_auth
def update_warehouse_route(warehouse_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        warehouse = catalog_service.update_warehouse(g.current_user, warehouse_id, payload)
        return jsonify({"warehouse": warehouse.to_dict()}), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update warehouse")
        return jsonify({"error": "Internal server error"}), 500
