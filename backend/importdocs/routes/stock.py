# Overview: Flask API routes for stock movements and balances; parses input and returns JSON responses.

"""
Stock ledger routes

- POST /api/stock/movements appends one movement and updates its balance
- GET  /api/stock/movements lists the ledger, newest first (limit 50 by default)
- GET  /api/stock/balances lists per-warehouse balances
- PATCH /api/stock/balances/reserve sets reserved_quantity on one balance
- GET  /api/stock/reconcile reports balances that drifted from the ledger
- POST /api/stock/reconcile repairs them (Admin)

performed_by is always g.current_user.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import stock_service
from .. import authorization
from ..decorators import SERVICE_ERRORS, error_response, require_auth


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.get("/movements")
@require_auth
def list_movements_route():
    try:
        movements = stock_service.list_movements(
            product_id=request.args.get("product_id", type=int),
            warehouse_id=request.args.get("warehouse_id", type=int),
            source_document_id=request.args.get("document_id", type=int),
            movement_type=request.args.get("movement_type") or None,
            limit=request.args.get("limit", stock_service.DEFAULT_MOVEMENT_LIMIT, type=int),
        )
        return jsonify({"items": [m.to_dict() for m in movements], "count": len(movements)}), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list stock movements")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.post("/movements")
@require_auth
def record_movement_route():
    """
    Body:
        product_id, warehouse_id, movement_type (IN/OUT/ADJUST), quantity,
        unit_cost?, source_document_id?, reference_number?, remarks?, movement_date?

    IN/OUT take a positive quantity; ADJUST takes a signed non-zero one.
    """
    try:
        data = request.get_json(silent=True) or {}
        movement = stock_service.record_movement(g.current_user, data)
        return jsonify({"movement": movement.to_dict()}), 201

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record stock movement")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/balances")
@require_auth
def list_balances_route():
    try:
        balances = stock_service.list_balances(
            product_id=request.args.get("product_id", type=int),
            warehouse_id=request.args.get("warehouse_id", type=int),
        )
        return jsonify({"items": [b.to_dict() for b in balances], "count": len(balances)}), 200

    except Exception:
        current_app.logger.exception("Failed to list stock balances")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.patch("/balances/reserve")
@require_auth
def reserve_route():
    """Body: product_id, warehouse_id, reserved_quantity (0 <= reserved <= on hand)."""
    try:
        data = request.get_json(silent=True) or {}
        product_id = data.get("product_id")
        warehouse_id = data.get("warehouse_id")
        if not isinstance(product_id, int) or not isinstance(warehouse_id, int):
            return jsonify({"error": "product_id and warehouse_id must be integers"}), 400

        balance = stock_service.set_reserved_quantity(
            g.current_user,
            product_id=product_id,
            warehouse_id=warehouse_id,
            reserved_quantity=data.get("reserved_quantity"),
        )
        return jsonify({"balance": balance.to_dict()}), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update reserved quantity")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/reconcile")
@require_auth
def reconcile_report_route():
    try:
        authorization.require(
            authorization.can_manage_balances(g.current_user),
            "Only Admin or Finance can review stock reconciliation",
        )
        return jsonify(stock_service.reconcile_balances(fix=False)), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to reconcile stock balances")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.post("/reconcile")
@require_auth
def reconcile_fix_route():
    try:
        result = stock_service.reconcile_balances(fix=True, actor=g.current_user)
        return jsonify(result), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to repair stock balances")
        return jsonify({"error": "Internal server error"}), 500
