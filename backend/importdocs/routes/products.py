# Overview: Flask API routes for products and categories; parses input and returns JSON responses.

# backend/importdocs/routes/products.py
"""
Product catalog routes.

Reads are open to every signed-in user. Writes are checked by the catalog
service: Admin/Finance manage products, Admin manages categories.
Products are deactivated with is_active=false, never deleted.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..services import catalog_service
from ..decorators import SERVICE_ERRORS, error_response, require_auth

products_bp = Blueprint("products", __name__, url_prefix="/api")


def _flag(name: str) -> bool:
    return (request.args.get(name) or "").strip().lower() in {"1", "true", "yes"}


@products_bp.get("/products")
@require_auth
def list_products_route():
    """
    List catalog rows with category_name and total_stock.

    Query params:
    - search: matches name or SKU (case-insensitive)
    - category_id: exact category ("all" disables)
    - active_only: true to hide deactivated products
    """
    try:
        rows, total = catalog_service.list_products(
            search=request.args.get("search"),
            category_id=request.args.get("category_id"),
            active_only=_flag("active_only"),
        )
        return jsonify({"items": rows, "count": len(rows), "total": total}), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/products/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        return jsonify({"product": catalog_service.get_product(product_id).to_dict()}), 200
    except SERVICE_ERRORS as e:
        return error_response(e)


@products_bp.post("/products")
@require_auth
def create_product_route():
    payload = request.get_json(silent=True) or {}
    try:
        product = catalog_service.create_product(g.current_user, payload)
        return jsonify({"product": product.to_dict()}), 201

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.patch("/products/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        product = catalog_service.update_product(g.current_user, product_id, payload)
        return jsonify({"product": product.to_dict()}), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/categories")
@require_auth
def list_categories_route():
    categories = catalog_service.list_categories()
    return jsonify({"items": [c.to_dict() for c in categories], "count": len(categories)}), 200


@products_bp.post("/categories")
@require_auth
def create_category_route():
    payload = request.get_json(silent=True) or {}
    try:
        category = catalog_service.create_category(g.current_user, payload)
        return jsonify({"category": category.to_dict()}), 201

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create category")
        return jsonify({"error": "Internal server error"}), 500
