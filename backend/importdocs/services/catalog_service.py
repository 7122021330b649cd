# Overview: Service-layer operations for products, categories and warehouses; encapsulates business logic and database work.

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import Product, ProductCategory, StockBalance, UserProfile, Warehouse
from .. import authorization
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_non_negative_int,
    enforce_non_negative_money,
    validate_payload,
)
from . import filtering
from .concurrency import commit_or_conflict


logger = logging.getLogger(__name__)

QUANTITY_STEP = Decimal("0.001")


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku",
        "name",
        "description",
        "category_id",
        "unit_of_measure",
        "cost_price",
        "reorder_point",
        "is_active",
    },
    required_on_create={"sku", "name"},
)

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"code", "name", "description"},
    required_on_create={"code", "name"},
)

WAREHOUSE_POLICY = ModelValidationPolicy(
    writable_fields={"code", "name", "location", "is_active"},
    required_on_create={"code", "name"},
)


def _require_category(category_id: int | None) -> None:
    if category_id is None:
        return
    if not db.session.query(ProductCategory.id).filter_by(id=category_id).first():
        raise ValidationError(f"category_id {category_id} does not exist")


def _validate_product(payload: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=partial)
    enforce_non_negative_money(patch, "cost_price")
    enforce_non_negative_int(patch, "reorder_point")
    if "category_id" in patch:
        _require_category(patch["category_id"])
    return patch


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

def product_stock_totals() -> dict[int, Decimal]:
    """product_id -> SUM(quantity_on_hand) across warehouses."""
    rows = (
        db.session.query(
            StockBalance.product_id,
            func.coalesce(func.sum(StockBalance.quantity_on_hand), 0),
        )
        .group_by(StockBalance.product_id)
        .all()
    )
    return {
        product_id: Decimal(str(total)).quantize(QUANTITY_STEP)
        for product_id, total in rows
    }


def product_rows(*, active_only: bool = False) -> list[dict]:
    """Catalog rows: product fields + category_name + total_stock, ordered by name."""
    query = db.session.query(Product)
    if active_only:
        query = query.filter(Product.is_active.is_(True))
    products = query.order_by(Product.name.asc(), Product.id.asc()).all()

    totals = product_stock_totals()
    rows = []
    for product in products:
        row = product.to_dict()
        row["total_stock"] = str(totals.get(product.id, Decimal("0")))
        rows.append(row)
    return rows


def list_products(
    *,
    search: str | None = None,
    category_id: int | str | None = None,
    active_only: bool = False,
) -> tuple[list[dict], int]:
    """Returns (filtered rows, total rows)."""
    rows = product_rows(active_only=active_only)
    filtered = filtering.filter_products(rows, search=search, category_id=category_id)
    return filtered, len(rows)


def get_product(product_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id).first()
    if not product:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def create_product(actor: UserProfile, payload: dict) -> Product:
    authorization.require(
        authorization.can_manage_products(actor), "Only Admin or Finance can manage products"
    )
    patch = _validate_product(payload, partial=False)

    if db.session.query(Product.id).filter_by(sku=patch["sku"]).first():
        raise ConflictError(f"SKU {patch['sku']} already exists")

    product = Product(**patch)
    db.session.add(product)
    commit_or_conflict(f"SKU {patch['sku']} already exists")
    logger.info("Product %s (%s) created by user %s", product.id, product.sku, actor.id)
    return product


def update_product(actor: UserProfile, product_id: int, payload: dict) -> Product:
    """Patch a product. Deactivation is is_active=false; products are never deleted."""
    authorization.require(
        authorization.can_manage_products(actor), "Only Admin or Finance can manage products"
    )
    product = get_product(product_id)
    patch = _validate_product(payload, partial=True)

    new_sku = patch.get("sku")
    if new_sku and new_sku != product.sku:
        if db.session.query(Product.id).filter_by(sku=new_sku).first():
            raise ConflictError(f"SKU {new_sku} already exists")

    for key, value in patch.items():
        setattr(product, key, value)
    commit_or_conflict(f"SKU {new_sku or product.sku} already exists")
    return product


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

def list_categories() -> list[ProductCategory]:
    return db.session.query(ProductCategory).order_by(ProductCategory.name.asc()).all()


def create_category(actor: UserProfile, payload: dict) -> ProductCategory:
    authorization.require(
        authorization.can_manage_categories(actor), "Only Admin can manage categories"
    )
    patch = validate_payload(
        model=ProductCategory, payload=payload, policy=CATEGORY_POLICY, partial=False
    )
    if db.session.query(ProductCategory.id).filter_by(code=patch["code"]).first():
        raise ConflictError(f"Category code {patch['code']} already exists")

    category = ProductCategory(**patch)
    db.session.add(category)
    commit_or_conflict(f"Category code {patch['code']} already exists")
    return category


# ---------------------------------------------------------------------------
# Warehouses
# ---------------------------------------------------------------------------

def list_warehouses(*, active_only: bool = False) -> list[Warehouse]:
    query = db.session.query(Warehouse)
    if active_only:
        query = query.filter(Warehouse.is_active.is_(True))
    return query.order_by(Warehouse.code.asc()).all()


def get_warehouse(warehouse_id: int) -> Warehouse:
    warehouse = db.session.query(Warehouse).filter_by(id=warehouse_id).first()
    if not warehouse:
        raise NotFoundError(f"Warehouse {warehouse_id} not found")
    return warehouse


def create_warehouse(actor: UserProfile, payload: dict) -> Warehouse:
    authorization.require(
        authorization.can_manage_warehouses(actor), "Only Admin can manage warehouses"
    )
    patch = validate_payload(model=Warehouse, payload=payload, policy=WAREHOUSE_POLICY, partial=False)
    if db.session.query(Warehouse.id).filter_by(code=patch["code"]).first():
        raise ConflictError(f"Warehouse code {patch['code']} already exists")

    warehouse = Warehouse(**patch)
    db.session.add(warehouse)
    commit_or_conflict(f"Warehouse code {patch['code']} already exists")
    return warehouse


def update_warehouse(actor: UserProfile, warehouse_id: int, payload: dict) -> Warehouse:
    authorization.require(
        authorization.can_manage_warehouses(actor), "Only Admin can manage warehouses"
    )
    warehouse = get_warehouse(warehouse_id)
    patch = validate_payload(model=Warehouse, payload=payload, policy=WAREHOUSE_POLICY, partial=True)
    if "code" in patch:
        clash = db.session.query(Warehouse.id).filter(
            Warehouse.code == patch["code"], Warehouse.id != warehouse.id
        ).first()
        if clash:
            raise ConflictError(f"Warehouse code {patch['code']} already exists")

    for key, value in patch.items():
        setattr(warehouse, key, value)
    commit_or_conflict("Warehouse code already exists")
    return warehouse
