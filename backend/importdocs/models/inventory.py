from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from importdocs.time_utils import to_utc_z, utcnow


MOVEMENT_IN = "IN"
MOVEMENT_OUT = "OUT"
MOVEMENT_ADJUST = "ADJUST"
MOVEMENT_TYPES = (MOVEMENT_IN, MOVEMENT_OUT, MOVEMENT_ADJUST)

DEFAULT_UNIT_OF_MEASURE = "PCS"


def _decimal_str(value) -> str | None:
    return str(value) if value is not None else None


class Warehouse(db.Model):
    __tablename__ = "warehouses"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    location = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "location": self.location,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class ProductCategory(db.Model):
    __tablename__ = "product_categories"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Product master data.

    SKU is globally unique. Products are never deleted; is_active=False hides
    them from the catalog and from new stock movements while keeping the
    ledger history that references them.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_category_active", "category_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    category_id = db.Column(
        db.Integer, db.ForeignKey("product_categories.id", ondelete="SET NULL"), nullable=True
    )
    unit_of_measure = db.Column(db.String(16), nullable=False, default=DEFAULT_UNIT_OF_MEASURE)
    cost_price = db.Column(db.Numeric(15, 2), nullable=False, default=Decimal("0"))
    reorder_point = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    category = db.relationship("ProductCategory", backref=db.backref("products", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "category_id": self.category_id,
            "category_name": self.category.name if self.category else None,
            "unit_of_measure": self.unit_of_measure,
            "cost_price": _decimal_str(self.cost_price),
            "reorder_point": self.reorder_point,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockBalance(db.Model):
    """
    Materialized on-hand quantity per (product, warehouse).

    INVARIANT: quantity_on_hand == SUM(StockMovement.quantity) for the pair.
    Maintained by services.stock_service inside the movement transaction;
    stock_service.reconcile_balances detects and repairs drift.
    """
    __tablename__ = "stock_balances"
    __table_args__ = (
        db.UniqueConstraint("product_id", "warehouse_id", name="uq_stock_balances_product_warehouse"),
        db.Index("ix_stock_balances_warehouse", "warehouse_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    warehouse_id = db.Column(
        db.Integer, db.ForeignKey("warehouses.id", ondelete="CASCADE"), nullable=False
    )
    quantity_on_hand = db.Column(db.Numeric(15, 3), nullable=False, default=Decimal("0"))
    reserved_quantity = db.Column(db.Numeric(15, 3), nullable=False, default=Decimal("0"))
    last_movement_at = db.Column(db.DateTime(timezone=True), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    product = db.relationship("Product", backref=db.backref("balances", lazy=True))
    warehouse = db.relationship("Warehouse", backref=db.backref("balances", lazy=True))

    @property
    def available_quantity(self) -> Decimal:
        return Decimal(self.quantity_on_hand or 0) - Decimal(self.reserved_quantity or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_sku": self.product.sku if self.product else None,
            "product_name": self.product.name if self.product else None,
            "warehouse_id": self.warehouse_id,
            "warehouse_code": self.warehouse.code if self.warehouse else None,
            "warehouse_name": self.warehouse.name if self.warehouse else None,
            "quantity_on_hand": _decimal_str(self.quantity_on_hand),
            "reserved_quantity": _decimal_str(self.reserved_quantity),
            "available_quantity": _decimal_str(self.available_quantity),
            "last_movement_at": to_utc_z(self.last_movement_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Immutable inventory ledger row.

    quantity is signed: IN > 0, OUT < 0, ADJUST either sign (never zero).
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product", "product_id"),
        db.Index("ix_stock_movements_warehouse", "warehouse_id"),
        db.Index("ix_stock_movements_document", "source_document_id"),
        db.Index("ix_stock_movements_date", "movement_date"),
        db.CheckConstraint("movement_type IN ('IN', 'OUT', 'ADJUST')", name="ck_stock_movements_movement_type"),
        db.CheckConstraint("quantity <> 0", name="ck_stock_movements_quantity_non_zero"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    warehouse_id = db.Column(
        db.Integer, db.ForeignKey("warehouses.id", ondelete="CASCADE"), nullable=False
    )
    movement_type = db.Column(db.String(16), nullable=False)
    quantity = db.Column(db.Numeric(15, 3), nullable=False)
    unit_cost = db.Column(db.Numeric(15, 2), nullable=True)
    source_document_id = db.Column(
        db.Integer, db.ForeignKey("documents.id", ondelete="SET NULL"), nullable=True
    )
    reference_number = db.Column(db.String(64), nullable=True)
    remarks = db.Column(db.Text, nullable=True)
    performed_by = db.Column(
        db.Integer, db.ForeignKey("users_profile.id", ondelete="SET NULL"), nullable=True
    )
    movement_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    product = db.relationship("Product")
    warehouse = db.relationship("Warehouse")
    source_document = db.relationship("Document")
    performer = db.relationship("UserProfile")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_sku": self.product.sku if self.product else None,
            "product_name": self.product.name if self.product else None,
            "warehouse_id": self.warehouse_id,
            "warehouse_name": self.warehouse.name if self.warehouse else None,
            "movement_type": self.movement_type,
            "quantity": _decimal_str(self.quantity),
            "unit_cost": _decimal_str(self.unit_cost),
            "source_document_id": self.source_document_id,
            "document_number": (
                self.source_document.document_number if self.source_document else None
            ),
            "reference_number": self.reference_number,
            "remarks": self.remarks,
            "performed_by": self.performed_by,
            "performed_by_name": self.performer.full_name if self.performer else None,
            "movement_date": to_utc_z(self.movement_date),
            "created_at": to_utc_z(self.created_at),
        }
