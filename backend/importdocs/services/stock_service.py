# Overview: Service-layer operations for stock movements and balances; encapsulates business logic and database work.

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Document, Product, StockBalance, StockMovement, UserProfile, Warehouse
from ..models.inventory import MOVEMENT_ADJUST, MOVEMENT_IN, MOVEMENT_OUT, MOVEMENT_TYPES
from .. import authorization
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_non_negative_money,
    validate_payload,
)
from importdocs.time_utils import to_utc_z, utcnow
from .concurrency import commit_or_conflict, lock_for_update, run_with_retry
"""
Stock Ledger Invariants & Time Semantics (authoritative)

Ledger:
- StockMovement rows are immutable once written.
- quantity is signed: IN stores +q, OUT stores -q (q > 0 on input), ADJUST stores
  the signed non-zero value as given.

Balances:
- StockBalance.quantity_on_hand == SUM(StockMovement.quantity) per
  (product, warehouse), maintained in the SAME DB transaction as the insert.
- reconcile_balances() recomputes the sums and reports (optionally repairs)
  every pair that drifted, including pairs with movements but no balance row.
- OUT may drive on-hand negative unless ALLOW_NEGATIVE_STOCK is false.

Time:
- movement_date is business time (UTC-naive), defaulting to now; it may not be
  more than two minutes in the future.
"""


logger = logging.getLogger(__name__)

QUANTITY_STEP = Decimal("0.001")
FUTURE_TOLERANCE = timedelta(minutes=2)
DEFAULT_MOVEMENT_LIMIT = 50
MAX_MOVEMENT_LIMIT = 500

MOVEMENT_POLICY = ModelValidationPolicy(
    writable_fields={
        "product_id",
        "warehouse_id",
        "movement_type",
        "quantity",
        "unit_cost",
        "source_document_id",
        "reference_number",
        "remarks",
        "movement_date",
    },
    required_on_create={"product_id", "warehouse_id", "movement_type", "quantity"},
    choices={"movement_type": set(MOVEMENT_TYPES)},
)


def _quantize(value) -> Decimal:
    return Decimal(str(value if value is not None else 0)).quantize(QUANTITY_STEP)


def signed_quantity(movement_type: str, quantity: Decimal) -> Decimal:
    """Convert an input quantity to the signed ledger value for its type."""
    if movement_type in (MOVEMENT_IN, MOVEMENT_OUT):
        if quantity <= 0:
            raise ValidationError(f"quantity must be > 0 for {movement_type}")
        return quantity if movement_type == MOVEMENT_IN else -quantity
    if movement_type == MOVEMENT_ADJUST:
        if quantity == 0:
            raise ValidationError("quantity must be non-zero for ADJUST")
        return quantity
    raise ValidationError(f"movement_type must be one of: {', '.join(MOVEMENT_TYPES)}")


def _require_active_product(product_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id).first()
    if not product:
        raise NotFoundError(f"Product {product_id} not found")
    if not product.is_active:
        raise ConflictError(f"Product {product.sku} is inactive")
    return product


def _require_active_warehouse(warehouse_id: int) -> Warehouse:
    warehouse = db.session.query(Warehouse).filter_by(id=warehouse_id).first()
    if not warehouse:
        raise NotFoundError(f"Warehouse {warehouse_id} not found")
    if not warehouse.is_active:
        raise ConflictError(f"Warehouse {warehouse.code} is inactive")
    return warehouse


def _get_balance(product_id: int, warehouse_id: int, *, lock: bool = False) -> StockBalance | None:
    query = db.session.query(StockBalance).filter_by(
        product_id=product_id, warehouse_id=warehouse_id
    )
    if lock:
        query = lock_for_update(query)
    return query.first()


def _apply_to_balance(
    *,
    product_id: int,
    warehouse_id: int,
    delta: Decimal,
    movement_date: datetime,
) -> StockBalance:
    """Upsert the (product, warehouse) balance by delta. Caller commits."""
    balance = _get_balance(product_id, warehouse_id, lock=True)
    if balance is None:
        balance = StockBalance(
            product_id=product_id,
            warehouse_id=warehouse_id,
            quantity_on_hand=Decimal("0"),
            reserved_quantity=Decimal("0"),
        )
        db.session.add(balance)

    new_on_hand = _quantize(balance.quantity_on_hand) + delta
    if new_on_hand < 0 and not current_app.config.get("ALLOW_NEGATIVE_STOCK", True):
        raise ConflictError("Movement would make on-hand quantity negative")

    balance.quantity_on_hand = new_on_hand
    if balance.last_movement_at is None or movement_date >= balance.last_movement_at:
        balance.last_movement_at = movement_date
    return balance


def record_movement(actor: UserProfile, payload: dict) -> StockMovement:
    """
    Append one ledger row and update its balance in the same transaction.

    performed_by is always the actor.
    """
    authorization.require(
        authorization.can_record_movement(actor),
        "Only Admin, Finance or Approver can record stock movements",
    )
    patch = validate_payload(
        model=StockMovement, payload=payload, policy=MOVEMENT_POLICY, partial=False
    )
    enforce_non_negative_money(patch, "unit_cost")
    delta = signed_quantity(patch["movement_type"], patch["quantity"])

    movement_date = patch.get("movement_date") or utcnow()
    if movement_date > utcnow() + FUTURE_TOLERANCE:
        raise ValidationError("movement_date cannot be in the future")

    def _op():
        _require_active_product(patch["product_id"])
        _require_active_warehouse(patch["warehouse_id"])
        if patch.get("source_document_id") is not None:
            if not db.session.query(Document.id).filter_by(id=patch["source_document_id"]).first():
                raise NotFoundError(f"Document {patch['source_document_id']} not found")

        movement = StockMovement(
            product_id=patch["product_id"],
            warehouse_id=patch["warehouse_id"],
            movement_type=patch["movement_type"],
            quantity=delta,
            unit_cost=patch.get("unit_cost"),
            source_document_id=patch.get("source_document_id"),
            reference_number=patch.get("reference_number"),
            remarks=patch.get("remarks"),
            performed_by=actor.id,
            movement_date=movement_date,
        )
        db.session.add(movement)

        try:
            _apply_to_balance(
                product_id=movement.product_id,
                warehouse_id=movement.warehouse_id,
                delta=delta,
                movement_date=movement_date,
            )
        except ConflictError:
            db.session.rollback()
            raise

        commit_or_conflict("Stock balance changed concurrently; retry the movement")
        return movement

    movement = run_with_retry(_op)
    logger.info(
        "Stock movement %s: %s %s of product %s at warehouse %s by user %s",
        movement.id, movement.movement_type, movement.quantity,
        movement.product_id, movement.warehouse_id, actor.id,
    )
    return movement


def list_movements(
    *,
    product_id: int | None = None,
    warehouse_id: int | None = None,
    source_document_id: int | None = None,
    movement_type: str | None = None,
    limit: int = DEFAULT_MOVEMENT_LIMIT,
) -> list[StockMovement]:
    """Newest first by movement_date; joined rows render product/warehouse/document names."""
    limit = max(1, min(int(limit), MAX_MOVEMENT_LIMIT))
    query = db.session.query(StockMovement)
    if product_id is not None:
        query = query.filter(StockMovement.product_id == product_id)
    if warehouse_id is not None:
        query = query.filter(StockMovement.warehouse_id == warehouse_id)
    if source_document_id is not None:
        query = query.filter(StockMovement.source_document_id == source_document_id)
    if movement_type:
        if movement_type not in MOVEMENT_TYPES:
            raise ValidationError(f"movement_type must be one of: {', '.join(MOVEMENT_TYPES)}")
        query = query.filter(StockMovement.movement_type == movement_type)
    return (
        query.order_by(StockMovement.movement_date.desc(), StockMovement.id.desc())
        .limit(limit)
        .all()
    )


def list_balances(
    *,
    product_id: int | None = None,
    warehouse_id: int | None = None,
) -> list[StockBalance]:
    query = db.session.query(StockBalance)
    if product_id is not None:
        query = query.filter(StockBalance.product_id == product_id)
    if warehouse_id is not None:
        query = query.filter(StockBalance.warehouse_id == warehouse_id)
    return query.order_by(StockBalance.product_id.asc(), StockBalance.warehouse_id.asc()).all()


def get_quantity_on_hand(product_id: int, warehouse_id: int | None = None) -> Decimal:
    """Ledger-derived on-hand (SUM of movements), independent of the balance table."""
    query = db.session.query(func.coalesce(func.sum(StockMovement.quantity), 0)).filter(
        StockMovement.product_id == product_id
    )
    if warehouse_id is not None:
        query = query.filter(StockMovement.warehouse_id == warehouse_id)
    return _quantize(query.scalar())


def set_reserved_quantity(
    actor: UserProfile,
    *,
    product_id: int,
    warehouse_id: int,
    reserved_quantity,
) -> StockBalance:
    authorization.require(
        authorization.can_manage_balances(actor), "Only Admin or Finance can manage stock balances"
    )
    patch = validate_payload(
        model=StockBalance,
        payload={"reserved_quantity": reserved_quantity},
        policy=ModelValidationPolicy(
            writable_fields={"reserved_quantity"}, required_on_create={"reserved_quantity"}
        ),
        partial=False,
    )
    reserved = _quantize(patch["reserved_quantity"])

    balance = _get_balance(product_id, warehouse_id, lock=True)
    if balance is None:
        raise NotFoundError("No stock balance for this product and warehouse")
    if reserved < 0:
        raise ValidationError("reserved_quantity must be >= 0")
    if reserved > _quantize(balance.quantity_on_hand):
        raise ConflictError("reserved_quantity cannot exceed quantity on hand")

    balance.reserved_quantity = reserved
    commit_or_conflict("Stock balance changed concurrently; retry")
    return balance


@dataclass
class BalanceDrift:
    product_id: int
    warehouse_id: int
    recorded: Decimal | None
    expected: Decimal

    @property
    def difference(self) -> Decimal:
        return self.expected - (self.recorded or Decimal("0"))

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "warehouse_id": self.warehouse_id,
            "recorded": str(self.recorded) if self.recorded is not None else None,
            "expected": str(self.expected),
            "difference": str(self.difference),
        }


def find_balance_drift() -> list[BalanceDrift]:
    """Compare every balance row against SUM(movements) for its pair."""
    sums = {
        (product_id, warehouse_id): _quantize(total)
        for product_id, warehouse_id, total in (
            db.session.query(
                StockMovement.product_id,
                StockMovement.warehouse_id,
                func.coalesce(func.sum(StockMovement.quantity), 0),
            )
            .group_by(StockMovement.product_id, StockMovement.warehouse_id)
            .all()
        )
    }
    balances = {
        (b.product_id, b.warehouse_id): b for b in db.session.query(StockBalance).all()
    }

    drift = []
    for key in sorted(set(sums) | set(balances)):
        expected = sums.get(key, Decimal("0.000"))
        balance = balances.get(key)
        recorded = _quantize(balance.quantity_on_hand) if balance is not None else None
        if recorded is None or recorded != expected:
            if recorded is None and expected == 0:
                continue
            drift.append(BalanceDrift(key[0], key[1], recorded, expected))
    return drift


def reconcile_balances(*, fix: bool = False, actor: UserProfile | None = None) -> dict:
    """
    Detect (and with fix=True, repair) balances that disagree with the ledger.

    actor is None only for the CLI, which runs with operator rights.
    """
    if fix and actor is not None:
        authorization.require(
            authorization.can_repair_balances(actor), "Only Admin can repair stock balances"
        )

    drift = find_balance_drift()
    for item in drift:
        logger.warning(
            "Stock balance drift for product %s at warehouse %s: recorded=%s expected=%s",
            item.product_id, item.warehouse_id, item.recorded, item.expected,
        )

    if fix and drift:
        for item in drift:
            balance = _get_balance(item.product_id, item.warehouse_id, lock=True)
            if balance is None:
                balance = StockBalance(
                    product_id=item.product_id,
                    warehouse_id=item.warehouse_id,
                    reserved_quantity=Decimal("0"),
                )
                db.session.add(balance)
            balance.quantity_on_hand = item.expected
            last_at = (
                db.session.query(func.max(StockMovement.movement_date))
                .filter(
                    StockMovement.product_id == item.product_id,
                    StockMovement.warehouse_id == item.warehouse_id,
                )
                .scalar()
            )
            balance.last_movement_at = last_at
        commit_or_conflict("Stock changed during reconciliation; run it again")

    return {
        "checked_at": to_utc_z(utcnow()),
        "drift_count": len(drift),
        "fixed": bool(fix and drift),
        "drift": [item.to_dict() for item in drift],
    }
