# Overview: Read-only dashboard aggregations over documents and inventory.

"""
Dashboard reductions.

The summarize_* and average_approval_days functions are pure: they take rows
that were already fetched and return counters. document_dashboard() and
inventory_dashboard() do the fetching and are what the routes call.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable

from ..extensions import db
from ..models import DocumentHistory, UserProfile
from ..models.documents import (
    ACTION_APPROVED,
    ACTION_REJECTED,
    ACTION_SUBMITTED,
    STATUS_APPROVED,
    STATUS_CLOSED,
    STATUS_DRAFT,
    STATUS_PENDING,
    STATUS_REJECTED,
)
from . import catalog_service, document_service


DEFAULT_RECENT_LIMIT = 5
DEFAULT_ALERT_LIMIT = 5
UNCATEGORIZED = "Uncategorized"

MONEY_STEP = Decimal("0.01")
QUANTITY_STEP = Decimal("0.001")


def _dec(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    return Decimal(str(value))


def summarize_documents(rows: list[dict], recent_limit: int = DEFAULT_RECENT_LIMIT) -> dict:
    """
    Counts by status plus the first recent_limit rows.

    rows are expected newest first; "recent" keeps that order.
    """
    counts = {
        STATUS_DRAFT: 0,
        STATUS_PENDING: 0,
        STATUS_APPROVED: 0,
        STATUS_REJECTED: 0,
        STATUS_CLOSED: 0,
    }
    for row in rows:
        status = row.get("status")
        if status in counts:
            counts[status] += 1

    return {
        "total": len(rows),
        "draft": counts[STATUS_DRAFT],
        "pending": counts[STATUS_PENDING],
        "approved": counts[STATUS_APPROVED],
        "rejected": counts[STATUS_REJECTED],
        "closed": counts[STATUS_CLOSED],
        "recent": list(rows[: max(recent_limit, 0)]),
    }


def average_approval_days(history: Iterable[dict]) -> float | None:
    """
    Mean days from a document's latest Submitted entry to its decision
    (Approved or Rejected). Documents without both are skipped.

    history rows need document_id, action_type and created_at (datetime).
    """
    submitted: dict[int, datetime] = {}
    decided: dict[int, datetime] = {}
    for row in history:
        doc_id = row["document_id"]
        at = row["created_at"]
        if row["action_type"] == ACTION_SUBMITTED:
            if doc_id not in submitted or at > submitted[doc_id]:
                submitted[doc_id] = at
        elif row["action_type"] in (ACTION_APPROVED, ACTION_REJECTED):
            if doc_id not in decided or at > decided[doc_id]:
                decided[doc_id] = at

    durations = [
        (decided[doc_id] - submitted[doc_id]).total_seconds()
        for doc_id in decided
        if doc_id in submitted and decided[doc_id] >= submitted[doc_id]
    ]
    if not durations:
        return None
    return round(sum(durations) / len(durations) / 86400, 1)


def summarize_inventory(products: list[dict], alert_limit: int = DEFAULT_ALERT_LIMIT) -> dict:
    """
    Totals over active product rows (each with total_stock, cost_price,
    reorder_point, category_name).

    Low stock is inclusive: total_stock <= reorder_point.
    """
    total_quantity = Decimal("0")
    total_value = Decimal("0")
    alerts = []
    categories: "OrderedDict[str, dict]" = OrderedDict()

    for row in products:
        if not row.get("is_active", True):
            continue
        quantity = _dec(row.get("total_stock"))
        value = quantity * _dec(row.get("cost_price"))
        total_quantity += quantity
        total_value += value

        name = row.get("category_name") or UNCATEGORIZED
        bucket = categories.setdefault(name, {"category": name, "count": 0, "value": Decimal("0")})
        bucket["count"] += 1
        bucket["value"] += value

        reorder_point = row.get("reorder_point") or 0
        if quantity <= reorder_point:
            alerts.append({
                "product_id": row.get("id"),
                "sku": row.get("sku"),
                "name": row.get("name"),
                "quantity": str(quantity.quantize(QUANTITY_STEP)),
                "reorder_point": reorder_point,
            })

    active_count = sum(1 for row in products if row.get("is_active", True))
    return {
        "total_skus": active_count,
        "total_quantity": str(total_quantity.quantize(QUANTITY_STEP)),
        "total_value": str(total_value.quantize(MONEY_STEP)),
        "low_stock_count": len(alerts),
        "low_stock_alerts": alerts[: max(alert_limit, 0)],
        "category_breakdown": [
            {
                "category": b["category"],
                "count": b["count"],
                "value": str(b["value"].quantize(MONEY_STEP)),
            }
            for b in categories.values()
        ],
    }


def document_dashboard(actor: UserProfile, recent_limit: int = DEFAULT_RECENT_LIMIT) -> dict:
    documents = document_service.visible_documents(actor)
    summary = summarize_documents([d.to_dict() for d in documents], recent_limit=recent_limit)

    doc_ids = [d.id for d in documents]
    history = []
    if doc_ids:
        history = [
            {"document_id": h.document_id, "action_type": h.action_type, "created_at": h.created_at}
            for h in db.session.query(DocumentHistory)
            .filter(DocumentHistory.document_id.in_(doc_ids))
            .filter(DocumentHistory.action_type.in_((ACTION_SUBMITTED, ACTION_APPROVED, ACTION_REJECTED)))
            .all()
        ]
    summary["average_approval_days"] = average_approval_days(history)
    return summary


def inventory_dashboard(alert_limit: int = DEFAULT_ALERT_LIMIT) -> dict:
    return summarize_inventory(catalog_service.product_rows(active_only=True), alert_limit=alert_limit)
