# Overview: Service-layer operations for documents; encapsulates business logic and database work.

from __future__ import annotations

import logging
from decimal import Decimal

from ..extensions import db
from ..models import Document, StockMovement, UserProfile
from ..models.documents import ACTION_UPDATED, CURRENCIES, DOCUMENT_TYPES, PRIORITIES
from .. import authorization
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_non_negative_money,
    validate_payload,
)
from . import filtering, history_service, storage
from .concurrency import commit_or_conflict


logger = logging.getLogger(__name__)


DOCUMENT_POLICY = ModelValidationPolicy(
    writable_fields={
        "document_type",
        "document_number",
        "supplier_name",
        "document_date",
        "document_value",
        "currency",
        "priority",
        "approver_id",
        "remarks",
    },
    required_on_create={"document_type", "document_number", "supplier_name", "document_date"},
    choices={
        "document_type": set(DOCUMENT_TYPES),
        "currency": set(CURRENCIES),
        "priority": set(PRIORITIES),
    },
)


def validate_document_payload(payload: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=Document, payload=payload, policy=DOCUMENT_POLICY, partial=partial)
    enforce_non_negative_money(patch, "document_value")
    if not partial:
        patch.setdefault("document_value", Decimal("0"))
        patch.setdefault("currency", "USD")
        patch.setdefault("priority", "Medium")
    return patch


def validate_approver(approver_id: int) -> UserProfile:
    profile = db.session.query(UserProfile).filter_by(id=approver_id).first()
    if not profile:
        raise ValidationError("approver_id does not reference a user")
    if not authorization.can_be_assigned_approver(profile):
        raise ValidationError("approver_id must reference an Approver or Admin")
    return profile


def get_document(actor: UserProfile, document_id: int) -> Document:
    """Fetch a document the actor may see (NotFoundError / AuthorizationError otherwise)."""
    document = db.session.query(Document).filter_by(id=document_id).first()
    if not document:
        raise NotFoundError("Document not found")
    authorization.require(
        authorization.can_view_document(actor, document), "Not allowed to access this document"
    )
    return document


def visible_documents(actor: UserProfile) -> list[Document]:
    """All documents the actor may see, newest first."""
    documents = (
        db.session.query(Document)
        .order_by(Document.created_at.desc(), Document.id.desc())
        .all()
    )
    return [d for d in documents if authorization.can_view_document(actor, d)]


def list_documents(
    actor: UserProfile,
    *,
    search: str | None = None,
    status: str | None = None,
    document_type: str | None = None,
) -> tuple[list[dict], int]:
    """
    Returns (filtered rows, total visible rows) so callers can show
    "Showing X of Y".
    """
    rows = [d.to_dict() for d in visible_documents(actor)]
    filtered = filtering.filter_documents(
        rows, search=search, status=status, document_type=document_type
    )
    return filtered, len(rows)


def update_document(actor: UserProfile, document_id: int, payload: dict) -> Document:
    """
    Edit document fields. Creators edit while Draft; Admin edits any time.
    Writes an Updated history row in the same transaction.
    """
    document = get_document(actor, document_id)
    authorization.require(
        authorization.can_edit_document(actor, document),
        "Only the creator can edit a document, and only while it is Draft",
    )

    if isinstance(payload, dict) and "document_number" in payload:
        raise ValidationError("document_number cannot be changed")

    patch = validate_document_payload(payload, partial=True)
    if not patch:
        return document

    if patch.get("approver_id") is not None:
        validate_approver(patch["approver_id"])

    changed = []
    for key, value in patch.items():
        if getattr(document, key) != value:
            setattr(document, key, value)
            changed.append(key)

    if not changed:
        return document

    history_service.append_history(
        document=document,
        action_type=ACTION_UPDATED,
        old_status=document.status,
        new_status=document.status,
        performed_by=actor,
        remarks=f"Updated {', '.join(sorted(changed))}",
    )
    commit_or_conflict("Document was modified by someone else; reload and retry")
    return document


def delete_document(actor: UserProfile, document_id: int) -> None:
    """
    Delete a document with its history and files (Admin only).

    Blobs are removed after the commit. Stock movements that referenced the
    document keep their rows with source_document_id cleared.
    """
    document = db.session.query(Document).filter_by(id=document_id).first()
    if not document:
        raise NotFoundError("Document not found")
    authorization.require(
        authorization.can_delete_document(actor, document), "Only Admin can delete documents"
    )

    paths = [f.storage_path for f in document.files]
    db.session.query(StockMovement).filter(
        StockMovement.source_document_id == document.id
    ).update({"source_document_id": None}, synchronize_session=False)
    db.session.delete(document)
    commit_or_conflict("Document was modified by someone else; reload and retry")

    for path in paths:
        try:
            storage.delete_blob(path)
        except OSError:
            logger.exception("Failed to remove blob %s for deleted document %s", path, document_id)

    logger.info("Document %s deleted by user %s", document_id, actor.id)

