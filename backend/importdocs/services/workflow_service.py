# Overview: Service-layer operations for the document workflow; encapsulates business logic and database work.

"""
Document Workflow Engine

================================================================================
PURPOSE: Enforce Draft -> Pending -> Approved | Rejected for import documents
================================================================================

STATE MACHINE:
    Draft -> Pending -> Approved
                     -> Rejected

    Draft:    Being prepared by its creator; editable.
    Pending:  Submitted; waiting for an Approver/Admin decision.
    Approved: Terminal.
    Rejected: Terminal; rejection_reason holds the decision remarks.

RULES:
1. Only the creator submits, and only from Draft.
2. Only Approver/Admin decide, and only from Pending.
3. Rejection requires a non-blank reason.
4. Each transition and its history row commit together or not at all.
5. A transition racing another on the same document loses with ConflictError
   (Document.version_id) instead of overwriting it.

Closed is a stored status with no transition into it.
================================================================================
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..models import Document, UserProfile
from ..models.documents import (
    ACTION_APPROVED,
    ACTION_CREATED,
    ACTION_REJECTED,
    ACTION_SUBMITTED,
    DOCUMENT_STATUSES,
    STATUS_APPROVED,
    STATUS_DRAFT,
    STATUS_PENDING,
    STATUS_REJECTED,
)
from .. import authorization
from ..validation import ConflictError, NotFoundError, ValidationError
from . import history_service
from .concurrency import commit_or_conflict
from .document_service import validate_approver, validate_document_payload


logger = logging.getLogger(__name__)

VALID_TRANSITIONS = {
    (STATUS_DRAFT, STATUS_PENDING),
    (STATUS_PENDING, STATUS_APPROVED),
    (STATUS_PENDING, STATUS_REJECTED),
}


class WorkflowError(ValueError):
    """
    Raised when a transition is not legal from the document's current status.

    This is a domain error, not a technical error.
    """


def can_transition(from_status: str, to_status: str) -> bool:
    if from_status not in DOCUMENT_STATUSES or to_status not in DOCUMENT_STATUSES:
        raise WorkflowError(f"Unknown status transition {from_status!r} -> {to_status!r}")
    return (from_status, to_status) in VALID_TRANSITIONS


def _load(document_id: int) -> Document:
    document = db.session.query(Document).filter_by(id=document_id).first()
    if not document:
        raise NotFoundError("Document not found")
    return document


def _transition(
    document: Document,
    *,
    actor: UserProfile,
    to_status: str,
    action_type: str,
    remarks: str | None,
) -> Document:
    from_status = document.status
    if not can_transition(from_status, to_status):
        raise WorkflowError(
            f"Cannot move document {document.document_number} from {from_status} to {to_status}"
        )

    document.status = to_status
    history_service.append_history(
        document=document,
        action_type=action_type,
        old_status=from_status,
        new_status=to_status,
        performed_by=actor,
        remarks=remarks,
    )
    commit_or_conflict("Document was modified by someone else; reload and retry")

    logger.info(
        "Document %s %s -> %s by user %s",
        document.id, from_status, to_status, actor.id,
    )
    return document


def create_document(actor: UserProfile, payload: dict) -> Document:
    """
    Create a Draft document and its Created history row (one transaction).

    created_by is always the actor; status cannot be supplied.
    """
    authorization.require(
        authorization.can_create_document(actor), "Not allowed to create documents"
    )
    patch = validate_document_payload(payload, partial=False)

    if patch.get("approver_id") is not None:
        validate_approver(patch["approver_id"])

    number = patch["document_number"]
    if db.session.query(Document.id).filter_by(document_number=number).first():
        raise ConflictError(f"Document number {number} already exists")

    document = Document(**patch)
    document.status = STATUS_DRAFT
    document.created_by = actor.id
    document.rejection_reason = None
    db.session.add(document)

    history_service.append_history(
        document=document,
        action_type=ACTION_CREATED,
        old_status=None,
        new_status=STATUS_DRAFT,
        performed_by=actor,
        remarks="Document created",
    )
    commit_or_conflict(f"Document number {number} already exists")

    logger.info("Document %s (%s) created by user %s", document.id, number, actor.id)
    return document


def submit_for_approval(actor: UserProfile, document_id: int) -> Document:
    """Draft -> Pending. Creator only."""
    document = _load(document_id)
    authorization.require(
        authorization.can_view_document(actor, document), "Not allowed to access this document"
    )
    if document.status != STATUS_DRAFT:
        raise WorkflowError(f"Only Draft documents can be submitted (current: {document.status})")
    authorization.require(
        authorization.can_submit_document(actor, document),
        "Only the document creator can submit it for approval",
    )
    return _transition(
        document,
        actor=actor,
        to_status=STATUS_PENDING,
        action_type=ACTION_SUBMITTED,
        remarks="Submitted for approval",
    )


def approve(actor: UserProfile, document_id: int, remarks: str | None = None) -> Document:
    """Pending -> Approved. Approver/Admin only."""
    document = _load(document_id)
    authorization.require(
        authorization.can_decide_document(actor, document),
        "Only an Approver or Admin can approve this document",
    )
    if document.status != STATUS_PENDING:
        raise WorkflowError(f"Only Pending documents can be approved (current: {document.status})")

    if document.approver_id is None:
        document.approver_id = actor.id

    note = (remarks or "").strip() or "Document approved"
    return _transition(
        document,
        actor=actor,
        to_status=STATUS_APPROVED,
        action_type=ACTION_APPROVED,
        remarks=note,
    )


def reject(actor: UserProfile, document_id: int, reason: str | None) -> Document:
    """
    Pending -> Rejected with a mandatory reason.

    A blank reason fails before anything is written.
    """
    reason = (reason or "").strip()
    document = _load(document_id)
    authorization.require(
        authorization.can_decide_document(actor, document),
        "Only an Approver or Admin can reject this document",
    )
    if document.status != STATUS_PENDING:
        raise WorkflowError(f"Only Pending documents can be rejected (current: {document.status})")
    if not reason:
        raise ValidationError("rejection_reason is required")

    if document.approver_id is None:
        document.approver_id = actor.id
    document.rejection_reason = reason

    return _transition(
        document,
        actor=actor,
        to_status=STATUS_REJECTED,
        action_type=ACTION_REJECTED,
        remarks=reason,
    )
