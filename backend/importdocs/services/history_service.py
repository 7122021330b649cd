# Overview: Service-layer operations for document history; encapsulates business logic and database work.

from __future__ import annotations

from ..extensions import db
from ..models import Document, DocumentHistory, UserProfile
"""
Document History Invariants (authoritative)

- Append-only: rows are never updated or deleted (they go with their document).
- Every row is written inside the same DB transaction as the change it records;
  append_history only stages the row and the caller commits.
- Display order is newest first: created_at desc, id desc.
"""


def append_history(
    *,
    document: Document,
    action_type: str,
    old_status: str | None,
    new_status: str | None,
    performed_by: UserProfile | None,
    remarks: str | None = None,
) -> DocumentHistory:
    entry = DocumentHistory(
        document=document,
        action_type=action_type,
        old_status=old_status,
        new_status=new_status,
        performed_by=performed_by.id if performed_by is not None else None,
        remarks=remarks,
    )
    db.session.add(entry)
    return entry


def list_history(document_id: int) -> list[DocumentHistory]:
    return (
        db.session.query(DocumentHistory)
        .filter(DocumentHistory.document_id == document_id)
        .order_by(DocumentHistory.created_at.desc(), DocumentHistory.id.desc())
        .all()
    )
