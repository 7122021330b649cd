from __future__ import annotations

from ..extensions import db
from importdocs.time_utils import to_iso_date, to_utc_z, utcnow


DOCUMENT_TYPES = ("Purchase Order", "Invoice", "Goods Receipt", "Delivery Note", "Packing List")
CURRENCIES = ("USD", "EUR", "GBP", "JPY", "CNY")
PRIORITIES = ("Low", "Medium", "High", "Urgent")

STATUS_DRAFT = "Draft"
STATUS_PENDING = "Pending"
STATUS_APPROVED = "Approved"
STATUS_REJECTED = "Rejected"
STATUS_CLOSED = "Closed"
DOCUMENT_STATUSES = (STATUS_DRAFT, STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED, STATUS_CLOSED)

ACTION_CREATED = "Created"
ACTION_UPDATED = "Updated"
ACTION_SUBMITTED = "Submitted"
ACTION_APPROVED = "Approved"
ACTION_REJECTED = "Rejected"


def _decimal_str(value) -> str | None:
    return str(value) if value is not None else None


def _one_of(column: str, values) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


class Document(db.Model):
    """
    Import document (purchase order, invoice, goods receipt, ...).

    LIFECYCLE:
        Draft -> Pending -> Approved | Rejected

    Status changes only through services.workflow_service, which writes the
    matching DocumentHistory row in the same transaction. Closed is a valid
    stored value but no transition produces it.

    version_id is an optimistic-concurrency counter: a stale transition raises
    StaleDataError on flush instead of overwriting a newer status.
    """
    __tablename__ = "documents"
    __table_args__ = (
        db.Index("ix_documents_status", "status"),
        db.Index("ix_documents_created_by", "created_by"),
        db.Index("ix_documents_approver_id", "approver_id"),
        db.Index("ix_documents_created_at", "created_at"),
        db.CheckConstraint(_one_of("status", DOCUMENT_STATUSES), name="ck_documents_status"),
        db.CheckConstraint(_one_of("document_type", DOCUMENT_TYPES), name="ck_documents_document_type"),
        db.CheckConstraint(_one_of("currency", CURRENCIES), name="ck_documents_currency"),
        db.CheckConstraint(_one_of("priority", PRIORITIES), name="ck_documents_priority"),
        db.CheckConstraint("document_value >= 0", name="ck_documents_document_value_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    document_type = db.Column(db.String(32), nullable=False)
    document_number = db.Column(db.String(64), nullable=False, unique=True)
    supplier_name = db.Column(db.String(255), nullable=False)
    document_date = db.Column(db.Date, nullable=False)
    document_value = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    currency = db.Column(db.String(3), nullable=False, default="USD")

    status = db.Column(db.String(16), nullable=False, default=STATUS_DRAFT)
    priority = db.Column(db.String(16), nullable=False, default="Medium")

    approver_id = db.Column(
        db.Integer, db.ForeignKey("users_profile.id", ondelete="SET NULL"), nullable=True
    )
    created_by = db.Column(
        db.Integer, db.ForeignKey("users_profile.id", ondelete="SET NULL"), nullable=True
    )

    remarks = db.Column(db.Text, nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    creator = db.relationship("UserProfile", foreign_keys=[created_by])
    approver = db.relationship("UserProfile", foreign_keys=[approver_id])

    history = db.relationship(
        "DocumentHistory",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="DocumentHistory.id.desc()",
    )
    files = db.relationship(
        "DocumentFile",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="DocumentFile.id.desc()",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_type": self.document_type,
            "document_number": self.document_number,
            "supplier_name": self.supplier_name,
            "document_date": to_iso_date(self.document_date),
            "document_value": _decimal_str(self.document_value),
            "currency": self.currency,
            "status": self.status,
            "priority": self.priority,
            "approver_id": self.approver_id,
            "approver_name": self.approver.full_name if self.approver else None,
            "created_by": self.created_by,
            "creator_name": self.creator.full_name if self.creator else None,
            "remarks": self.remarks,
            "rejection_reason": self.rejection_reason,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class DocumentHistory(db.Model):
    """
    Append-only audit trail of document actions.

    One row per state-changing action. Rows are never updated; they go away
    only with their document. Display order is created_at desc, id desc.
    """
    __tablename__ = "document_history"
    __table_args__ = (
        db.Index("ix_document_history_document", "document_id"),
        db.Index("ix_document_history_created", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_id = db.Column(
        db.Integer, db.ForeignKey("documents.id", ondelete="CASCADE"), nullable=False
    )
    action_type = db.Column(db.String(32), nullable=False)
    old_status = db.Column(db.String(16), nullable=True)
    new_status = db.Column(db.String(16), nullable=True)
    performed_by = db.Column(
        db.Integer, db.ForeignKey("users_profile.id", ondelete="SET NULL"), nullable=True
    )
    remarks = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    document = db.relationship("Document", back_populates="history")
    performer = db.relationship("UserProfile")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_id": self.document_id,
            "action_type": self.action_type,
            "old_status": self.old_status,
            "new_status": self.new_status,
            "performed_by": self.performed_by,
            "performed_by_name": self.performer.full_name if self.performer else "System",
            "remarks": self.remarks,
            "created_at": to_utc_z(self.created_at),
        }


class DocumentFile(db.Model):
    """Attachment metadata; the bytes live in the blob store at storage_path."""
    __tablename__ = "document_files"
    __table_args__ = (
        db.Index("ix_document_files_document", "document_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_id = db.Column(
        db.Integer, db.ForeignKey("documents.id", ondelete="CASCADE"), nullable=False
    )
    file_name = db.Column(db.String(255), nullable=False)
    storage_path = db.Column(db.String(512), nullable=False, unique=True)
    file_size = db.Column(db.Integer, nullable=False, default=0)
    file_type = db.Column(db.String(128), nullable=True)
    uploaded_by = db.Column(
        db.Integer, db.ForeignKey("users_profile.id", ondelete="SET NULL"), nullable=True
    )
    uploaded_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    document = db.relationship("Document", back_populates="files")
    uploader = db.relationship("UserProfile")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_id": self.document_id,
            "file_name": self.file_name,
            "storage_path": self.storage_path,
            "file_size": self.file_size,
            "file_type": self.file_type,
            "uploaded_by": self.uploaded_by,
            "uploaded_by_name": self.uploader.full_name if self.uploader else None,
            "uploaded_at": to_utc_z(self.uploaded_at),
        }
