# Overview: Service-layer operations for document attachments; encapsulates business logic and database work.

"""
Document attachments.

Upload order: blob first, metadata second. The DocumentFile row is only
written after the blob write succeeded, and the blob is removed again if the
row cannot be committed, so neither side is left without the other.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ..extensions import db
from ..models import DocumentFile, UserProfile
from .. import authorization
from ..validation import NotFoundError, ValidationError
from . import storage
from .document_service import get_document


logger = logging.getLogger(__name__)

MAX_FILE_NAME_LENGTH = 255


def list_files(actor: UserProfile, document_id: int) -> list[DocumentFile]:
    document = get_document(actor, document_id)
    authorization.require(
        authorization.can_view_files(actor, document), "Not allowed to view these files"
    )
    return list(document.files)


def upload_file(
    actor: UserProfile,
    document_id: int,
    *,
    filename: str,
    content: bytes,
    content_type: str | None = None,
) -> DocumentFile:
    document = get_document(actor, document_id)
    authorization.require(
        authorization.can_upload_file(actor, document),
        "Only the document creator can attach files",
    )

    safe_name = Path(filename or "").name.strip()
    if not safe_name:
        raise ValidationError("A file name is required")
    if len(safe_name) > MAX_FILE_NAME_LENGTH:
        raise ValidationError(f"File name exceeds max length {MAX_FILE_NAME_LENGTH}")
    if not content:
        raise ValidationError("File is empty")

    key = storage.build_object_key(document.id, safe_name)
    storage.put_blob(key, content)

    record = DocumentFile(
        document_id=document.id,
        file_name=safe_name,
        storage_path=key,
        file_size=len(content),
        file_type=content_type or "application/octet-stream",
        uploaded_by=actor.id,
    )
    db.session.add(record)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        storage.delete_blob(key)
        raise

    logger.info("File %s attached to document %s by user %s", record.id, document.id, actor.id)
    return record


def _load_file(file_id: int) -> DocumentFile:
    record = db.session.query(DocumentFile).filter_by(id=file_id).first()
    if not record:
        raise NotFoundError("File not found")
    return record


def open_file(actor: UserProfile, file_id: int) -> tuple[DocumentFile, Path]:
    """Returns the metadata row and the local path of its blob."""
    record = _load_file(file_id)
    document = get_document(actor, record.document_id)
    authorization.require(
        authorization.can_view_files(actor, document), "Not allowed to view this file"
    )
    try:
        path = storage.blob_path(record.storage_path)
    except FileNotFoundError:
        raise NotFoundError("File content is missing")
    return record, path


def delete_file(actor: UserProfile, file_id: int) -> None:
    record = _load_file(file_id)
    authorization.require(
        authorization.can_delete_file(actor, record), "Only the uploader can delete this file"
    )
    key = record.storage_path
    db.session.delete(record)
    db.session.commit()

    if not storage.delete_blob(key):
        logger.warning("Blob %s for file %s was already missing", key, file_id)
