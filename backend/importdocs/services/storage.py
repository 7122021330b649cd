# Overview: Local filesystem blob store for document attachments.

from __future__ import annotations

import os
import secrets
from pathlib import Path

from flask import current_app


class StorageError(ValueError):
    """Invalid blob key (e.g. one that escapes the storage root)."""


def storage_root() -> Path:
    """
    UPLOAD_FOLDER, resolved against the Flask instance folder when relative.
    Created on first use.
    """
    configured = Path(current_app.config["UPLOAD_FOLDER"])
    if not configured.is_absolute():
        configured = Path(current_app.instance_path) / configured
    root = configured.resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def build_object_key(document_id: int, filename: str) -> str:
    """'{document_id}/{random}.{ext}' (extension taken from the original name)."""
    ext = Path(filename or "").suffix.lower().lstrip(".")
    token = secrets.token_hex(12)
    name = f"{token}.{ext}" if ext else token
    return f"{document_id}/{name}"


def _resolve(key: str) -> Path:
    root = storage_root()
    target = (root / key).resolve()
    if target == root or not target.is_relative_to(root):
        raise StorageError("Invalid storage path")
    return target


def put_blob(key: str, content: bytes) -> str:
    """
    Persist bytes under key and return the stored key.

    Uses an atomic write (tmp -> replace) so readers never see a partial file.
    """
    target = _resolve(key)
    target.parent.mkdir(parents=True, exist_ok=True)

    tmp_path = target.with_name(target.name + ".tmp")
    tmp_path.write_bytes(content)
    tmp_path.replace(target)
    return key


def blob_path(key: str) -> Path:
    target = _resolve(key)
    if not target.is_file():
        raise FileNotFoundError(key)
    return target


def delete_blob(key: str) -> bool:
    """Returns False when the blob was already gone."""
    target = _resolve(key)
    try:
        os.remove(target)
    except FileNotFoundError:
        return False
    return True
