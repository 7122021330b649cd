"""
Attachment tests: upload, list, download and delete, plus the blob store.
"""

import importlib
import io

import pytest

from importdocs.extensions import db
from importdocs.models import DocumentFile
from importdocs.services import storage, workflow_service
from importdocs.services.storage import StorageError

from conftest import auth_headers, document_payload


def _upload(client, headers, document_id, content=b"%PDF-1.4 invoice", name="invoice.pdf"):
    return client.post(
        f"/api/documents/{document_id}/files",
        data={"file": (io.BytesIO(content), name, "application/pdf")},
        headers=headers,
        content_type="multipart/form-data",
    )


@pytest.fixture
def document(requester, approver):
    return workflow_service.create_document(requester, document_payload(approver_id=approver.id))


class TestBlobStore:

    def test_keys_are_scoped_to_document_and_keep_extension(self, app):
        key = storage.build_object_key(12, "Bill of Lading.PDF")
        assert key.startswith("12/")
        assert key.endswith(".pdf")
        assert key != storage.build_object_key(12, "Bill of Lading.PDF")

    def test_put_and_delete(self, app):
        key = storage.build_object_key(1, "a.txt")
        storage.put_blob(key, b"hello")
        assert storage.blob_path(key).read_bytes() == b"hello"
        assert storage.delete_blob(key) is True
        assert storage.delete_blob(key) is False

    def test_paths_cannot_escape_the_root(self, app):
        with pytest.raises(StorageError):
            storage.put_blob("../outside.txt", b"x")

    def test_unwritable_store_fails_health(self, client, monkeypatch):
        def broken_root():
            raise OSError("disk gone")

        monkeypatch.setattr(storage, "storage_root", broken_root)
        resp = client.get("/health")
        assert resp.status_code == 503
        assert resp.json["checks"]["storage"]["status"] == "unhealthy"
        assert resp.json["checks"]["database"]["status"] == "healthy"


class TestAttachments:

    def test_creator_uploads_and_everyone_who_sees_the_document_lists(
        self, client, requester, approver, document
    ):
        resp = _upload(client, auth_headers(requester), document.id)
        assert resp.status_code == 201, resp.json
        meta = resp.json["file"]
        assert meta["file_name"] == "invoice.pdf"
        assert meta["file_size"] == len(b"%PDF-1.4 invoice")
        assert meta["uploaded_by_name"] == "Rita Requester"
        assert storage.blob_path(meta["storage_path"]).exists()

        resp = client.get(f"/api/documents/{document.id}/files", headers=auth_headers(approver))
        assert resp.status_code == 200
        assert resp.json["count"] == 1

    def test_download_returns_the_bytes(self, client, requester, document):
        meta = _upload(client, auth_headers(requester), document.id).json["file"]
        resp = client.get(f"/api/files/{meta['id']}/download", headers=auth_headers(requester))
        assert resp.status_code == 200
        assert resp.data == b"%PDF-1.4 invoice"
        assert "invoice.pdf" in resp.headers["Content-Disposition"]
        resp.close()

    def test_outsider_cannot_list_or_download(self, client, requester, other_requester, document):
        meta = _upload(client, auth_headers(requester), document.id).json["file"]
        headers = auth_headers(other_requester)
        assert client.get(f"/api/documents/{document.id}/files", headers=headers).status_code == 403
        assert client.get(f"/api/files/{meta['id']}/download", headers=headers).status_code == 403

    def test_only_creator_or_admin_uploads(self, client, approver, admin, document):
        assert _upload(client, auth_headers(approver), document.id).status_code == 403
        assert _upload(client, auth_headers(admin), document.id).status_code == 201

    def test_empty_file_is_rejected(self, client, requester, document):
        resp = _upload(client, auth_headers(requester), document.id, content=b"")
        assert resp.status_code == 400
        assert db.session.query(DocumentFile).count() == 0

    def test_oversized_upload_is_413(self, app, monkeypatch, client, requester, document):
        monkeypatch.setitem(app.config, "MAX_CONTENT_LENGTH", 1024)
        resp = _upload(client, auth_headers(requester), document.id, content=b"x" * 4096)
        assert resp.status_code == 413
        assert "1024" in resp.json["error"]
        assert db.session.query(DocumentFile).count() == 0

    def test_upload_limit_comes_from_the_environment(self, monkeypatch):
        from importdocs import config

        monkeypatch.setenv("MAX_CONTENT_LENGTH", "2048")
        try:
            assert importlib.reload(config).Config.MAX_CONTENT_LENGTH == 2048
        finally:
            monkeypatch.delenv("MAX_CONTENT_LENGTH")
            importlib.reload(config)

    def test_missing_part_is_rejected(self, client, requester, document):
        resp = client.post(
            f"/api/documents/{document.id}/files",
            data={},
            headers=auth_headers(requester),
            content_type="multipart/form-data",
        )
        assert resp.status_code == 400

    def test_only_uploader_deletes(self, client, requester, admin, document):
        meta = _upload(client, auth_headers(requester), document.id).json["file"]

        assert client.delete(f"/api/files/{meta['id']}", headers=auth_headers(admin)).status_code == 403

        resp = client.delete(f"/api/files/{meta['id']}", headers=auth_headers(requester))
        assert resp.status_code == 200
        assert db.session.query(DocumentFile).count() == 0
        with pytest.raises(FileNotFoundError):
            storage.blob_path(meta["storage_path"])

    def test_deleting_a_document_removes_its_blobs(self, client, requester, admin, document):
        meta = _upload(client, auth_headers(requester), document.id).json["file"]
        resp = client.delete(f"/api/documents/{document.id}", headers=auth_headers(admin))
        assert resp.status_code == 200
        assert db.session.query(DocumentFile).count() == 0
        with pytest.raises(FileNotFoundError):
            storage.blob_path(meta["storage_path"])
