# Overview: Flask API routes for import documents; parses input and returns JSON responses.

"""
Import document routes

CRUD, workflow transitions (submit / approve / reject), history and
attachments for a single document. The acting identity is always
g.current_user; created_by, approver decisions and history rows never trust
a body field for who did it.
"""

from flask import Blueprint, request, jsonify, g, current_app
from werkzeug.exceptions import RequestEntityTooLarge

from ..services import document_service, file_service, history_service, workflow_service
from ..decorators import SERVICE_ERRORS, error_response, require_auth


documents_bp = Blueprint("documents", __name__, url_prefix="/api/documents")


def _internal_error(message: str):
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error"}), 500


@documents_bp.get("")
@require_auth
def list_documents_route():
    """
    Query params: search, status, type (all optional; "all" disables a filter).

    count is the number of rows returned, total the number visible before filtering.
    """
    try:
        rows, total = document_service.list_documents(
            g.current_user,
            search=request.args.get("search"),
            status=request.args.get("status"),
            document_type=request.args.get("type"),
        )
        return jsonify({"items": rows, "count": len(rows), "total": total}), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return _internal_error("Failed to list documents")


@documents_bp.post("")
@require_auth
def create_document_route():
    try:
        data = request.get_json(silent=True) or {}
        document = workflow_service.create_document(g.current_user, data)
        return jsonify({"document": document.to_dict()}), 201

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return _internal_error("Failed to create document")


@documents_bp.get("/<int:document_id>")
@require_auth
def get_document_route(document_id: int):
    try:
        document = document_service.get_document(g.current_user, document_id)
        payload = document.to_dict()
        payload["files"] = [f.to_dict() for f in document.files]
        payload["history"] = [h.to_dict() for h in history_service.list_history(document.id)]
        return jsonify({"document": payload}), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return _internal_error("Failed to load document")


@documents_bp.patch("/<int:document_id>")
@require_auth
def update_document_route(document_id: int):
    try:
        data = request.get_json(silent=True) or {}
        document = document_service.update_document(g.current_user, document_id, data)
        return jsonify({"document": document.to_dict()}), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return _internal_error("Failed to update document")


@documents_bp.delete("/<int:document_id>")
@require_auth
def delete_document_route(document_id: int):
    try:
        document_service.delete_document(g.current_user, document_id)
        return jsonify({"message": f"Document {document_id} deleted"}), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return _internal_error("Failed to delete document")


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------

@documents_bp.post("/<int:document_id>/submit")
@require_auth
def submit_document_route(document_id: int):
    """Draft -> Pending. Creator only."""
    try:
        document = workflow_service.submit_for_approval(g.current_user, document_id)
        return jsonify({
            "document": document.to_dict(),
            "message": f"Document {document.document_number} submitted for approval"
        }), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return _internal_error("Failed to submit document")


@documents_bp.post("/<int:document_id>/approve")
@require_auth
def approve_document_route(document_id: int):
    """
    Pending -> Approved. Approver (assigned or unassigned) or Admin.

    Body (optional): {"remarks": "..."}
    """
    try:
        data = request.get_json(silent=True) or {}
        document = workflow_service.approve(g.current_user, document_id, remarks=data.get("remarks"))
        return jsonify({
            "document": document.to_dict(),
            "message": f"Document {document.document_number} approved"
        }), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return _internal_error("Failed to approve document")


@documents_bp.post("/<int:document_id>/reject")
@require_auth
def reject_document_route(document_id: int):
    """
    Pending -> Rejected.

    Body: {"reason": "..."}; a blank reason is a 400 and nothing is written.
    """
    try:
        data = request.get_json(silent=True) or {}
        document = workflow_service.reject(g.current_user, document_id, data.get("reason"))
        return jsonify({
            "document": document.to_dict(),
            "message": f"Document {document.document_number} rejected"
        }), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return _internal_error("Failed to reject document")


@documents_bp.get("/<int:document_id>/history")
@require_auth
def document_history_route(document_id: int):
    try:
        document = document_service.get_document(g.current_user, document_id)
        rows = [h.to_dict() for h in history_service.list_history(document.id)]
        return jsonify({"items": rows, "count": len(rows)}), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return _internal_error("Failed to load document history")


# ---------------------------------------------------------------------------
# Attachments
# ---------------------------------------------------------------------------

@documents_bp.get("/<int:document_id>/files")
@require_auth
def list_files_route(document_id: int):
    try:
        files = file_service.list_files(g.current_user, document_id)
        return jsonify({"items": [f.to_dict() for f in files], "count": len(files)}), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return _internal_error("Failed to list document files")


@documents_bp.post("/<int:document_id>/files")
@require_auth
def upload_file_route(document_id: int):
    """Multipart upload; the part must be named "file"."""
    try:
        upload = request.files.get("file")
        if upload is None:
            return jsonify({"error": "file is required (multipart field 'file')"}), 400

        record = file_service.upload_file(
            g.current_user,
            document_id,
            filename=upload.filename,
            content=upload.read(),
            content_type=upload.mimetype,
        )
        return jsonify({"file": record.to_dict()}), 201

    except RequestEntityTooLarge:
        limit = current_app.config.get("MAX_CONTENT_LENGTH")
        return jsonify({"error": f"File exceeds the upload limit of {limit} bytes"}), 413
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return _internal_error("Failed to upload file")
