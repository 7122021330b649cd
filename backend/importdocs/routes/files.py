# Overview: Flask API routes for stored attachments; parses input and returns JSON responses.

from flask import Blueprint, jsonify, g, current_app, send_file

from ..services import file_service
from ..decorators import SERVICE_ERRORS, error_response, require_auth


files_bp = Blueprint("files", __name__, url_prefix="/api/files")


@files_bp.get("/<int:file_id>/download")
@require_auth
def download_file_route(file_id: int):
    try:
        record, path = file_service.open_file(g.current_user, file_id)
        return send_file(
            path,
            mimetype=record.file_type or "application/octet-stream",
            as_attachment=True,
            download_name=record.file_name,
        )

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to download file")
        return jsonify({"error": "Internal server error"}), 500


@files_bp.delete("/<int:file_id>")
@require_auth
def delete_file_route(file_id: int):
    """Uploader only. Removes the metadata row and then the blob."""
    try:
        file_service.delete_file(g.current_user, file_id)
        return jsonify({"message": f"File {file_id} deleted"}), 200

    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete file")
        return jsonify({"error": "Internal server error"}), 500
