"""
Hierarchy Import Blueprint

CSV-based bulk creation of projects and everything under them.

Endpoints:
  GET  /api/v1/import/hierarchy/template   — Download CSV template
  POST /api/v1/import/hierarchy            — Upload & import CSV (multipart "file")
"""

import logging

from flask import Blueprint, Response, current_app, g, jsonify, request

from okr_tracker.middleware.permission_required import require_permission
from okr_tracker.models.auth import PERM_MANAGE_USERS
from okr_tracker.services.import_service import (
    ImportFormatError,
    generate_csv_template,
    import_hierarchy_from_csv,
)
from okr_tracker.utils.errors import E, api_error
from okr_tracker.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

import_bp = Blueprint("import_bp", __name__, url_prefix="/api/v1/import")


# ═══════════════════════════════════════════════════════════════
# Error Handler
# ═══════════════════════════════════════════════════════════════
@import_bp.errorhandler(ImportFormatError)
def handle_import_format_error(e):
    return api_error(E.VALIDATION_INVALID, e.message, status=e.status_code)


# ═══════════════════════════════════════════════════════════════
# Template Download
# ═══════════════════════════════════════════════════════════════
@import_bp.route("/hierarchy/template", methods=["GET"])
@require_permission(PERM_MANAGE_USERS)
def download_template():
    """Download a CSV template for hierarchy import."""
    return Response(
        generate_csv_template(),
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=hierarchy_import_template.csv"},
    )


# ═══════════════════════════════════════════════════════════════
# Import
# ═══════════════════════════════════════════════════════════════
@import_bp.route("/hierarchy", methods=["POST"])
@require_permission(PERM_MANAGE_USERS)
def import_hierarchy():
    """Upload and import a hierarchy CSV."""
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        return api_error(E.VALIDATION_REQUIRED, "Please select a CSV file to upload.")

    content = upload.read()
    max_bytes = current_app.config.get("MAX_IMPORT_BYTES")
    if max_bytes and len(content) > max_bytes:
        return api_error(
            E.PAYLOAD_TOO_LARGE, f"CSV file exceeds {max_bytes} bytes",
        )

    result = import_hierarchy_from_csv(content, actor=g.actor)
    err = db_commit_or_error()
    if err:
        return err

    logger.info(
        "Hierarchy CSV %s imported by %s: %d rows", upload.filename, g.actor,
        result["rows_processed"],
    )
    result["message"] = (
        f"Hierarchy imported successfully. Total records processed: {result['rows_processed']}"
    )
    return jsonify(result), 200
