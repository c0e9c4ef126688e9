"""Admin endpoints: CSV product uploads and HTML blog post publishing.

Every route here sits behind HTTP Basic auth. The gate is skipped when
ADMIN_USER/ADMIN_PASS are unset (local development).
"""

import base64
import logging
import os
from datetime import date
from typing import Optional

from flask import Blueprint, Response, current_app, jsonify, request

from deals.blog import build_post, is_html_upload, publish_post
from deals.importer import CsvImporter, ImportLog
from deals.models import BlogPost
from web.config import IMPORT_LOG_EXTENSION, STORE_EXTENSION

__all__ = ["admin"]

logger = logging.getLogger(__name__)

admin = Blueprint("admin", __name__, url_prefix="/admin")


# ---------- BASIC AUTH ----------


def _basic_auth_creds() -> tuple[Optional[str], Optional[str]]:
    """Get admin credentials from environment."""
    return os.getenv("ADMIN_USER"), os.getenv("ADMIN_PASS")


def _unauthorized() -> Response:
    response = jsonify({"error": "Authentication required"})
    response.status_code = 401
    response.headers["WWW-Authenticate"] = 'Basic realm="Admin"'
    return response


@admin.before_request
def require_basic_auth() -> Optional[Response]:
    """Enforce HTTP Basic Auth for admin routes."""
    user, password = _basic_auth_creds()
    if not user or not password:
        return None  # auth disabled

    header = request.headers.get("Authorization", "")
    if not header.startswith("Basic "):
        return _unauthorized()

    try:
        decoded = base64.b64decode(header.split(" ", 1)[1]).decode("utf-8")
        username, passwd = decoded.split(":", 1)
    except (ValueError, UnicodeDecodeError):
        return _unauthorized()

    if username == user and passwd == password:
        return None
    return _unauthorized()


# ---------- HELPERS ----------


def _import_log() -> ImportLog:
    return current_app.extensions[IMPORT_LOG_EXTENSION]


def _is_csv_upload(filename: str, mimetype: Optional[str]) -> bool:
    return mimetype == "text/csv" or (filename or "").lower().endswith(".csv")


def _read_upload(upload) -> str:
    """Decode an uploaded file as UTF-8 (a leading BOM is dropped)."""
    return upload.read().decode("utf-8-sig")


# ---------- CSV UPLOAD ----------


@admin.route("/upload-csv", methods=["POST"])
def upload_csv() -> Response:
    """Validate an uploaded product CSV and insert the new products.

    Expects a multipart ``file`` field. Returns the import report; 400 when
    the file is rejected before any row is submitted.
    """
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        return jsonify({"error": "No file uploaded"}), 400
    if not _is_csv_upload(upload.filename, upload.mimetype):
        return jsonify({"error": "Please upload a CSV file"}), 400

    try:
        text = _read_upload(upload)
    except UnicodeDecodeError:
        return jsonify({"error": "CSV file must be UTF-8 encoded"}), 400

    log = _import_log()
    log.info(f"Starting upload of {upload.filename}")
    importer = CsvImporter(current_app.extensions[STORE_EXTENSION], log=log)
    report = importer.import_text(text)

    return jsonify(report.to_dict()), (200 if report.success else 400)


@admin.route("/import-log", methods=["GET"])
def download_import_log() -> Response:
    """Download the upload log as plain text."""
    filename = f"import-log-{date.today().isoformat()}.txt"
    return Response(
        _import_log().to_text(),
        mimetype="text/plain",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@admin.route("/import-log", methods=["DELETE"])
def clear_import_log() -> Response:
    _import_log().clear()
    return jsonify({"cleared": True})


# ---------- BLOG POSTS ----------


def _post_from_request() -> BlogPost:
    """Build a post from an uploaded HTML ``file`` or from JSON fields.

    Raises:
        ValueError: If no usable HTML or post fields were sent
    """
    upload = request.files.get("file")
    if upload is not None and upload.filename:
        if not is_html_upload(upload.filename, upload.mimetype):
            raise ValueError("Please upload an HTML file")
        return build_post(
            _read_upload(upload),
            post_date=request.form.get("date") or None,
            featured_image=request.form.get("featured_image") or None,
        )

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValueError("Upload an HTML file or send the post as JSON")
    return BlogPost(
        slug=str(data.get("slug") or ""),
        title=str(data.get("title") or ""),
        date=str(data.get("date") or date.today().isoformat()),
        content=str(data.get("content") or ""),
        excerpt=str(data.get("excerpt") or ""),
        featured_image=data.get("featured_image") or None,
    )


@admin.route("/posts/preview", methods=["POST"])
def preview_post() -> Response:
    """Convert an HTML upload to a post without storing it."""
    try:
        post = _post_from_request()
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(post.to_dict())


@admin.route("/posts", methods=["POST"])
def create_post() -> Response:
    """Publish a post from an HTML upload or an edited preview."""
    try:
        post = _post_from_request()
        stored = publish_post(current_app.extensions[STORE_EXTENSION], post)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    logger.info(f"Admin published post {stored.slug}")
    data = stored.to_dict()
    data["id"] = stored.id
    data["url"] = f"/blog/{stored.slug}"
    return jsonify(data), 201
