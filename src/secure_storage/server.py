"""
src/secure_storage/server.py - HTTP Interface

Flask application exposing the storage service:
- POST /upload                multipart field "file", encrypted at rest
- GET  /download/<filename>   decrypted, integrity-checked content
- GET  /health                liveness check

Every request passes the per-client rate limiter first. Cryptographic
failures are reported with one generic message so responses never reveal
which check failed.
"""

import logging
from typing import Optional

from flask import Blueprint, Flask, Response, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from .audit_logger import AuditLogger, EventType, Severity
from .config import DEFAULT_MAX_UPLOAD_BYTES
from .exceptions import (
    DecryptionError,
    IntegrityError,
    NotFoundError,
    StorageIOError,
    ValidationError,
)
from .rate_limiter import RateLimiter
from .storage import StorageService


logger = logging.getLogger(__name__)

EXTENSION_KEY = "secure_storage"
GENERIC_DOWNLOAD_ERROR = "file could not be retrieved"

api = Blueprint("secure_storage", __name__)


def _json(status: int, success: bool, message: Optional[str] = None,
          error: Optional[str] = None):
    body = {"success": success}
    if message:
        body["message"] = message
    if error:
        body["error"] = error
    return jsonify(body), status


def _components():
    return current_app.extensions[EXTENSION_KEY]


def _client() -> str:
    return request.remote_addr or "unknown"


def _audit() -> Optional[AuditLogger]:
    return _components()["audit_logger"]


@api.before_app_request
def enforce_rate_limit():
    limiter: RateLimiter = _components()["rate_limiter"]
    client = _client()
    if limiter.allow(client):
        return None

    logger.warning("Rate limit exceeded for %s on %s", client, request.path)
    audit = _audit()
    if audit:
        audit.log_security_event(
            EventType.RATE_LIMIT_EXCEEDED, Severity.MEDIUM,
            f"Rate limit exceeded on {request.path}", client
        )
    return _json(429, False, error="too many requests - slow down")


@api.route("/upload", methods=["POST"])
def upload():
    storage: StorageService = _components()["storage"]
    audit = _audit()
    client = _client()

    upload_file = request.files.get("file")
    if upload_file is None:
        return _json(400, False, error="no file provided in 'file' field")

    filename = upload_file.filename or ""
    try:
        checksum = storage.save(filename, upload_file.stream)
    except ValidationError as e:
        logger.info("Rejected upload filename %r from %s: %s", filename, client, e)
        if audit:
            audit.log_security_event(
                EventType.VALIDATION_FAILURE, Severity.MEDIUM,
                str(e), client, resource=filename
            )
        return _json(400, False, error=f"invalid filename: {e}")
    except StorageIOError:
        logger.exception("Failed to save %s", filename)
        if audit:
            audit.log_upload(client, filename, "FAILURE")
        return _json(500, False, error="failed to store file")

    logger.info("Uploaded and encrypted %s", filename)
    if audit:
        audit.log_upload(client, filename, "SUCCESS", {"checksum": checksum})
    return _json(200, True, message="file uploaded and encrypted successfully")


@api.route("/download/", methods=["GET"])
def download_missing_name():
    return _json(400, False, error="filename is required")


@api.route("/download/<filename>", methods=["GET"])
def download(filename: str):
    storage: StorageService = _components()["storage"]
    audit = _audit()
    client = _client()

    try:
        data = storage.load(filename)
    except NotFoundError:
        if audit:
            audit.log_download(client, filename, "NOT_FOUND")
        return _json(404, False, error="file not found")
    except ValidationError as e:
        logger.info("Rejected download filename %r from %s: %s", filename, client, e)
        if audit:
            audit.log_security_event(
                EventType.VALIDATION_FAILURE, Severity.MEDIUM,
                str(e), client, resource=filename
            )
        return _json(400, False, error=GENERIC_DOWNLOAD_ERROR)
    except DecryptionError as e:
        logger.error("Decryption failed for %s: %s", filename, e)
        if audit:
            audit.log_security_event(
                EventType.DECRYPTION_FAILURE, Severity.HIGH,
                str(e), client, resource=filename
            )
        return _json(400, False, error=GENERIC_DOWNLOAD_ERROR)
    except IntegrityError as e:
        logger.error("Integrity check failed for %s: %s", filename, e)
        if audit:
            audit.log_security_event(
                EventType.INTEGRITY_FAILURE, Severity.HIGH,
                str(e), client, resource=filename
            )
        return _json(400, False, error=GENERIC_DOWNLOAD_ERROR)
    except StorageIOError:
        logger.exception("Failed to load %s", filename)
        if audit:
            audit.log_download(client, filename, "FAILURE")
        return _json(500, False, error="failed to read file")

    if audit:
        audit.log_download(client, filename, "SUCCESS", {"bytes": len(data)})
    return Response(
        data,
        mimetype="application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


@api.route("/health", methods=["GET"])
def health():
    return _json(200, True, message="healthy")


@api.app_errorhandler(HTTPException)
def handle_http_error(e: HTTPException):
    if e.code == 405:
        return _json(405, False, error="method not allowed")
    if e.code == 413:
        return _json(413, False, error="file too large")
    return _json(e.code or 500, False, error=(e.description or e.name).lower())


def create_app(storage: StorageService, rate_limiter: RateLimiter,
               audit_logger: Optional[AuditLogger] = None,
               max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES) -> Flask:
    """
    Build the Flask application around already-constructed components.

    Args:
        storage: Encryption & integrity engine
        rate_limiter: Per-client admission gate
        audit_logger: Optional audit trail
        max_upload_bytes: Request body limit

    Returns:
        Configured Flask app
    """
    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = max_upload_bytes
    app.extensions[EXTENSION_KEY] = {
        "storage": storage,
        "rate_limiter": rate_limiter,
        "audit_logger": audit_logger,
    }
    app.register_blueprint(api)
    return app
