"""Flask web app for the robot vacuum deals storefront.

Serves the public deal/blog API, the affiliate redirect endpoint and the
admin upload endpoints, all backed by one DealStore.
"""

import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, jsonify

# Load environment variables from .env file (explicitly specify path)
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# When run directly (python web/app.py) the repo root is not on sys.path
if __package__ is None or __package__ == "":
    sys.path.insert(0, str(Path(__file__).parent.parent))

from deals.importer import ImportLog
from deals.logging_config import get_logger, setup_logging
from deals.store import DealStore, StoreError, create_store
from web.admin import admin
from web.api import api, redirects
from web.config import (
    FLASK_DEBUG,
    FLASK_HOST,
    FLASK_PORT,
    IMPORT_LOG_EXTENSION,
    MAX_UPLOAD_BYTES,
    STORE_EXTENSION,
)

__all__ = ["create_app"]

logger = get_logger("web")


def create_app(store: Optional[DealStore] = None) -> Flask:
    """Build the Flask app.

    Args:
        store: Data store to serve from (default: ``create_store()``)

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = MAX_UPLOAD_BYTES

    app.extensions[STORE_EXTENSION] = store if store is not None else create_store()
    # Shared across uploads so the admin can download or clear it
    app.extensions[IMPORT_LOG_EXTENSION] = ImportLog()

    app.register_blueprint(api)
    app.register_blueprint(redirects)
    app.register_blueprint(admin)

    # ---------- ERROR HANDLERS ----------

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(413)
    def too_large(e):
        return jsonify({"error": f"Upload exceeds {MAX_UPLOAD_BYTES} bytes"}), 413

    @app.errorhandler(StoreError)
    def store_unavailable(e: StoreError):
        logger.error(f"Data store error: {e.message} (code={e.code})")
        return jsonify({"error": "Data store unavailable", "details": e.message}), 502

    return app


if __name__ == "__main__":
    setup_logging()
    create_app().run(host=FLASK_HOST, port=FLASK_PORT, debug=FLASK_DEBUG)
