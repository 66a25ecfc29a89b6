"""Initialize the Flask app and its service handles."""

import json
import os

import firebase_admin
from firebase_admin import credentials, firestore
from flask import Flask, g
from werkzeug.middleware.proxy_fix import ProxyFix

from .core.constants import (
    DEFAULT_FUNCTIONS_REGION,
    DEFAULT_FUNCTIONS_TIMEOUT,
    SSE_KEEPALIVE_SECONDS,
    WRITE_CONFIRM_TIMEOUT,
)


CREDENTIALS_FILE = os.path.join(
    os.path.dirname(os.path.dirname(__file__)), "firebase_credentials.json"
)


def _service_account(app):
    """Return service account info from the environment or the local file."""
    raw = os.environ.get("FIREBASE_CREDENTIALS_JSON")
    if raw:
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            app.logger.error(f"FIREBASE_CREDENTIALS_JSON is not valid JSON: {e}")

    if os.path.exists(CREDENTIALS_FILE):
        try:
            with open(CREDENTIALS_FILE, "r") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            app.logger.error(f"Could not read {CREDENTIALS_FILE}: {e}")
    return None


def _load_credentials(app):
    """Find Firebase credentials: env JSON, local file, then the default."""
    info = _service_account(app)
    if info:
        try:
            cred = credentials.Certificate(info)
            return cred, info.get("project_id") or app.config.get("FIREBASE_PROJECT_ID")
        except ValueError as e:
            app.logger.error(f"Invalid service account credentials: {e}")

    # Cloud Run and local gcloud logins
    try:
        cred = credentials.ApplicationDefault()
    except Exception as e:  # noqa: BLE001
        app.logger.error(f"No usable Firebase credentials found: {e}")
        cred = None
    return cred, app.config.get("FIREBASE_PROJECT_ID")


def _functions_base_url(config):
    if config.get("FUNCTIONS_BASE_URL"):
        return config["FUNCTIONS_BASE_URL"]
    from .functions.client import functions_base_url

    return functions_base_url(
        config.get("FIREBASE_PROJECT_ID") or "", config["FUNCTIONS_REGION"]
    )


def create_app(test_config=None):
    """Create and configure an instance of the Flask application."""
    app = Flask(__name__, instance_relative_config=True)

    # Load configuration
    app.config.from_mapping(
        SECRET_KEY=os.environ.get("SECRET_KEY") or "dev",
        FIREBASE_PROJECT_ID=os.environ.get("FIREBASE_PROJECT_ID"),
        FUNCTIONS_REGION=os.environ.get("FUNCTIONS_REGION")
        or DEFAULT_FUNCTIONS_REGION,
        FUNCTIONS_BASE_URL=os.environ.get("FUNCTIONS_BASE_URL"),
        FUNCTIONS_TIMEOUT=float(
            os.environ.get("FUNCTIONS_TIMEOUT") or DEFAULT_FUNCTIONS_TIMEOUT
        ),
        AWARDPICKS_DEFAULT_EVENT=os.environ.get("AWARDPICKS_DEFAULT_EVENT") or None,
        AWARDPICKS_WRITE_CONFIRM_TIMEOUT=float(
            os.environ.get("AWARDPICKS_WRITE_CONFIRM_TIMEOUT")
            or WRITE_CONFIRM_TIMEOUT
        ),
        SSE_KEEPALIVE_SECONDS=float(
            os.environ.get("SSE_KEEPALIVE_SECONDS") or SSE_KEEPALIVE_SECONDS
        ),
        LIVE_BACKEND=None,
    )

    if test_config:
        app.config.update(test_config)

    # Initialize Firebase Admin SDK only if not in testing mode
    if not app.config.get("TESTING"):
        cred, project_id = _load_credentials(app)
        if project_id and not app.config.get("FIREBASE_PROJECT_ID"):
            app.config["FIREBASE_PROJECT_ID"] = project_id

        # Initialize the app if credentials were found
        if cred and not firebase_admin._apps:
            try:
                firebase_options = {}
                if project_id:
                    firebase_options["projectId"] = project_id
                firebase_admin.initialize_app(cred, firebase_options)
            except ValueError:
                # This can happen if the app is already initialized, which is fine.
                app.logger.info("Firebase app already initialized.")

    app.config["FUNCTIONS_BASE_URL"] = _functions_base_url(app.config)

    from .extensions import init_services
    from .sync.backend import FirestoreBackend

    backend = app.config.get("LIVE_BACKEND")
    if backend is None:
        backend = FirestoreBackend(firestore.client())
    services = init_services(app, backend)
    if not app.config.get("TESTING"):
        services.event_types.start()

    # Register blueprints
    from . import streams as streams_bp

    app.register_blueprint(streams_bp.bp)

    from . import functions as functions_bp

    app.register_blueprint(functions_bp.bp)

    from . import error_handlers

    app.register_blueprint(error_handlers.error_handlers_bp)

    @app.teardown_appcontext
    def close_functions_client(exception=None):
        """Close the per-request Cloud Functions client, if one was created."""
        client = g.pop("functions_client", None)
        if client is not None:
            client.close()

    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    return app
