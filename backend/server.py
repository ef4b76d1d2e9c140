"""
Flask application entry point for the ResQ backend.

Registers the medical record and staff ledger routes. Startup fails if
the signing or encryption key is missing.
"""

import logging

from flask import Flask, jsonify

from resq.config import config
from resq.errors import ResqError
from resq.routes.medical import bp as medical_bp
from resq.routes.staff import bp as staff_bp
from resq.db.postgres import close_db_session, rollback_session
from resq.services.access_gateway import get_access_gateway
from resq.services.principal import get_principal_resolver

logger = logging.getLogger("resq.server")


def create_app(init_database: bool = False):
    """Create and configure Flask app."""
    # Fail fast: no literal fallback secrets
    config.require_keys(include_identity=True)
    get_access_gateway()
    get_principal_resolver()

    app = Flask(__name__)

    # Load config
    app.config["SECRET_KEY"] = config.SECRET_KEY
    app.config["DEBUG"] = config.DEBUG

    @app.after_request
    def after_request(response):
        response.headers.add("Access-Control-Allow-Origin", "*")
        response.headers.add("Access-Control-Allow-Headers", "Content-Type,Authorization")
        response.headers.add("Access-Control-Allow-Methods", "GET,PUT,POST,DELETE,OPTIONS")
        response.headers["Cache-Control"] = "no-store"
        return response

    # Ensure clean session state at the start of each request
    @app.before_request
    def ensure_clean_session():
        rollback_session()

    # Clean up database session at the end of each request
    @app.teardown_appcontext
    def shutdown_session(exception=None):
        close_db_session(exception)

    @app.errorhandler(ResqError)
    def handle_resq_error(error):
        if error.http_status >= 500:
            logger.error(f"{error.code}: {error.message}")
        return jsonify(error.to_dict()), error.http_status

    # Register blueprints
    app.register_blueprint(medical_bp)  # /api/v1/medical/*
    app.register_blueprint(staff_bp)    # /api/v1/staff/*

    # Health check endpoint
    @app.route("/health")
    def health():
        return {"status": "ok"}

    # Initialize database tables if requested (development only)
    if init_database:
        with app.app_context():
            from resq.db.postgres import init_db
            init_db()
            print("[ResQ] Database tables initialized")

    return app


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG if config.DEBUG else logging.INFO)
    app = create_app(init_database=False)
    print(f"[ResQ] Starting server on port 5001...")
    print(f"[ResQ] Debug mode: {config.DEBUG}")
    print(f"[ResQ] Access grant TTL: {config.access_token_ttl_hours()}h")
    print(f"[ResQ] Routes:")
    print(f"  - /api/v1/medical/* (Records and QR redemption)")
    print(f"  - /api/v1/staff/* (Staff access ledger)")
    print(f"  - /health (Health check)")
    app.run(debug=config.DEBUG, port=5001)
