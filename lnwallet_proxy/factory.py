"""
Application Factory for the Lightning wallet proxy

Implements the Flask application factory pattern with:
- Blueprint registration
- Security configuration (TLS, headers, CORS, rate limiting)
- Audit logging initialization
- Uniform JSON error handling
"""

import logging
from typing import Any, Mapping, Optional

from flask import Flask, jsonify

from lnwallet_proxy.audit_logger import init_audit_logger
from lnwallet_proxy.config import get_config, validate_config
from lnwallet_proxy.security import init_security

logger = logging.getLogger(__name__)


def create_app(config_override: Optional[Mapping[str, Any]] = None) -> Flask:
    """
    Create and configure the Flask application using the factory pattern.

    Args:
        config_override: Optional configuration values merged over the
            environment-derived configuration (used by tests)

    Returns:
        Configured Flask application instance
    """
    app = Flask(__name__)

    # Load configuration
    cfg = dict(get_config())
    if config_override:
        cfg.update(config_override)
    validate_config(cfg)
    app.config["APP_CONFIG"] = cfg
    app.config["TESTING"] = bool(cfg.get("TESTING", False))

    # Set Flask secret key (required for sessions)
    app.secret_key = cfg.get("FLASK_SECRET_KEY") or "dev-only-secret"

    init_security(app, cfg)
    init_audit_logger(cfg.get("LOG_RESPONSE_MAX_CHARS", 500))

    register_blueprints(app)
    register_error_handlers(app)

    logger.info(f"{cfg['APP_NAME']} {cfg['APP_VERSION']} ready (default network {cfg['DEFAULT_NETWORK']})")
    return app


def register_blueprints(app: Flask) -> None:
    """Register all application blueprints."""

    # Wallet/invoice/payment proxy
    from lnwallet_proxy.blueprints.wallet import wallet_bp
    app.register_blueprint(wallet_bp, url_prefix="/api")

    # Health and metrics
    from lnwallet_proxy.blueprints.admin import admin_bp
    app.register_blueprint(admin_bp)

    # Server-rendered wallet dashboard
    from lnwallet_proxy.blueprints.ui import ui_bp
    app.register_blueprint(ui_bp)

    logger.debug("All blueprints registered")


def register_error_handlers(app: Flask) -> None:
    """Register global error handlers; every body is ``{"error": message}``."""

    @app.errorhandler(400)
    def bad_request(e):
        return jsonify({"error": getattr(e, "description", None) or "Bad request"}), 400

    @app.errorhandler(401)
    def unauthorized(e):
        return jsonify({"error": "Authentication required"}), 401

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Resource not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(429)
    def rate_limit_exceeded(e):
        return jsonify({"error": f"Rate limit exceeded: {e.description}"}), 429

    @app.errorhandler(500)
    def internal_error(e):
        logger.error(f"Internal server error: {e}", exc_info=True)
        return jsonify({"error": "An unexpected error occurred"}), 500
