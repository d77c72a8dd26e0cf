"""Request hardening: proxy headers, security headers, CORS, rate limits and log format."""
from __future__ import annotations

import logging
import os
from typing import Any, Mapping

from flask import Flask, request
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_talisman import Talisman
from werkzeug.middleware.proxy_fix import ProxyFix

logger = logging.getLogger(__name__)

# Bound to the app in init_security; route decorators can reference it at import time.
limiter = Limiter(key_func=get_remote_address)


def _as_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).lower() in {"1", "true", "yes", "on"}


def _allowed_origin(origin: str, allowed: str) -> str:
    """Return the value for Access-Control-Allow-Origin, or '' if not allowed."""
    allowed = (allowed or "").strip()
    if allowed == "*":
        return "*"
    origins = {o.strip() for o in allowed.split(",") if o.strip()}
    return origin if origin in origins else ""


def init_cors(app: Flask, cfg: Mapping[str, Any]) -> None:
    """Answer browser preflights and tag API responses with CORS headers."""

    allowed = str(cfg.get("CORS_ORIGINS", "*"))

    @app.after_request
    def add_cors_headers(response):
        if not request.path.startswith("/api/"):
            return response
        origin = _allowed_origin(request.headers.get("Origin", ""), allowed)
        if origin:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
            if origin != "*":
                response.headers.add("Vary", "Origin")
        return response


def init_logging(cfg: Mapping[str, Any]) -> None:
    log_level = str(cfg.get("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, log_level, logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    if not any(isinstance(handler, logging.StreamHandler) for handler in root_logger.handlers):
        handler = logging.StreamHandler()
        fmt = (
            "{\"level\":\"%(levelname)s\",\"msg\":\"%(message)s\",\"name\":\"%(name)s\",\"path\":\"%(pathname)s\","
            "\"lineno\":%(lineno)d}"
        )
        handler.setFormatter(logging.Formatter(fmt))
        root_logger.addHandler(handler)


def init_security(app: Flask, cfg: Mapping[str, Any]) -> Limiter:
    """Wrap the app with ProxyFix and Talisman, then bind CORS, the limiter and logging."""

    # Client IP and scheme come from the reverse proxy; the limiter keys on that IP.
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1)  # type: ignore[assignment]

    default_force_https = (
        str(cfg.get("FLASK_ENV") or os.getenv("FLASK_ENV", "development"))
        .strip()
        .lower()
        == "production"
    )
    force_https = _as_bool(cfg.get("FORCE_HTTPS"), default_force_https)

    if not force_https and default_force_https:
        logger.warning(
            "FORCE_HTTPS is off under FLASK_ENV=production; bearer tokens will cross plain HTTP."
        )
    elif force_https:
        logger.debug("HTTPS enforcement enabled")

    csp = {
        "default-src": "'self'",
        "style-src": "'self' 'unsafe-inline'",
        "form-action": "'self'",
    }
    Talisman(
        app,
        force_https=force_https,
        force_file_save=False,
        content_security_policy=csp,
        session_cookie_secure=force_https,
        frame_options="DENY",
        referrer_policy="no-referrer",
    )

    init_cors(app, cfg)

    app.config["RATELIMIT_ENABLED"] = _as_bool(cfg.get("RATE_LIMIT_ENABLED"), True)
    app.config["RATELIMIT_DEFAULT"] = cfg.get("RATE_LIMIT_DEFAULT") or "100/hour"
    app.config["RATELIMIT_STORAGE_URI"] = cfg.get("RATELIMIT_STORAGE_URI") or "memory://"
    app.config["RATELIMIT_STRATEGY"] = "fixed-window"
    limiter.init_app(app)

    init_logging(cfg)
    return limiter
