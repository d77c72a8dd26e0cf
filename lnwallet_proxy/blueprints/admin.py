"""
Admin Blueprint - Health Checks and Metrics

The proxy holds no connections of its own, so health reports configuration
rather than probing the wallet provider.
"""

import logging
import time
from typing import Any, Dict

from flask import Blueprint, Response, current_app, jsonify
from prometheus_client import generate_latest

from lnwallet_proxy import metrics
from lnwallet_proxy.networks import network_configs

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__)


@admin_bp.route("/health")
def health():
    """
    Health check endpoint.

    Returns:
        JSON health status with service information and configured networks
    """
    cfg = current_app.config["APP_CONFIG"]
    health_status: Dict[str, Any] = {
        "status": "healthy",
        "timestamp": time.time(),
        "service": cfg["APP_NAME"],
        "version": cfg["APP_VERSION"],
        "defaultNetwork": cfg["DEFAULT_NETWORK"],
        "networks": {
            name: {"apiUrl": net.api_url, "environment": net.environment, "displayName": net.display_name}
            for name, net in network_configs(cfg).items()
        },
    }
    return jsonify(health_status), 200


@admin_bp.route("/health/live")
def liveness():
    return jsonify({"status": "alive"}), 200


@admin_bp.route("/metrics")
def metrics_json():
    """JSON view of the request and upstream call counters."""
    cfg = current_app.config["APP_CONFIG"]
    return jsonify({
        "timestamp": time.time(),
        "application": {"name": cfg["APP_NAME"], "version": cfg["APP_VERSION"]},
        "metrics": metrics.snapshot(),
    }), 200


@admin_bp.route("/metrics/prometheus")
def metrics_prometheus():
    """Prometheus text format metrics."""
    try:
        return Response(generate_latest(metrics.registry), mimetype="text/plain; version=0.0.4")
    except Exception as e:
        logger.error(f"Prometheus metrics failed: {e}", exc_info=True)
        return Response(f"# Error: {e}\n", mimetype="text/plain"), 500
