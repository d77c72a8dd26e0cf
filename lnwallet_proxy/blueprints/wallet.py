"""
Wallet API Blueprint - Lightning wallet, invoice and payment proxy

Every route requires ``Authorization: Bearer <token>`` and accepts an optional
``network`` query parameter (``tlnbtc`` or ``lnbtc``). Failures come back as
``{"error": message}`` with a 4xx status.
"""

import logging
from functools import wraps

from flask import Blueprint, current_app, g, jsonify, request

from lnwallet_proxy import metrics, service
from lnwallet_proxy.audit_logger import get_audit_logger
from lnwallet_proxy.errors import AuthError, ProxyError, ValidationError
from lnwallet_proxy.security import limiter
from lnwallet_proxy.utils import extract_bearer_token, parse_limit

logger = logging.getLogger(__name__)
audit_logger = get_audit_logger()

wallet_bp = Blueprint("wallet", __name__)

PAYMENT_RATE_LIMIT = "30 per minute"
_TRUTHY_VALUES = {"1", "true", "yes", "on"}


def _cfg():
    return current_app.config["APP_CONFIG"]


def bearer_required(view):
    """Extract the bearer token and build this request's upstream client."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        try:
            token = extract_bearer_token(request.headers.get("Authorization"))
        except AuthError as e:
            audit_logger.log_auth_failure(e.message, request.remote_addr)
            raise
        g.network = request.args.get("network")
        g.upstream = service.client_for(token, g.network, _cfg())
        return view(*args, **kwargs)

    return wrapper


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _limit() -> int:
    cfg = _cfg()
    return parse_limit(request.args.get("limit"), cfg["DEFAULT_LIST_LIMIT"], cfg["MAX_LIST_LIMIT"])


@wallet_bp.errorhandler(ProxyError)
def handle_proxy_error(e: ProxyError):
    if e.status_code >= 500:
        logger.error(f"{type(e).__name__}: {e.message}", exc_info=True)
    else:
        logger.info(f"{request.method} {request.path} failed with {type(e).__name__}: {e.message}")
    return jsonify(e.to_dict()), e.status_code


@wallet_bp.after_request
def record_access(response):
    endpoint = request.url_rule.rule if request.url_rule else request.path
    metrics.proxy_requests.labels(endpoint=endpoint, status=str(response.status_code)).inc()
    audit_logger.log_api_access(endpoint, request.method, response.status_code, request.args.get("network"))
    return response


@wallet_bp.route("/user/me", methods=["GET"])
@bearer_required
def current_user():
    """Verify the bearer token against the provider and return its user document."""
    return jsonify(service.verify_token(g.upstream))


@wallet_bp.route("/wallet/generate", methods=["POST"])
@limiter.limit("10 per minute")
@bearer_required
def generate_wallet():
    """
    Create a custodial Lightning wallet.

    Expected JSON body:
        - label
        - passphrase
        - passcodeEncryptionCode
        - enterprise (optional, defaults to ENTERPRISE_ID)
    """
    data = _json_body()
    result = service.generate_wallet(
        g.upstream,
        data.get("label"),
        data.get("passphrase"),
        data.get("passcodeEncryptionCode"),
        enterprise=data.get("enterprise") or _cfg().get("ENTERPRISE_ID") or None,
    )
    return jsonify(result)


@wallet_bp.route("/wallet/<wallet_id>", methods=["GET"])
@bearer_required
def get_wallet(wallet_id: str):
    return jsonify(service.fetch_wallet(g.upstream, wallet_id).to_dict())


@wallet_bp.route("/wallet/<wallet_id>/invoice", methods=["POST"])
@bearer_required
def create_invoice(wallet_id: str):
    """
    Create a Lightning invoice.

    Expected JSON body:
        - valueMsat: amount in millisatoshis (integer or digit string)
        - memo (optional)
        - expiry (optional, seconds)
    """
    data = _json_body()
    invoice = service.create_invoice(
        g.upstream,
        wallet_id,
        data.get("valueMsat"),
        memo=data.get("memo"),
        expiry=data.get("expiry"),
        default_expiry=_cfg()["DEFAULT_INVOICE_EXPIRY"],
    )
    return jsonify(invoice.to_dict())


@wallet_bp.route("/wallet/<wallet_id>/invoice", methods=["GET"])
@bearer_required
def list_invoices(wallet_id: str):
    invoices = service.list_invoices(g.upstream, wallet_id, _limit())
    return jsonify({"invoices": [invoice.to_dict() for invoice in invoices]})


@wallet_bp.route("/wallet/<wallet_id>/invoice/<payment_hash>", methods=["GET"])
@bearer_required
def get_invoice(wallet_id: str, payment_hash: str):
    return jsonify(service.get_invoice(g.upstream, wallet_id, payment_hash).to_dict())


@wallet_bp.route("/wallet/<wallet_id>/payment", methods=["POST"])
@limiter.limit(PAYMENT_RATE_LIMIT)
@bearer_required
def pay_invoice(wallet_id: str):
    """
    Pay a Lightning invoice.

    Expected JSON body:
        - invoice: BOLT11 payment request
        - passphrase: wallet passphrase
        - feeLimitMsat, amountMsat (optional)

    With ``?verify=true`` the payment is re-read after PAYMENT_VERIFY_DELAY
    seconds and both results are returned.
    """
    data = _json_body()
    pay_kwargs = {"fee_limit_msat": data.get("feeLimitMsat"), "amount_msat": data.get("amountMsat")}

    if request.args.get("verify", "").strip().lower() in _TRUTHY_VALUES:
        cfg = _cfg()
        result = service.pay_and_verify(
            g.upstream,
            wallet_id,
            data.get("invoice"),
            data.get("passphrase"),
            delay=cfg["PAYMENT_VERIFY_DELAY"],
            scan_limit=cfg["PAYMENT_LOOKUP_SCAN_LIMIT"],
            **pay_kwargs,
        )
        return jsonify(result.to_dict())

    payment = service.pay_invoice(g.upstream, wallet_id, data.get("invoice"), data.get("passphrase"), **pay_kwargs)
    return jsonify(payment.to_dict())


@wallet_bp.route("/wallet/<wallet_id>/payment", methods=["GET"])
@bearer_required
def list_payments(wallet_id: str):
    payments = service.list_payments(g.upstream, wallet_id, _limit())
    return jsonify({"payments": [payment.to_dict() for payment in payments]})


@wallet_bp.route("/wallet/<wallet_id>/payment/<payment_hash>", methods=["GET"])
@bearer_required
def get_payment(wallet_id: str, payment_hash: str):
    payment = service.get_payment(g.upstream, wallet_id, payment_hash, _cfg()["PAYMENT_LOOKUP_SCAN_LIMIT"])
    return jsonify(payment.to_dict())


@wallet_bp.route("/wallet/<wallet_id>/transaction", methods=["GET"])
@bearer_required
def list_transactions(wallet_id: str):
    return jsonify({"transactions": service.list_transactions(g.upstream, wallet_id, _limit())})


@wallet_bp.route("/wallet/<wallet_id>/transaction/<tx_id>", methods=["GET"])
@bearer_required
def get_transaction(wallet_id: str, tx_id: str):
    return jsonify(service.get_transaction(g.upstream, wallet_id, tx_id))
