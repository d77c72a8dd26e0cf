"""
Wallet operations shared by the JSON API and the dashboard.

Each function takes an ``UpstreamClient`` built for the current request,
validates its inputs locally (so malformed ids never reach the network),
forwards the call and returns canonical records from ``normalize``.
"""

import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional

from lnwallet_proxy.errors import DecodeError, ProxyError, UpstreamError, ValidationError
from lnwallet_proxy.networks import resolve_network
from lnwallet_proxy.normalize import (
    MAX_MSAT,
    Invoice,
    Payment,
    Wallet,
    normalize_invoice,
    normalize_invoices,
    normalize_payment,
    normalize_payments,
    normalize_wallet,
)
from lnwallet_proxy.upstream import UpstreamClient
from lnwallet_proxy.utils import normalize_payment_hash, normalize_wallet_id

logger = logging.getLogger(__name__)

WALLET_SUBTYPE = "lightningCustody"


def client_for(token: str, network: Optional[str], cfg: Mapping[str, Any]) -> UpstreamClient:
    """Build the per-request client; an unsupported network fails before any I/O."""
    return UpstreamClient(token, resolve_network(network, cfg), timeout=cfg.get("UPSTREAM_TIMEOUT", 10))


def parse_msat(value: Any, field: str = "valueMsat") -> int:
    """Accept an int or a decimal-digit string; reject negatives, fractions and bools."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} is required and must be a non-negative integer")
    if isinstance(value, int):
        amount = value
    elif isinstance(value, str) and re.fullmatch(r"[0-9]{1,22}", value.strip()):
        amount = int(value.strip())
    else:
        raise ValidationError(f"{field} must be a non-negative integer (got {value!r})")
    if abs(amount) > MAX_MSAT:
        raise ValidationError(f"{field} exceeds the bitcoin supply")
    if amount < 0:
        raise ValidationError(f"{field} must be a non-negative integer (got {value!r})")
    return amount


def _require_text(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    return value.strip()


def verify_token(client: UpstreamClient) -> Any:
    return client.get_me()


def generate_wallet(
    client: UpstreamClient,
    label: Any,
    passphrase: Any,
    passcode_encryption_code: Any,
    enterprise: Optional[str] = None,
) -> dict:
    """Create a custodial Lightning wallet and return it with its user keychain."""
    params = {
        "label": _require_text(label, "label"),
        "passphrase": _require_text(passphrase, "passphrase"),
        "passcodeEncryptionCode": _require_text(passcode_encryption_code, "passcodeEncryptionCode"),
        "subType": WALLET_SUBTYPE,
    }
    if enterprise:
        params["enterprise"] = enterprise

    response = client.generate_wallet(params)
    if not isinstance(response, Mapping) or not isinstance(response.get("wallet"), Mapping):
        raise DecodeError("Wallet provider response did not include the created wallet")

    logger.info(f"Wallet created successfully with ID: {response['wallet'].get('id')}")
    return {
        "wallet": response["wallet"],
        "userKeychain": response.get("userKeychain"),
        "passcodeEncryptionCode": params["passcodeEncryptionCode"],
    }


def fetch_wallet(client: UpstreamClient, wallet_id: str) -> Wallet:
    wallet_id = normalize_wallet_id(wallet_id)
    return normalize_wallet(client.get_wallet(wallet_id), wallet_id)


def create_invoice(
    client: UpstreamClient,
    wallet_id: str,
    value_msat: Any,
    memo: Optional[str] = None,
    expiry: Any = None,
    default_expiry: int = 3600,
) -> Invoice:
    wallet_id = normalize_wallet_id(wallet_id)
    amount = parse_msat(value_msat)
    if expiry is None or expiry == "":
        expiry = default_expiry
    if isinstance(expiry, bool) or not isinstance(expiry, int) or expiry <= 0:
        raise ValidationError(f"expiry must be a positive number of seconds (got {expiry!r})")
    if memo is not None and not isinstance(memo, str):
        raise ValidationError("memo must be a string")

    params = {"valueMsat": str(amount), "memo": memo or "", "expiry": expiry}
    return normalize_invoice(client.create_invoice(wallet_id, params))


def list_invoices(client: UpstreamClient, wallet_id: str, limit: int) -> List[Invoice]:
    wallet_id = normalize_wallet_id(wallet_id)
    return normalize_invoices(client.list_invoices(wallet_id, limit))


def get_invoice(client: UpstreamClient, wallet_id: str, payment_hash: str) -> Invoice:
    wallet_id = normalize_wallet_id(wallet_id)
    return normalize_invoice(client.get_invoice(wallet_id, normalize_payment_hash(payment_hash)))


def pay_invoice(
    client: UpstreamClient,
    wallet_id: str,
    invoice: Any,
    passphrase: Any,
    fee_limit_msat: Any = None,
    amount_msat: Any = None,
) -> Payment:
    wallet_id = normalize_wallet_id(wallet_id)
    params = {
        "invoice": _require_text(invoice, "invoice"),
        "passphrase": _require_text(passphrase, "passphrase"),
    }
    if fee_limit_msat is not None:
        params["feeLimitMsat"] = str(parse_msat(fee_limit_msat, "feeLimitMsat"))
    if amount_msat is not None:
        params["amountMsat"] = str(parse_msat(amount_msat, "amountMsat"))
    return normalize_payment(client.pay_invoice(wallet_id, params))


def list_payments(client: UpstreamClient, wallet_id: str, limit: int) -> List[Payment]:
    wallet_id = normalize_wallet_id(wallet_id)
    return normalize_payments(client.list_payments(wallet_id, limit))


def get_payment(client: UpstreamClient, wallet_id: str, payment_hash: str, scan_limit: int = 100) -> Payment:
    """
    Look a payment up by hash.

    When the direct lookup fails the most recent ``scan_limit`` payments are
    scanned for the hash. If that finds nothing the original error is raised.
    """
    wallet_id = normalize_wallet_id(wallet_id)
    payment_hash = normalize_payment_hash(payment_hash)
    try:
        return normalize_payment(client.get_payment(wallet_id, payment_hash))
    except (UpstreamError, DecodeError) as lookup_error:
        logger.info(f"Direct payment lookup failed ({lookup_error.message}); scanning payment list")
        try:
            candidates = list_payments(client, wallet_id, scan_limit)
        except (UpstreamError, DecodeError):
            raise lookup_error
        for payment in candidates:
            if payment.payment_hash.lower() == payment_hash:
                return payment
        raise lookup_error


@dataclass(frozen=True)
class PaymentVerification:
    """A submitted payment plus the outcome of the follow-up status check."""

    payment: Payment
    verified: Optional[Payment] = None
    verification_error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "payment": self.payment.to_dict(),
            "verified": self.verified.to_dict() if self.verified else None,
            "verificationError": self.verification_error,
        }


def pay_and_verify(
    client: UpstreamClient,
    wallet_id: str,
    invoice: Any,
    passphrase: Any,
    delay: float = 2.0,
    scan_limit: int = 100,
    sleep: Callable[[float], None] = time.sleep,
    **pay_kwargs: Any,
) -> PaymentVerification:
    """
    Pay an invoice, wait ``delay`` seconds, then re-read the payment.

    The submission result stands even if the follow-up check fails.
    """
    payment = pay_invoice(client, wallet_id, invoice, passphrase, **pay_kwargs)
    if not payment.payment_hash:
        return PaymentVerification(payment, verification_error="Submitted payment has no payment hash")

    if delay > 0:
        sleep(delay)
    try:
        verified = get_payment(client, wallet_id, payment.payment_hash, scan_limit)
    except ProxyError as e:
        logger.warning(f"Could not verify payment status for {payment.payment_hash}: {e.message}")
        return PaymentVerification(payment, verification_error=e.message)
    return PaymentVerification(payment, verified=verified)


def list_transactions(client: UpstreamClient, wallet_id: str, limit: int) -> List[Any]:
    wallet_id = normalize_wallet_id(wallet_id)
    response = client.list_transactions(wallet_id, limit)
    if isinstance(response, Mapping) and isinstance(response.get("transactions"), list):
        return response["transactions"]
    return []


def get_transaction(client: UpstreamClient, wallet_id: str, tx_id: str) -> Any:
    wallet_id = normalize_wallet_id(wallet_id)
    return client.get_transaction(wallet_id, _require_text(tx_id, "transaction id"))
