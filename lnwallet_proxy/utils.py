"""
Utility functions for the wallet proxy

Shared helpers for bearer-token handling, identifier validation, and log
redaction.
"""

import json
import re
from typing import Any, Mapping, Optional

from lnwallet_proxy.errors import AuthError, ValidationError

WALLET_ID_LENGTH = 32
PAYMENT_HASH_LENGTH = 64

# Body fields that must never be logged verbatim
MASKED_FIELDS = {"passphrase", "passcodeEncryptionCode", "password", "otp", "prv", "encryptedPrv"}
TRUNCATED_FIELDS = {"invoice": 20, "paymentRequest": 20, "token": 10, "accessToken": 10}


def validate_hex_format(value: str, length: int) -> bool:
    """
    Validate hexadecimal string format.

    Args:
        value: String to validate
        length: Expected hex string length

    Returns:
        True if valid hex string of specified length
    """
    if not value:
        return False
    return bool(re.fullmatch(r"[0-9a-fA-F]{{{}}}".format(length), value))


def clean_bearer_token(value: Optional[str]) -> str:
    """
    Strip an optional ``Bearer `` prefix and surrounding whitespace.

    ``"Bearer abc"`` and ``"abc"`` both yield ``"abc"``.

    Raises:
        AuthError: if nothing usable remains
    """
    token = (value or "").strip()
    if token.lower() == "bearer" or token[:7].lower() == "bearer ":
        token = token[6:].strip()
    if not token:
        raise AuthError("No bearer token provided")
    return token


def extract_bearer_token(header: Optional[str]) -> str:
    """
    Pull the token out of an inbound ``Authorization`` header.

    Unlike ``clean_bearer_token`` the header must carry the ``Bearer`` scheme.
    """
    if not header or not header.strip().lower().startswith("bearer "):
        raise AuthError("No bearer token provided")
    return clean_bearer_token(header)


def normalize_wallet_id(wallet_id: Optional[str]) -> str:
    """
    Lower-case and trim a wallet id, rejecting anything that is not 32 hex chars.

    Raises:
        ValidationError: if the id is missing or malformed
    """
    if not wallet_id:
        raise ValidationError("Wallet ID is required")
    formatted = wallet_id.strip().lower()
    if not re.fullmatch(r"[a-f0-9]{32}", formatted):
        raise ValidationError("Invalid wallet ID format. Should be a 32-character hex string")
    return formatted


def normalize_payment_hash(payment_hash: Optional[str]) -> str:
    if not payment_hash or not validate_hex_format(payment_hash.strip(), PAYMENT_HASH_LENGTH):
        raise ValidationError("Invalid payment hash. Should be a 64-character hex string")
    return payment_hash.strip().lower()


def parse_limit(raw: Optional[str], default: int, maximum: int) -> int:
    """Parse a ``limit`` query parameter into a bounded positive integer."""
    if raw is None or raw == "":
        return default
    try:
        limit = int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"limit must be an integer (got {raw!r})")
    if limit < 1:
        raise ValidationError("limit must be a positive integer")
    return min(limit, maximum)


def mask_token(token: Optional[str]) -> str:
    if not token:
        return ""
    return token[:10] + "..."


def redact(params: Optional[Mapping[str, Any]]) -> Optional[dict]:
    """
    Return a copy of ``params`` safe to log.

    Secrets are replaced with ``***`` and long credentials such as invoices are
    cut down to a short prefix.
    """
    if params is None:
        return None
    safe = {}
    for key, value in params.items():
        if key in MASKED_FIELDS and value is not None:
            safe[key] = "***"
        elif key in TRUNCATED_FIELDS and isinstance(value, str):
            keep = TRUNCATED_FIELDS[key]
            safe[key] = value if len(value) <= keep else value[:keep] + "..."
        elif isinstance(value, Mapping):
            safe[key] = redact(value)
        else:
            safe[key] = value
    return safe


def truncate_for_log(payload: Any, max_chars: int = 500) -> str:
    """Serialise ``payload`` to JSON and cut it to ``max_chars``."""
    try:
        text = json.dumps(payload, default=str, sort_keys=True)
    except (TypeError, ValueError):
        text = repr(payload)
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "...(truncated)"
