"""
Response normalization for wallet provider payloads.

The provider does not version its responses and has been observed returning
payment records in two layouts:

- flat: ``{"paymentHash", "status", "amountMsat", "feeLimitMsat", ...}``
- nested: ``{"paymentStatus": {"status", "paymentHash", "paymentPreimage", ...},
  "transfer": {"valueString", "feeString", "entries": [...], ...}}``

``classify_payment`` tells them apart by structure and each arm is mapped to
the canonical ``Payment``. Anything that fails to map degrades to a zeroed
PENDING record; a single bad record never aborts a list.

All millisatoshi arithmetic uses ``int``/``Decimal``; floats never touch an
amount.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Context, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union

from lnwallet_proxy.audit_logger import get_audit_logger
from lnwallet_proxy.errors import MappingError

logger = logging.getLogger(__name__)

MSAT_PER_SAT = 1000
# Total bitcoin supply; anything larger is not a real amount
MAX_SAT = 21_000_000 * 100_000_000
MAX_MSAT = MAX_SAT * MSAT_PER_SAT

# Wide enough that sat -> msat scaling never rounds
_AMOUNT_CONTEXT = Context(prec=120)


class InvoiceStatus(str, Enum):
    OPEN = "OPEN"
    SETTLED = "SETTLED"
    CANCELED = "CANCELED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


# Anything else, including "in_flight", is PENDING
UPSTREAM_PAYMENT_STATUS = {
    "settled": PaymentStatus.SUCCEEDED,
    "failed": PaymentStatus.FAILED,
}


@dataclass(frozen=True)
class Invoice:
    payment_hash: str
    status: InvoiceStatus = InvoiceStatus.OPEN
    value_msat: int = 0
    wallet_id: Optional[str] = None
    invoice: Optional[str] = None
    memo: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    expires_at: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "paymentHash": self.payment_hash,
            "walletId": self.wallet_id,
            "status": self.status.value,
            "invoice": self.invoice,
            "valueMsat": str(self.value_msat),
            "memo": self.memo,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "expiresAt": self.expires_at,
        }


@dataclass(frozen=True)
class Payment:
    payment_hash: str
    status: PaymentStatus = PaymentStatus.PENDING
    value_msat: int = 0
    fee_msat: int = 0
    wallet_id: Optional[str] = None
    failure_reason: Optional[str] = None
    destination: Optional[str] = None
    preimage: Optional[str] = None
    invoice: Optional[str] = None
    timestamp: int = 0  # epoch milliseconds

    def to_dict(self) -> dict:
        return {
            "paymentHash": self.payment_hash,
            "walletId": self.wallet_id,
            "status": self.status.value,
            "valueMsat": str(self.value_msat),
            "feeMsat": str(self.fee_msat),
            "value": str(self.value_msat // MSAT_PER_SAT),
            "fee": str(self.fee_msat // MSAT_PER_SAT),
            "failureReason": self.failure_reason,
            "destination": self.destination,
            "preimage": self.preimage,
            "invoice": self.invoice,
            "timestamp": self.timestamp,
        }


WALLET_LIGHTNING_FIELDS = (
    ("inbound_balance", "inboundBalance"),
    ("inbound_pending_balance", "inboundPendingBalance"),
    ("inbound_unsettled_balance", "inboundUnsettledBalance"),
    ("outbound_balance", "outboundBalance"),
    ("outbound_pending_balance", "outboundPendingBalance"),
    ("outbound_unsettled_balance", "outboundUnsettledBalance"),
)
WALLET_ONCHAIN_FIELDS = (
    ("balance", "balanceString"),
    ("confirmed_balance", "confirmedBalanceString"),
    ("spendable_balance", "spendableBalanceString"),
)


@dataclass(frozen=True)
class Wallet:
    """Live balance snapshot; lightning fields in msat, on-chain fields in base units."""

    id: str
    label: Optional[str] = None
    coin: Optional[str] = None
    inbound_balance: str = "0"
    inbound_pending_balance: str = "0"
    inbound_unsettled_balance: str = "0"
    outbound_balance: str = "0"
    outbound_pending_balance: str = "0"
    outbound_unsettled_balance: str = "0"
    balance: str = "0"
    confirmed_balance: str = "0"
    spendable_balance: str = "0"

    def to_dict(self) -> dict:
        data = {"id": self.id, "label": self.label, "coin": self.coin}
        for attr, key in WALLET_LIGHTNING_FIELDS + WALLET_ONCHAIN_FIELDS:
            data[key] = getattr(self, attr)
        return data


# Payment shapes


@dataclass(frozen=True)
class FlatPaymentShape:
    raw: Mapping[str, Any]


@dataclass(frozen=True)
class NestedPaymentShape:
    raw: Mapping[str, Any]
    payment_status: Mapping[str, Any]
    transfer: Mapping[str, Any]


@dataclass(frozen=True)
class UnrecognizedPaymentShape:
    raw: Any


PaymentShape = Union[FlatPaymentShape, NestedPaymentShape, UnrecognizedPaymentShape]


def classify_payment(raw: Any) -> PaymentShape:
    """Pick the payment layout by looking for ``paymentStatus.status`` then ``status``."""
    if isinstance(raw, Mapping):
        payment_status = raw.get("paymentStatus")
        if isinstance(payment_status, Mapping) and "status" in payment_status:
            transfer = raw.get("transfer")
            return NestedPaymentShape(raw, payment_status, transfer if isinstance(transfer, Mapping) else {})
        if "status" in raw:
            return FlatPaymentShape(raw)
    return UnrecognizedPaymentShape(raw)


# Field helpers


def _first(mappings: Sequence[Mapping[str, Any]], keys: Iterable[str]) -> Any:
    for key in keys:
        for mapping in mappings:
            value = mapping.get(key)
            if value is not None and value != "":
                return value
    return None


def _to_decimal(value: Any, field: str) -> Decimal:
    if isinstance(value, bool):
        raise MappingError(f"{field} is not numeric: {value!r}")
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(repr(value))
    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation:
            raise MappingError(f"{field} is not numeric: {value!r}")
    raise MappingError(f"{field} has unsupported type {type(value).__name__}")


def _check_ceiling(amount: Decimal, ceiling: int, field: str) -> None:
    if abs(amount) > ceiling:
        raise MappingError(f"{field} exceeds the bitcoin supply")


def msat_value(value: Any, field: str = "amount") -> int:
    """Parse an explicit millisatoshi amount. Missing means 0; negatives are rejected."""
    if value is None or value == "":
        return 0
    amount = _to_decimal(value, field)
    if not amount.is_finite():
        raise MappingError(f"{field} is not a whole number of msat: {value!r}")
    _check_ceiling(amount, MAX_MSAT, field)
    if amount != amount.to_integral_value():
        raise MappingError(f"{field} is not a whole number of msat: {value!r}")
    if amount < 0:
        raise MappingError(f"{field} is negative: {value!r}")
    return int(amount)


def msat_from_base_units(value: Any, field: str = "amount") -> int:
    """
    Convert a satoshi amount (usually a signed ``valueString``) to msat.

    Transfers report outgoing value as negative, so the magnitude is used.
    """
    if value is None or value == "":
        return 0
    amount = _to_decimal(value, field)
    if not amount.is_finite():
        raise MappingError(f"{field} is not finite: {value!r}")
    _check_ceiling(amount, MAX_SAT, field)
    msat = _AMOUNT_CONTEXT.multiply(abs(amount), Decimal(MSAT_PER_SAT))
    if msat != msat.to_integral_value():
        raise MappingError(f"{field} has sub-millisatoshi precision: {value!r}")
    return int(msat)


def _prefer_msat(
    sources: Sequence[Mapping[str, Any]], msat_keys: Iterable[str], base_keys: Iterable[str], field: str
) -> int:
    explicit = _first(sources, msat_keys)
    if explicit is not None:
        return msat_value(explicit, field)
    return msat_from_base_units(_first(sources, base_keys), field)


def _integer_string(value: Any, field: str) -> str:
    if value is None or value == "":
        return "0"
    amount = _to_decimal(value, field)
    if not amount.is_finite():
        raise MappingError(f"{field} is not an integer: {value!r}")
    _check_ceiling(amount, MAX_MSAT, field)
    if amount != amount.to_integral_value():
        raise MappingError(f"{field} is not an integer: {value!r}")
    return str(int(amount))


def _parse_instant(value: Any) -> Optional[datetime]:
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def timestamp_ms(value: Any) -> int:
    """Epoch milliseconds for an upstream instant, 0 when absent or unreadable."""
    instant = _parse_instant(value)
    if instant is None:
        return 0
    return int(instant.timestamp() * 1000)


def iso_instant(value: Any) -> Optional[str]:
    instant = _parse_instant(value)
    if instant is None:
        return None
    return instant.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _hash_hint(raw: Any) -> str:
    """Best-effort payment hash for a record that failed to map."""
    if not isinstance(raw, Mapping):
        return ""
    value = raw.get("paymentHash")
    if not isinstance(value, str):
        nested = raw.get("paymentStatus")
        value = nested.get("paymentHash") if isinstance(nested, Mapping) else None
    return value if isinstance(value, str) else ""


def _wallet_hint(raw: Any) -> Optional[str]:
    if isinstance(raw, Mapping) and isinstance(raw.get("walletId"), str):
        return raw["walletId"]
    return None


# Payments


def map_payment_status(status: Any) -> PaymentStatus:
    return UPSTREAM_PAYMENT_STATUS.get(status, PaymentStatus.PENDING) if isinstance(status, str) else PaymentStatus.PENDING


def external_destination(transfer: Mapping[str, Any], wallet_id: Optional[str] = None) -> Optional[str]:
    """
    First transfer entry address that is neither change nor owned by the wallet.

    With several external entries the first one in entry order wins; no further
    disambiguation is attempted. When ``wallet_id`` is unknown any entry tagged
    with a wallet counts as owned.
    """
    entries = transfer.get("entries")
    if not isinstance(entries, list):
        return None
    for entry in entries:
        if not isinstance(entry, Mapping) or entry.get("isChange"):
            continue
        owner = entry.get("wallet")
        if owner and (wallet_id is None or owner == wallet_id):
            continue
        address = entry.get("address")
        if address:
            return str(address)
    return None


def _map_flat_payment(shape: FlatPaymentShape) -> Payment:
    raw = shape.raw
    status = map_payment_status(raw.get("status"))
    payment_hash = raw.get("paymentHash") or ""
    if not isinstance(payment_hash, str):
        raise MappingError("paymentHash is not a string")

    return Payment(
        payment_hash=payment_hash,
        status=status,
        value_msat=_prefer_msat([raw], ("amountMsat", "valueMsat"), ("amount", "valueString"), "amountMsat"),
        fee_msat=_prefer_msat([raw], ("feeMsat", "feeLimitMsat"), ("fee", "feeString"), "feeMsat"),
        wallet_id=_optional_str(raw.get("walletId")),
        failure_reason=_optional_str(raw.get("failureReason")) if status is PaymentStatus.FAILED else None,
        destination=_optional_str(raw.get("destination")),
        preimage=(
            _optional_str(raw.get("paymentPreimage") or raw.get("preimage"))
            if status is PaymentStatus.SUCCEEDED
            else None
        ),
        invoice=_optional_str(raw.get("invoice")),
        timestamp=timestamp_ms(raw.get("createdAt") or raw.get("updatedAt")),
    )


def _map_nested_payment(shape: NestedPaymentShape) -> Payment:
    raw, payment_status, transfer = shape.raw, shape.payment_status, shape.transfer
    status = map_payment_status(payment_status.get("status"))
    payment_hash = payment_status.get("paymentHash") or raw.get("paymentHash") or ""
    if not isinstance(payment_hash, str):
        raise MappingError("paymentHash is not a string")
    wallet_id = _optional_str(raw.get("walletId") or transfer.get("wallet"))

    sources = [payment_status, raw]
    value_msat = _prefer_msat(sources, ("amountMsat", "valueMsat"), (), "amountMsat")
    if value_msat == 0:
        value_msat = msat_from_base_units(_first([transfer], ("valueString", "value")), "transfer.valueString")
    fee_msat = _prefer_msat(sources, ("feeMsat",), (), "feeMsat")
    if fee_msat == 0:
        fee_msat = msat_from_base_units(_first([transfer], ("feeString", "fee")), "transfer.feeString")

    return Payment(
        payment_hash=payment_hash,
        status=status,
        value_msat=value_msat,
        fee_msat=fee_msat,
        wallet_id=wallet_id,
        failure_reason=(
            _optional_str(payment_status.get("failureReason")) if status is PaymentStatus.FAILED else None
        ),
        destination=external_destination(transfer, wallet_id),
        preimage=(
            _optional_str(payment_status.get("paymentPreimage") or payment_status.get("preimage"))
            if status is PaymentStatus.SUCCEEDED
            else None
        ),
        invoice=_optional_str(raw.get("invoice") or payment_status.get("invoice")),
        timestamp=timestamp_ms(transfer.get("date") or raw.get("createdAt") or payment_status.get("createdAt")),
    )


def fallback_payment(raw: Any) -> Payment:
    return Payment(payment_hash=_hash_hint(raw), wallet_id=_wallet_hint(raw))


def normalize_payment(raw: Any) -> Payment:
    """Map one upstream payment record, degrading to the PENDING fallback on failure."""
    shape = classify_payment(raw)
    try:
        if isinstance(shape, NestedPaymentShape):
            return _map_nested_payment(shape)
        if isinstance(shape, FlatPaymentShape):
            return _map_flat_payment(shape)
        raise MappingError("unrecognized payment shape")
    except (MappingError, AttributeError, KeyError, TypeError, ValueError, ArithmeticError) as e:
        get_audit_logger().log_mapping_fallback("payment", f"{type(e).__name__}: {e}")
        return fallback_payment(raw)


def _records(payload: Any, key: str) -> List[Any]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, Mapping) and isinstance(payload.get(key), list):
        return payload[key]
    return []


def normalize_payments(payload: Any) -> List[Payment]:
    """Map a list response (``{"payments": [...]}`` or a bare list) one record at a time."""
    return [normalize_payment(item) for item in _records(payload, "payments")]


# Invoices


def _map_invoice(raw: Any) -> Invoice:
    if not isinstance(raw, Mapping):
        raise MappingError("invoice record is not an object")
    payment_hash = raw.get("paymentHash") or ""
    if not isinstance(payment_hash, str):
        raise MappingError("paymentHash is not a string")

    status_raw = raw.get("status")
    if status_raw is None or status_raw == "":
        status = InvoiceStatus.OPEN
    else:
        try:
            status = InvoiceStatus(str(status_raw).upper())
        except ValueError:
            raise MappingError(f"unknown invoice status {status_raw!r}")

    return Invoice(
        payment_hash=payment_hash,
        status=status,
        value_msat=_prefer_msat([raw], ("valueMsat", "amountMsat"), ("value", "valueString"), "valueMsat"),
        wallet_id=_optional_str(raw.get("walletId")),
        invoice=_optional_str(raw.get("invoice")),
        memo=raw.get("memo") if isinstance(raw.get("memo"), str) else None,
        created_at=iso_instant(raw.get("createdAt")),
        updated_at=iso_instant(raw.get("updatedAt")),
        expires_at=iso_instant(raw.get("expiresAt")),
    )


def fallback_invoice(raw: Any) -> Invoice:
    return Invoice(payment_hash=_hash_hint(raw), wallet_id=_wallet_hint(raw))


def normalize_invoice(raw: Any) -> Invoice:
    try:
        return _map_invoice(raw)
    except (MappingError, AttributeError, KeyError, TypeError, ValueError, ArithmeticError) as e:
        get_audit_logger().log_mapping_fallback("invoice", f"{type(e).__name__}: {e}")
        return fallback_invoice(raw)


def normalize_invoices(payload: Any) -> List[Invoice]:
    return [normalize_invoice(item) for item in _records(payload, "invoices")]


# Wallets


def normalize_wallet(raw: Any, wallet_id: str = "") -> Wallet:
    """
    Snapshot the wallet's balances as integer strings.

    A malformed balance zeroes the whole snapshot rather than showing a mix of
    real and invented numbers.
    """
    if not isinstance(raw, Mapping):
        get_audit_logger().log_mapping_fallback("wallet", "wallet record is not an object")
        return Wallet(id=wallet_id)

    ident = _optional_str(raw.get("id")) or wallet_id
    label = _optional_str(raw.get("label"))
    coin = _optional_str(raw.get("coin"))
    try:
        balances = {
            attr: _integer_string(raw.get(key), key) for attr, key in WALLET_LIGHTNING_FIELDS + WALLET_ONCHAIN_FIELDS
        }
    except (MappingError, ArithmeticError) as e:
        get_audit_logger().log_mapping_fallback("wallet", str(e))
        return Wallet(id=ident, label=label, coin=coin)
    return Wallet(id=ident, label=label, coin=coin, **balances)
