"""
Dashboard state for the server-rendered wallet page.

A ``Dashboard`` lives for a single request. It runs at most one user action
and then re-reads wallet, invoices and payments. Each section is fetched on
its own so one failure only costs that section, and the collections are
refreshed after every action whether it worked or not.
"""

import logging
import time
from typing import Any, Callable, List, Mapping, Optional

from lnwallet_proxy import service
from lnwallet_proxy.errors import ProxyError, ValidationError
from lnwallet_proxy.normalize import Invoice, Payment, PaymentStatus, Wallet
from lnwallet_proxy.upstream import UpstreamClient
from lnwallet_proxy.utils import normalize_wallet_id

logger = logging.getLogger(__name__)

DEFAULT_MEMO = "Test invoice"


class Dashboard:
    def __init__(
        self,
        client: Optional[UpstreamClient],
        wallet_id: str,
        cfg: Mapping[str, Any],
        passphrase: Optional[str] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.wallet_id = (wallet_id or "").strip().lower()
        self.cfg = cfg
        self.passphrase = passphrase
        self.sleep = sleep

        self.wallet: Optional[Wallet] = None
        self.invoices: List[Invoice] = []
        self.payments: List[Payment] = []
        self.errors: List[str] = []
        self.created_invoice: Optional[str] = None
        self.payment_result: Optional[str] = None
        self.created_wallet: Optional[dict] = None

    @property
    def connected(self) -> bool:
        return self.client is not None and bool(self.wallet_id)

    def _fail(self, prefix: str, error: ProxyError) -> None:
        logger.info(f"{prefix}: {error.message}")
        self.errors.append(f"{prefix}: {error.message}")

    def refresh(self) -> None:
        """Re-read every section independently."""
        if not self.connected:
            return
        try:
            normalize_wallet_id(self.wallet_id)
        except ValidationError as e:
            self._fail("Error fetching wallet data", e)
            return

        limit = self.cfg.get("DEFAULT_LIST_LIMIT", 10)
        try:
            self.wallet = service.fetch_wallet(self.client, self.wallet_id)
        except ProxyError as e:
            self._fail("Error fetching wallet data", e)
        try:
            self.invoices = service.list_invoices(self.client, self.wallet_id, limit)
        except ProxyError as e:
            self._fail("Error fetching invoices", e)
        try:
            self.payments = service.list_payments(self.client, self.wallet_id, limit)
        except ProxyError as e:
            self._fail("Error fetching payments", e)

    def create_invoice(self, amount_sats: Any, memo: str = DEFAULT_MEMO) -> None:
        try:
            sats = int(str(amount_sats).strip())
            if sats <= 0:
                raise ValueError
        except ValueError:
            self.errors.append("Failed to create invoice: amount must be a positive number of sats")
            self.refresh()
            return

        try:
            invoice = service.create_invoice(
                self.client,
                self.wallet_id,
                sats * 1000,
                memo=memo,
                default_expiry=self.cfg.get("DEFAULT_INVOICE_EXPIRY", 3600),
            )
            self.created_invoice = invoice.invoice
        except ProxyError as e:
            self._fail("Failed to create invoice", e)
        finally:
            self.refresh()

    def pay_invoice(self, invoice: str) -> None:
        if not self.passphrase:
            self.errors.append("Please enter your passphrase")
            self.refresh()
            return

        try:
            result = service.pay_and_verify(
                self.client,
                self.wallet_id,
                invoice,
                self.passphrase,
                delay=self.cfg.get("PAYMENT_VERIFY_DELAY", 2.0),
                scan_limit=self.cfg.get("PAYMENT_LOOKUP_SCAN_LIMIT", 100),
                sleep=self.sleep,
            )
        except ProxyError as e:
            self._fail("Failed to submit payment", e)
        else:
            self.payment_result = self._describe(result)
        finally:
            self.refresh()

    def _describe(self, result: service.PaymentVerification) -> str:
        sent = result.payment
        payment = result.verified
        if payment is None:
            return f"Payment sent successfully, but could not verify final status. Payment Hash: {sent.payment_hash}"

        preimage = f" | Preimage: {payment.preimage}" if payment.preimage else ""
        if payment.status is PaymentStatus.FAILED:
            self.errors.append(f"Payment failed: {payment.failure_reason or 'Payment verification failed'}")
            return f"Payment failed. Payment Hash: {payment.payment_hash}"
        if payment.status is PaymentStatus.PENDING:
            return f"Payment is being processed. Payment Hash: {payment.payment_hash}{preimage}"
        return (
            f"Payment successful! Amount: {payment.value_msat // 1000} sats, "
            f"Fee: {payment.fee_msat // 1000} sats, Hash: {payment.payment_hash}{preimage}"
        )

    def create_wallet(self, label: str, passphrase: str, passcode_encryption_code: str) -> None:
        try:
            self.created_wallet = service.generate_wallet(
                self.client,
                label,
                passphrase,
                passcode_encryption_code,
                enterprise=self.cfg.get("ENTERPRISE_ID") or None,
            )
        except ProxyError as e:
            self._fail("Failed to create wallet", e)
            self.refresh()
            return
        self.wallet_id = str(self.created_wallet["wallet"].get("id") or "")
        self.passphrase = passphrase
        self.refresh()
