"""
Wallet provider REST client.

One ``UpstreamClient`` is built per inbound request from the caller's bearer
token and network selector; nothing is cached between requests. Calls are not
retried: a failed call raises immediately.
"""

import logging
from typing import Any, Mapping, Optional, Tuple

import requests

from lnwallet_proxy import metrics
from lnwallet_proxy.audit_logger import get_audit_logger
from lnwallet_proxy.errors import DecodeError, TransportError, UpstreamError
from lnwallet_proxy.networks import NetworkConfig
from lnwallet_proxy.utils import clean_bearer_token, mask_token

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10


def _new_session() -> requests.Session:
    return requests.Session()


def _error_message(resp: requests.Response) -> Tuple[str, Optional[Any]]:
    """Return ``(message, payload)`` for a non-2xx response without ever raising."""
    generic = f"Wallet provider request failed with status {resp.status_code}"
    try:
        payload = resp.json()
    except ValueError:
        return generic, None
    if isinstance(payload, Mapping):
        message = payload.get("error") or payload.get("message")
        if isinstance(message, str) and message:
            return message, payload
    return generic, payload


class UpstreamClient:
    """Authenticated JSON client for the wallet provider's REST API."""

    def __init__(
        self,
        token: str,
        network: NetworkConfig,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.token = clean_bearer_token(token)
        self.network = network
        self.timeout = timeout
        self.session = session or _new_session()
        self.audit = get_audit_logger()

    @property
    def coin(self) -> str:
        return self.network.coin

    def _wallet_path(self, wallet_id: str, *parts: str) -> str:
        return "/".join([f"/api/v2/{self.coin}/wallet/{wallet_id}", *parts])

    def request(
        self,
        path: str,
        method: str = "GET",
        body: Optional[Mapping[str, Any]] = None,
        params: Optional[Mapping[str, Any]] = None,
        operation: Optional[str] = None,
    ) -> Any:
        """
        Issue one call and return the decoded JSON body.

        Raises:
            TransportError: the request never produced a response
            UpstreamError: the provider answered with a non-2xx status
            DecodeError: a 2xx body was present but not JSON
        """
        operation = operation or f"{method} {path}"
        url = f"{self.network.api_url}{path}"
        query = {k: v for k, v in (params or {}).items() if v is not None}
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        log_params = {**(body or {}), **query, "network": self.network.network, "token": mask_token(self.token)}

        logger.debug(f"{method} {url}")
        try:
            resp = self.session.request(
                method,
                url,
                json=dict(body) if body is not None else None,
                params=query or None,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            self.audit.log_upstream_call(path, method, log_params, None, error=f"{type(e).__name__}: {e}")
            metrics.upstream_calls.labels(operation=operation, outcome="transport_error").inc()
            raise TransportError("Could not reach the wallet provider") from e

        if resp.status_code < 200 or resp.status_code >= 300:
            message, payload = _error_message(resp)
            self.audit.log_upstream_call(path, method, log_params, resp.status_code, error=message)
            metrics.upstream_calls.labels(operation=operation, outcome="upstream_error").inc()
            raise UpstreamError(message, resp.status_code, payload)

        if not (resp.text or "").strip():
            self.audit.log_upstream_call(path, method, log_params, resp.status_code, response=None)
            metrics.upstream_calls.labels(operation=operation, outcome="success").inc()
            return {}

        try:
            data = resp.json()
        except ValueError as e:
            self.audit.log_upstream_call(path, method, log_params, resp.status_code, error="invalid JSON body")
            metrics.upstream_calls.labels(operation=operation, outcome="decode_error").inc()
            raise DecodeError("Wallet provider returned a response that is not valid JSON") from e

        self.audit.log_upstream_call(path, method, log_params, resp.status_code, response=data)
        metrics.upstream_calls.labels(operation=operation, outcome="success").inc()
        return data

    # Account

    def get_me(self) -> Any:
        return self.request("/api/v2/user/me", operation="user.me")

    # Wallets

    def generate_wallet(self, params: Mapping[str, Any]) -> Any:
        return self.request(
            f"/api/v2/{self.coin}/wallet/generate", "POST", body=params, operation="wallet.generate"
        )

    def get_wallet(self, wallet_id: str) -> Any:
        return self.request(self._wallet_path(wallet_id), operation="wallet.get")

    # Invoices

    def create_invoice(self, wallet_id: str, params: Mapping[str, Any]) -> Any:
        return self.request(
            self._wallet_path(wallet_id, "lightning", "invoice"), "POST", body=params, operation="invoice.create"
        )

    def list_invoices(self, wallet_id: str, limit: int) -> Any:
        return self.request(
            self._wallet_path(wallet_id, "lightning", "invoice"), params={"limit": limit}, operation="invoice.list"
        )

    def get_invoice(self, wallet_id: str, payment_hash: str) -> Any:
        return self.request(
            self._wallet_path(wallet_id, "lightning", "invoice", payment_hash), operation="invoice.get"
        )

    # Payments

    def pay_invoice(self, wallet_id: str, params: Mapping[str, Any]) -> Any:
        return self.request(
            self._wallet_path(wallet_id, "lightning", "payment"), "POST", body=params, operation="payment.pay"
        )

    def list_payments(self, wallet_id: str, limit: int) -> Any:
        return self.request(
            self._wallet_path(wallet_id, "lightning", "payment"), params={"limit": limit}, operation="payment.list"
        )

    def get_payment(self, wallet_id: str, payment_hash: str) -> Any:
        return self.request(
            self._wallet_path(wallet_id, "lightning", "payment", payment_hash), operation="payment.get"
        )

    # Transactions

    def list_transactions(self, wallet_id: str, limit: int) -> Any:
        return self.request(
            self._wallet_path(wallet_id, "lightning", "transaction"),
            params={"limit": limit},
            operation="transaction.list",
        )

    def get_transaction(self, wallet_id: str, tx_id: str) -> Any:
        return self.request(
            self._wallet_path(wallet_id, "lightning", "transaction", tx_id), operation="transaction.get"
        )
