"""
Pytest configuration and shared fixtures for the wallet proxy tests.
"""

import json
import os
from typing import Any, Optional
from unittest.mock import MagicMock
from urllib.parse import urlsplit

import pytest

# Set test environment before importing the package
os.environ["FLASK_ENV"] = "testing"
os.environ["FLASK_SECRET_KEY"] = "test-secret-key-for-testing-only"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["PAYMENT_VERIFY_DELAY"] = "0"
os.environ["DEFAULT_NETWORK"] = "tlnbtc"

# Import package after setting environment
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

WALLET_ID = "a1b2c3d4e5f6a1b2c3d4e5f6a1b2c3d4"
PAYMENT_HASH = "ab" * 32
PREIMAGE = "cd" * 32


def make_response(status: int = 200, json_body: Any = None, text: Optional[str] = None) -> MagicMock:
    """Build a stand-in for ``requests.Response``."""
    resp = MagicMock(name=f"response_{status}")
    resp.status_code = status
    if json_body is not None:
        resp.json.return_value = json_body
        resp.text = json.dumps(json_body)
    else:
        resp.json.side_effect = ValueError("Expecting value: line 1 column 1 (char 0)")
        resp.text = text if text is not None else ""
    return resp


class FakeProvider:
    """
    Session replacement routing calls by ``(method, path)``.

    Each route holds a queue of responses (or exceptions to raise); the last
    entry repeats once the queue is drained.
    """

    def __init__(self):
        self.routes = {}
        self.calls = []

    def add(self, method: str, path: str, response: Any) -> "FakeProvider":
        self.routes.setdefault((method, path), []).append(response)
        return self

    def request(self, method, url, **kwargs):
        parts = urlsplit(url)
        self.calls.append({"method": method, "url": url, "host": parts.netloc, "path": parts.path, **kwargs})
        queue = self.routes.get((method, parts.path))
        if not queue:
            return make_response(404, {"error": f"no fake route for {method} {parts.path}"})
        result = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def upstream_response():
    """Factory for fake ``requests.Response`` objects."""
    return make_response


@pytest.fixture
def provider(monkeypatch):
    """Fake wallet provider injected into every UpstreamClient."""
    fake = FakeProvider()
    monkeypatch.setattr("lnwallet_proxy.upstream._new_session", lambda: fake)
    return fake


@pytest.fixture
def app():
    """Create and configure a test Flask application instance."""
    from lnwallet_proxy.factory import create_app

    flask_app = create_app(
        {
            "TESTING": True,
            "RATE_LIMIT_ENABLED": False,
            "FORCE_HTTPS": False,
            "PAYMENT_VERIFY_DELAY": 0,
        }
    )
    with flask_app.app_context():
        yield flask_app


@pytest.fixture
def client(app):
    """Create a test client for the Flask application."""
    return app.test_client()


@pytest.fixture
def auth_headers():
    """Provide authentication headers for API requests."""
    return {"Authorization": "Bearer test_access_token", "Content-Type": "application/json"}


@pytest.fixture
def wallet_id():
    return WALLET_ID


@pytest.fixture
def wallet_path():
    return f"/api/v2/tlnbtc/wallet/{WALLET_ID}"


@pytest.fixture
def flat_payment():
    """Payment as returned by the payment list endpoint."""
    return {
        "paymentHash": PAYMENT_HASH,
        "walletId": WALLET_ID,
        "txRequestId": "txreq-1",
        "status": "settled",
        "invoice": "lntb500n1pjexampleinvoicestringthatislong",
        "amountMsat": "50000",
        "feeLimitMsat": "1000",
        "destination": "03aabbccddeeff",
        "paymentPreimage": PREIMAGE,
        "createdAt": "2024-05-01T12:00:00.000Z",
        "updatedAt": "2024-05-01T12:00:05.000Z",
    }


@pytest.fixture
def nested_payment():
    """Payment as returned right after submitting a pay request."""
    return {
        "txRequestId": "txreq-2",
        "txRequestState": "delivered",
        "paymentStatus": {
            "status": "settled",
            "paymentHash": PAYMENT_HASH,
            "paymentPreimage": PREIMAGE,
        },
        "transfer": {
            "id": "transfer-1",
            "wallet": WALLET_ID,
            "valueString": "-50",
            "feeString": "2",
            "date": "2024-05-01T12:00:00.000Z",
            "entries": [
                {"address": "wallet-owned-address", "wallet": WALLET_ID, "valueString": "-52"},
                {"address": "change-address", "isChange": True, "valueString": "0"},
                {"address": "03destinationnode", "valueString": "50"},
                {"address": "03secondexternal", "valueString": "0"},
            ],
        },
    }


@pytest.fixture
def open_invoice():
    return {
        "paymentHash": PAYMENT_HASH,
        "walletId": WALLET_ID,
        "status": "open",
        "invoice": "lntb500n1pjexampleinvoicestringthatislong",
        "valueMsat": 50000,
        "memo": "Test invoice",
        "expiresAt": "2024-05-01T13:00:00.000Z",
        "createdAt": "2024-05-01T12:00:00.000Z",
        "updatedAt": "2024-05-01T12:00:00.000Z",
    }


@pytest.fixture
def wallet_document():
    return {
        "id": WALLET_ID,
        "label": "Demo wallet",
        "coin": "tlnbtc",
        "inboundBalance": "1000000",
        "inboundPendingBalance": "0",
        "inboundUnsettledBalance": "0",
        "outboundBalance": "2500000",
        "outboundPendingBalance": "1000",
        "outboundUnsettledBalance": "0",
        "balanceString": "150000",
        "confirmedBalanceString": "150000",
        "spendableBalanceString": "140000",
    }


# Pytest configuration hooks
def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers automatically."""
    for item in items:
        # Add 'unit' marker to tests in unit/ directory
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)

        # Add 'integration' marker to tests in integration/ directory
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
