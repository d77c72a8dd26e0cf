"""
End-to-end wallet flows

Drives the Flask app against a stateful fake wallet provider:
- Invoice creation followed by listing
- Paying an invoice and verifying its final status
- Network switching between testnet and mainnet
- Dashboard round trips
- Rate limiting on the payment routes
"""

import json
from urllib.parse import urlsplit

import pytest

from lnwallet_proxy.factory import create_app

WALLET_ID = "a1b2c3d4e5f6a1b2c3d4e5f6a1b2c3d4"
PAYMENT_HASH = "ab" * 32
PREIMAGE = "cd" * 32


class FakeWalletProvider:
    """Remembers created invoices and submitted payments per coin."""

    def __init__(self, respond):
        self.respond = respond
        self.invoices = {}
        self.payments = {}
        self.calls = []

    def request(self, method, url, json=None, params=None, headers=None, timeout=None):
        parts = urlsplit(url)
        self.calls.append((method, parts.netloc, parts.path))
        segments = parts.path.strip("/").split("/")
        # api/v2/{coin}/wallet/{id}/lightning/{kind}[/{hash}]
        if len(segments) < 5 or segments[3] != "wallet":
            return self.respond(404, {"error": "unknown path"})
        coin, wallet_id = segments[2], segments[4]
        if len(segments) == 5:
            return self.respond(200, {"id": wallet_id, "coin": coin, "outboundBalance": "1000000"})

        kind = segments[6]
        store = self.invoices if kind == "invoice" else self.payments
        records = store.setdefault(coin, [])
        if method == "POST" and kind == "invoice":
            record = {
                "paymentHash": "%064x" % (len(records) + 1),
                "walletId": wallet_id,
                "status": "open",
                "invoice": f"ln{coin}{json['valueMsat']}",
                "valueMsat": int(json["valueMsat"]),
                "memo": json["memo"],
            }
            records.append(record)
            return self.respond(200, record)
        if method == "POST" and kind == "payment":
            records.append(
                {
                    "paymentHash": PAYMENT_HASH,
                    "walletId": wallet_id,
                    "status": "settled",
                    "amountMsat": "21000",
                    "feeMsat": "3000",
                    "paymentPreimage": PREIMAGE,
                    "createdAt": "2024-05-01T12:00:00Z",
                }
            )
            return self.respond(
                200, {"txRequestId": "tx-1", "paymentStatus": {"status": "in_flight", "paymentHash": PAYMENT_HASH}}
            )
        if len(segments) == 8:
            # Single-record lookups are never served; callers must fall back to the list
            return self.respond(404, {"error": f"{kind} not found"})
        return self.respond(200, {f"{kind}s": records[: params["limit"]]})


@pytest.fixture
def wallet_provider(monkeypatch, upstream_response):
    fake = FakeWalletProvider(upstream_response)
    monkeypatch.setattr("lnwallet_proxy.upstream._new_session", lambda: fake)
    return fake


class TestInvoiceFlow:
    """Create then list invoices."""

    def test_created_invoice_is_listed(self, client, wallet_provider, auth_headers):
        for amount in (1000, 2000):
            response = client.post(
                f"/api/wallet/{WALLET_ID}/invoice", data=json.dumps({"valueMsat": amount}), headers=auth_headers
            )
            assert response.status_code == 200

        invoices = client.get(f"/api/wallet/{WALLET_ID}/invoice", headers=auth_headers).get_json()["invoices"]

        assert [i["valueMsat"] for i in invoices] == ["1000", "2000"]
        assert all(i["status"] == "OPEN" for i in invoices)
        assert invoices[0]["memo"] == ""

    def test_networks_are_isolated(self, client, wallet_provider, auth_headers):
        client.post(
            f"/api/wallet/{WALLET_ID}/invoice?network=lnbtc", data=json.dumps({"valueMsat": 5}), headers=auth_headers
        )

        testnet = client.get(f"/api/wallet/{WALLET_ID}/invoice", headers=auth_headers).get_json()["invoices"]
        mainnet = client.get(f"/api/wallet/{WALLET_ID}/invoice?network=lnbtc", headers=auth_headers).get_json()[
            "invoices"
        ]

        assert testnet == []
        assert len(mainnet) == 1
        assert ("POST", "app.bitgo.com", f"/api/v2/lnbtc/wallet/{WALLET_ID}/lightning/invoice") in wallet_provider.calls


class TestPaymentFlow:
    """Pay, then confirm through the list fallback."""

    def test_pay_and_verify_through_list(self, client, wallet_provider, auth_headers):
        body = {"invoice": "lntb210n1pexample", "passphrase": "secret"}

        data = client.post(
            f"/api/wallet/{WALLET_ID}/payment?verify=1", data=json.dumps(body), headers=auth_headers
        ).get_json()

        assert data["payment"]["status"] == "PENDING"
        assert data["payment"]["preimage"] is None
        assert data["verified"]["status"] == "SUCCEEDED"
        assert data["verified"]["preimage"] == PREIMAGE
        assert data["verified"]["value"] == "21"
        assert data["verified"]["fee"] == "3"

    def test_lookup_after_pay(self, client, wallet_provider, auth_headers):
        body = {"invoice": "lntb210n1pexample", "passphrase": "secret"}
        client.post(f"/api/wallet/{WALLET_ID}/payment", data=json.dumps(body), headers=auth_headers)

        response = client.get(f"/api/wallet/{WALLET_ID}/payment/{PAYMENT_HASH.upper()}", headers=auth_headers)

        assert response.status_code == 200
        assert response.get_json()["timestamp"] == 1714564800000


class TestDashboardFlow:
    def test_create_invoice_then_render(self, client, wallet_provider):
        form = {
            "token": "test_access_token",
            "wallet_id": WALLET_ID,
            "network": "tlnbtc",
            "action": "create_invoice",
            "amount": "21",
        }

        response = client.post("/", data=form)

        assert response.status_code == 200
        assert b"Invoice created" in response.data
        assert b"lntlnbtc21000" in response.data
        assert b"No invoices found." not in response.data
        assert b"1000000" in response.data

    def test_pay_from_dashboard(self, client, wallet_provider):
        form = {
            "token": "test_access_token",
            "wallet_id": WALLET_ID,
            "network": "tlnbtc",
            "action": "pay_invoice",
            "invoice": "lntb210n1pexample",
            "passphrase": "secret",
        }

        response = client.post("/", data=form)

        assert b"Payment successful! Amount: 21 sats, Fee: 3 sats" in response.data
        assert b"No payments found." not in response.data


class TestRateLimiting:
    @pytest.fixture
    def limited_client(self):
        app = create_app({"TESTING": True, "RATE_LIMIT_ENABLED": True, "FORCE_HTTPS": False})
        return app.test_client()

    def test_wallet_generation_is_limited(self, limited_client, wallet_provider, auth_headers):
        statuses = [
            limited_client.post("/api/wallet/generate", data=json.dumps({}), headers=auth_headers).status_code
            for _ in range(11)
        ]

        assert statuses[:10] == [400] * 10
        assert statuses[10] == 429
