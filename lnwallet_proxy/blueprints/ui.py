"""
UI Blueprint - server-rendered Lightning wallet dashboard

The page keeps no session: every form post carries the bearer token, wallet id
and network, and the response re-renders everything from fresh fetches.
"""

import logging

from flask import Blueprint, current_app, render_template_string, request

from lnwallet_proxy import service
from lnwallet_proxy.dashboard import Dashboard
from lnwallet_proxy.errors import ProxyError
from lnwallet_proxy.networks import network_configs

logger = logging.getLogger(__name__)

ui_bp = Blueprint("ui", __name__)

PAGE = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>{{ app_name }}</title>
    <style>
        body { margin: 0; padding: 2rem; font-family: system-ui; background: #0b0f10; color: #e6f1ef; }
        .card { background: #11171a; border: 1px solid #f7931a; border-radius: 12px; padding: 1.5rem; margin-bottom: 1rem; }
        h1, h2 { color: #f7931a; }
        .mono { font-family: monospace; word-break: break-all; }
        .error { background: #3a1111; border: 1px solid #ff4d4d; color: #ffb3b3; border-radius: 8px; padding: 0.75rem; margin-bottom: 0.5rem; }
        .result { background: #113a1f; border: 1px solid #00ff88; border-radius: 8px; padding: 0.75rem; margin-bottom: 1rem; }
        .empty { color: #8a9a98; }
        .badge { padding: 0.1rem 0.5rem; border-radius: 6px; font-size: 0.8rem; }
        .SUCCEEDED, .SETTLED { background: #0f5132; }
        .FAILED, .CANCELED { background: #842029; }
        .PENDING, .OPEN { background: #664d03; }
        table { width: 100%; border-collapse: collapse; }
        td, th { text-align: left; padding: 0.25rem 0.5rem; border-bottom: 1px solid #22302f; }
    </style>
</head>
<body>
    <h1>{{ app_name }}</h1>

    {% for message in board.errors %}
    <div class="error">{{ message }}</div>
    {% endfor %}
    {% if board.payment_result %}<div class="result">{{ board.payment_result }}</div>{% endif %}
    {% if board.created_invoice %}<div class="result">Invoice created: <span class="mono">{{ board.created_invoice }}</span></div>{% endif %}
    {% if board.created_wallet %}<div class="result">Wallet created: <span class="mono">{{ board.wallet_id }}</span></div>{% endif %}

    <div class="card">
        <h2>Connect Wallet</h2>
        <form method="post">
            <input type="hidden" name="action" value="connect">
            <label>Bearer token <input type="password" name="token" value="{{ token }}" required></label>
            <label>Wallet ID <input name="wallet_id" value="{{ board.wallet_id }}" required></label>
            <label>Passphrase <input type="password" name="passphrase"></label>
            <select name="network">
                {% for name, net in networks.items() %}
                <option value="{{ name }}" {% if name == network %}selected{% endif %}>{{ net.display_name }}</option>
                {% endfor %}
            </select>
            <button type="submit">Connect</button>
        </form>
    </div>

    <div class="card">
        <h2>Create Wallet</h2>
        <form method="post">
            <input type="hidden" name="action" value="create_wallet">
            <input type="hidden" name="token" value="{{ token }}">
            <input type="hidden" name="network" value="{{ network }}">
            <label>Label <input name="label" required></label>
            <label>Passphrase <input type="password" name="passphrase" required></label>
            <label>Passcode encryption code <input type="password" name="passcode" required></label>
            <button type="submit">Create Wallet</button>
        </form>
    </div>

    {% if board.connected %}
    <div class="card">
        <h2>Wallet Balance</h2>
        {% if board.wallet %}
        <table>
            <tr><th></th><th>Available</th><th>Pending</th><th>Unsettled</th></tr>
            <tr><td>Inbound (msat)</td><td>{{ board.wallet.inbound_balance }}</td><td>{{ board.wallet.inbound_pending_balance }}</td><td>{{ board.wallet.inbound_unsettled_balance }}</td></tr>
            <tr><td>Outbound (msat)</td><td>{{ board.wallet.outbound_balance }}</td><td>{{ board.wallet.outbound_pending_balance }}</td><td>{{ board.wallet.outbound_unsettled_balance }}</td></tr>
        </table>
        <p>On-chain: {{ board.wallet.balance }} total, {{ board.wallet.confirmed_balance }} confirmed, {{ board.wallet.spendable_balance }} spendable</p>
        {% else %}
        <p class="empty">Wallet data unavailable.</p>
        {% endif %}
    </div>

    <div class="card">
        <h2>Create Invoice</h2>
        <form method="post">
            <input type="hidden" name="action" value="create_invoice">
            <input type="hidden" name="token" value="{{ token }}">
            <input type="hidden" name="wallet_id" value="{{ board.wallet_id }}">
            <input type="hidden" name="network" value="{{ network }}">
            <label>Amount (sats) <input name="amount" type="number" min="1" required></label>
            <button type="submit">Create Invoice</button>
        </form>
    </div>

    <div class="card">
        <h2>Pay Invoice</h2>
        <form method="post">
            <input type="hidden" name="action" value="pay_invoice">
            <input type="hidden" name="token" value="{{ token }}">
            <input type="hidden" name="wallet_id" value="{{ board.wallet_id }}">
            <input type="hidden" name="network" value="{{ network }}">
            <textarea name="invoice" rows="3" placeholder="Paste invoice here" required></textarea>
            <label>Passphrase <input type="password" name="passphrase" required></label>
            <button type="submit">Pay Invoice</button>
        </form>
    </div>

    <div class="card">
        <h2>Invoices</h2>
        {% if board.invoices %}
        <table>
            <tr><th>Status</th><th>Amount (sats)</th><th>Memo</th><th>Payment Hash</th><th>Expires</th></tr>
            {% for invoice in board.invoices %}
            <tr>
                <td><span class="badge {{ invoice.status.value }}">{{ invoice.status.value }}</span></td>
                <td>{{ invoice.value_msat // 1000 }}</td>
                <td>{{ invoice.memo or "" }}</td>
                <td class="mono">{{ invoice.payment_hash }}</td>
                <td>{{ invoice.expires_at or "" }}</td>
            </tr>
            {% endfor %}
        </table>
        {% else %}
        <p class="empty">No invoices found.</p>
        {% endif %}
    </div>

    <div class="card">
        <h2>Payments</h2>
        {% if board.payments %}
        <table>
            <tr><th>Status</th><th>Amount (sats)</th><th>Fee (sats)</th><th>Payment Hash</th></tr>
            {% for payment in board.payments %}
            <tr>
                <td><span class="badge {{ payment.status.value }}">{{ payment.status.value }}</span></td>
                <td>{{ payment.value_msat // 1000 }}</td>
                <td>{{ payment.fee_msat // 1000 }}</td>
                <td class="mono">{{ payment.payment_hash }}
                    {% if payment.preimage %}<br>Preimage: {{ payment.preimage }}{% endif %}
                    {% if payment.failure_reason %}<br>Failure: {{ payment.failure_reason }}{% endif %}
                    {% if payment.destination %}<br>Destination: {{ payment.destination }}{% endif %}
                </td>
            </tr>
            {% endfor %}
        </table>
        {% else %}
        <p class="empty">No payments found.</p>
        {% endif %}
    </div>
    {% endif %}
</body>
</html>
"""


def _render(board: Dashboard, token: str, network: str):
    cfg = current_app.config["APP_CONFIG"]
    return render_template_string(
        PAGE,
        app_name=cfg["APP_NAME"],
        board=board,
        token=token,
        network=network,
        networks=network_configs(cfg),
    )


@ui_bp.route("/", methods=["GET"])
def index():
    cfg = current_app.config["APP_CONFIG"]
    return _render(Dashboard(None, "", cfg), "", cfg["DEFAULT_NETWORK"])


@ui_bp.route("/", methods=["POST"])
def dashboard():
    """Run one form action, then render the refreshed dashboard."""
    cfg = current_app.config["APP_CONFIG"]
    form = request.form
    token = form.get("token", "")
    network = form.get("network") or cfg["DEFAULT_NETWORK"]
    action = form.get("action", "connect")

    try:
        client = service.client_for(token, network, cfg)
    except ProxyError as e:
        board = Dashboard(None, form.get("wallet_id", ""), cfg)
        board.errors.append(e.message)
        return _render(board, token, cfg["DEFAULT_NETWORK"])

    board = Dashboard(client, form.get("wallet_id", ""), cfg, passphrase=form.get("passphrase") or None)
    if action == "create_wallet":
        board.create_wallet(form.get("label", ""), form.get("passphrase", ""), form.get("passcode", ""))
    elif not board.wallet_id:
        board.errors.append("Please enter wallet ID and bearer token")
    elif action == "create_invoice":
        board.create_invoice(form.get("amount", ""))
    elif action == "pay_invoice":
        board.pay_invoice(form.get("invoice", ""))
    else:
        board.refresh()
    return _render(board, token, network)
