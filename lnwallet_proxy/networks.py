"""Supported Lightning networks and per-request network resolution."""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from lnwallet_proxy.errors import ConfigurationError

TESTNET = "tlnbtc"
MAINNET = "lnbtc"


@dataclass(frozen=True)
class NetworkConfig:
    """Everything derived from a network selector for one request."""

    network: str
    coin: str
    environment: str
    api_url: str
    display_name: str
    description: str


def network_configs(cfg: Optional[Mapping[str, Any]] = None) -> Dict[str, NetworkConfig]:
    """Return the supported networks, honouring configured base URLs."""
    cfg = cfg or {}
    return {
        TESTNET: NetworkConfig(
            network=TESTNET,
            coin=TESTNET,
            environment="test",
            api_url=str(cfg.get("TESTNET_API_URL") or "https://app.bitgo-test.com").rstrip("/"),
            display_name="Testnet (TLNBTC)",
            description="Bitcoin Lightning Network Testnet",
        ),
        MAINNET: NetworkConfig(
            network=MAINNET,
            coin=MAINNET,
            environment="prod",
            api_url=str(cfg.get("MAINNET_API_URL") or "https://app.bitgo.com").rstrip("/"),
            display_name="Mainnet (LNBTC)",
            description="Bitcoin Lightning Network Mainnet",
        ),
    }


def resolve_network(selector: Optional[str], cfg: Optional[Mapping[str, Any]] = None) -> NetworkConfig:
    """
    Map a ``network`` selector onto its configuration.

    An absent (or empty) selector falls back to ``DEFAULT_NETWORK``; an
    explicit but unsupported value raises ``ConfigurationError``.
    """
    configs = network_configs(cfg)
    if selector is None or selector.strip() == "":
        selector = str((cfg or {}).get("DEFAULT_NETWORK") or TESTNET)

    key = selector.strip()
    if key not in configs:
        raise ConfigurationError(f"Unsupported network: {key}")
    return configs[key]
