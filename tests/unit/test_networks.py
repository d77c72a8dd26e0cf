"""
Unit tests for network selection.
"""

import pytest

from lnwallet_proxy.errors import ConfigurationError
from lnwallet_proxy.networks import MAINNET, TESTNET, network_configs, resolve_network


class TestResolveNetwork:
    def test_testnet(self):
        net = resolve_network("tlnbtc")

        assert net.coin == TESTNET
        assert net.environment == "test"
        assert net.api_url == "https://app.bitgo-test.com"

    def test_mainnet_differs_from_testnet(self):
        main, test = resolve_network("lnbtc"), resolve_network("tlnbtc")

        assert main.coin == MAINNET
        assert main.api_url == "https://app.bitgo.com"
        assert (main.coin, main.api_url) != (test.coin, test.api_url)

    @pytest.mark.parametrize("selector", [None, "", "  "])
    def test_absent_selector_defaults_to_testnet(self, selector):
        assert resolve_network(selector).network == TESTNET

    def test_absent_selector_uses_configured_default(self):
        assert resolve_network(None, {"DEFAULT_NETWORK": "lnbtc"}).network == MAINNET

    @pytest.mark.parametrize("selector", ["btc", "LNBTC", "mainnet", "tbtc"])
    def test_unsupported_selector_fails(self, selector):
        with pytest.raises(ConfigurationError, match="Unsupported network"):
            resolve_network(selector)

    def test_configured_urls(self):
        configs = network_configs({"TESTNET_API_URL": "http://localhost:9000/"})

        assert configs[TESTNET].api_url == "http://localhost:9000"
        assert configs[MAINNET].api_url == "https://app.bitgo.com"
