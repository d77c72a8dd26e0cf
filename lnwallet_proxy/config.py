"""Configuration management for the wallet proxy.

Every setting is read from the environment with a default. Provider URLs and
list sizes live here next to the usual Flask and rate limit knobs.
"""

from __future__ import annotations

import os
from typing import Any, Mapping, Optional, TypedDict

from lnwallet_proxy.networks import network_configs

_TRUTHY_VALUES = {"1", "true", "yes", "on"}


class AppConfig(TypedDict):
    """Typed representation of the application's configuration."""

    FLASK_SECRET_KEY: Optional[str]
    FLASK_ENV: str
    FLASK_DEBUG: bool
    DEFAULT_NETWORK: str
    TESTNET_API_URL: str
    MAINNET_API_URL: str
    UPSTREAM_TIMEOUT: int
    LOG_RESPONSE_MAX_CHARS: int
    DEFAULT_LIST_LIMIT: int
    MAX_LIST_LIMIT: int
    PAYMENT_LOOKUP_SCAN_LIMIT: int
    PAYMENT_VERIFY_DELAY: float
    DEFAULT_INVOICE_EXPIRY: int
    ENTERPRISE_ID: str
    CORS_ORIGINS: str
    RATE_LIMIT_ENABLED: bool
    RATE_LIMIT_DEFAULT: str
    RATELIMIT_STORAGE_URI: str
    FORCE_HTTPS: bool
    LOG_LEVEL: str
    APP_NAME: str
    APP_VERSION: str
    APP_HOST: str
    APP_PORT: int


def _get_env_bool(name: str, default: bool) -> bool:
    """Return an environment variable as a boolean."""

    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in _TRUTHY_VALUES


def _get_env_int(name: str, default: int) -> int:
    """Return an environment variable as an integer, raising on invalid input."""

    raw_value = os.getenv(name)
    if raw_value is None or raw_value == "":
        return default

    try:
        return int(raw_value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer (got {raw_value!r})") from exc


def _get_env_float(name: str, default: float) -> float:
    raw_value = os.getenv(name)
    if raw_value is None or raw_value == "":
        return default

    try:
        return float(raw_value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be a number (got {raw_value!r})") from exc


def get_config() -> AppConfig:
    """Load application configuration from environment variables."""

    return {
        # Flask Configuration
        "FLASK_SECRET_KEY": os.getenv("FLASK_SECRET_KEY"),
        "FLASK_ENV": os.getenv("FLASK_ENV", "development"),
        "FLASK_DEBUG": _get_env_bool("FLASK_DEBUG", False),
        # Wallet provider
        "DEFAULT_NETWORK": os.getenv("DEFAULT_NETWORK", "tlnbtc"),
        "TESTNET_API_URL": os.getenv("TESTNET_API_URL", "https://app.bitgo-test.com"),
        "MAINNET_API_URL": os.getenv("MAINNET_API_URL", "https://app.bitgo.com"),
        "UPSTREAM_TIMEOUT": _get_env_int("UPSTREAM_TIMEOUT", 10),
        "LOG_RESPONSE_MAX_CHARS": _get_env_int("LOG_RESPONSE_MAX_CHARS", 500),
        "ENTERPRISE_ID": os.getenv("ENTERPRISE_ID", ""),
        # Lists and payments
        "DEFAULT_LIST_LIMIT": _get_env_int("DEFAULT_LIST_LIMIT", 10),
        "MAX_LIST_LIMIT": _get_env_int("MAX_LIST_LIMIT", 100),
        "PAYMENT_LOOKUP_SCAN_LIMIT": _get_env_int("PAYMENT_LOOKUP_SCAN_LIMIT", 100),
        "PAYMENT_VERIFY_DELAY": _get_env_float("PAYMENT_VERIFY_DELAY", 2.0),
        "DEFAULT_INVOICE_EXPIRY": _get_env_int("DEFAULT_INVOICE_EXPIRY", 3600),
        # CORS Configuration
        "CORS_ORIGINS": os.getenv("CORS_ORIGINS", "*"),
        # Rate Limiting
        "RATE_LIMIT_ENABLED": _get_env_bool("RATE_LIMIT_ENABLED", True),
        "RATE_LIMIT_DEFAULT": os.getenv("RATE_LIMIT_DEFAULT", "100/hour"),
        "RATELIMIT_STORAGE_URI": os.getenv("RATELIMIT_STORAGE_URI", "memory://"),
        "FORCE_HTTPS": _get_env_bool(
            "FORCE_HTTPS",
            os.getenv("FLASK_ENV", "development").lower() == "production",
        ),
        # Logging
        "LOG_LEVEL": os.getenv("LOG_LEVEL", "INFO"),
        # Application Settings
        "APP_NAME": os.getenv("APP_NAME", "Lightning Wallet Proxy"),
        "APP_VERSION": os.getenv("APP_VERSION", "1.0.0"),
        "APP_HOST": os.getenv("APP_HOST", "127.0.0.1"),
        "APP_PORT": _get_env_int("APP_PORT", 3001),
    }


def validate_config(config: Mapping[str, Any]) -> bool:
    """Validate critical configuration values.

    Args:
        config: Configuration mapping to validate.

    Returns:
        True if configuration is valid, raises ValueError otherwise.
    """

    default_network = config.get("DEFAULT_NETWORK", "tlnbtc")
    if default_network not in network_configs(config):
        raise ValueError(f"DEFAULT_NETWORK must be one of tlnbtc, lnbtc (got {default_network!r})")

    if config.get("FLASK_ENV") == "production":
        if not config.get("FLASK_SECRET_KEY"):
            raise ValueError("FLASK_SECRET_KEY must be set for production!")

        for key in ("TESTNET_API_URL", "MAINNET_API_URL"):
            url = config.get(key)
            if url and not str(url).startswith("https://"):
                raise ValueError(f"{key} must use https:// in production!")

    return True
