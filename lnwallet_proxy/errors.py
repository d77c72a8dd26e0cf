"""
Error taxonomy for the wallet proxy.

Every failure that can reach a client is a ``ProxyError`` subclass carrying the
HTTP status it maps to. ``MappingError`` is the exception: the normalizer
recovers from it per record and it never reaches a request boundary.
"""

from typing import Any, Optional


class ProxyError(Exception):
    """Base exception for errors surfaced to API callers."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


class AuthError(ProxyError):
    """Missing or malformed bearer token."""

    status_code = 401


class ValidationError(ProxyError):
    """Request input rejected before any upstream call."""

    pass


class ConfigurationError(ProxyError):
    """Unsupported network selector or invalid derived configuration."""

    pass


class UpstreamError(ProxyError):
    """The wallet provider answered with a non-2xx status."""

    def __init__(self, message: str, upstream_status: int, payload: Optional[Any] = None):
        super().__init__(message)
        self.upstream_status = upstream_status
        self.payload = payload


class TransportError(ProxyError):
    """DNS, TLS, connection or timeout failure talking to the provider."""

    pass


class DecodeError(ProxyError):
    """The provider returned a body that is not valid JSON."""

    pass


class MappingError(Exception):
    """A single upstream record could not be mapped to its canonical shape."""

    pass
