"""
Audit logging for the wallet proxy.

Every upstream call and every proxied API request is written to the ``audit``
logger as a single line. Secrets are redacted before anything is formatted.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from lnwallet_proxy.utils import redact, truncate_for_log

_logger = logging.getLogger("audit")
_audit_logger = None  # Will be initialized by init_audit_logger


def init_audit_logger(response_max_chars: int = 500):
    """Initialize the audit logger."""
    global _audit_logger

    _logger.setLevel(logging.INFO)

    # Add console handler if not already present
    if not _logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s - AUDIT - %(levelname)s - %(message)s"))
        _logger.addHandler(handler)

    _audit_logger = AuditLogger(response_max_chars=response_max_chars)
    _logger.debug("Audit logger initialized")
    return _audit_logger


def get_audit_logger():
    """Get the audit logger instance."""
    global _audit_logger

    if _audit_logger is None:
        init_audit_logger()
    return _audit_logger


class AuditLogger:
    """
    Audit logging interface for proxy traffic.

    Upstream calls are logged with the endpoint, method, redacted parameters,
    and a truncated response (or the error). Bearer tokens only ever appear
    as a 10 character prefix.
    """

    def __init__(self, logger: Optional[logging.Logger] = None, response_max_chars: int = 500):
        self.logger = logger or _logger
        self.response_max_chars = response_max_chars

    def log_event(self, event: str, **details: Any) -> None:
        """Generic structured audit event."""

        payload = {"event": event, **details, "timestamp": datetime.now(timezone.utc).isoformat()}
        self.logger.info(json.dumps(payload, default=str))

    def log_upstream_call(
        self,
        endpoint: str,
        method: str,
        params: Optional[Mapping[str, Any]],
        status: Optional[int],
        response: Any = None,
        error: Optional[str] = None,
    ):
        """Log one call to the wallet provider."""
        outcome = "FAILURE" if error else "SUCCESS"
        msg = (
            f"UPSTREAM_CALL | endpoint={endpoint} | method={method} | status={status} | "
            f"outcome={outcome} | params={truncate_for_log(redact(params), self.response_max_chars)}"
        )
        if error:
            self.logger.warning(f"{msg} | error={error}")
            return
        if isinstance(response, Mapping):
            response = redact(response)
        self.logger.info(f"{msg} | response={truncate_for_log(response, self.response_max_chars)}")

    def log_api_access(self, endpoint: str, method: str, status_code: int, network: Optional[str] = None):
        """Log API access."""
        self.logger.info(f"API_ACCESS | endpoint={endpoint} | method={method} | status={status_code} | network={network}")

    def log_auth_failure(self, reason: str, ip_address: Optional[str] = None):
        self.logger.warning(f"AUTH_FAILURE | reason={reason} | ip={ip_address}")

    def log_mapping_fallback(self, kind: str, reason: str):
        """Log a record that was degraded to its fallback shape."""
        self.logger.warning(f"MAPPING_FALLBACK | kind={kind} | reason={reason}")

    def log_error(self, error_type: str, error_msg: str, context: Optional[Dict[str, Any]] = None):
        """Log application error."""
        msg = f"ERROR | type={error_type} | msg={error_msg}"
        if context:
            msg += f" | context={redact(context)}"
        self.logger.error(msg)
