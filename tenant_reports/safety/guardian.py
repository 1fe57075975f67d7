"""
Read-only guard — every report only ever reads from the tenant.
Validates HTTP methods before they leave the Graph client and records any violation.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

logger = logging.getLogger("tenant_reports.safety")

READ_METHODS = {"GET", "HEAD", "OPTIONS"}


class SafetyViolation(Exception):
    """Raised when a write operation is attempted."""
    pass


class ReadOnlyGuard:
    """
    Validates every outbound HTTP request to ensure read-only operation.
    Keeps a record of checks and violations for the run log.
    """

    def __init__(self):
        self.violations: list[dict] = []
        self.checks_performed: int = 0

    def validate_request(self, method: str, url: str) -> bool:
        """
        Validate that a request is read-only.
        Returns True if safe, raises SafetyViolation if not.
        """
        self.checks_performed += 1
        method_upper = method.upper()
        if method_upper in READ_METHODS:
            return True

        self._record_violation(method_upper, url)
        raise SafetyViolation(f"Write method blocked: {method_upper} {url}")

    def _record_violation(self, method: str, url: str):
        self.violations.append({
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "method": method,
            "url": url,
        })
        logger.critical(f"SAFETY VIOLATION: {method} {url}")

    @property
    def clean(self) -> bool:
        return not self.violations

    def summary(self) -> str:
        status = "CLEAN" if self.clean else f"{len(self.violations)} VIOLATIONS"
        return f"{self.checks_performed} requests checked, {status}"
