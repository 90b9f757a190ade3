"""
Exception hierarchy and fault classification for oracle calls.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

QUOTA_STATUS_CODE = 429
QUOTA_STATUS_NAME = "RESOURCE_EXHAUSTED"


class FaultKind(str, Enum):
    QUOTA = "quota"
    TRANSIENT = "transient"


class DeepCrawlError(Exception):
    """Base class for all crawler errors."""


class ConfigurationError(DeepCrawlError):
    """Raised when a crawl cannot start: no credentials, bad budgets, bad run state."""


class OracleFault(DeepCrawlError):
    """An expansion that failed after the oracle client gave up retrying."""

    def __init__(self, message: str, status: str = "500") -> None:
        super().__init__(message)
        self.status = status


class QuotaExceeded(OracleFault):
    """Every credential in the pool reported quota exhaustion."""

    def __init__(self, message: str, status: str = str(QUOTA_STATUS_CODE)) -> None:
        super().__init__(message, status)


class TransientFault(OracleFault):
    """A non-quota failure that persisted through all attempts on one credential."""


class OracleAPIError(DeepCrawlError):
    """Error response returned by the oracle's HTTP API."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        status: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.status = status


def _error_codes(error: BaseException) -> list:
    codes = [getattr(error, name, None) for name in ("status", "code", "status_code")]
    response = getattr(error, "response", None)
    if response is not None:
        codes.append(getattr(response, "status_code", None))
    return [c for c in codes if c is not None]


def classify_fault(error: BaseException) -> FaultKind:
    """
    Decide whether a raw oracle error signals quota/rate limiting.

    The oracle reports quota conditions in three equivalent shapes: a 429
    code on one of the usual attributes, a ``RESOURCE_EXHAUSTED`` status
    name, or a message mentioning ``429`` or ``quota``.
    """
    for code in _error_codes(error):
        if str(code) in (str(QUOTA_STATUS_CODE), QUOTA_STATUS_NAME):
            return FaultKind.QUOTA

    message = str(getattr(error, "message", None) or error).lower()
    if str(QUOTA_STATUS_CODE) in message or "quota" in message:
        return FaultKind.QUOTA
    return FaultKind.TRANSIENT


def fault_status(error: BaseException) -> str:
    """Best-effort status code string for a raw oracle error, defaulting to 500."""
    for code in _error_codes(error):
        text = str(code)
        if text.isdigit():
            return text
    return "500"
