"""
Fault taxonomy and classification.

Every failure observed by the retry layer is mapped onto a fixed set of
fault categories. Classification is pure: the same exception always yields
the same category.
"""

from __future__ import annotations

import socket
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx


class FaultCategory(str, Enum):
    """Fault categories, in classification priority order."""

    AUTHENTICATION = "Authentication"
    AUTHORIZATION = "Authorization"
    RATE_LIMIT = "RateLimit"
    SERVER_ERROR = "ServerError"
    TIMEOUT = "Timeout"
    NETWORK = "Network"
    UNKNOWN = "Unknown"


# Categories that no amount of backoff can fix
NON_RETRYABLE_CATEGORIES = frozenset({
    FaultCategory.AUTHENTICATION,
    FaultCategory.AUTHORIZATION,
})

SERVER_ERROR_STATUS_CODES = {500, 502, 503}
TIMEOUT_STATUS_CODES = {504}


@dataclass(frozen=True)
class FaultRecord:
    """A classified failure."""

    category: FaultCategory
    message: str
    operation: str
    status_code: int | None = None
    retry_after: float | None = None

    @property
    def retryable(self) -> bool:
        return should_retry(self.category)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "category": self.category.value,
            "message": self.message,
            "operation": self.operation,
            "status_code": self.status_code,
        }


# =============================================================================
# Exceptions
# =============================================================================


class DirectoryExportError(Exception):
    """Base exception for directory export errors."""


class HttpStatusError(DirectoryExportError):
    """Non-2xx response from a remote endpoint."""

    def __init__(
        self,
        message: str,
        status_code: int,
        url: str | None = None,
        retry_after: float | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.url = url
        self.retry_after = retry_after


class TokenAcquisitionError(DirectoryExportError):
    """Bearer token could not be obtained (invalid or expired credential state)."""

    def __init__(self, message: str, resource: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.resource = resource
        self.status_code = status_code


class OversizedRecordError(DirectoryExportError):
    """A single record serializes to more bytes than a chunk may hold."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"Record of {size} bytes exceeds the {limit} byte chunk limit")
        self.size = size
        self.limit = limit


class TerminalFailure(DirectoryExportError):
    """An operation failed and will not be retried any further.

    The original exception is kept on ``cause`` (and chained as
    ``__cause__`` when raised) for diagnostics.
    """

    def __init__(self, fault: FaultRecord, cause: BaseException | None = None):
        super().__init__(f"{fault.operation} failed [{fault.category.value}]: {fault.message}")
        self.fault = fault
        self.cause = cause


# =============================================================================
# Classification
# =============================================================================


def classify_http_status(status_code: int) -> FaultCategory:
    """Map an HTTP status code to a fault category."""
    if status_code == 401:
        return FaultCategory.AUTHENTICATION
    if status_code == 403:
        return FaultCategory.AUTHORIZATION
    if status_code == 429:
        return FaultCategory.RATE_LIMIT
    if status_code in SERVER_ERROR_STATUS_CODES:
        return FaultCategory.SERVER_ERROR
    if status_code in TIMEOUT_STATUS_CODES:
        return FaultCategory.TIMEOUT
    return FaultCategory.UNKNOWN


def classify(exc: BaseException) -> FaultCategory:
    """Classify a raised fault.

    Rules are applied in priority order: authentication, authorization,
    rate limit, server error, timeout, network, then unknown.
    """
    if isinstance(exc, TerminalFailure):
        return exc.fault.category

    if isinstance(exc, TokenAcquisitionError):
        return FaultCategory.AUTHENTICATION

    status_code = _status_code_of(exc)
    if status_code is not None:
        category = classify_http_status(status_code)
        if category is not FaultCategory.UNKNOWN:
            return category

    if isinstance(exc, (httpx.TimeoutException, TimeoutError)):
        return FaultCategory.TIMEOUT

    # DNS lookup failures are OSErrors but not ConnectionErrors
    if isinstance(exc, (socket.gaierror, socket.herror)):
        return FaultCategory.NETWORK

    if isinstance(exc, (httpx.NetworkError, httpx.RemoteProtocolError, ConnectionError)):
        return FaultCategory.NETWORK

    return FaultCategory.UNKNOWN


def should_retry(category: FaultCategory) -> bool:
    """Whether a fault of this category is worth another attempt.

    Unknown faults are retried.
    """
    return category not in NON_RETRYABLE_CATEGORIES


def classify_fault(exc: BaseException, operation: str) -> FaultRecord:
    """Build a FaultRecord for an exception raised by ``operation``."""
    if isinstance(exc, TerminalFailure):
        return exc.fault

    return FaultRecord(
        category=classify(exc),
        message=str(exc) or type(exc).__name__,
        operation=operation,
        status_code=_status_code_of(exc),
        retry_after=getattr(exc, "retry_after", None),
    )


def _status_code_of(exc: BaseException) -> int | None:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    status_code = getattr(exc, "status_code", None)
    return status_code if isinstance(status_code, int) else None
