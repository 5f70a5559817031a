"""
Extraction service error classification.

Turns HTTP status codes and httpx transport exceptions from the extraction
service into ``ExtractionError`` values so callers can log them consistently
and tell rate limiting apart from a broken API key.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import httpx


class ErrorCategory(str, Enum):
    TRANSIENT = "transient"    # Rate limit, timeout, server error
    PERMANENT = "permanent"    # Auth failed, credits exhausted, bad request
    INVALID = "invalid"        # Response arrived but carried no usable data


@dataclass
class ExtractionError(Exception):
    """Classified extraction service error."""
    category: ErrorCategory
    error_code: str
    message: str
    url: Optional[str] = None
    status_code: Optional[int] = None
    original: Optional[Exception] = field(default=None, repr=False)

    @property
    def retryable(self) -> bool:
        return self.category == ErrorCategory.TRANSIENT

    def __str__(self):
        return f"[firecrawl:{self.category.value}] {self.error_code}: {self.message}"


_STATUS_CODES = {
    400: (ErrorCategory.PERMANENT, "bad_request"),
    401: (ErrorCategory.PERMANENT, "authentication_error"),
    402: (ErrorCategory.PERMANENT, "payment_required"),
    403: (ErrorCategory.PERMANENT, "permission_denied"),
    404: (ErrorCategory.PERMANENT, "not_found"),
    408: (ErrorCategory.TRANSIENT, "timeout"),
    429: (ErrorCategory.TRANSIENT, "rate_limit"),
}


def classify_status(status_code: int, message: str = "", url: Optional[str] = None) -> ExtractionError:
    """Classify a non-2xx HTTP response."""
    if status_code in _STATUS_CODES:
        category, code = _STATUS_CODES[status_code]
    elif status_code >= 500:
        category, code = ErrorCategory.TRANSIENT, "server_error"
    else:
        category, code = ErrorCategory.PERMANENT, f"http_{status_code}"
    return ExtractionError(
        category=category,
        error_code=code,
        message=message or f"HTTP {status_code}",
        url=url,
        status_code=status_code,
    )


def classify_exception(exc: Exception, url: Optional[str] = None) -> ExtractionError:
    """Classify an exception raised while calling the extraction service."""
    if isinstance(exc, ExtractionError):
        return exc

    if isinstance(exc, httpx.TimeoutException):
        return ExtractionError(
            category=ErrorCategory.TRANSIENT,
            error_code="timeout",
            message=str(exc) or "request timed out",
            url=url,
            original=exc,
        )

    if isinstance(exc, httpx.HTTPStatusError):
        err = classify_status(exc.response.status_code, str(exc), url=url)
        err.original = exc
        return err

    if isinstance(exc, httpx.TransportError):
        return ExtractionError(
            category=ErrorCategory.TRANSIENT,
            error_code="connection_error",
            message=str(exc) or exc.__class__.__name__,
            url=url,
            original=exc,
        )

    if isinstance(exc, ValueError):
        # Includes JSON decode errors
        return ExtractionError(
            category=ErrorCategory.INVALID,
            error_code="invalid_response",
            message=str(exc),
            url=url,
            original=exc,
        )

    return ExtractionError(
        category=ErrorCategory.TRANSIENT,
        error_code="unknown",
        message=str(exc) or exc.__class__.__name__,
        url=url,
        original=exc,
    )
