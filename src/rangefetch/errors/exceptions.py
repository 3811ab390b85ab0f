"""
Exception types and error classification for rangefetch.

Provides:
- ErrorCategory enum for retry decisions
- Typed exception hierarchy for download failures
- Error classification utilities
"""

import asyncio
from enum import Enum
from typing import Optional

import aiohttp


class ErrorCategory(Enum):
    """
    Classification of error types for handling decisions.

    Categories:
        TRANSIENT: Temporary failures that may succeed on another attempt
                   (e.g., connection resets, timeouts, 5xx, short bodies)
        PERMANENT: Failures that won't succeed on retry
                   (e.g., 404, server ignoring Range, bad configuration)
        UNKNOWN: Unclassified errors, may retry conservatively
    """

    TRANSIENT = "transient"
    PERMANENT = "permanent"
    UNKNOWN = "unknown"


class RangeFetchBaseError(Exception):
    """
    Base exception for all rangefetch errors.

    Attributes:
        message: Human-readable error description
        category: Error classification for retry decisions
        cause: Original exception if wrapping
        context: Additional context dict for debugging
        stage: Pipeline stage the error was raised in (set by the downloader)
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        context: Optional[dict] = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        self.stage: Optional[str] = None
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        """Whether this error should trigger a retry."""
        return self.category in (ErrorCategory.TRANSIENT, ErrorCategory.UNKNOWN)

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause!r}")
        return " | ".join(parts)


class ConfigurationError(RangeFetchBaseError):
    """Invalid configuration (thread count, timeouts, config file)."""

    category = ErrorCategory.PERMANENT


class SizeUnavailableError(RangeFetchBaseError):
    """
    The probe could not determine the resource length.

    Fatal: without a size there is no valid range plan.
    """

    category = ErrorCategory.PERMANENT

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ):
        context = {}
        if status_code is not None:
            context["http_status"] = status_code
        super().__init__(message, cause, context)
        self.url = url
        self.status_code = status_code


class RangeFetchError(RangeFetchBaseError):
    """One range's transfer failed; `index` names the missing byte window."""

    def __init__(
        self,
        index: int,
        message: str,
        cause: Optional[BaseException] = None,
        category: Optional[ErrorCategory] = None,
        status_code: Optional[int] = None,
    ):
        context = {"range_index": index}
        if status_code is not None:
            context["http_status"] = status_code
        super().__init__(f"Range {index}: {message}", cause, context)
        self.index = index
        self.status_code = status_code
        if category is not None:
            self.category = category
        elif cause is not None:
            self.category = classify_exception(cause)


class AssemblyError(RangeFetchBaseError):
    """Copying a part into the output failed; the partial output is invalid."""

    category = ErrorCategory.PERMANENT

    def __init__(
        self,
        index: int,
        message: str,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(f"Range {index}: {message}", cause, {"range_index": index})
        self.index = index


# =============================================================================
# Error Classification Utilities
# =============================================================================


def classify_http_status(status_code: int) -> ErrorCategory:
    """
    Classify HTTP status code into error category.

    Args:
        status_code: HTTP response status

    Returns:
        Appropriate ErrorCategory
    """
    if 200 <= status_code < 300:
        return ErrorCategory.UNKNOWN  # Not an error

    if status_code in (408, 429):
        return ErrorCategory.TRANSIENT

    if 400 <= status_code < 500:
        return ErrorCategory.PERMANENT  # 416 included: the plan no longer fits

    if status_code >= 500:
        return ErrorCategory.TRANSIENT

    return ErrorCategory.UNKNOWN


def classify_exception(exc: BaseException) -> ErrorCategory:
    """
    Classify an exception into error category.

    Args:
        exc: Exception to classify

    Returns:
        Appropriate ErrorCategory
    """
    if isinstance(exc, RangeFetchBaseError):
        return exc.category

    if isinstance(exc, aiohttp.ClientResponseError):
        return classify_http_status(exc.status)

    if isinstance(exc, (asyncio.TimeoutError, aiohttp.ClientError)):
        return ErrorCategory.TRANSIENT

    if isinstance(exc, OSError):
        # Local filesystem problems (disk full, permissions) won't fix themselves
        return ErrorCategory.PERMANENT

    return ErrorCategory.UNKNOWN
