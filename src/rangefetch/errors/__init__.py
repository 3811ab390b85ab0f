"""
Error classification and exception hierarchy.

Provides:
- ErrorCategory enum for classifying errors
- RangeFetchBaseError hierarchy for typed exceptions
- Classification utilities for retry decisions
"""

from rangefetch.errors.exceptions import (
    # Enums
    ErrorCategory,
    # Base class
    RangeFetchBaseError,
    # Pipeline errors
    ConfigurationError,
    SizeUnavailableError,
    RangeFetchError,
    AssemblyError,
    # Classification utilities
    classify_http_status,
    classify_exception,
)

__all__ = [
    # Enums
    "ErrorCategory",
    # Base class
    "RangeFetchBaseError",
    # Pipeline errors
    "ConfigurationError",
    "SizeUnavailableError",
    "RangeFetchError",
    "AssemblyError",
    # Classification utilities
    "classify_http_status",
    "classify_exception",
]
