"""Tests for the exception hierarchy and error classification."""

import asyncio

import aiohttp
import pytest

from rangefetch.errors import (
    AssemblyError,
    ConfigurationError,
    ErrorCategory,
    RangeFetchBaseError,
    RangeFetchError,
    SizeUnavailableError,
    classify_exception,
    classify_http_status,
)


class TestClassifyHttpStatus:
    """Test status code classification."""

    @pytest.mark.parametrize(
        "status,expected",
        [
            (408, ErrorCategory.TRANSIENT),
            (429, ErrorCategory.TRANSIENT),
            (500, ErrorCategory.TRANSIENT),
            (503, ErrorCategory.TRANSIENT),
            (403, ErrorCategory.PERMANENT),
            (404, ErrorCategory.PERMANENT),
            (416, ErrorCategory.PERMANENT),
            (200, ErrorCategory.UNKNOWN),
        ],
    )
    def test_status(self, status, expected):
        assert classify_http_status(status) == expected


class TestClassifyException:
    """Test exception classification."""

    def test_timeout_is_transient(self):
        assert classify_exception(asyncio.TimeoutError()) == ErrorCategory.TRANSIENT

    def test_connection_error_is_transient(self):
        error = aiohttp.ClientConnectionError("reset")
        assert classify_exception(error) == ErrorCategory.TRANSIENT

    def test_disk_error_is_permanent(self):
        assert classify_exception(PermissionError("denied")) == ErrorCategory.PERMANENT

    def test_own_errors_keep_category(self):
        assert classify_exception(ConfigurationError("bad")) == ErrorCategory.PERMANENT

    def test_other_is_unknown(self):
        assert classify_exception(ValueError("?")) == ErrorCategory.UNKNOWN


class TestExceptions:
    """Test exception attributes."""

    def test_range_fetch_error(self):
        error = RangeFetchError(3, "HTTP error: 503", status_code=503)

        assert error.index == 3
        assert str(error) == "Range 3: HTTP error: 503"
        assert error.context == {"range_index": 3, "http_status": 503}
        assert error.stage is None
        assert isinstance(error, RangeFetchBaseError)

    def test_range_fetch_error_category_from_cause(self):
        cause = aiohttp.ClientConnectionError("reset")
        error = RangeFetchError(0, "Connection error", cause=cause)

        assert error.category == ErrorCategory.TRANSIENT
        assert error.is_retryable
        assert "Caused by" in str(error)

    def test_explicit_category_wins(self):
        error = RangeFetchError(
            0, "ignored range", cause=OSError(), category=ErrorCategory.TRANSIENT
        )

        assert error.category == ErrorCategory.TRANSIENT

    def test_size_unavailable(self):
        error = SizeUnavailableError("HTTP 404", url="https://example.com/f", status_code=404)

        assert error.category == ErrorCategory.PERMANENT
        assert not error.is_retryable
        assert error.context["http_status"] == 404

    def test_assembly_error(self):
        error = AssemblyError(1, "short part")

        assert error.index == 1
        assert error.context["range_index"] == 1
        assert error.category == ErrorCategory.PERMANENT
