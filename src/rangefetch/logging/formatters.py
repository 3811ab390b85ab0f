"""Log formatters for JSON and console output."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from rangefetch.logging.context import get_log_context
from rangefetch.logging.utilities import sanitize_url


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter with context injection.

    Produces one JSON object per line for easy parsing with jq/grep.
    Sanitizes URLs to remove credentials and query strings before logging.
    """

    # Fields to extract from LogRecord extras
    EXTRA_FIELDS = [
        "url",
        "duration_ms",
        "http_status",
        "error_category",
        "error_message",
        "total_size",
        "thread_count",
        "range_count",
        "range_start",
        "range_end",
        "bytes_expected",
        "bytes_written",
        "part_path",
        "output_path",
        "failed_indices",
        "attempt",
        "retry_count",
        "records_succeeded",
        "records_failed",
    ]

    # Fields that contain URLs and should be sanitized
    URL_FIELDS = ["url"]

    def _sanitize_value(self, key: str, value: Any) -> Any:
        if key in self.URL_FIELDS and isinstance(value, str):
            return sanitize_url(value)
        return value

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3]
            + "Z",
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        ctx = get_log_context()
        if ctx["run_id"]:
            log_entry["run_id"] = ctx["run_id"]
        if ctx["stage"]:
            log_entry["stage"] = ctx["stage"]
        if ctx["range_index"] is not None:
            log_entry["range_index"] = ctx["range_index"]

        # Add source location for DEBUG/ERROR
        if record.levelno in (logging.DEBUG, logging.ERROR, logging.CRITICAL):
            log_entry["file"] = f"{record.filename}:{record.lineno}"

        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = self._sanitize_value(field, value)

        # An explicit range_index extra wins over the context value
        explicit_index = getattr(record, "range_index", None)
        if explicit_index is not None:
            log_entry["range_index"] = explicit_index

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable console formatter.

    Includes stage and range index when available.
    """

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_log_context()

        parts = [
            datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            record.levelname,
        ]
        if ctx["stage"]:
            parts.append(f"[{ctx['stage']}]")

        prefix = " - ".join(parts)

        range_index = getattr(record, "range_index", None)
        if range_index is None:
            range_index = ctx["range_index"]
        if range_index is not None:
            return f"{prefix} - [part {range_index}] {record.getMessage()}"

        return f"{prefix} - {record.getMessage()}"
