"""
Entry point for downloading a resource over concurrent range requests.

Usage:
    # Four ranges (default), output named after the URL
    python -m rangefetch https://example.com/media/video.mp4

    # Eight ranges into a chosen file, with a JSON run report
    python -m rangefetch https://example.com/video.mp4 -n 8 -o video.mp4 --report run.json

    # Settings from a YAML file ('rangefetch:' section)
    python -m rangefetch https://example.com/video.mp4 --config config.yaml

Exit codes:
    0   download complete
    1   probe, fetch or assembly failed
    2   invalid configuration
    130 interrupted
"""

import argparse
import logging
import os
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from rangefetch.async_utils import run_async_with_shutdown
from rangefetch.config import RangeFetchConfig
from rangefetch.download import RangeDownloader
from rangefetch.errors import ConfigurationError, RangeFetchBaseError
from rangefetch.logging import generate_run_id, log_exception, setup_logging
from rangefetch.schemas import DownloadReport

EXIT_OK = 0
EXIT_DOWNLOAD_FAILED = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130

DEFAULT_CONFIG_FILE = "config.yaml"

# Placeholder logger until setup_logging() is called in main()
logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="rangefetch",
        description="Download one resource over concurrent HTTP range requests",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m rangefetch https://example.com/video.mp4
    python -m rangefetch https://example.com/video.mp4 -n 8 -o video.mp4
    python -m rangefetch https://example.com/video.mp4 --retries 2 --cancel-on-failure
        """,
    )

    parser.add_argument("url", help="Resource URL")

    parser.add_argument(
        "-n",
        "--threads",
        type=int,
        default=None,
        help="Number of ranges fetched concurrently (default: 4)",
    )
    parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Output file (default: downloaded_<URL file name>)",
    )
    parser.add_argument(
        "--temp-dir",
        default=None,
        help="Directory for part files (default: ./temp)",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="YAML config file (default: RANGEFETCH_CONFIG env var or ./config.yaml if present)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-range timeout in seconds (default: 300)",
    )
    parser.add_argument(
        "--retries",
        type=int,
        default=None,
        help="Extra rounds for failed ranges (default: 0)",
    )
    parser.add_argument(
        "--cancel-on-failure",
        action="store_true",
        help="Cancel in-flight ranges as soon as one fails",
    )
    parser.add_argument(
        "--keep-temp",
        action="store_true",
        help="Keep part files when the download fails",
    )
    parser.add_argument(
        "--report",
        default=None,
        help="Write a JSON run report to this path",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Console logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-dir",
        default=None,
        help="Log directory path (default: LOG_DIR env var; console only if unset)",
    )
    parser.add_argument(
        "--plain-logs",
        action="store_true",
        help="Write plain text instead of JSON lines to the log file",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> RangeFetchConfig:
    """Merge YAML/env configuration with command line overrides."""
    config_path = args.config or os.getenv("RANGEFETCH_CONFIG") or DEFAULT_CONFIG_FILE
    if args.config and not Path(args.config).exists():
        raise ConfigurationError(f"Config file not found: {args.config}")

    config = RangeFetchConfig.load_config(Path(config_path))
    return config.with_overrides(
        thread_count=args.threads,
        output_path=args.output,
        temp_dir=args.temp_dir,
        timeout_seconds=args.timeout,
        retry_attempts=args.retries,
        cancel_on_failure=True if args.cancel_on_failure else None,
        keep_temp_on_failure=True if args.keep_temp else None,
    ).validate()


def write_report(path: str, report: DownloadReport) -> None:
    try:
        Path(path).write_text(report.model_dump_json(indent=2), encoding="utf-8")
    except OSError as e:
        log_exception(logger, e, "Could not write run report", include_traceback=False)


def main(argv: Optional[List[str]] = None) -> int:
    """Run one download; returns the process exit code."""
    global logger

    args = parse_args(argv)
    log_dir = args.log_dir or os.getenv("LOG_DIR")
    logger = setup_logging(
        name="rangefetch",
        log_dir=Path(log_dir) if log_dir else None,
        json_format=not args.plain_logs,
        console_level=getattr(logging, args.log_level),
        run_id=generate_run_id(),
    )

    try:
        config = build_config(args)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG_ERROR

    start_time = time.monotonic()
    try:
        downloader = RangeDownloader(config)
        summary = run_async_with_shutdown(downloader.download(args.url))
    except KeyboardInterrupt:
        logger.warning("Download interrupted")
        return EXIT_INTERRUPTED
    except RangeFetchBaseError as e:
        if args.report:
            write_report(
                args.report,
                DownloadReport.from_error(
                    args.url,
                    e,
                    duration_ms=round((time.monotonic() - start_time) * 1000, 2),
                    completed_at=datetime.now(timezone.utc),
                ),
            )
        logger.error(f"Error: {e}")
        if isinstance(e, ConfigurationError):
            return EXIT_CONFIG_ERROR
        return EXIT_DOWNLOAD_FAILED

    if args.report:
        write_report(
            args.report,
            DownloadReport.from_summary(
                args.url, summary, completed_at=datetime.now(timezone.utc)
            ),
        )
    logger.info(f"Saved {summary.total_size} bytes to {summary.output_path}")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
