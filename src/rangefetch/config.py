"""
Download configuration from config.yaml, environment variables and defaults.

Configuration priority (highest to lowest):
    1. Explicit overrides (CLI arguments)
    2. Environment variables
    3. config.yaml file (under 'rangefetch:' key)
    4. Dataclass defaults
"""

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from rangefetch import __version__
from rangefetch.errors import ConfigurationError

DEFAULT_THREAD_COUNT = 4
DEFAULT_TEMP_DIR = "./temp"
DEFAULT_IO_CHUNK_SIZE = 1024 * 1024  # 1MB


@dataclass(frozen=True)
class RangeFetchConfig:
    """Range download behavior configuration.

    Load with RangeFetchConfig.load_config() (YAML + env) or
    RangeFetchConfig.from_env() (env only). Timing values are in seconds.
    """

    # Concurrency: one range per thread, and the thread count bounds in-flight fetches
    thread_count: int = DEFAULT_THREAD_COUNT

    # Storage
    temp_dir: str = DEFAULT_TEMP_DIR
    output_path: Optional[str] = None  # None = derived from the URL

    # Timeouts
    probe_timeout_seconds: float = 30.0
    timeout_seconds: float = 300.0  # per range

    # Streaming copy buffer for fetch and assembly
    io_chunk_size: int = DEFAULT_IO_CHUNK_SIZE

    # Failure policy (defaults keep the single-attempt, collect-all contract)
    retry_attempts: int = 0
    retry_backoff_seconds: float = 1.0
    cancel_on_failure: bool = False
    keep_temp_on_failure: bool = False

    user_agent: str = f"rangefetch/{__version__}"

    def validate(self) -> "RangeFetchConfig":
        """Check value ranges.

        Raises:
            ConfigurationError: If any value is out of range
        """
        if self.thread_count < 1:
            raise ConfigurationError(
                f"thread_count must be a positive integer, got {self.thread_count}"
            )
        if self.io_chunk_size < 1:
            raise ConfigurationError(
                f"io_chunk_size must be positive, got {self.io_chunk_size}"
            )
        if self.probe_timeout_seconds <= 0 or self.timeout_seconds <= 0:
            raise ConfigurationError("Timeouts must be positive")
        if self.retry_attempts < 0:
            raise ConfigurationError(
                f"retry_attempts cannot be negative, got {self.retry_attempts}"
            )
        if self.retry_backoff_seconds < 0:
            raise ConfigurationError("retry_backoff_seconds cannot be negative")
        return self

    def with_overrides(self, **overrides: Any) -> "RangeFetchConfig":
        """Return a copy with the non-None overrides applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        unknown = set(changes) - {f.name for f in fields(self)}
        if unknown:
            raise ConfigurationError(f"Unknown config keys: {sorted(unknown)}")
        return replace(self, **changes)

    @classmethod
    def from_env(cls) -> "RangeFetchConfig":
        """Load configuration from environment variables over dataclass defaults.

        Optional env vars (all have defaults):
            RANGEFETCH_THREADS: Number of ranges / concurrent fetches (default: 4)
            RANGEFETCH_TEMP_DIR: Directory for part files (default: ./temp)
            RANGEFETCH_OUTPUT: Output file path (default: derived from URL)
            RANGEFETCH_PROBE_TIMEOUT: HEAD request timeout (default: 30)
            RANGEFETCH_TIMEOUT: Per-range timeout (default: 300)
            RANGEFETCH_IO_CHUNK_SIZE: Copy buffer in bytes (default: 1MB)
            RANGEFETCH_RETRIES: Extra rounds for failed ranges (default: 0)
            RANGEFETCH_RETRY_BACKOFF: Base backoff seconds (default: 1.0)
            RANGEFETCH_CANCEL_ON_FAILURE: Cancel siblings on failure (default: false)
            RANGEFETCH_KEEP_TEMP: Keep part files after a failure (default: false)
            RANGEFETCH_USER_AGENT: User-Agent header
        """
        return cls.load_config(config_path=None)

    @classmethod
    def load_config(cls, config_path: Optional[Path] = None) -> "RangeFetchConfig":
        """Load configuration from config.yaml and environment variables.

        Args:
            config_path: YAML file; a missing file is ignored, a malformed one
                raises ConfigurationError

        Returns:
            Validated RangeFetchConfig
        """
        data: Dict[str, Any] = {}
        if config_path is not None and Path(config_path).exists():
            data = _load_yaml_section(Path(config_path))

        data.update(_env_values())

        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown config keys: {sorted(unknown)}")

        try:
            return cls(**_coerce(data)).validate()
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration: {e}", cause=e)


# Env var name -> config field
ENV_VARS = {
    "RANGEFETCH_THREADS": "thread_count",
    "RANGEFETCH_TEMP_DIR": "temp_dir",
    "RANGEFETCH_OUTPUT": "output_path",
    "RANGEFETCH_PROBE_TIMEOUT": "probe_timeout_seconds",
    "RANGEFETCH_TIMEOUT": "timeout_seconds",
    "RANGEFETCH_IO_CHUNK_SIZE": "io_chunk_size",
    "RANGEFETCH_RETRIES": "retry_attempts",
    "RANGEFETCH_RETRY_BACKOFF": "retry_backoff_seconds",
    "RANGEFETCH_CANCEL_ON_FAILURE": "cancel_on_failure",
    "RANGEFETCH_KEEP_TEMP": "keep_temp_on_failure",
    "RANGEFETCH_USER_AGENT": "user_agent",
}

_INT_FIELDS = {"thread_count", "io_chunk_size", "retry_attempts"}
_FLOAT_FIELDS = {"probe_timeout_seconds", "timeout_seconds", "retry_backoff_seconds"}
_BOOL_FIELDS = {"cancel_on_failure", "keep_temp_on_failure"}
_OPTIONAL_FIELDS = {"output_path"}


def _load_yaml_section(config_path: Path) -> Dict[str, Any]:
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Cannot parse {config_path}: {e}", cause=e)

    if not isinstance(yaml_data, dict):
        raise ConfigurationError(f"{config_path} must contain a mapping")

    section = yaml_data.get("rangefetch", {}) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"'rangefetch' section in {config_path} must be a mapping")
    return dict(section)


def _env_values() -> Dict[str, Any]:
    values = {}
    for env_name, field_name in ENV_VARS.items():
        raw = os.getenv(env_name)
        if raw is not None and raw != "":
            values[field_name] = raw
    return values


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _coerce(data: Dict[str, Any]) -> Dict[str, Any]:
    """Convert env strings and YAML scalars to field types.

    A YAML null leaves a required field at its default.
    """
    result = {}
    for key, value in data.items():
        if value is None:
            if key in _OPTIONAL_FIELDS:
                result[key] = None
        elif key in _INT_FIELDS:
            result[key] = int(value)
        elif key in _FLOAT_FIELDS:
            result[key] = float(value)
        elif key in _BOOL_FIELDS:
            result[key] = _parse_bool(value)
        else:
            result[key] = str(value)
    return result
