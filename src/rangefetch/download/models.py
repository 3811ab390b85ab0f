"""
Data models for range downloads.

ResourceDescriptor -> [RangeSpec] -> [RangeResult] -> DownloadSummary
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class PipelineState(str, Enum):
    """Stages of a single-shot range download run."""

    IDLE = "idle"
    PROBING = "probing"
    PLANNING = "planning"
    FETCHING = "fetching"
    ASSEMBLING = "assembling"
    CLEANING = "cleaning"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ResourceDescriptor:
    """Remote resource and its length as reported by the probe."""

    url: str
    total_size: int


@dataclass(frozen=True)
class RangeSpec:
    """
    Inclusive byte interval [start, end] of the resource.

    A range with start > end is empty: there are no bytes to fetch.
    """

    index: int
    start: int
    end: int

    @property
    def byte_count(self) -> int:
        return max(0, self.end - self.start + 1)

    @property
    def is_empty(self) -> bool:
        return self.start > self.end

    @property
    def header_value(self) -> str:
        """Value for the HTTP Range request header."""
        return f"bytes={self.start}-{self.end}"


@dataclass(frozen=True)
class RangeResult:
    """A fetched range persisted in its part file."""

    spec: RangeSpec
    path: Path
    byte_count: int

    @property
    def index(self) -> int:
        return self.spec.index


@dataclass(frozen=True)
class DownloadSummary:
    """Outcome of a successful run."""

    url: str
    output_path: Path
    total_size: int
    range_count: int
    duration_ms: float
