"""
Concurrent byte-range download module.

Provides:
    - RangeDownloader: High-level interface (url -> DownloadSummary)
    - probe_size: HEAD request for the resource length
    - plan_ranges: Contiguous inclusive range partitioning
    - RangeFetcher: One Range request streamed into one part file
    - FetchCoordinator: Bounded concurrent fetch with indexed results
    - Assembler: Ordered, atomic concatenation of part files
    - Cleaner: Idempotent part file removal

Example usage:
    from rangefetch.download import RangeDownloader

    downloader = RangeDownloader()
    summary = await downloader.download("https://example.com/video.mp4")
    print(f"Wrote {summary.output_path}")
"""

from rangefetch.download.assembler import Assembler
from rangefetch.download.cleaner import Cleaner
from rangefetch.download.coordinator import FetchCoordinator
from rangefetch.download.downloader import (
    RangeDownloader,
    default_output_path,
    download_resource,
)
from rangefetch.download.fetcher import RangeFetcher
from rangefetch.download.http_client import create_session, probe_size
from rangefetch.download.models import (
    DownloadSummary,
    PipelineState,
    RangeResult,
    RangeSpec,
    ResourceDescriptor,
)
from rangefetch.download.planner import plan_ranges
from rangefetch.download.storage import PartStorage

__all__ = [
    # High-level interface
    "RangeDownloader",
    "download_resource",
    "default_output_path",
    # Pipeline components
    "probe_size",
    "create_session",
    "plan_ranges",
    "RangeFetcher",
    "FetchCoordinator",
    "Assembler",
    "Cleaner",
    "PartStorage",
    # Models
    "ResourceDescriptor",
    "RangeSpec",
    "RangeResult",
    "DownloadSummary",
    "PipelineState",
]
