"""Partition a resource into contiguous inclusive byte ranges."""

from typing import List

from rangefetch.download.models import RangeSpec
from rangefetch.errors import ConfigurationError


def plan_ranges(total_size: int, thread_count: int) -> List[RangeSpec]:
    """
    Split [0, total_size - 1] into thread_count contiguous ranges.

    Every range spans ceil(total_size / thread_count) bytes except the last
    non-empty one, which takes the remainder. When thread_count exceeds
    total_size the trailing ranges are empty (start > end). A zero-length
    resource yields a single empty range.

    Args:
        total_size: Resource length in bytes
        thread_count: Number of ranges (and concurrent fetches)

    Returns:
        Ranges ordered by index

    Raises:
        ConfigurationError: If thread_count < 1 or total_size < 0

    Example:
        >>> [(r.start, r.end) for r in plan_ranges(10, 4)]
        [(0, 2), (3, 5), (6, 8), (9, 9)]
    """
    if thread_count < 1:
        raise ConfigurationError(
            f"thread_count must be a positive integer, got {thread_count}"
        )
    if total_size < 0:
        raise ConfigurationError(f"total_size cannot be negative, got {total_size}")

    if total_size == 0:
        return [RangeSpec(index=0, start=0, end=-1)]

    chunk_size = -(-total_size // thread_count)  # exact ceil for any size
    return [
        RangeSpec(
            index=i,
            start=i * chunk_size,
            end=min((i + 1) * chunk_size - 1, total_size - 1),
        )
        for i in range(thread_count)
    ]
