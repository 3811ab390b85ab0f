"""Remove part files once they are no longer needed."""

import logging
from typing import Iterable

from rangefetch.download.models import RangeResult, RangeSpec
from rangefetch.download.storage import PartStorage
from rangefetch.logging import get_logger, log_with_context

logger = get_logger(__name__)


class Cleaner:
    """Idempotent deletion of part files; a missing file is not an error."""

    def __init__(self, storage: PartStorage):
        self._storage = storage

    async def cleanup(self, results: Iterable[RangeResult]) -> int:
        """
        Delete the part file of every result.

        Returns:
            Number of files actually removed
        """
        removed = 0
        for result in results:
            if await self._storage.delete(result.path):
                removed += 1
        log_with_context(logger, logging.DEBUG, f"Removed {removed} part file(s)")
        return removed

    async def cleanup_specs(self, specs: Iterable[RangeSpec]) -> int:
        """Delete whatever part files exist for the planned ranges (used after a failed run)."""
        removed = 0
        for spec in specs:
            if await self._storage.delete(self._storage.part_path(spec)):
                removed += 1
        if removed:
            log_with_context(
                logger, logging.DEBUG, f"Removed {removed} leftover part file(s)"
            )
        return removed
