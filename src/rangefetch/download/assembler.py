"""
Concatenate fetched part files into the output, in range index order.

The output is written under a temporary sibling name and moved into place
only after every part has been copied in full, so a failed assembly never
leaves a truncated file under the final name.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Sequence

import aiofiles

from rangefetch.config import DEFAULT_IO_CHUNK_SIZE
from rangefetch.download.models import RangeResult
from rangefetch.errors import AssemblyError
from rangefetch.logging import get_logger, log_with_context

logger = get_logger(__name__)

PARTIAL_SUFFIX = ".partial"


def partial_path_for(output_path: Path) -> Path:
    return output_path.with_name(output_path.name + PARTIAL_SUFFIX)


class AssemblyState:
    """Output stream plus a cursor; lives for one assemble() call."""

    def __init__(self, stream):
        self.stream = stream
        self.bytes_written = 0

    async def write(self, chunk: bytes) -> None:
        await self.stream.write(chunk)
        self.bytes_written += len(chunk)


class Assembler:
    """Merge RangeResults into one file."""

    def __init__(self, io_chunk_size: int = DEFAULT_IO_CHUNK_SIZE):
        self._io_chunk_size = io_chunk_size

    async def assemble(self, results: Sequence[RangeResult], output_path: Path) -> Path:
        """
        Copy every part into output_path in index order.

        Args:
            results: One result per planned range (any order)
            output_path: Final file path

        Returns:
            output_path once the file is complete

        Raises:
            AssemblyError: Missing/duplicate index, read or write failure,
                or a part shorter or longer than its range
        """
        output_path = Path(output_path)
        ordered = sorted(results, key=lambda r: r.index)
        self._check_indices(ordered)

        partial = partial_path_for(output_path)
        await asyncio.to_thread(output_path.parent.mkdir, parents=True, exist_ok=True)

        current_index = ordered[0].index if ordered else 0
        try:
            async with aiofiles.open(partial, "wb") as out:
                state = AssemblyState(out)
                for result in ordered:
                    current_index = result.index
                    copied = await self._copy_part(result, state)
                    if copied != result.byte_count:
                        raise AssemblyError(
                            result.index,
                            f"Copied {copied} bytes from {result.path.name}, "
                            f"expected {result.byte_count}",
                        )
                    log_with_context(
                        logger,
                        logging.DEBUG,
                        f"Written part {result.index}",
                        range_index=result.index,
                        bytes_written=copied,
                    )
            await asyncio.to_thread(os.replace, partial, output_path)
        except AssemblyError:
            await self._discard(partial)
            raise
        except OSError as e:
            await self._discard(partial)
            raise AssemblyError(current_index, f"I/O error during merge: {e}", cause=e)
        except asyncio.CancelledError:
            await self._discard(partial)
            raise

        log_with_context(
            logger,
            logging.INFO,
            "Download completed.",
            output_path=str(output_path),
            bytes_written=state.bytes_written,
            range_count=len(ordered),
        )
        return output_path

    async def _copy_part(self, result: RangeResult, state: AssemblyState) -> int:
        copied = 0
        async with aiofiles.open(result.path, "rb") as part:
            while True:
                chunk = await part.read(self._io_chunk_size)
                if not chunk:
                    break
                await state.write(chunk)
                copied += len(chunk)
        return copied

    @staticmethod
    def _check_indices(ordered: Sequence[RangeResult]) -> None:
        expected = list(range(len(ordered)))
        actual = [r.index for r in ordered]
        if actual != expected:
            # Same length, so a mismatch always leaves at least one index missing
            missing = sorted(set(expected) - set(actual))
            raise AssemblyError(
                missing[0], f"Result indices {actual} are not contiguous from 0"
            )

    @staticmethod
    async def _discard(partial: Path) -> None:
        try:
            await asyncio.to_thread(partial.unlink)
        except FileNotFoundError:
            pass
