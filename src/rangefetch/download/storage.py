"""
Filesystem storage for range part files.

Part files live in one temp directory and are named from the output file
name and the range index, so two fetchers never share a destination and
leftovers are easy to attribute.
"""

import asyncio
from pathlib import Path
from typing import Union

import aiofiles

from rangefetch.download.models import RangeSpec


class PartStorage:
    """
    Local directory holding one part file per range.

    Usage:
        storage = PartStorage(Path("./temp"), "video.mp4")
        await storage.ensure_dir()
        async with storage.open_write(spec) as f:
            await f.write(chunk)
    """

    def __init__(self, temp_dir: Union[str, Path], name: str):
        """
        Args:
            temp_dir: Directory for part files
            name: Base name for part files (usually the output file name)
        """
        self.temp_dir = Path(temp_dir)
        self.name = name

    def part_path(self, spec: RangeSpec) -> Path:
        return self.temp_dir / f"{self.name}.part{spec.index}"

    async def ensure_dir(self) -> None:
        await asyncio.to_thread(self.temp_dir.mkdir, parents=True, exist_ok=True)

    def open_write(self, spec: RangeSpec):
        """Open the part file for a range, truncating leftovers from earlier runs."""
        return aiofiles.open(self.part_path(spec), "wb")

    async def delete(self, path: Path) -> bool:
        """
        Remove a part file. Missing files are not an error.

        Returns:
            True if a file was removed
        """
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            return False
        return True
