"""
File operation utilities

Atomic guide writes, byte-for-byte copies and safe deletes.
"""
import logging
from pathlib import Path

import aiofiles
import aiofiles.os


logger = logging.getLogger(__name__)

COPY_CHUNK_SIZE = 1024 * 1024


async def write_file_atomic(path: Path, data: bytes) -> None:
    """
    Write data to a sibling temp file, then move it over path

    Readers never observe a half-written guide.

    Raises:
        OSError: If writing or replacing fails (the temp file is removed)
    """
    temp_file = path.with_name(path.name + ".tmp")
    try:
        async with aiofiles.open(temp_file, "wb") as f:
            await f.write(data)
        await aiofiles.os.replace(temp_file, path)
    except OSError:
        remove_file(temp_file)
        raise

    logger.info(f"Wrote {len(data) / 1024:.1f} KB to {path}")


async def copy_file(source: Path, destination: Path) -> None:
    """Copy source to destination byte-for-byte."""
    async with aiofiles.open(source, "rb") as src, aiofiles.open(destination, "wb") as dst:
        while True:
            chunk = await src.read(COPY_CHUNK_SIZE)
            if not chunk:
                break
            await dst.write(chunk)


def remove_file(file_path: Path) -> bool:
    """
    Safely delete a file

    Args:
        file_path: Path to file to delete

    Returns:
        True if deleted successfully, False otherwise
    """
    if not file_path or not file_path.exists():
        return False

    try:
        file_path.unlink()
        logger.debug(f"Removed file: {file_path}")
        return True
    except (OSError, PermissionError) as e:
        logger.warning(f"Failed to remove file {file_path}: {e}")
        return False
