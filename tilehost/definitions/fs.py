"""Async filesystem helpers used during definition discovery."""

import asyncio
import os
from pathlib import Path

from tilehost.errors import FilesystemError


async def path_exists(path: Path) -> bool:
    """True if *path* exists.

    Any OSError (permission denied included) counts as "does not exist".
    """
    def _exists() -> bool:
        try:
            path.stat()
        except OSError:
            return False
        return True

    return await asyncio.to_thread(_exists)


async def stat_path(path: Path) -> os.stat_result:
    try:
        return await asyncio.to_thread(path.stat)
    except OSError as e:
        raise FilesystemError(f"Cannot stat {path}: {e}") from e


async def list_dir(path: Path) -> list[str]:
    """Entry names of *path*, sorted for a deterministic wiring order."""
    try:
        return await asyncio.to_thread(lambda: sorted(os.listdir(path)))
    except OSError as e:
        raise FilesystemError(f"Cannot list {path}: {e}") from e


async def read_bytes(path: Path) -> bytes:
    try:
        return await asyncio.to_thread(path.read_bytes)
    except OSError as e:
        raise FilesystemError(f"Cannot read {path}: {e}") from e
