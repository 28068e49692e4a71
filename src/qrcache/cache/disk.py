from __future__ import annotations

import asyncio
import functools
import hashlib
import logging
import os
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, List, Optional
from uuid import uuid4

from ..models import DiskEntry

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 200 * 1024 * 1024
DEFAULT_MAX_AGE = 7 * 24 * 60 * 60
DEFAULT_EXTENSION = ".img"


def cache_key(url: str) -> str:
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


class DiskStore:
    """Content-addressed file cache with size and age eviction.

    Every operation of one instance runs on a private single-thread
    executor, so reads, writes and sweeps never interleave. A file's
    modification time is its stored-at timestamp.
    """

    def __init__(
        self,
        root: Path,
        *,
        max_size: int = DEFAULT_MAX_SIZE,
        max_age: float = DEFAULT_MAX_AGE,
        extension: str = DEFAULT_EXTENSION,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.root = Path(root)
        self.max_size = max(0, int(max_size))
        self.max_age = max(0.0, float(max_age))
        self.extension = extension
        self._clock = clock
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="qrcache-disk")
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError:
            LOGGER.error("Cannot create disk cache at %s; entries will not persist", self.root, exc_info=True)
        self.startup_sweep: Future = self._executor.submit(self._clean_old_files)

    def path_for(self, url: str) -> Path:
        return self.root / f"{cache_key(url)}{self.extension}"

    async def get(self, url: str) -> Optional[bytes]:
        return await self._run(self._get, url)

    async def put(self, url: str, data: bytes) -> None:
        stored = await self._run(self._put, url, data)
        if stored:
            await self.check_cache_size()

    async def remove(self, url: str) -> None:
        await self._run(self._unlink, self.path_for(url))

    async def clear(self) -> int:
        return await self._run(self._clear)

    async def check_cache_size(self) -> int:
        return await self._run(self._check_cache_size)

    async def clean_old_files(self) -> int:
        return await self._run(self._clean_old_files)

    async def entries(self) -> List[DiskEntry]:
        return await self._run(self._scan)

    async def total_size(self) -> int:
        entries = await self.entries()
        return sum(entry.size_bytes for entry in entries)

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(fn, *args))

    def _get(self, url: str) -> Optional[bytes]:
        path = self.path_for(url)
        try:
            stat = path.stat()
        except FileNotFoundError:
            return None
        except OSError:
            LOGGER.warning("Unable to stat %s", path, exc_info=True)
            return None
        if self._is_expired(stat.st_mtime):
            LOGGER.info("Disk entry expired for %s", url)
            self._unlink(path)
            return None
        try:
            return path.read_bytes()
        except OSError:
            LOGGER.warning("Unable to read %s", path, exc_info=True)
            return None

    def _put(self, url: str, data: bytes) -> bool:
        path = self.path_for(url)
        tmp_path = path.with_name(f".{path.stem}.tmp.{uuid4().hex}")
        try:
            tmp_path.write_bytes(data)
            os.replace(tmp_path, path)
        except OSError:
            LOGGER.error("Failed to store %s on disk", url, exc_info=True)
            self._unlink(tmp_path)
            return False
        return True

    def _clear(self) -> int:
        removed = 0
        try:
            children = list(self.root.iterdir())
        except OSError:
            LOGGER.error("Failed to clear disk cache at %s", self.root, exc_info=True)
            return 0
        for child in children:
            if child.is_file() and self._unlink(child):
                removed += 1
        LOGGER.info("Cleared %d files from disk cache", removed)
        return removed

    def _scan(self) -> List[DiskEntry]:
        entries: List[DiskEntry] = []
        try:
            with os.scandir(self.root) as it:
                for item in it:
                    if item.name.startswith(".") or not item.name.endswith(self.extension):
                        continue
                    try:
                        stat = item.stat()
                    except OSError:
                        continue
                    entries.append(DiskEntry(path=item.path, size_bytes=stat.st_size, modified_at=stat.st_mtime))
        except OSError:
            LOGGER.error("Failed to list disk cache at %s", self.root, exc_info=True)
        return entries

    def _check_cache_size(self) -> int:
        entries = self._scan()
        total = sum(entry.size_bytes for entry in entries)
        if total <= self.max_size:
            return 0
        removed = 0
        for entry in sorted(entries, key=lambda e: e.modified_at):
            if total <= self.max_size:
                break
            if self._unlink(Path(entry.path)):
                total -= entry.size_bytes
                removed += 1
        LOGGER.info("Disk cache over budget; evicted %d files (%d bytes remain)", removed, total)
        return removed

    def _clean_old_files(self) -> int:
        removed = 0
        for entry in self._scan():
            if self._is_expired(entry.modified_at) and self._unlink(Path(entry.path)):
                removed += 1
        if removed:
            LOGGER.info("Removed %d expired files from disk cache", removed)
        return removed

    def _is_expired(self, modified_at: float) -> bool:
        return self._clock() - modified_at > self.max_age

    @staticmethod
    def _unlink(path: Path) -> bool:
        try:
            path.unlink(missing_ok=True)
        except OSError:
            LOGGER.warning("Unable to delete %s", path, exc_info=True)
            return False
        return True
