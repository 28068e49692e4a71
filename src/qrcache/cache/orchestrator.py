from __future__ import annotations

import asyncio
import logging
from typing import Optional, Set

from PIL import Image

from ..errors import ImageDecodeError
from ..models import FetchedImage
from ..network.fetcher import BoundedFetcher
from ..resilience.backoff import DEFAULT_RETRY, RetryConfig
from ..resilience.retry import RetryExecutor
from ..util.imaging import decode_image, image_cost
from .disk import DiskStore
from .memory import MemoryStore
from .pressure import MemoryPressureSignal
from .stats import CacheStatsCollector

LOGGER = logging.getLogger(__name__)

MEMORY = "memory"
DISK = "disk"
NETWORK = "network"


class ImageCache:
    """Read-through image cache: memory, then disk, then the network.

    ``image`` never raises. Any failure is logged and reported as ``None``
    so callers can fall back to a placeholder.
    """

    def __init__(
        self,
        memory: MemoryStore,
        disk: DiskStore,
        fetcher: BoundedFetcher,
        *,
        retry: Optional[RetryExecutor] = None,
        retry_config: RetryConfig = DEFAULT_RETRY,
        pressure: Optional[MemoryPressureSignal] = None,
        stats: Optional[CacheStatsCollector] = None,
    ) -> None:
        self.memory = memory
        self.disk = disk
        self.fetcher = fetcher
        self.retry = retry or RetryExecutor()
        self.retry_config = retry_config
        self.stats = stats or CacheStatsCollector()
        self._pending: Set[asyncio.Task] = set()
        self._unsubscribe = pressure.subscribe(self.handle_memory_warning) if pressure else None

    async def __aenter__(self) -> "ImageCache":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def image(self, url: str, *, retry: bool = False) -> Optional[Image.Image]:
        try:
            return await self._resolve(url, retry)
        except Exception:
            LOGGER.exception("Unexpected failure loading image %s", url)
            return None

    async def fetch_with_retry(self, url: str, config: Optional[RetryConfig] = None) -> FetchedImage:
        """Download ``url`` through the retry executor and cache the result.

        Unlike :meth:`image` this raises the last error once retries are
        exhausted, so callers can tell network failures from bad payloads.
        """
        fetched = await self.retry.execute(
            lambda: self.fetcher.fetch_image(url),
            config or self.retry_config,
            context=f"image download {url}",
        )
        self.store(url, fetched.image, fetched.data)
        return fetched

    def store(self, url: str, image: Image.Image, data: bytes) -> None:
        """Put ``image`` in memory now and write ``data`` to disk in the background.

        Must be called from a running event loop.
        """
        self.memory.put(url, image, image_cost(image))
        task = asyncio.get_running_loop().create_task(self._write_to_disk(url, data))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def remove(self, url: str) -> None:
        self.memory.remove(url)
        await self.disk.remove(url)

    async def clear(self) -> None:
        self.memory.clear()
        await self.disk.clear()

    def handle_memory_warning(self) -> None:
        LOGGER.warning("Memory warning - clearing in-memory image cache (%d entries)", len(self.memory))
        self.memory.clear()

    async def drain(self) -> None:
        """Wait for background disk writes scheduled so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        await asyncio.to_thread(self.disk.close)
        self.fetcher.close()

    async def _resolve(self, url: str, retry: bool) -> Optional[Image.Image]:
        cached = self.memory.get(url)
        if cached is not None:
            self.stats.record_hit(MEMORY)
            LOGGER.debug("Image loaded from memory cache: %s", url)
            return cached
        self.stats.record_miss(MEMORY)

        image = await self._load_from_disk(url)
        if image is not None:
            self.stats.record_hit(DISK)
            LOGGER.info("Image loaded from disk cache: %s", url)
            self.memory.put(url, image, image_cost(image))
            return image
        self.stats.record_miss(DISK)

        LOGGER.info("Downloading image from network: %s", url)
        try:
            if retry:
                fetched = await self.retry.execute(
                    lambda: self.fetcher.fetch_image(url),
                    self.retry_config,
                    context=f"image download {url}",
                )
            else:
                fetched = await self.fetcher.fetch_image(url)
        except Exception as exc:
            self.stats.record_miss(NETWORK)
            LOGGER.error("Failed to download image %s: %s", url, exc)
            return None
        self.stats.record_hit(NETWORK)
        self.store(url, fetched.image, fetched.data)
        LOGGER.info("Image downloaded and cached: %s (%d bytes)", url, fetched.size_bytes)
        return fetched.image

    async def _load_from_disk(self, url: str) -> Optional[Image.Image]:
        data = await self.disk.get(url)
        if data is None:
            return None
        try:
            return await asyncio.to_thread(decode_image, data)
        except ImageDecodeError:
            LOGGER.warning("Discarding undecodable disk entry for %s", url)
            await self.disk.remove(url)
            return None

    async def _write_to_disk(self, url: str, data: bytes) -> None:
        try:
            await self.disk.put(url, data)
        except Exception:
            LOGGER.exception("Background disk write failed for %s", url)
