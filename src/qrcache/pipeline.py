from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import Dict, List, Optional, Sequence

from PIL import Image

from .cache.disk import DiskStore
from .cache.memory import MemoryStore
from .cache.orchestrator import ImageCache
from .cache.pressure import MemoryPressureSignal
from .config import CacheSettings
from .models import FetchSummary
from .network.connectivity import ConnectivityMonitor
from .network.fetcher import BoundedFetcher
from .resilience.retry import RetryExecutor
from .util.http import create_session
from .util.logging import setup_logging

LOGGER = logging.getLogger(__name__)


def build_image_cache(
    settings: CacheSettings,
    *,
    session=None,
    pressure: Optional[MemoryPressureSignal] = None,
    connectivity: Optional[ConnectivityMonitor] = None,
) -> ImageCache:
    """Wire the one ImageCache a process should use."""
    if session is None:
        session = create_session(
            settings.user_agent,
            retries=0,
            timeout=(settings.request_timeout, settings.request_timeout),
            pool_size=settings.max_concurrent_downloads,
        )
    memory: MemoryStore[Image.Image] = MemoryStore(
        byte_limit=settings.memory_byte_limit,
        count_limit=settings.memory_count_limit,
    )
    disk = DiskStore(
        settings.cache_dir,
        max_size=settings.disk_byte_limit,
        max_age=settings.disk_max_age_seconds,
    )
    fetcher = BoundedFetcher(
        session,
        max_concurrent=settings.max_concurrent_downloads,
        request_timeout=settings.request_timeout,
        resource_timeout=settings.resource_timeout,
    )
    return ImageCache(
        memory,
        disk,
        fetcher,
        retry=RetryExecutor(connectivity),
        retry_config=settings.retry_config,
        pressure=pressure,
    )


def _describe(image: Optional[Image.Image]) -> Optional[dict]:
    if image is None:
        return None
    width, height = image.size
    return {"width": width, "height": height, "mode": image.mode, "format": image.format}


async def fetch_images(cache: ImageCache, urls: Sequence[str], retry: bool = False) -> Dict[str, Optional[Image.Image]]:
    results = await asyncio.gather(*(cache.image(url, retry=retry) for url in urls))
    return dict(zip(urls, results))


async def _run_fetch(settings: CacheSettings, urls: Sequence[str], retry: bool) -> FetchSummary:
    async with build_image_cache(settings) as cache:
        images = await fetch_images(cache, urls, retry=retry)
        failed: List[str] = [url for url, image in images.items() if image is None]
        for url in failed:
            LOGGER.warning("No image available for %s", url)
        return FetchSummary(
            generated_at=datetime.now(UTC),
            images={url: _describe(image) for url, image in images.items()},
            stats=cache.stats.as_dict(),
            failed=failed,
        )


def run_fetch(settings: CacheSettings, urls: Sequence[str], retry: bool = False) -> FetchSummary:
    setup_logging(settings.logs_dir)
    return asyncio.run(_run_fetch(settings, list(dict.fromkeys(urls)), retry))


async def _run_clear(settings: CacheSettings) -> int:
    disk = DiskStore(
        settings.cache_dir,
        max_size=settings.disk_byte_limit,
        max_age=settings.disk_max_age_seconds,
    )
    try:
        return await disk.clear()
    finally:
        await asyncio.to_thread(disk.close)


def run_clear(settings: CacheSettings) -> int:
    setup_logging(settings.logs_dir)
    return asyncio.run(_run_clear(settings))
