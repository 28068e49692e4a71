from __future__ import annotations

import asyncio
import logging

import requests
from requests.exceptions import ChunkedEncodingError, ContentDecodingError

from ..errors import NetworkError, NetworkErrorKind
from ..models import FetchedImage
from ..util.imaging import decode_image

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT_DOWNLOADS = 5
DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_RESOURCE_TIMEOUT = 60.0


class BoundedFetcher:
    """Download binary resources with at most ``max_concurrent`` requests in flight.

    Callers beyond the limit queue on an :class:`asyncio.Semaphore`, which
    wakes waiters in arrival order. The blocking ``requests`` call runs in a
    worker thread so the event loop is never held. A slot is held until that
    thread returns, so a transfer that outlives ``resource_timeout`` keeps
    counting against the limit after its caller has seen ``TIMEOUT``.
    """

    def __init__(
        self,
        session,
        *,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT_DOWNLOADS,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        resource_timeout: float = DEFAULT_RESOURCE_TIMEOUT,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self.session = session
        self.max_concurrent = max_concurrent
        self.request_timeout = request_timeout
        self.resource_timeout = resource_timeout
        self._gate = asyncio.Semaphore(max_concurrent)
        self._in_flight = 0

    @property
    def in_flight(self) -> int:
        return self._in_flight

    async def fetch(self, url: str) -> bytes:
        await self._gate.acquire()
        self._in_flight += 1
        worker = asyncio.ensure_future(asyncio.to_thread(self._download, url))
        # the slot stays taken until the worker thread returns, even after a transfer timeout
        worker.add_done_callback(self._release)
        try:
            return await asyncio.wait_for(asyncio.shield(worker), timeout=self.resource_timeout)
        except asyncio.TimeoutError as exc:
            LOGGER.warning("Transfer timed out after %.1fs: %s", self.resource_timeout, url)
            raise NetworkError(
                NetworkErrorKind.TIMEOUT,
                detail=f"transfer exceeded {self.resource_timeout:.0f}s",
            ) from exc

    def _release(self, worker: asyncio.Future) -> None:
        self._in_flight -= 1
        self._gate.release()
        if not worker.cancelled():
            # an abandoned worker's error has no awaiting caller
            worker.exception()

    async def fetch_image(self, url: str) -> FetchedImage:
        data = await self.fetch(url)
        image = await asyncio.to_thread(decode_image, data)
        return FetchedImage(url=url, data=data, image=image)

    def _download(self, url: str) -> bytes:
        try:
            resp = self.session.get(url, timeout=(self.request_timeout, self.request_timeout))
        except requests.Timeout as exc:
            raise NetworkError(NetworkErrorKind.TIMEOUT, detail=str(exc)) from exc
        except (requests.ConnectionError, ChunkedEncodingError, ContentDecodingError) as exc:
            raise NetworkError(NetworkErrorKind.NO_CONNECTION, detail=str(exc)) from exc
        except requests.RequestException as exc:
            raise NetworkError(NetworkErrorKind.INVALID_RESPONSE, detail=str(exc)) from exc

        status = resp.status_code
        if status == 429:
            raise NetworkError(NetworkErrorKind.RATE_LIMITED, status_code=status)
        if status >= 500:
            raise NetworkError.server_error(status)
        if not 200 <= status < 300:
            raise NetworkError(NetworkErrorKind.INVALID_RESPONSE, status_code=status)
        content = resp.content
        if not content:
            raise NetworkError(NetworkErrorKind.INVALID_RESPONSE, status_code=status, detail="empty body")
        LOGGER.debug("Downloaded %d bytes from %s", len(content), url)
        return content

    def close(self) -> None:
        close = getattr(self.session, "close", None)
        if close is not None:
            close()
