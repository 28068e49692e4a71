from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from ..errors import NetworkError, NetworkErrorKind
from ..network.connectivity import ConnectivityMonitor
from .backoff import DEFAULT_RETRY, RandomSource, RetryConfig, compute_delay

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

Sleeper = Callable[[float], Awaitable[object]]


def is_retryable(exc: BaseException) -> bool:
    """Errors without a ``can_retry`` attribute are treated as transient."""
    return getattr(exc, "can_retry", True) is not False


class RetryExecutor:
    """Drive an async operation through bounded retries with jittered back-off.

    The executor does not make ``operation`` idempotent; re-invoking it on
    retry repeats whatever side effects it has.
    """

    def __init__(
        self,
        connectivity: Optional[ConnectivityMonitor] = None,
        *,
        sleep: Sleeper = asyncio.sleep,
        rng: Optional[RandomSource] = None,
    ) -> None:
        self.connectivity = connectivity
        self._sleep = sleep
        self._rng = rng

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        config: RetryConfig = DEFAULT_RETRY,
        context: str = "general",
    ) -> T:
        if self.connectivity is not None and not self.connectivity.is_connected:
            raise NetworkError(NetworkErrorKind.NO_CONNECTION)

        attempts = max(config.max_retries, 1)
        last_error: Optional[Exception] = None

        for attempt in range(attempts):
            try:
                LOGGER.debug("Attempt %d/%d for %s", attempt + 1, attempts, context)
                return await operation()
            except Exception as exc:
                last_error = exc
                if not is_retryable(exc):
                    LOGGER.warning("Non-retryable failure for %s: %s", context, exc)
                    raise
                if attempt == attempts - 1:
                    break
                delay = compute_delay(attempt, config, self._rng)
                LOGGER.info(
                    "Attempt %d/%d failed for %s (%s); retrying in %.2fs",
                    attempt + 1,
                    attempts,
                    context,
                    exc,
                    delay,
                )
                await self._sleep(delay)

        LOGGER.error("All retry attempts failed for %s", context)
        if last_error is None:
            raise NetworkError.server_error(503, detail="retry loop ended without a result")
        raise last_error
