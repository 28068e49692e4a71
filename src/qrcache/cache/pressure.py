from __future__ import annotations

import logging
import threading
from typing import Callable, List

LOGGER = logging.getLogger(__name__)

PressureCallback = Callable[[], None]


class MemoryPressureSignal:
    """Fan-out point for the host's low-memory notification."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._callbacks: List[PressureCallback] = []

    def subscribe(self, cb: PressureCallback) -> Callable[[], None]:
        with self._lock:
            self._callbacks.append(cb)

        def unsubscribe() -> None:
            with self._lock:
                if cb in self._callbacks:
                    self._callbacks.remove(cb)

        return unsubscribe

    def emit(self) -> None:
        with self._lock:
            callbacks = list(self._callbacks)
        LOGGER.warning("Memory pressure signalled; notifying %d subscribers", len(callbacks))
        for cb in callbacks:
            try:
                cb()
            except Exception:
                LOGGER.exception("Error in memory pressure callback")
