from __future__ import annotations

import logging
import threading

LOGGER = logging.getLogger(__name__)


class ConnectivityMonitor:
    """Last known reachability of the network, fed by the host platform."""

    def __init__(self, connected: bool = True) -> None:
        self._lock = threading.Lock()
        self._connected = connected

    @property
    def is_connected(self) -> bool:
        with self._lock:
            return self._connected

    def set_connected(self, connected: bool) -> None:
        with self._lock:
            changed = self._connected != connected
            self._connected = connected
        if not changed:
            return
        if connected:
            LOGGER.info("Network connection restored")
        else:
            LOGGER.warning("Network connection lost")
