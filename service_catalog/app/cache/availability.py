"""
Cache availability tracking for the Catalog Service.
"""

from enum import Enum
from typing import Optional

from shared.logging import get_logger
from shared.metrics import MetricsCollector


class ConnectionEvent(str, Enum):
    """Lifecycle events emitted by the cache connection."""
    CONNECT = "connect"
    ERROR = "error"


class AvailabilityTracker:
    """Reactive two-state view of whether the cache is reachable.

    Starts unavailable. Only connection lifecycle events move it; attach it
    with ``CacheConnection.add_listener(tracker.on_event)``. Readers treat the
    flag as advisory: it may lag the real connection state, so guarded cache
    calls still handle their own failures.
    """

    def __init__(self, metrics: Optional[MetricsCollector] = None):
        self.logger = get_logger("catalog.cache.availability")
        self.metrics = metrics
        self._available = False
        self._publish()

    @property
    def available(self) -> bool:
        return self._available

    def on_event(self, event: ConnectionEvent, error: Optional[BaseException] = None) -> None:
        """Listener for cache connection lifecycle events."""
        if event is ConnectionEvent.CONNECT:
            if not self._available:
                self.logger.info("Cache available")
            self._available = True
        elif event is ConnectionEvent.ERROR:
            if self._available:
                self.logger.warning("Cache unavailable", error=str(error) if error else None)
            self._available = False
        self._publish()

    def _publish(self) -> None:
        if self.metrics is not None:
            self.metrics.set_gauge("cache_available", 1 if self._available else 0)
