"""Duplicate update filter for at-least-once webhook delivery."""

import logging
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)

RETENTION_SECONDS = 20 * 60  # Keep ids at least this long
SWEEP_INTERVAL_SECONDS = 5 * 60  # Minimum time between sweeps


class IdempotencyCache:
    """Remembers recently seen update ids.

    Safe to share between concurrent requests. Expired ids are swept
    opportunistically from ``seen`` rather than by a timer thread.
    """

    def __init__(
        self,
        retention_seconds: float = RETENTION_SECONDS,
        sweep_interval_seconds: float = SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.retention = retention_seconds
        self.sweep_interval = sweep_interval_seconds
        self._clock = clock
        self._seen: dict[int, float] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def seen(self, event_id: int) -> bool:
        """Record ``event_id`` and return True if it was already recorded."""
        with self._lock:
            now = self._clock()
            self._sweep(now)
            if event_id in self._seen:
                return True
            self._seen[event_id] = now
            return False

    def forget(self, event_id: int) -> None:
        """Drop ``event_id`` so a redelivery is processed again."""
        with self._lock:
            self._seen.pop(event_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)

    def _sweep(self, now: float) -> None:
        if now - self._last_sweep < self.sweep_interval:
            return
        self._last_sweep = now
        expired = [k for k, ts in self._seen.items() if now - ts > self.retention]
        for k in expired:
            del self._seen[k]
        if expired:
            logger.debug(f"Evicted {len(expired)} expired update ids")
