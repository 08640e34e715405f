"""Client-side request budget shared by every API client in a run."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque

LOG = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0


class RateLimiter:
    """Sliding-window limiter; safe to share across hydration workers.

    Keeps running totals so the CLI can report how much of a run was spent
    throttled.
    """

    def __init__(self, calls_per_minute: int = 60, window: float = WINDOW_SECONDS):
        self.limit = max(1, int(calls_per_minute))
        self.window = window
        self.calls = 0
        self.throttled_seconds = 0.0
        self._stamps: deque[float] = deque()
        self._lock = threading.Lock()

    def _acquire(self) -> float:
        """Take a slot and return 0, or return how long until one frees up."""
        with self._lock:
            now = time.monotonic()
            while self._stamps and self._stamps[0] <= now - self.window:
                self._stamps.popleft()
            if len(self._stamps) < self.limit:
                self._stamps.append(now)
                self.calls += 1
                return 0.0
            return max(0.0, self.window - (now - self._stamps[0]))

    def wait_if_needed(self) -> float:
        """Block until a request may go out; returns total seconds slept."""
        slept = 0.0
        while True:
            delay = self._acquire()
            if delay <= 0:
                break
            LOG.info("Request budget of %d/min used up; sleeping %.2fs", self.limit, delay)
            time.sleep(delay)
            slept += delay
        if slept:
            with self._lock:
                self.throttled_seconds += slept
        return slept
