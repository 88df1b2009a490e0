"""Thread-safe in-memory attempt counter for login and reset throttling."""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Callable, Deque, Dict


class AttemptThrottle:
    """Counts hits per key inside a sliding window of ``decay_seconds``."""

    def __init__(
        self,
        max_attempts: int,
        decay_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_attempts = max_attempts
        self.decay_seconds = decay_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._hits: Dict[str, Deque[float]] = {}
        self._last_sweep = clock()

    def _prune(self, key: str, now: float) -> Deque[float]:
        """Drop expired hits; a key left without hits is forgotten."""
        hits = self._hits.get(key)
        if hits is None:
            return deque()
        while hits and now - hits[0] >= self.decay_seconds:
            hits.popleft()
        if not hits:
            del self._hits[key]
        return hits

    def _sweep(self, now: float) -> None:
        # at most once per window, forget keys that stopped hitting
        if now - self._last_sweep < self.decay_seconds:
            return
        self._last_sweep = now
        for key in list(self._hits):
            self._prune(key, now)

    def hit(self, key: str) -> int:
        """Record an attempt and return the attempts inside the window."""
        with self._lock:
            now = self._clock()
            self._sweep(now)
            hits = self._prune(key, now)
            hits.append(now)
            self._hits[key] = hits
            return len(hits)

    def too_many_attempts(self, key: str) -> bool:
        with self._lock:
            return len(self._prune(key, self._clock())) >= self.max_attempts

    def available_in(self, key: str) -> int:
        """Seconds until the oldest attempt leaves the window."""
        with self._lock:
            now = self._clock()
            hits = self._prune(key, now)
            if not hits:
                return 0
            return max(0, int(round(self.decay_seconds - (now - hits[0]))))

    def clear(self, key: str) -> None:
        with self._lock:
            self._hits.pop(key, None)
