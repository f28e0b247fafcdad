# services/cache/rate_limiter.py
"""
Fixed-window call budgets for outbound providers.

When a source's window has passed, its counter drops to 0 and the next window
starts at "now" (not at the previous boundary). That allows a short burst at the
boundary, which is fine: the goal is staying inside free-tier quotas.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict

logger = logging.getLogger(__name__)


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    def __init__(self, *, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._windows: Dict[str, _Window] = {}

    def _window(self, source: str, window_seconds: float) -> _Window:
        now = self._clock()
        w = self._windows.get(source)
        if w is None:
            w = _Window(count=0, reset_at=now + window_seconds)
            self._windows[source] = w
        elif now > w.reset_at:
            w.count = 0
            w.reset_at = now + window_seconds
            logger.debug("rate window reset for %s", source)
        return w

    def can_call(self, source: str, limit: int, window_seconds: float) -> bool:
        """Consume one call from *source*'s budget. False (and no charge) when exhausted."""
        w = self._window(source, window_seconds)
        if w.count >= limit:
            logger.warning("rate limit reached for %s: %d/%d", source, w.count, limit)
            return False
        w.count += 1
        return True

    def remaining(self, source: str, limit: int, window_seconds: float) -> int:
        w = self._window(source, window_seconds)
        return max(0, limit - w.count)

    def reset(self) -> None:
        self._windows.clear()
