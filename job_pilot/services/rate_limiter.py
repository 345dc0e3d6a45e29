"""In-memory sliding-window rate limiting for user-triggered actions.

Counters live in this process only. With several workers each keeps its own
map, so limits are approximate; anything that needs strict exclusivity uses
the durable lock in ``system_lock`` instead.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActionLimit:
    max_requests: int
    window_seconds: float


ACTION_LIMITS = {
    "ai-generate": ActionLimit(5, 60),
    "application-generate": ActionLimit(5, 60),
    "cover-letter": ActionLimit(5, 60),
    "send-email": ActionLimit(10, 60),
    "scan-now": ActionLimit(1, 300),
}
DEFAULT_LIMIT = ActionLimit(30, 60)

SWEEP_INTERVAL_SECONDS = 60.0
ENTRY_TTL_SECONDS = 600.0


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    retry_after_seconds: int = 0


class RateLimiter:
    def __init__(
        self,
        limits: Optional[dict[str, ActionLimit]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.limits = dict(ACTION_LIMITS if limits is None else limits)
        self._clock = clock
        self._hits: dict[tuple[str, str], list[float]] = {}
        self._last_sweep = clock()
        self._mutex = threading.Lock()

    def limit_for(self, action: str) -> ActionLimit:
        return self.limits.get(action, DEFAULT_LIMIT)

    def check(self, user_id, action: str, now: Optional[float] = None) -> RateLimitResult:
        """Record one attempt and report whether it is within the action's limit."""
        now = self._clock() if now is None else now
        limit = self.limit_for(action)
        key = (str(user_id), action)

        with self._mutex:
            self._maybe_sweep(now)
            window_start = now - limit.window_seconds
            hits = [t for t in self._hits.get(key, []) if t > window_start]

            if len(hits) >= limit.max_requests:
                retry_after = limit.window_seconds - (now - hits[0])
                self._hits[key] = hits
                logger.info(f"Rate limit hit: user={user_id} action={action}")
                return RateLimitResult(
                    allowed=False,
                    remaining=0,
                    retry_after_seconds=max(1, int(retry_after + 0.999)),
                )

            hits.append(now)
            self._hits[key] = hits
            return RateLimitResult(allowed=True, remaining=limit.max_requests - len(hits))

    def reset(self):
        with self._mutex:
            self._hits.clear()

    def _maybe_sweep(self, now: float):
        if now - self._last_sweep < SWEEP_INTERVAL_SECONDS:
            return
        cutoff = now - ENTRY_TTL_SECONDS
        stale = [key for key, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for key in stale:
            del self._hits[key]
        self._last_sweep = now

    def __len__(self) -> int:
        return len(self._hits)


rate_limiter = RateLimiter()
