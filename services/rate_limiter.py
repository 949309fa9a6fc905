# services/rate_limiter.py
"""Per-user fixed-window admission control."""
import logging
import math
import threading
import time
from typing import Any, Callable, Dict, List

from models.pipeline import RateLimitResult, RateWindow
from services.errors import RateLimitExceeded

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    In-memory request counter keyed by user id.

    A window opens on a user's first request and resets once
    ``now >= window_start + window_seconds``. Denied requests do not count.
    Updates for one user are serialized by a striped lock, so unrelated users
    never contend on a single global lock.
    Expired windows are pruned automatically from ``check`` once per window
    length, so memory stays bounded by the users active in the last window.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        name: str = "generation",
        clock: Callable[[], float] = time.monotonic,
        stripes: int = 16,
    ):
        if limit <= 0:
            raise ValueError("limit must be > 0")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        self.limit = limit
        self.window_seconds = window_seconds
        self.name = name
        self._clock = clock
        self._windows: Dict[str, RateWindow] = {}
        self._locks: List[threading.Lock] = [threading.Lock() for _ in range(stripes)]
        self._cleanup_lock = threading.Lock()
        self._last_cleanup = clock()

    def _lock_for(self, user_id: str) -> threading.Lock:
        return self._locks[hash(user_id) % len(self._locks)]

    def check(self, user_id: str) -> RateLimitResult:
        """Count one request for ``user_id`` and report whether it is admitted."""
        result = self._check(user_id)
        self._maybe_cleanup()
        return result

    def _check(self, user_id: str) -> RateLimitResult:
        with self._lock_for(user_id):
            now = self._clock()
            window = self._windows.get(user_id)

            if window is None or now >= window.window_start + self.window_seconds:
                window = RateWindow(user_id=user_id, window_start=now, request_count=1)
                self._windows[user_id] = window
                return RateLimitResult(
                    allowed=True,
                    remaining=self.limit - 1,
                    reset_at=now + self.window_seconds,
                )

            reset_at = window.window_start + self.window_seconds
            if window.request_count >= self.limit:
                retry_after = max(1, math.ceil(reset_at - now))
                return RateLimitResult(
                    allowed=False,
                    remaining=0,
                    reset_at=reset_at,
                    retry_after=retry_after,
                )

            window.request_count += 1
            return RateLimitResult(
                allowed=True,
                remaining=self.limit - window.request_count,
                reset_at=reset_at,
            )

    def admit(self, user_id: str) -> bool:
        return self.check(user_id).allowed

    def enforce(self, user_id: str) -> RateLimitResult:
        """Like ``check`` but raises ``RateLimitExceeded`` when denied."""
        result = self.check(user_id)
        if not result.allowed:
            logger.warning(f"{self.name} rate limit hit for user {user_id}, retry in {result.retry_after}s")
            raise RateLimitExceeded(
                retry_after=result.retry_after,
                limit=self.limit,
                scope=self.name,
            )
        return result

    def _maybe_cleanup(self):
        # Expired windows are pruned at most once per window length
        now = self._clock()
        with self._cleanup_lock:
            if now - self._last_cleanup < self.window_seconds:
                return
            self._last_cleanup = now
        self.cleanup()

    def cleanup(self) -> int:
        """Drop expired windows. Returns how many were removed."""
        now = self._clock()
        removed = 0
        for user_id in list(self._windows):
            with self._lock_for(user_id):
                window = self._windows.get(user_id)
                if window and now >= window.window_start + self.window_seconds:
                    del self._windows[user_id]
                    removed += 1
        if removed:
            logger.debug(f"Removed {removed} expired {self.name} rate windows")
        return removed

    def stats(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "limit": self.limit,
            "window_seconds": self.window_seconds,
            "tracked_users": len(self._windows),
        }
