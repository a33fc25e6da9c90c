"""
Fixed-window rate limiter protecting upstream geocoding quota.

Implements a per-caller window counter plus a single global counter. Both
must have room for a request to be admitted; counters are only incremented
once both checks pass, inside one critical section.
"""

import math
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict

from ..config.logger_module import log_debug, log_info
from .location_cache import ResultCache
from .location_errors import RateLimited


@dataclass
class RateWindow:
    """Request count for the current window and the time it resets."""
    count: int
    reset_at: float


@dataclass(frozen=True)
class Admission:
    """Result of an admission decision."""
    allowed: bool
    retry_after: int = 0
    scope: str = ""


class RateLimiter:
    """
    Per-caller and global window rate limiter (thread-safe).

    Windows reset lazily: a window is replaced the first time a check sees
    the current time past its reset_at. Per-caller windows live in a bounded
    LRU cache so idle callers are eventually forgotten.
    """

    LOG_EVERY = 25

    def __init__(self,
                 max_per_caller: int = 120,
                 global_max: int = 600,
                 window_seconds: float = 60.0,
                 max_tracked_callers: int = 1000):
        """
        Initialize the rate limiter.

        Args:
            max_per_caller: Admissions allowed per caller key per window
            global_max: Admissions allowed across all callers per window
            window_seconds: Window length
            max_tracked_callers: Bound on remembered caller windows
        """
        if max_per_caller < 1 or global_max < 1:
            raise ValueError("Rate limits must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.max_per_caller = max_per_caller
        self.global_max = global_max
        self.window_seconds = window_seconds

        self._callers = ResultCache(
            max_entries=max_tracked_callers,
            default_ttl_seconds=window_seconds,
            name="rate-windows",
        )
        self._global = RateWindow(count=0, reset_at=time.time() + window_seconds)
        self._lock = threading.Lock()

        log_info(
            f"RateLimiter initialized: {max_per_caller}/caller, "
            f"{global_max} global per {window_seconds}s window"
        )

    def _retry_after(self, window: RateWindow, now: float) -> int:
        return max(1, math.ceil(window.reset_at - now))

    def admit(self, caller_key: str) -> Admission:
        """
        Decide whether a request from caller_key may proceed.

        Args:
            caller_key: Caller identity (IP address or session id)

        Returns:
            Admission with allowed=False and a retry-after hint when denied
        """
        key = f"caller:{caller_key or 'unknown'}"

        with self._lock:
            now = time.time()

            if now > self._global.reset_at:
                self._global = RateWindow(count=0, reset_at=now + self.window_seconds)

            window = self._callers.get(key)
            if window is None or now > window.reset_at:
                window = RateWindow(count=0, reset_at=now + self.window_seconds)
                self._callers.set(key, window, ttl_seconds=self.window_seconds)

            if window.count + 1 > self.max_per_caller:
                return Admission(False, self._retry_after(window, now), "caller")

            if self._global.count + 1 > self.global_max:
                return Admission(False, self._retry_after(self._global, now), "global")

            window.count += 1
            self._global.count += 1
            count = window.count

        if count % self.LOG_EVERY == 0:
            log_debug(f"RateLimiter: {key} count={count}")

        return Admission(True)

    def check(self, caller_key: str) -> None:
        """
        Admit or raise.

        Raises:
            RateLimited: When either the caller or the global window is full
        """
        admission = self.admit(caller_key)
        if admission.allowed:
            return

        if admission.scope == "global":
            message = "Global geocoding capacity reached. Please retry shortly."
        else:
            message = "Rate limit exceeded for geocoding. Try again later."
        raise RateLimited(message, retry_after=admission.retry_after, scope=admission.scope)

    def status(self, caller_key: str) -> Dict[str, Any]:
        """
        Get current window usage for diagnostics.

        Returns:
            Dictionary with caller and global counts and seconds to reset
        """
        key = f"caller:{caller_key or 'unknown'}"
        with self._lock:
            now = time.time()
            window = self._callers.get(key)
            caller_count = window.count if window and now <= window.reset_at else 0
            global_count = self._global.count if now <= self._global.reset_at else 0
            return {
                "caller_count": caller_count,
                "caller_limit": self.max_per_caller,
                "global_count": global_count,
                "global_limit": self.global_max,
                "global_resets_in": max(0.0, self._global.reset_at - now),
            }
