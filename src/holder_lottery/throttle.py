"""Rate limiting and deadlines for outbound provider calls.

Both take an injectable clock (and sleep) so tests run without real delays.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional


class RateLimiter:
    """Enforces a minimum interval between successive calls to `wait()`."""

    def __init__(
        self,
        min_interval_s: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.min_interval_s = min_interval_s
        self.clock = clock
        self.sleep = sleep
        self._last: Optional[float] = None
        self._lock = threading.Lock()

    def wait(self) -> float:
        """Blocks until the next call is allowed; returns the seconds slept."""
        with self._lock:
            slept = 0.0
            if self._last is not None:
                remaining = self.min_interval_s - (self.clock() - self._last)
                if remaining > 0:
                    self.sleep(remaining)
                    slept = remaining
            self._last = self.clock()
            return slept


class Deadline:
    """Overall time budget for one pipeline run. `seconds=None` never expires.

    Work loops call `check()` before each step; a loop that stops because the
    budget is spent leaves `cut_short` set, which is what marks a run partial.
    """

    def __init__(
        self,
        seconds: Optional[float],
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.clock = clock
        self.expires_at = None if seconds is None else clock() + seconds
        self.cut_short = False

    @property
    def expired(self) -> bool:
        return self.expires_at is not None and self.clock() >= self.expires_at

    def check(self) -> bool:
        """True when the budget is spent; the caller is expected to stop."""
        if self.expired:
            self.cut_short = True
            return True
        return False
