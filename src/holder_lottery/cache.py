from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

from .models import EligibilityResult
from .project_constants import ELIGIBILITY_CACHE_TTL_S

CacheKey = Tuple[str, str]  # (token_mint, wallet)


class EligibilityCache:
    """TTL cache of eligibility results keyed by (token_mint, wallet).

    Expired entries are evicted lazily on read.
    """

    def __init__(
        self,
        ttl_s: float = ELIGIBILITY_CACHE_TTL_S,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ttl_s = ttl_s
        self.clock = clock
        self._entries: Dict[CacheKey, EligibilityResult] = {}
        self._lock = threading.Lock()

    def get(self, token_mint: str, wallet: str) -> Optional[EligibilityResult]:
        key = (token_mint, wallet)
        with self._lock:
            hit = self._entries.get(key)
            if hit is None:
                return None
            if self.clock() - hit.cached_at >= self.ttl_s:
                del self._entries[key]
                return None
            return hit

    def set(self, token_mint: str, wallet: str, result: EligibilityResult) -> None:
        with self._lock:
            self._entries[(token_mint, wallet)] = result

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            keys = [f"{mint}:{wallet}" for mint, wallet in self._entries]
        return {"size": len(keys), "keys": keys}
