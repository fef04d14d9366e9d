from __future__ import annotations

import time
from typing import Callable, Dict, Hashable, Optional


class KeyedTTLCache:
    """Tracks when each key was last fetched successfully.

    Only timestamps are stored. Nothing is evicted: a stale key simply stops
    being fresh until :meth:`mark_fresh` is called again or it is invalidated.
    """

    def __init__(
        self, timeout: float, clock: Callable[[], float] = time.monotonic
    ):
        self.timeout = max(0.0, float(timeout))
        self._clock = clock
        self._timestamps: Dict[Hashable, float] = {}

    def is_fresh(self, key: Hashable) -> bool:
        last = self._timestamps.get(key)
        if last is None:
            return False
        return self._clock() - last < self.timeout

    def mark_fresh(self, key: Hashable) -> None:
        self._timestamps[key] = self._clock()

    def invalidate(self, key: Optional[Hashable] = None) -> None:
        if key is None:
            self._timestamps.clear()
        else:
            self._timestamps.pop(key, None)

    def age(self, key: Hashable) -> Optional[float]:
        last = self._timestamps.get(key)
        if last is None:
            return None
        return self._clock() - last

    def __contains__(self, key: Hashable) -> bool:
        return key in self._timestamps

    def __len__(self) -> int:
        return len(self._timestamps)
