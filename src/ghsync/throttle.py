from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, Generic, Hashable, Iterable, List, Tuple, TypeVar, Union

from ghsync.metric import delta_count, delta_flush_count
from ghsync.model import StatusDelta

logger = logging.getLogger("ghsync")

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class ThrottledDeltaApplier(Generic[K, V]):
    """Applies pushed deltas with an immediate first write and trailing batches.

    In the idle state a delta is applied right away and a window timer is
    armed. Deltas arriving while the window is open are buffered, one value
    per key, and the most recent value for every key is applied in a single
    batch when the window closes. Intermediate values for a key that changes
    several times within a window are never applied.
    """

    IDLE = "idle"
    THROTTLED = "throttled"

    def __init__(
        self,
        apply: Callable[[Dict[K, V]], None],
        *,
        window_seconds: float = 0.1,
        name: str = "ci_status",
    ):
        self.apply = apply
        self.window_seconds = max(0.0, float(window_seconds))
        self.name = name
        self._pending: Dict[K, V] = {}
        self._timer: asyncio.TimerHandle | None = None
        self._state = self.IDLE

    @property
    def state(self) -> str:
        return self._state

    @property
    def pending(self) -> Dict[K, V]:
        return dict(self._pending)

    def submit(self, key: K, value: V) -> None:
        if self._state == self.THROTTLED:
            self._pending[key] = value
            delta_count.labels(applier=self.name, result="buffered").inc()
            return

        delta_count.labels(applier=self.name, result="immediate").inc()
        self._timer = self._arm()
        if self._timer is not None:
            self._state = self.THROTTLED
        self._apply({key: value})

    def submit_many(self, items: Iterable[Tuple[K, V]]) -> None:
        for key, value in items:
            self.submit(key, value)

    def handle(self, message: Union[StatusDelta, List[StatusDelta]]) -> None:
        if isinstance(message, StatusDelta):
            message = [message]
        self.submit_many((delta.key, delta.value) for delta in message)

    def _arm(self) -> asyncio.TimerHandle | None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # nothing could close the window, so every delta applies at once
            logger.debug("%s: no running loop, applying without throttling", self.name)
            return None
        return loop.call_later(self.window_seconds, self._on_window_elapsed)

    def _on_window_elapsed(self) -> None:
        self._timer = None
        if not self._pending:
            self._state = self.IDLE
            return

        batch, self._pending = self._pending, {}
        logger.debug("%s: flushing %d buffered deltas", self.name, len(batch))
        delta_flush_count.labels(applier=self.name).inc()
        delta_count.labels(applier=self.name, result="flushed").inc(len(batch))
        self._apply(batch)

        if self._pending:
            # deltas submitted from within apply()
            self._timer = self._arm()
        else:
            self._state = self.IDLE

    def _apply(self, batch: Dict[K, V]) -> None:
        try:
            self.apply(batch)
        except Exception:
            logger.error(
                "%s: applying %d deltas failed", self.name, len(batch), exc_info=True
            )

    def flush(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        batch, self._pending = self._pending, {}
        self._state = self.IDLE
        if batch:
            delta_flush_count.labels(applier=self.name).inc()
            delta_count.labels(applier=self.name, result="flushed").inc(len(batch))
            self._apply(batch)

    def reset(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending.clear()
        self._state = self.IDLE
