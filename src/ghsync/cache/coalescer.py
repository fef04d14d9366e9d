from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Hashable, Optional, Set, TypeVar

from ghsync.metric import coalescer_request_count

logger = logging.getLogger("ghsync")

T = TypeVar("T")


def _consume_outcome(task: asyncio.Task) -> None:
    # every waiter may have gone away before the task failed
    if not task.cancelled() and task.exception() is not None:
        logger.debug("Shared request failed: %r", task.exception())


class InFlightCoalescer:
    """Runs at most one producer per key at a time.

    Concurrent callers for a key that is already in flight await the task
    that is running instead of starting another one, so they all observe the
    same result or the same exception.

    A caller passing ``fresh=True`` only joins a task whose producer has not
    been invoked yet. Otherwise a new task is queued behind the running one
    and its producer starts once that one has settled.
    """

    def __init__(self, name: str):
        self.name = name
        self._in_flight: Dict[Hashable, asyncio.Task] = {}
        self._not_started: Set[asyncio.Task] = set()

    async def run(
        self,
        key: Hashable,
        producer: Callable[[], Awaitable[T]],
        *,
        fresh: bool = False,
    ) -> T:
        task = self._in_flight.get(key)
        if task is not None and (not fresh or task in self._not_started):
            logger.debug("%s: joining in-flight request for %s", self.name, key)
            coalescer_request_count.labels(coalescer=self.name, result="joined").inc()
        else:
            if task is not None:
                logger.debug(
                    "%s: queueing fresh request for %s behind running one",
                    self.name,
                    key,
                )
            coalescer_request_count.labels(coalescer=self.name, result="lead").inc()
            task = asyncio.ensure_future(self._produce(key, producer, after=task))
            task.add_done_callback(_consume_outcome)
            self._in_flight[key] = task
            self._not_started.add(task)

        # a cancelled caller must not take the shared task down with it
        return await asyncio.shield(task)

    async def _produce(
        self,
        key: Hashable,
        producer: Callable[[], Awaitable[T]],
        after: Optional[asyncio.Task] = None,
    ) -> T:
        current = asyncio.current_task()
        try:
            if after is not None:
                # results must land in call order
                await asyncio.wait([after])
            self._not_started.discard(current)
            return await producer()
        finally:
            self._not_started.discard(current)
            if self._in_flight.get(key) is current:
                del self._in_flight[key]

    def in_flight(self, key: Hashable) -> bool:
        return key in self._in_flight

    def clear(self) -> None:
        self._in_flight.clear()
        self._not_started.clear()

    def __len__(self) -> int:
        return len(self._in_flight)
