from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Union

from ghsync.backend import BackendClient, DeltaMessage, PushChannel
from ghsync.cache import InFlightCoalescer, KeyedTTLCache
from ghsync.config import SETTINGS, Settings
from ghsync.logger import get_log_handlers
from ghsync.model import CIStatus, Issue, Item, PullRequest, Scope
from ghsync.orchestrator import FetchOrchestrator
from ghsync.store import EntityStore, Listener, StoreSnapshot
from ghsync.throttle import ThrottledDeltaApplier
from ghsync.types import ActionResult, AllDataResult, EntityClass, FetchResult
from ghsync.workflows import ActionWorkflows

logger = logging.getLogger("ghsync")


class GitHubSync:
    """Owns one store and everything that keeps it in sync with a backend."""

    def __init__(
        self,
        backend: BackendClient,
        settings: Settings = SETTINGS,
        *,
        store: Optional[EntityStore] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self.backend = backend
        self.store = store or EntityStore()

        self.list_cache = KeyedTTLCache(settings.LIST_CACHE_TIMEOUT, clock=clock)
        self.ci_cache = KeyedTTLCache(settings.CI_CACHE_TIMEOUT, clock=clock)

        self.orchestrator = FetchOrchestrator(
            store=self.store,
            backend=backend,
            list_cache=self.list_cache,
            ci_cache=self.ci_cache,
            list_coalescer=InFlightCoalescer("lists"),
            ci_coalescer=InFlightCoalescer("ci_status"),
        )
        self.workflows = ActionWorkflows(
            store=self.store, backend=backend, orchestrator=self.orchestrator
        )
        self.applier: ThrottledDeltaApplier[int, CIStatus] = ThrottledDeltaApplier(
            self.store.apply_ci_statuses,
            window_seconds=settings.DELTA_THROTTLE_WINDOW,
            name="ci_status",
        )
        self._disconnects: List[Callable[[], None]] = []

    # fetches

    async def fetch_prs(self, scope: Scope, force: bool = False) -> FetchResult:
        return await self.orchestrator.fetch_prs(scope, force)

    async def fetch_issues(self, scope: Scope, force: bool = False) -> FetchResult:
        return await self.orchestrator.fetch_issues(scope, force)

    async def fetch_ci_status(
        self, scope: Scope, number: int, force: bool = False
    ) -> FetchResult:
        return await self.orchestrator.fetch_ci_status(scope, number, force)

    async def fetch_all_data(self, scope: Scope, force: bool = False) -> AllDataResult:
        return await self.orchestrator.fetch_all_data(scope, force)

    # actions

    async def create_fix_session(self, scope: Scope, item: Item) -> ActionResult:
        return await self.workflows.create_fix_session(scope, item)

    async def create_pr(
        self, scope: Scope, title: str, body: Optional[str] = None
    ) -> ActionResult:
        return await self.workflows.create_pr(scope, title, body)

    # readers

    @property
    def snapshot(self) -> StoreSnapshot:
        return self.store.snapshot

    def get_all_data(self, scope: Optional[Scope] = None) -> List[Item]:
        return self.store.get_all_data(scope)

    def get_by_key(
        self, entity: EntityClass, key: Union[str, int]
    ) -> Union[Item, CIStatus, None]:
        return self.store.get_by_key(entity, key)

    def get_pr(self, key: Union[str, int]) -> Optional[PullRequest]:
        return self.store.get_pr(key)

    def get_issue(self, key: Union[str, int]) -> Optional[Issue]:
        return self.store.get_issue(key)

    def get_ci_status(self, number: int) -> Optional[CIStatus]:
        return self.store.get_ci_status(number)

    def is_cache_valid(
        self, scope: Scope, entity: EntityClass = EntityClass.PRS
    ) -> bool:
        return self.list_cache.is_fresh((entity, scope))

    def is_ci_status_cache_valid(self, number: int) -> bool:
        return self.ci_cache.is_fresh(number)

    # state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self.store.subscribe(listener)

    def clear_cache(self) -> None:
        self.orchestrator.invalidate()
        self.applier.reset()
        self.store.reset()

    def clear_error(self) -> None:
        self.store.clear_error()

    # push

    def apply_delta(self, message: DeltaMessage) -> None:
        self.applier.handle(message)

    def connect(self, channel: PushChannel) -> Callable[[], None]:
        unsubscribe = channel.on_status_delta(self.applier.handle)
        self._disconnects.append(unsubscribe)

        def disconnect() -> None:
            if unsubscribe in self._disconnects:
                self._disconnects.remove(unsubscribe)
                unsubscribe()

        return disconnect

    async def aclose(self) -> None:
        for unsubscribe in self._disconnects:
            unsubscribe()
        self._disconnects.clear()
        self.applier.flush()
        await self.workflows.drain()


def create_sync(
    backend: BackendClient, settings: Optional[Settings] = None, **kwargs
) -> GitHubSync:
    settings = settings or SETTINGS
    get_log_handlers(logger, settings)
    return GitHubSync(backend, settings, **kwargs)
