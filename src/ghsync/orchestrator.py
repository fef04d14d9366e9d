from __future__ import annotations

import asyncio
import logging
from typing import Dict, List

from ghsync.backend import BackendClient, BackendResponseError, error_message, unwrap
from ghsync.cache import InFlightCoalescer, KeyedTTLCache
from ghsync.metric import backend_call_count, cache_hit_count
from ghsync.model import Item, Scope
from ghsync.store import EntityStore
from ghsync.types import AllDataResult, EntityClass, FetchResult

logger = logging.getLogger("ghsync")

_LIST_MESSAGES = {
    EntityClass.PRS: "Failed to fetch pull requests",
    EntityClass.ISSUES: "Failed to fetch issues",
}
CI_STATUS_MESSAGE = "Failed to fetch CI status"


class FetchOrchestrator:
    def __init__(
        self,
        *,
        store: EntityStore,
        backend: BackendClient,
        list_cache: KeyedTTLCache,
        ci_cache: KeyedTTLCache,
        list_coalescer: InFlightCoalescer | None = None,
        ci_coalescer: InFlightCoalescer | None = None,
    ):
        self.store = store
        self.backend = backend
        self.list_cache = list_cache
        self.ci_cache = ci_cache
        self.list_coalescer = list_coalescer or InFlightCoalescer("lists")
        self.ci_coalescer = ci_coalescer or InFlightCoalescer("ci_status")

    def is_usable_cache(self, entity: EntityClass, scope: Scope) -> bool:
        """Fresh timestamp and a non-empty list.

        A fresh but empty list is refetched: an empty result is treated as
        "not loaded yet" rather than "nothing there".
        """
        return (
            self.list_cache.is_fresh((entity, scope))
            and len(self.store.list_for(entity, scope)) > 0
        )

    def is_ci_usable_cache(self, number: int) -> bool:
        return (
            self.ci_cache.is_fresh(number)
            and self.store.get_ci_status(number) is not None
        )

    async def fetch_prs(self, scope: Scope, force: bool = False) -> FetchResult:
        return await self._fetch_list(EntityClass.PRS, scope, force)

    async def fetch_issues(self, scope: Scope, force: bool = False) -> FetchResult:
        return await self._fetch_list(EntityClass.ISSUES, scope, force)

    async def _fetch_list(
        self, entity: EntityClass, scope: Scope, force: bool
    ) -> FetchResult:
        if not force and self.is_usable_cache(entity, scope):
            logger.debug("Cache hit for %s of %s", entity.value, scope)
            cache_hit_count.labels(entity=entity.value).inc()
            return FetchResult(success=True, cached=True)

        return await self.list_coalescer.run(
            (entity, scope), lambda: self._load_list(entity, scope), fresh=force
        )

    async def _load_list(self, entity: EntityClass, scope: Scope) -> FetchResult:
        default_message = _LIST_MESSAGES[entity]
        self.store.set_loading(entity, scope, True)
        self.store.clear_error()
        try:
            if entity == EntityClass.PRS:
                result = await self.backend.list_prs(scope)
            else:
                result = await self.backend.list_issues(scope)
            records: List[Item] = unwrap(result, default_message)
        except BackendResponseError as e:
            backend_call_count.labels(operation=entity.value, result="failure").inc()
            logger.error("Fetching %s for %s failed: %s", entity.value, scope, e)
            self.store.set_error(e.message)
            return FetchResult(success=False, error=e.message)
        except Exception as e:
            backend_call_count.labels(operation=entity.value, result="error").inc()
            logger.error(
                "Error fetching %s for %s", entity.value, scope, exc_info=True
            )
            message = error_message(e, default_message)
            self.store.set_error(message)
            return FetchResult(success=False, error=message)
        finally:
            self.store.set_loading(entity, scope, False)

        backend_call_count.labels(operation=entity.value, result="success").inc()
        logger.debug("Fetched %d %s for %s", len(records), entity.value, scope)
        self.store.set_list(entity, scope, records)
        self.list_cache.mark_fresh((entity, scope))
        return FetchResult(success=True)

    async def fetch_ci_status(
        self, scope: Scope, number: int, force: bool = False
    ) -> FetchResult:
        if not force and self.is_ci_usable_cache(number):
            logger.debug("Cache hit for CI status of PR #%d", number)
            cache_hit_count.labels(entity=EntityClass.CI_STATUS.value).inc()
            return FetchResult(success=True, cached=True)

        return await self.ci_coalescer.run(
            number, lambda: self._load_ci_status(scope, number), fresh=force
        )

    async def _load_ci_status(self, scope: Scope, number: int) -> FetchResult:
        operation = EntityClass.CI_STATUS.value
        self.store.mark_ci_loading(number, True)
        try:
            result = await self.backend.get_ci_status(scope, number)
            status = unwrap(result, CI_STATUS_MESSAGE)
        except Exception as e:
            # CI status only decorates the PR view, so this never reaches the
            # shared error field
            backend_call_count.labels(operation=operation, result="failure").inc()
            message = error_message(e, CI_STATUS_MESSAGE)
            logger.warning("Failed to get CI status for PR #%d: %s", number, message)
            return FetchResult(success=False, error=message)
        finally:
            self.store.mark_ci_loading(number, False)

        backend_call_count.labels(operation=operation, result="success").inc()
        self.store.apply_ci_statuses({number: status})
        self.ci_cache.mark_fresh(number)
        return FetchResult(success=True)

    async def fetch_all_data(self, scope: Scope, force: bool = False) -> AllDataResult:
        prs_result, issues_result = await asyncio.gather(
            self.fetch_prs(scope, force), self.fetch_issues(scope, force)
        )

        numbers = [pr.number for pr in self.store.prs(scope)]
        ci_results = await asyncio.gather(
            *(self.fetch_ci_status(scope, number, force) for number in numbers)
        )
        ci_statuses: Dict[int, FetchResult] = dict(zip(numbers, ci_results))

        return AllDataResult(
            prs=prs_result, issues=issues_result, ci_statuses=ci_statuses
        )

    def invalidate(self) -> None:
        self.list_cache.invalidate()
        self.ci_cache.invalidate()
        self.list_coalescer.clear()
        self.ci_coalescer.clear()
