from __future__ import annotations

from dataclasses import dataclass, field, replace
import logging
from typing import (
    Callable,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from ghsync.metric import listener_error_count
from ghsync.model import CIStatus, Issue, Item, PullRequest, Scope
from ghsync.types import EntityClass

logger = logging.getLogger("ghsync")


@dataclass(frozen=True)
class StoreSnapshot:
    prs: Mapping[Scope, Tuple[PullRequest, ...]] = field(default_factory=dict)
    issues: Mapping[Scope, Tuple[Issue, ...]] = field(default_factory=dict)
    ci_statuses: Mapping[int, CIStatus] = field(default_factory=dict)
    loading_prs: FrozenSet[Scope] = frozenset()
    loading_issues: FrozenSet[Scope] = frozenset()
    loading_ci_status: FrozenSet[int] = frozenset()
    creating_sessions: FrozenSet[str] = frozenset()
    error: str | None = None

    @property
    def is_loading_prs(self) -> bool:
        return bool(self.loading_prs)

    @property
    def is_loading_issues(self) -> bool:
        return bool(self.loading_issues)


Listener = Callable[[StoreSnapshot], None]


def _list_field(entity: EntityClass) -> str:
    if entity == EntityClass.PRS:
        return "prs"
    if entity == EntityClass.ISSUES:
        return "issues"
    raise ValueError(f"{entity} is not a list entity")


class EntityStore:
    """Current PR, issue and CI state plus loading and error flags.

    Every write replaces the snapshot and then hands the new one to each
    subscribed listener, synchronously and in subscription order.
    """

    def __init__(self):
        self._state = StoreSnapshot()
        self._listeners: List[Listener] = []

    @property
    def snapshot(self) -> StoreSnapshot:
        return self._state

    @property
    def error(self) -> str | None:
        return self._state.error

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, **changes) -> None:
        self._state = replace(self._state, **changes)
        state = self._state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                listener_error_count.inc()
                logger.error("Store listener raised", exc_info=True)

    # writers

    def set_list(
        self, entity: EntityClass, scope: Scope, records: Iterable[Item]
    ) -> None:
        name = _list_field(entity)
        lists = dict(getattr(self._state, name))
        records = tuple(records)
        if entity == EntityClass.PRS:
            records = tuple(self._with_known_ci(pr) for pr in records)
        lists[scope] = records
        self._commit(**{name: lists})

    def _with_known_ci(self, pr: PullRequest) -> PullRequest:
        # a freshly listed PR keeps the CI summary we already hold for it
        known = self._state.ci_statuses.get(pr.number)
        if known is None or pr.ci_status == known.status:
            return pr
        return pr.model_copy(update={"ci_status": known.status})

    def apply_ci_statuses(self, batch: Mapping[int, CIStatus]) -> None:
        """Write CI records and project their status onto matching PRs.

        Both maps change in a single commit so no listener ever sees a PR
        whose ``ci_status`` disagrees with the stored record.
        """
        if not batch:
            return
        ci_statuses = dict(self._state.ci_statuses)
        ci_statuses.update(batch)

        prs: Dict[Scope, Tuple[PullRequest, ...]] = {}
        for scope, records in self._state.prs.items():
            prs[scope] = tuple(
                pr.model_copy(update={"ci_status": batch[pr.number].status})
                if pr.number in batch
                else pr
                for pr in records
            )

        self._commit(ci_statuses=ci_statuses, prs=prs)

    def set_loading(self, entity: EntityClass, scope: Scope, loading: bool) -> None:
        if entity == EntityClass.PRS:
            name = "loading_prs"
        elif entity == EntityClass.ISSUES:
            name = "loading_issues"
        else:
            raise ValueError(f"{entity} has no loading flag, use mark_ci_loading")
        current = getattr(self._state, name)
        if loading:
            self._commit(**{name: current | {scope}})
        else:
            self._commit(**{name: current - {scope}})

    def is_loading(self, entity: EntityClass, scope: Scope) -> bool:
        return scope in getattr(self._state, f"loading_{_list_field(entity)}")

    def mark_ci_loading(self, number: int, loading: bool) -> None:
        current = self._state.loading_ci_status
        if loading:
            self._commit(loading_ci_status=current | {number})
        else:
            self._commit(loading_ci_status=current - {number})

    def mark_creating(self, item_id: str, creating: bool) -> None:
        current = self._state.creating_sessions
        if creating:
            self._commit(creating_sessions=current | {item_id})
        else:
            self._commit(creating_sessions=current - {item_id})

    def set_error(self, error: str) -> None:
        self._commit(error=error)

    def clear_error(self) -> None:
        self._commit(error=None)

    def reset(self) -> None:
        self._commit(prs={}, issues={}, ci_statuses={}, error=None)

    # readers

    def list_for(self, entity: EntityClass, scope: Scope) -> Sequence[Item]:
        return getattr(self._state, _list_field(entity)).get(scope, ())

    def prs(self, scope: Optional[Scope] = None) -> List[PullRequest]:
        if scope is not None:
            return list(self._state.prs.get(scope, ()))
        return [pr for records in self._state.prs.values() for pr in records]

    def issues(self, scope: Optional[Scope] = None) -> List[Issue]:
        if scope is not None:
            return list(self._state.issues.get(scope, ()))
        return [i for records in self._state.issues.values() for i in records]

    def get_all_data(self, scope: Optional[Scope] = None) -> List[Item]:
        return [*self.prs(scope), *self.issues(scope)]

    def get_by_key(
        self, entity: EntityClass, key: Union[str, int]
    ) -> Union[Item, CIStatus, None]:
        if entity == EntityClass.CI_STATUS:
            return self._state.ci_statuses.get(key)
        records = self.prs() if entity == EntityClass.PRS else self.issues()
        attr = "number" if isinstance(key, int) else "id"
        for record in records:
            if getattr(record, attr) == key:
                return record
        return None

    def get_pr(self, key: Union[str, int]) -> Optional[PullRequest]:
        return self.get_by_key(EntityClass.PRS, key)

    def get_issue(self, key: Union[str, int]) -> Optional[Issue]:
        return self.get_by_key(EntityClass.ISSUES, key)

    def get_ci_status(self, number: int) -> Optional[CIStatus]:
        return self._state.ci_statuses.get(number)
