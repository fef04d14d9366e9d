"""Contracts for the backend that owns PR, issue and CI data.

The sync layer never talks to GitHub itself. A host supplies an object that
satisfies :class:`BackendClient` for pull-style reads and actions, and
optionally a :class:`PushChannel` that delivers CI status deltas.
"""

from __future__ import annotations

from typing import Callable, List, Optional, Protocol, TypeVar, Union

from ghsync.model import (
    BackendResult,
    CIStatus,
    CreateFixSessionRequest,
    FixSession,
    Issue,
    PullRequest,
    Scope,
    StatusDelta,
)

T = TypeVar("T")

DeltaMessage = Union[StatusDelta, List[StatusDelta]]


class BackendResponseError(Exception):
    message: str

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class BackendClient(Protocol):
    async def list_prs(self, scope: Scope) -> BackendResult[List[PullRequest]]:
        ...

    async def list_issues(self, scope: Scope) -> BackendResult[List[Issue]]:
        ...

    async def get_ci_status(self, scope: Scope, number: int) -> BackendResult[CIStatus]:
        ...

    async def get_ci_logs(self, scope: Scope, number: int) -> BackendResult[str]:
        ...

    async def create_fix_session(
        self, request: CreateFixSessionRequest
    ) -> BackendResult[FixSession]:
        ...

    async def create_pr(
        self, scope: Scope, title: str, body: Optional[str]
    ) -> BackendResult[None]:
        ...


class PushChannel(Protocol):
    def on_status_delta(
        self, handler: Callable[[DeltaMessage], None]
    ) -> Callable[[], None]:
        ...


def unwrap(
    result: BackendResult[T], default_message: str, require_data: bool = True
) -> Optional[T]:
    """Return ``result.data`` or raise :class:`BackendResponseError`.

    A result flagged successful but carrying no data counts as a failure
    unless ``require_data`` is false.
    """
    if not result.success:
        raise BackendResponseError(result.error or default_message)
    if require_data and result.data is None:
        raise BackendResponseError(default_message)
    return result.data


def error_message(exc: Exception, default_message: str) -> str:
    if isinstance(exc, BackendResponseError):
        return exc.message
    return str(exc) or default_message
