import asyncio
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest

from ghsync.model import (
    BackendResult,
    CICheck,
    CIStatus,
    FixSession,
    Issue,
    PullRequest,
)

_CREATED = datetime(2026, 2, 16, 10, 0, tzinfo=timezone.utc)


class FakeBackend:
    """Scripted backend; each entry is a BackendResult or an exception to raise."""

    def __init__(self):
        self.prs: Dict[object, object] = {}
        self.issues: Dict[object, object] = {}
        self.ci: Dict[int, object] = {}
        self.ci_logs: Dict[int, object] = {}
        self.fix_session: object = BackendResult(
            success=True, data=FixSession(session_id="session-1")
        )
        self.created_pr: object = BackendResult(success=True)
        self.calls: List[tuple] = []
        self.gate: Optional[asyncio.Event] = None

    def count(self, name: str) -> int:
        return len([c for c in self.calls if c[0] == name])

    def names(self) -> List[str]:
        return [c[0] for c in self.calls]

    async def _respond(self, call: tuple, outcome):
        self.calls.append(call)
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def list_prs(self, scope):
        outcome = self.prs.get(scope, BackendResult(success=True, data=[]))
        return await self._respond(("list_prs", scope), outcome)

    async def list_issues(self, scope):
        outcome = self.issues.get(scope, BackendResult(success=True, data=[]))
        return await self._respond(("list_issues", scope), outcome)

    async def get_ci_status(self, scope, number):
        outcome = self.ci.get(number, BackendResult(success=False, error="no checks"))
        return await self._respond(("get_ci_status", scope, number), outcome)

    async def get_ci_logs(self, scope, number):
        outcome = self.ci_logs.get(number, BackendResult(success=True, data=""))
        return await self._respond(("get_ci_logs", scope, number), outcome)

    async def create_fix_session(self, request):
        return await self._respond(("create_fix_session", request), self.fix_session)

    async def create_pr(self, scope, title, body):
        return await self._respond(("create_pr", scope, title, body), self.created_pr)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _make_pr(number: int, **kwargs) -> PullRequest:
    values = {
        "id": f"pr-{number}",
        "number": number,
        "title": f"PR {number}",
        "state": "open",
        "author": "octocat",
        "created_at": _CREATED,
        "updated_at": _CREATED,
    }
    values.update(kwargs)
    return PullRequest(**values)


def _make_issue(number: int, **kwargs) -> Issue:
    values = {
        "id": f"issue-{number}",
        "number": number,
        "title": f"Issue {number}",
        "state": "open",
        "author": "octocat",
        "created_at": _CREATED,
        "updated_at": _CREATED,
    }
    values.update(kwargs)
    return Issue(**values)


def _make_ci(*conclusions: Optional[str]) -> CIStatus:
    checks = [
        CICheck(
            name=f"check-{idx}",
            status="completed" if conclusion is not None else "in_progress",
            conclusion=conclusion,
        )
        for idx, conclusion in enumerate(conclusions)
    ]
    return CIStatus.from_checks(checks)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_pr():
    return _make_pr


@pytest.fixture
def make_issue():
    return _make_issue


@pytest.fixture
def make_ci():
    return _make_ci
