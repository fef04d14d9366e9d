from __future__ import annotations

from datetime import datetime
from typing import ClassVar, Generic, Iterable, Literal, Optional, Tuple, TypeVar, Union

import pydantic

CIState = Literal["pending", "success", "failure", "error"]

Scope = Union[int, str]

T = TypeVar("T")


class Model(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(frozen=True, extra="ignore")


class PullRequest(Model):
    kind: ClassVar[str] = "pr"

    id: str
    number: int
    title: str
    state: Literal["open", "closed", "merged"]
    author: str = "unknown"
    created_at: datetime
    updated_at: datetime
    url: Optional[str] = None
    labels: Tuple[str, ...] = ()
    assignees: Tuple[str, ...] = ()
    is_draft: bool = False
    mergeable: bool = True
    head_branch: Optional[str] = None
    base_branch: Optional[str] = None
    body: Optional[str] = None
    review_decision: Optional[str] = None
    comments: Optional[int] = None
    ci_status: Optional[CIState] = None

    @pydantic.field_validator("state", mode="before")
    @classmethod
    def _lower_state(cls, value):
        return value.lower() if isinstance(value, str) else value

    def __str__(self) -> str:
        return f"PR(#{self.number}, {self.id})"


class Issue(Model):
    kind: ClassVar[str] = "issue"

    id: str
    number: int
    title: str
    state: Literal["open", "closed"]
    author: str = "unknown"
    created_at: datetime
    updated_at: datetime
    url: Optional[str] = None
    labels: Tuple[str, ...] = ()
    assignees: Tuple[str, ...] = ()
    comments: Optional[int] = None
    milestone: Optional[str] = None

    @pydantic.field_validator("state", mode="before")
    @classmethod
    def _lower_state(cls, value):
        return value.lower() if isinstance(value, str) else value

    def __str__(self) -> str:
        return f"Issue(#{self.number}, {self.id})"


Item = Union[PullRequest, Issue]


class CheckOutput(Model):
    title: Optional[str] = None
    summary: Optional[str] = None
    text: Optional[str] = None


class CICheck(Model):
    name: str
    status: Literal["completed", "in_progress", "queued"] = "queued"
    conclusion: Optional[
        Literal[
            "success",
            "failure",
            "cancelled",
            "skipped",
            "timed_out",
            "action_required",
            "neutral",
        ]
    ] = None
    url: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    output: Optional[CheckOutput] = None

    @property
    def is_failure(self) -> bool:
        return self.conclusion in ("failure", "cancelled", "timed_out")

    @property
    def is_in_progress(self) -> bool:
        return self.status in ("queued", "in_progress")

    @property
    def is_success(self) -> bool:
        return self.conclusion == "success"


class CIStatus(Model):
    status: CIState
    conclusion: Optional[str] = None
    total_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    checks: Tuple[CICheck, ...] = ()

    @classmethod
    def from_checks(cls, checks: Iterable[CICheck]) -> CIStatus:
        checks = tuple(checks)
        success_count = len([c for c in checks if c.is_success])

        if len(checks) == 0:
            status = "pending"
        else:
            has_failure = any(c.is_failure for c in checks)
            has_pending = any(c.is_in_progress for c in checks)
            if success_count == 0 and not has_pending:
                # checks exist but none of them passed
                status = "failure"
            elif has_failure:
                status = "failure"
            elif has_pending:
                status = "pending"
            else:
                status = "success"

        return cls(
            status=status,
            total_count=len(checks),
            success_count=success_count,
            failure_count=len(
                [c for c in checks if c.conclusion in ("failure", "cancelled")]
            ),
            checks=checks,
        )


class StatusDelta(Model):
    key: int
    value: CIStatus


class BackendResult(pydantic.BaseModel, Generic[T]):
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None


class CreateFixSessionRequest(Model):
    project_id: Scope
    type: Literal["pr", "issue"]
    pr_number: int
    issue_number: Optional[int] = None
    ci_logs: Optional[str] = None
    title: Optional[str] = None
    body: Optional[str] = None


class FixSession(Model):
    session_id: str
