from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict


class EntityClass(Enum):
    PRS = "prs"
    ISSUES = "issues"
    CI_STATUS = "ci_status"


@dataclass(frozen=True)
class FetchResult:
    success: bool
    error: str | None = None
    cached: bool = False


@dataclass(frozen=True)
class AllDataResult:
    prs: FetchResult
    issues: FetchResult
    ci_statuses: Dict[int, FetchResult] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.prs.success and self.issues.success


@dataclass(frozen=True)
class ActionResult:
    success: bool
    session_id: str | None = None
    error: str | None = None
