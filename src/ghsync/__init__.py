from ghsync.backend import BackendClient, BackendResponseError, PushChannel
from ghsync.cache import InFlightCoalescer, KeyedTTLCache
from ghsync.engine import GitHubSync, create_sync
from ghsync.model import (
    BackendResult,
    CICheck,
    CIStatus,
    CreateFixSessionRequest,
    FixSession,
    Issue,
    PullRequest,
    StatusDelta,
)
from ghsync.orchestrator import FetchOrchestrator
from ghsync.store import EntityStore, StoreSnapshot
from ghsync.throttle import ThrottledDeltaApplier
from ghsync.types import ActionResult, AllDataResult, EntityClass, FetchResult
from ghsync.workflows import ActionWorkflows

__all__ = [
    "ActionResult",
    "ActionWorkflows",
    "AllDataResult",
    "BackendClient",
    "BackendResponseError",
    "BackendResult",
    "CICheck",
    "CIStatus",
    "CreateFixSessionRequest",
    "EntityClass",
    "EntityStore",
    "FetchOrchestrator",
    "FetchResult",
    "FixSession",
    "GitHubSync",
    "InFlightCoalescer",
    "Issue",
    "KeyedTTLCache",
    "PullRequest",
    "PushChannel",
    "StatusDelta",
    "StoreSnapshot",
    "ThrottledDeltaApplier",
    "create_sync",
]
