from __future__ import annotations

import asyncio
import logging
from typing import Optional, Set

from ghsync.backend import BackendClient, BackendResponseError, error_message, unwrap
from ghsync.metric import backend_call_count
from ghsync.model import CreateFixSessionRequest, Item, PullRequest, Scope
from ghsync.orchestrator import FetchOrchestrator
from ghsync.store import EntityStore
from ghsync.types import ActionResult

logger = logging.getLogger("ghsync")

FIX_SESSION_MESSAGE = "Failed to create fix session"
CREATE_PR_MESSAGE = "Failed to create pull request"


class ActionWorkflows:
    def __init__(
        self,
        *,
        store: EntityStore,
        backend: BackendClient,
        orchestrator: FetchOrchestrator,
    ):
        self.store = store
        self.backend = backend
        self.orchestrator = orchestrator
        self._background: Set[asyncio.Task] = set()

    async def _ci_logs_for(self, scope: Scope, item: Item) -> Optional[str]:
        if not isinstance(item, PullRequest):
            return None
        ci_status = self.store.get_ci_status(item.number)
        if ci_status is None or ci_status.status != "failure":
            return None

        try:
            result = await self.backend.get_ci_logs(scope, item.number)
            logs = unwrap(result, "Failed to fetch CI logs")
        except Exception as e:
            # a fix session is still useful without logs
            backend_call_count.labels(operation="ci_logs", result="failure").inc()
            logger.warning(
                "Could not get CI logs for %s: %s",
                item,
                error_message(e, "Failed to fetch CI logs"),
            )
            return None

        backend_call_count.labels(operation="ci_logs", result="success").inc()
        return logs

    async def create_fix_session(self, scope: Scope, item: Item) -> ActionResult:
        self.store.mark_creating(item.id, True)
        self.store.clear_error()
        try:
            ci_logs = await self._ci_logs_for(scope, item)

            is_pr = isinstance(item, PullRequest)
            request = CreateFixSessionRequest(
                project_id=scope,
                type=item.kind,
                pr_number=item.number if is_pr else 0,
                issue_number=None if is_pr else item.number,
                ci_logs=ci_logs,
                title=item.title,
                body=item.body if is_pr else None,
            )

            result = await self.backend.create_fix_session(request)
            session = unwrap(result, FIX_SESSION_MESSAGE)
        except BackendResponseError as e:
            backend_call_count.labels(operation="fix_session", result="failure").inc()
            logger.error("Creating fix session for %s failed: %s", item, e)
            self.store.set_error(e.message)
            return ActionResult(success=False, error=e.message)
        except Exception as e:
            backend_call_count.labels(operation="fix_session", result="error").inc()
            logger.error("Error creating fix session for %s", item, exc_info=True)
            message = error_message(e, FIX_SESSION_MESSAGE)
            self.store.set_error(message)
            return ActionResult(success=False, error=message)
        finally:
            self.store.mark_creating(item.id, False)

        backend_call_count.labels(operation="fix_session", result="success").inc()
        logger.info("Created fix session %s for %s", session.session_id, item)
        return ActionResult(success=True, session_id=session.session_id)

    async def create_pr(
        self, scope: Scope, title: str, body: Optional[str] = None
    ) -> ActionResult:
        self.store.clear_error()
        try:
            result = await self.backend.create_pr(scope, title, body)
            unwrap(result, CREATE_PR_MESSAGE, require_data=False)
        except BackendResponseError as e:
            backend_call_count.labels(operation="create_pr", result="failure").inc()
            logger.error("Creating PR '%s' failed: %s", title, e)
            self.store.set_error(e.message)
            return ActionResult(success=False, error=e.message)
        except Exception as e:
            backend_call_count.labels(operation="create_pr", result="error").inc()
            logger.error("Error creating PR '%s'", title, exc_info=True)
            message = error_message(e, CREATE_PR_MESSAGE)
            self.store.set_error(message)
            return ActionResult(success=False, error=message)

        backend_call_count.labels(operation="create_pr", result="success").inc()
        logger.info("Created PR '%s' in %s, refreshing PR list", title, scope)
        task = asyncio.ensure_future(self.orchestrator.fetch_prs(scope, force=True))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return ActionResult(success=True)

    async def drain(self) -> None:
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
