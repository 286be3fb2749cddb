from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from ..errors import NotFoundError, ValidationError, WorkerReportedError
from ..models import CallbackRequest
from ..storage.schema import TaskRecord, mark_completed, mark_failed, utc_now
from ..storage.store import TaskStore

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_REASON = "Unknown error occurred during generation"


class Reconciler:
    """Applies results pushed by the external worker.

    The first terminal outcome wins: a callback for a task that already
    finished is acknowledged but leaves the record untouched.
    """

    def __init__(self, store: TaskStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    def apply(self, payload: CallbackRequest) -> TaskRecord:
        task_id = payload.id
        if task_id is None or task_id == "":
            raise ValidationError("Task ID is required")
        if not isinstance(task_id, str):
            raise ValidationError("Task ID must be a string")
        logger.info("[%s] Received worker result - success: %s", task_id, bool(payload.success))

        if self.store.get(task_id) is None:
            logger.info("[%s] Task not found in store", task_id)
            raise NotFoundError()

        failure = None
        try:
            result = self._result(task_id, payload)
            transition = lambda r: mark_completed(r, result, self.clock())
        except WorkerReportedError as exc:
            failure = str(exc)
            transition = lambda r: mark_failed(r, failure, self.clock())

        applied = False

        def mutation(r: TaskRecord) -> TaskRecord | None:
            nonlocal applied
            new = transition(r)
            applied = new is not None
            return new

        updated = self.store.update(task_id, mutation)
        if updated is None:
            logger.info("[%s] Task evicted while applying result", task_id)
            raise NotFoundError()

        if not applied:
            logger.info("[%s] Ignoring result for task already %s", task_id, updated.status.value)
        elif failure is None:
            logger.info("[%s] Generation completed successfully", task_id)
        else:
            logger.info("[%s] Generation failed: %s", task_id, failure)
        return updated

    @staticmethod
    def _result(task_id: str, payload: CallbackRequest) -> str:
        """Return the reported result, or raise WorkerReportedError for a failure report."""
        if not payload.success:
            raise WorkerReportedError(str(payload.failure_reason or DEFAULT_FAILURE_REASON))
        if not isinstance(payload.result, str) or not payload.result:
            logger.warning("[%s] Rejected successful callback without a textual result", task_id)
            raise ValidationError("Result is required and must be a string when success is true")
        return payload.result
