from __future__ import annotations

import logging

from ..errors import NotFoundError
from ..models import DebugInfo, ElapsedTime, StatusResponse
from ..storage.schema import TaskStatus
from ..storage.store import TaskStore
from .retention import RetentionPolicy

logger = logging.getLogger(__name__)


class StatusReporter:
    def __init__(self, store: TaskStore, retention: RetentionPolicy, slow_task_log_seconds: float = 120):
        self.store = store
        self.retention = retention
        self.slow_task_log_seconds = slow_task_log_seconds

    def report(self, task_id: str) -> StatusResponse:
        rec = self.store.get(task_id)
        if rec is None:
            raise NotFoundError()

        now = self.retention.now()
        if self.retention.is_expired(rec, now):
            # Lazy expiry; the periodic sweep would drop it anyway.
            self.store.delete_if(task_id, lambda r: self.retention.is_expired(r, now))
            logger.info("[%s] Task expired", task_id)
            raise NotFoundError("Task expired")

        elapsed_ms = max(0, int((now - rec.created_at).total_seconds() * 1000))
        minutes, rest = divmod(elapsed_ms, 60_000)
        seconds = rest // 1000

        if rec.status != TaskStatus.COMPLETED and elapsed_ms > self.slow_task_log_seconds * 1000:
            logger.info("[%s] Status check - %s for %dm%ds", task_id, rec.status.value, minutes, seconds)

        return StatusResponse(
            id=rec.task_id,
            status=rec.status.value,
            result=rec.result,
            failure_reason=rec.failure_reason,
            created_at=rec.created_at,
            elapsed_time=ElapsedTime(minutes=minutes, seconds=seconds, total=elapsed_ms),
            debug=DebugInfo(
                dispatch_sent=rec.dispatched_at is not None,
                dispatch_confirmed=rec.dispatch_confirmed,
                has_worker_ack=rec.worker_response_status is not None,
            ),
        )
