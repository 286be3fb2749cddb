from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class TaskStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.ERROR)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TaskRecord(BaseModel):
    task_id: str
    prompt: str
    status: TaskStatus = TaskStatus.PENDING
    result: Optional[str] = None  # set iff COMPLETED
    failure_reason: Optional[str] = None  # set iff ERROR
    created_at: datetime
    completed_at: Optional[datetime] = None  # set once, on entering a terminal state
    dispatched_at: Optional[datetime] = None
    worker_response_status: Optional[int] = None
    dispatch_confirmed: bool = False

    @property
    def terminal(self) -> bool:
        return self.status.terminal


# Transitions. Each returns the new record, or None when the transition does
# not apply to the current state; terminal records never change.

def mark_dispatched(rec: TaskRecord, now: datetime) -> TaskRecord | None:
    if rec.terminal or rec.dispatched_at is not None:
        return None
    return rec.model_copy(update={"dispatched_at": now})


def mark_processing(rec: TaskRecord, response_status: int) -> TaskRecord | None:
    if rec.status != TaskStatus.PENDING:
        return None
    return rec.model_copy(update={
        "status": TaskStatus.PROCESSING,
        "dispatch_confirmed": True,
        "worker_response_status": response_status,
    })


def mark_completed(rec: TaskRecord, result: str, now: datetime) -> TaskRecord | None:
    if rec.terminal:
        return None
    return rec.model_copy(update={
        "status": TaskStatus.COMPLETED,
        "result": result,
        "completed_at": now,
    })


def mark_failed(rec: TaskRecord, reason: str, now: datetime,
                response_status: int | None = None) -> TaskRecord | None:
    if rec.terminal:
        return None
    update = {
        "status": TaskStatus.ERROR,
        "failure_reason": reason,
        "completed_at": now,
    }
    if response_status is not None:
        update["worker_response_status"] = response_status
    return rec.model_copy(update=update)
