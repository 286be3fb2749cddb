from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime

from ..errors import InternalError
from .schema import TaskRecord, utc_now

logger = logging.getLogger(__name__)

Mutation = Callable[[TaskRecord], "TaskRecord | None"]


class TaskStore:
    """
    In-memory task store, the single owner of all task records.

    Every operation takes one process-wide lock for the duration of a dict
    access plus (for update) a pure mutation function, so per-id operations
    are sequentially consistent and an update never races a delete.
    Callers only ever receive copies; records are replaced, never mutated
    in place, so a reader sees either the old or the new value.
    No lock is held across I/O.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock
        self._tasks: dict[str, TaskRecord] = {}
        self._lock = threading.Lock()

    def create(self, task_id: str, prompt: str) -> TaskRecord:
        rec = TaskRecord(task_id=task_id, prompt=prompt, created_at=self._clock())
        with self._lock:
            if task_id in self._tasks:
                raise InternalError(f"Duplicate task id {task_id}")
            self._tasks[task_id] = rec
        return rec.model_copy()

    def get(self, task_id: str) -> TaskRecord | None:
        with self._lock:
            rec = self._tasks.get(task_id)
        return rec.model_copy() if rec is not None else None

    def update(self, task_id: str, mutation: Mutation) -> TaskRecord | None:
        """
        Apply ``mutation`` atomically.

        Returns the stored record after the call (unchanged when the mutation
        returned None), or None when the id is unknown. A record deleted
        concurrently is never brought back.
        """
        with self._lock:
            rec = self._tasks.get(task_id)
            if rec is None:
                return None
            new = mutation(rec)
            if new is not None:
                if new.task_id != task_id:
                    raise InternalError(f"Mutation changed task id {task_id} -> {new.task_id}")
                self._tasks[task_id] = new
                rec = new
        return rec.model_copy()

    def delete(self, task_id: str) -> None:
        with self._lock:
            self._tasks.pop(task_id, None)

    def delete_if(self, task_id: str, predicate: Callable[[TaskRecord], bool]) -> bool:
        with self._lock:
            rec = self._tasks.get(task_id)
            if rec is None or not predicate(rec):
                return False
            del self._tasks[task_id]
        return True

    def for_each(self, visitor: Callable[[TaskRecord], None]) -> None:
        # Visits a snapshot; the visitor may call back into the store.
        with self._lock:
            records = list(self._tasks.values())
        for rec in records:
            visitor(rec)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    def __contains__(self, task_id: str) -> bool:
        with self._lock:
            return task_id in self._tasks
