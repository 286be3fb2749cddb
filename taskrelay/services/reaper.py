from __future__ import annotations

import asyncio
import logging

from ..storage.schema import TaskRecord
from ..storage.store import TaskStore
from .retention import RetentionPolicy

logger = logging.getLogger(__name__)


class Reaper:
    """Periodically evicts records older than the retention horizon, in any state."""

    def __init__(self, store: TaskStore, retention: RetentionPolicy, interval: float = 3600.0):
        self.store = store
        self.retention = retention
        self.interval = interval
        self._task: asyncio.Task | None = None

    def sweep(self) -> int:
        now = self.retention.now()
        expired: list[str] = []

        def visit(rec: TaskRecord) -> None:
            if self.retention.is_expired(rec, now):
                expired.append(rec.task_id)

        self.store.for_each(visit)
        cleaned = sum(
            1 for task_id in expired
            if self.store.delete_if(task_id, lambda r: self.retention.is_expired(r, now))
        )
        if cleaned:
            logger.info("Cleaned up %d old tasks. Active tasks: %d", cleaned, len(self.store))
        return cleaned

    async def run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.sweep()
            except Exception:
                logger.exception("Task sweep failed")

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self.run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
