from collections.abc import Callable
from datetime import datetime, timedelta

from ..storage.schema import TaskRecord, utc_now


class RetentionPolicy:
    """Single expiry rule used both on read and by the periodic sweep.

    A record expires once its age, counted from ``created_at``, reaches the
    horizon, whatever its status. ``completed_at`` is never earlier than
    ``created_at``, so a finished record is also gone one horizon after
    completion at the latest.
    """

    def __init__(self, horizon: timedelta, clock: Callable[[], datetime] = utc_now):
        self.horizon = horizon
        self.clock = clock

    def now(self) -> datetime:
        return self.clock()

    def is_expired(self, rec: TaskRecord, now: datetime | None = None) -> bool:
        now = now or self.clock()
        return now - rec.created_at >= self.horizon
