from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable
from datetime import datetime

import httpx
import orjson

from ..errors import DispatchError, ValidationError
from ..storage.schema import TaskRecord, mark_dispatched, mark_failed, mark_processing, utc_now
from ..storage.store import TaskStore

logger = logging.getLogger(__name__)


def validate_prompt(prompt: object) -> str:
    if not isinstance(prompt, str) or not prompt.strip():
        raise ValidationError("Prompt is required and must be a non-empty string")
    return prompt.strip()


class Dispatcher:
    """Accepts submissions and hands them to the external worker.

    ``submit`` returns as soon as the record exists; the worker notification
    runs as a separate asyncio task whose outcome is written back to the
    store with a single atomic update.
    """

    def __init__(
        self,
        store: TaskStore,
        client: httpx.AsyncClient,
        worker_url: str | None,
        callback_address: str,
        timeout: float = 30.0,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.client = client
        self.worker_url = worker_url
        self.callback_address = callback_address
        self.timeout = timeout
        self.clock = clock
        self._inflight: set[asyncio.Task] = set()

    def submit(self, prompt: object) -> TaskRecord:
        """Create a pending task and schedule its dispatch. Must run inside an event loop."""
        text = validate_prompt(prompt)
        loop = asyncio.get_running_loop()
        task_id = str(uuid.uuid4())
        rec = self.store.create(task_id, text)
        logger.info('[%s] Accepted generation request for prompt: "%s"', task_id, text)

        job = loop.create_task(self.dispatch(task_id, text))
        self._inflight.add(job)
        job.add_done_callback(self._inflight.discard)
        return rec

    async def dispatch(self, task_id: str, prompt: str) -> TaskRecord | None:
        """Notify the worker and record the outcome. Never raises DispatchError."""
        response_status = None
        try:
            if not self.worker_url:
                raise DispatchError("worker endpoint is not configured")
            self.store.update(task_id, lambda r: mark_dispatched(r, self.clock()))
            logger.info("[%s] Sending to worker: %s", task_id, self.worker_url)
            response_status = await self._notify(task_id, prompt)
        except DispatchError as exc:
            logger.error("[%s] Dispatch failed: %s", task_id, exc)
            reason = f"Failed to start generation: {exc}"
            return self.store.update(
                task_id, lambda r: mark_failed(r, reason, self.clock(), exc.response_status)
            )
        except Exception:
            logger.exception("[%s] Unexpected error while dispatching", task_id)
            return self.store.update(
                task_id,
                lambda r: mark_failed(r, "Failed to start generation: internal error", self.clock()),
            )

        logger.info("[%s] Worker acknowledged, status: %s", task_id, response_status)
        rec = self.store.update(task_id, lambda r: mark_processing(r, response_status))
        if rec is None:
            logger.info("[%s] Task evicted before worker acknowledgment", task_id)
        return rec

    async def _notify(self, task_id: str, prompt: str) -> int:
        body = orjson.dumps({
            "id": task_id,
            "prompt": prompt,
            "callbackAddress": self.callback_address,
        })
        try:
            r = await self.client.post(
                self.worker_url,
                content=body,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
            r.raise_for_status()
        except httpx.TimeoutException as exc:
            raise DispatchError(f"worker did not answer within {self.timeout:g}s") from exc
        except httpx.HTTPStatusError as exc:
            code = exc.response.status_code
            raise DispatchError(f"worker responded with HTTP {code}", response_status=code) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise DispatchError(str(exc) or exc.__class__.__name__) from exc
        return r.status_code

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    async def drain(self) -> None:
        """Wait for every dispatch started so far."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)
