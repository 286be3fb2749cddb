import asyncio

import httpx
import orjson
import pytest

from taskrelay.errors import ValidationError
from taskrelay.services.dispatcher import Dispatcher, validate_prompt
from taskrelay.storage.schema import TaskStatus, mark_completed
from taskrelay.storage.store import TaskStore

WORKER_URL = "http://worker.test/hook"
CALLBACK = "http://relay.test/api/webhook/result"


def run_dispatch(handler, prompt="a red fox", worker_url=WORKER_URL, timeout=30.0):
    """Submit one prompt, check it is pending before dispatch, then let dispatch finish."""
    store = TaskStore()

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            dispatcher = Dispatcher(store, client, worker_url, CALLBACK, timeout=timeout)
            rec = dispatcher.submit(prompt)
            assert rec.status == TaskStatus.PENDING
            assert store.get(rec.task_id).status == TaskStatus.PENDING
            await dispatcher.drain()
            assert dispatcher.inflight == 0
            return store.get(rec.task_id)

    return asyncio.run(scenario())


def test_acknowledged_dispatch_moves_to_processing():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"accepted": True})

    rec = run_dispatch(handler, prompt="  a red fox  ")

    assert rec.status == TaskStatus.PROCESSING
    assert rec.dispatch_confirmed is True
    assert rec.worker_response_status == 200
    assert rec.dispatched_at is not None
    assert rec.prompt == "a red fox"

    assert len(seen) == 1
    assert seen[0].method == "POST"
    assert str(seen[0].url) == WORKER_URL
    assert orjson.loads(seen[0].content) == {
        "id": rec.task_id,
        "prompt": "a red fox",
        "callbackAddress": CALLBACK,
    }


def test_non_success_response_is_dispatch_failure():
    rec = run_dispatch(lambda request: httpx.Response(503))

    assert rec.status == TaskStatus.ERROR
    assert "HTTP 503" in rec.failure_reason
    assert rec.failure_reason.startswith("Failed to start generation")
    assert rec.worker_response_status == 503
    assert rec.dispatch_confirmed is False
    assert rec.completed_at is not None
    assert rec.result is None


def test_timeout_is_dispatch_failure():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    rec = run_dispatch(handler, timeout=5)

    assert rec.status == TaskStatus.ERROR
    assert "did not answer within 5s" in rec.failure_reason
    assert rec.worker_response_status is None


def test_connection_error_is_dispatch_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    rec = run_dispatch(handler)

    assert rec.status == TaskStatus.ERROR
    assert "connection refused" in rec.failure_reason


def test_missing_worker_url_is_dispatch_failure():
    calls = []
    rec = run_dispatch(lambda request: calls.append(request) or httpx.Response(200), worker_url=None)

    assert rec.status == TaskStatus.ERROR
    assert "not configured" in rec.failure_reason
    assert rec.dispatched_at is None
    assert calls == []


def test_late_ack_does_not_touch_terminal_record():
    store = TaskStore()

    async def scenario():
        release = asyncio.Event()

        async def handler(request):
            await release.wait()
            return httpx.Response(200)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            dispatcher = Dispatcher(store, client, WORKER_URL, CALLBACK)
            rec = dispatcher.submit("a red fox")
            await asyncio.sleep(0)
            store.update(rec.task_id, lambda r: mark_completed(r, "data", r.created_at))
            release.set()
            await dispatcher.drain()
            return store.get(rec.task_id)

    rec = asyncio.run(scenario())

    assert rec.status == TaskStatus.COMPLETED
    assert rec.result == "data"
    assert rec.dispatch_confirmed is False


def test_dispatch_after_eviction_is_absorbed():
    store = TaskStore()

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200))) as client:
            dispatcher = Dispatcher(store, client, WORKER_URL, CALLBACK)
            rec = dispatcher.submit("a red fox")
            store.delete(rec.task_id)
            await dispatcher.drain()
            return rec.task_id

    task_id = asyncio.run(scenario())

    assert store.get(task_id) is None
    assert len(store) == 0


def test_ids_are_unique():
    store = TaskStore()

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200))) as client:
            dispatcher = Dispatcher(store, client, WORKER_URL, CALLBACK)
            ids = [dispatcher.submit(f"prompt {i}").task_id for i in range(200)]
            await dispatcher.drain()
            return ids

    ids = asyncio.run(scenario())

    assert len(set(ids)) == len(ids)
    assert len(store) == 200


@pytest.mark.parametrize("prompt", ["", "   ", "\n\t", None, 42, ["a red fox"], {"text": "x"}])
def test_invalid_prompt_rejected_without_record(prompt):
    store = TaskStore()

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200))) as client:
            dispatcher = Dispatcher(store, client, WORKER_URL, CALLBACK)
            with pytest.raises(ValidationError):
                dispatcher.submit(prompt)
            assert dispatcher.inflight == 0

    asyncio.run(scenario())
    assert len(store) == 0


def test_validate_prompt_trims():
    assert validate_prompt("  hello world \n") == "hello world"
