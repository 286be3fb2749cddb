import logging
from contextlib import asynccontextmanager
from datetime import timedelta

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .config import Settings, settings as default_settings
from .errors import TaskRelayError
from .routers import tasks
from .services.dispatcher import Dispatcher
from .services.reaper import Reaper
from .services.reconciler import Reconciler
from .services.reporter import StatusReporter
from .services.retention import RetentionPolicy
from .storage.schema import utc_now
from .storage.store import TaskStore

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, worker_transport: httpx.AsyncBaseTransport | None = None,
               clock=utc_now) -> FastAPI:
    settings = settings or default_settings

    store = TaskStore(clock=clock)
    retention = RetentionPolicy(timedelta(hours=settings.retention_hours), clock=clock)
    client = httpx.AsyncClient(
        transport=worker_transport,
        timeout=settings.dispatch_timeout_seconds,
        headers={"User-Agent": f"taskrelay/{__version__}"},
    )
    dispatcher = Dispatcher(
        store, client, settings.worker_url, settings.callback_address,
        timeout=settings.dispatch_timeout_seconds, clock=clock,
    )
    reaper = Reaper(store, retention, interval=settings.sweep_interval_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Worker endpoint: %s", settings.worker_url or "<not configured>")
        logger.info("Callback address: %s", settings.callback_address)
        logger.info("Retention: %gh, sweep every %gs", settings.retention_hours, settings.sweep_interval_seconds)
        reaper.start()
        try:
            yield
        finally:
            await reaper.stop()
            await dispatcher.drain()
            await client.aclose()

    app = FastAPI(title="Task Relay API", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.dispatcher = dispatcher
    app.state.reconciler = Reconciler(store, clock=clock)
    app.state.reporter = StatusReporter(store, retention, settings.slow_task_log_seconds)
    app.state.reaper = reaper
    app.include_router(tasks.router)

    @app.exception_handler(TaskRelayError)
    async def task_relay_error(request: Request, exc: TaskRelayError):
        if exc.status_code >= 500:
            logger.error("Internal error on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def bad_request(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        msg = errors[0].get("msg", "Invalid request body") if errors else "Invalid request body"
        return JSONResponse(status_code=400, content={"error": msg})

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        message = "Endpoint not found" if exc.status_code == 404 else str(exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"error": message})

    @app.exception_handler(Exception)
    async def unhandled(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return app


app = create_app()
