from fastapi import APIRouter, Depends, Request
from ..models import (
    CallbackRequest, CallbackResponse, GenerateRequest, GenerateResponse,
    HealthResponse, StatusResponse,
)
from ..services.dispatcher import Dispatcher
from ..services.reconciler import Reconciler
from ..services.reporter import StatusReporter
from ..storage.schema import utc_now
from ..storage.store import TaskStore

router = APIRouter(prefix="/api")


def get_store(request: Request) -> TaskStore:
    return request.app.state.store

def get_dispatcher(request: Request) -> Dispatcher:
    return request.app.state.dispatcher

def get_reconciler(request: Request) -> Reconciler:
    return request.app.state.reconciler

def get_reporter(request: Request) -> StatusReporter:
    return request.app.state.reporter


@router.post("/generate", response_model=GenerateResponse)
async def generate(payload: GenerateRequest, dispatcher: Dispatcher = Depends(get_dispatcher)):
    rec = dispatcher.submit(payload.prompt)
    return GenerateResponse(id=rec.task_id, status=rec.status.value)

@router.get("/status/{task_id}", response_model=StatusResponse, response_model_exclude_none=True)
async def get_status(task_id: str, reporter: StatusReporter = Depends(get_reporter)):
    return reporter.report(task_id)

@router.post("/webhook/result", response_model=CallbackResponse)
async def worker_result(payload: CallbackRequest, reconciler: Reconciler = Depends(get_reconciler)):
    reconciler.apply(payload)
    return CallbackResponse()

@router.get("/health", response_model=HealthResponse)
async def health(store: TaskStore = Depends(get_store)):
    return HealthResponse(timestamp=utc_now(), active_task_count=len(store))
