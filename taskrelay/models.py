from datetime import datetime
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GenerateRequest(BaseModel):
    # Typed loosely on purpose: the dispatcher owns prompt validation.
    prompt: Any = None


class GenerateResponse(_CamelModel):
    id: str
    status: str
    message: str = "Generation started"


class CallbackRequest(BaseModel):
    # Older worker workflows send taskId/imageData/error.
    id: Any = Field(default=None, validation_alias=AliasChoices("id", "taskId"))
    success: Optional[bool] = None
    result: Any = Field(default=None, validation_alias=AliasChoices("result", "imageData"))
    failure_reason: Any = Field(
        default=None, validation_alias=AliasChoices("failureReason", "error")
    )


class CallbackResponse(BaseModel):
    success: bool = True
    message: str = "Result processed"


class ElapsedTime(BaseModel):
    minutes: int
    seconds: int
    total: int  # milliseconds


class DebugInfo(_CamelModel):
    dispatch_sent: bool
    dispatch_confirmed: bool
    has_worker_ack: bool


class StatusResponse(_CamelModel):
    id: str
    status: str  # pending | processing | completed | error
    result: Optional[str] = None
    failure_reason: Optional[str] = None
    created_at: datetime
    elapsed_time: ElapsedTime
    debug: DebugInfo


class HealthResponse(_CamelModel):
    status: str = "healthy"
    timestamp: datetime
    active_task_count: int
