"""Error taxonomy shared by the coordinator components.

ValidationError and NotFoundError are raised at the boundary and never
mutate state. DispatchError and WorkerReportedError are not surfaced to
HTTP callers; their message ends up as a task's failure reason.
"""


class TaskRelayError(Exception):
    status_code = 500


class ValidationError(TaskRelayError):
    status_code = 400


class NotFoundError(TaskRelayError):
    status_code = 404

    def __init__(self, message: str = "Task not found"):
        super().__init__(message)


class DispatchError(TaskRelayError):
    """The task could not be handed to the external worker."""

    def __init__(self, message: str, response_status: int | None = None):
        super().__init__(message)
        self.response_status = response_status


class WorkerReportedError(TaskRelayError):
    """The external worker reported a failed generation."""


class InternalError(TaskRelayError):
    status_code = 500
