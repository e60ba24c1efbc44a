"""Request/response schemas for run monitoring endpoints."""

from pydantic import BaseModel, Field

from run_monitor.monitor.models import ErrorDetail, MonitorResult


class RunError(BaseModel):
    code: str
    message: str
    elapsed_seconds: float | None = None

    @classmethod
    def from_detail(cls, detail: ErrorDetail | None) -> "RunError | None":
        if detail is None:
            return None
        return cls(
            code=detail.code,
            message=detail.message,
            elapsed_seconds=detail.elapsed_seconds,
        )


class MonitorRequest(BaseModel):
    thread_id: str
    run_id: str
    poll_interval_seconds: float | None = Field(default=None, gt=0)
    max_wait_seconds: float | None = Field(default=None, gt=0)


class MonitorResponse(BaseModel):
    thread_id: str
    run_id: str
    status: str
    error: RunError | None = None
    elapsed_seconds: float
    polls: int

    @classmethod
    def from_result(
        cls, thread_id: str, run_id: str, result: MonitorResult
    ) -> "MonitorResponse":
        return cls(
            thread_id=thread_id,
            run_id=run_id,
            status=result.status.value,
            error=RunError.from_detail(result.error),
            elapsed_seconds=round(result.elapsed_seconds, 3),
            polls=result.polls,
        )


class RunItem(BaseModel):
    run_id: str
    thread_id: str
    status: str
    error_code: str | None = None
    error_message: str | None = None
    elapsed_seconds: float = 0.0
    finished_at: str
