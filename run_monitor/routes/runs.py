"""Run endpoints — monitor an existing run and list recorded outcomes."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query, Request

from run_monitor.monitor import (
    MonitorFault,
    NotFound,
    PolicyViolation,
    RunHandle,
    RunMonitor,
)
from run_monitor.persistence.store import ConversationStore
from run_monitor.schemas.runs import MonitorRequest, MonitorResponse, RunItem

router = APIRouter()
logger = logging.getLogger(__name__)


def http_error(exc: Exception) -> HTTPException:
    """Map monitor and service faults onto HTTP errors."""
    if isinstance(exc, PolicyViolation):
        return HTTPException(status_code=422, detail=str(exc))
    fault = exc.fault if isinstance(exc, MonitorFault) else exc
    if isinstance(fault, NotFound):
        return HTTPException(status_code=404, detail=str(exc))
    logger.warning("Agent service fault: %s", exc)
    return HTTPException(status_code=502, detail=str(exc))


def _get_store(request: Request) -> ConversationStore | None:
    return getattr(request.app.state, "conversation_store", None)


def _get_monitor(request: Request, req: MonitorRequest) -> RunMonitor:
    monitor: RunMonitor = request.app.state.run_monitor
    if req.poll_interval_seconds is None and req.max_wait_seconds is None:
        return monitor
    return RunMonitor(
        monitor.service,
        monitor.approval_policy,
        poll_interval=req.poll_interval_seconds or monitor.poll_interval,
        max_wait=req.max_wait_seconds or monitor.max_wait,
        denial_mode=monitor.denial_mode,
    )


@router.post("/runs/monitor", response_model=MonitorResponse)
async def monitor_existing_run(req: MonitorRequest, request: Request):
    """Drive an already-created run to a terminal status."""
    monitor = _get_monitor(request, req)
    handle = RunHandle(thread_id=req.thread_id, run_id=req.run_id)
    try:
        result = await monitor.monitor(handle)
    except (MonitorFault, PolicyViolation) as exc:
        raise http_error(exc) from exc

    store = _get_store(request)
    if store:
        await store.record_run(handle, result)
    return MonitorResponse.from_result(handle.thread_id, handle.run_id, result)


@router.get("/runs", response_model=list[RunItem])
async def list_runs(request: Request, limit: int = Query(default=50, ge=1, le=500)):
    """Recently monitored runs, newest first."""
    store = _get_store(request)
    if store is None:
        raise HTTPException(status_code=503, detail="Conversation store not available")
    records = await store.list_runs(limit)
    return [
        RunItem(
            run_id=r.run_id,
            thread_id=r.thread_id,
            status=r.status,
            error_code=r.error_code,
            error_message=r.error_message,
            elapsed_seconds=r.elapsed_seconds,
            finished_at=r.finished_at,
        )
        for r in records
    ]
