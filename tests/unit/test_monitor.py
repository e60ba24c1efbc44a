"""Unit tests for the run monitor state machine."""

import asyncio

import pytest

from run_doubles import StubRunService, approval_snapshot, snapshot
from run_monitor.monitor import (
    DenialMode,
    ErrorDetail,
    MonitorFault,
    NotFound,
    PolicyViolation,
    RunHandle,
    RunMonitor,
    RunStatus,
    ServiceFault,
    ToolApprovalDecision,
    approve_all,
    deny_all,
    monitor_run,
)

HANDLE = RunHandle(thread_id="thread-1", run_id="run-1")


def _monitor(service, clock, policy=approve_all, **kwargs):
    kwargs.setdefault("poll_interval", 1.0)
    kwargs.setdefault("max_wait", 60.0)
    return RunMonitor(
        service, policy, sleep=clock.sleep, clock=clock, **kwargs
    )


# ---------------------------------------------------------------------------
# Terminal convergence
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_polls_until_terminal_and_stops(clock):
    service = StubRunService([
        snapshot(RunStatus.QUEUED),
        snapshot(RunStatus.IN_PROGRESS),
        snapshot(RunStatus.IN_PROGRESS),
        snapshot(RunStatus.COMPLETED),
        snapshot(RunStatus.IN_PROGRESS),  # never fetched
    ])
    result = await _monitor(service, clock).monitor(HANDLE)

    assert result.status is RunStatus.COMPLETED
    assert result.error is None
    assert service.ops() == ["fetch"] * 4
    assert clock.sleeps == [1.0, 1.0, 1.0]
    assert result.polls == 4


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "terminal", [RunStatus.CANCELLED, RunStatus.EXPIRED, RunStatus.COMPLETED]
)
async def test_every_terminal_status_is_returned(clock, terminal):
    service = StubRunService([snapshot(RunStatus.IN_PROGRESS), snapshot(terminal)])
    status, error = await _monitor(service, clock).monitor(HANDLE)
    assert status is terminal
    assert error is None
    assert "cancel" not in service.ops()


@pytest.mark.asyncio
async def test_immediate_terminal_short_circuits(clock):
    """A terminal first fetch returns with no sleep and no further fetches."""
    service = StubRunService([snapshot(RunStatus.COMPLETED)])
    result = await _monitor(service, clock).monitor(HANDLE)

    assert result.status is RunStatus.COMPLETED
    assert clock.sleeps == []
    assert service.ops() == ["fetch"]


@pytest.mark.asyncio
async def test_fetches_use_the_handle(clock):
    service = StubRunService([snapshot(RunStatus.COMPLETED)])
    await _monitor(service, clock).monitor(HANDLE)
    assert service.calls == [("fetch", "thread-1", "run-1")]


# ---------------------------------------------------------------------------
# Remote failure
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_failed_run_returns_remote_error(clock):
    error = ErrorDetail(code="rate_limit_exceeded", message="Too many requests")
    service = StubRunService([
        snapshot(RunStatus.IN_PROGRESS),
        snapshot(RunStatus.FAILED, last_error=error),
    ])
    status, detail = await _monitor(service, clock).monitor(HANDLE)
    assert status is RunStatus.FAILED
    assert detail == error


@pytest.mark.asyncio
async def test_failed_run_without_error_gets_placeholder(clock):
    service = StubRunService([snapshot(RunStatus.FAILED)])
    status, detail = await _monitor(service, clock).monitor(HANDLE)
    assert status is RunStatus.FAILED
    assert detail.code == "run_failed"


# ---------------------------------------------------------------------------
# Timeout enforcement
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_timeout_cancels_once(clock):
    """max_wait = 2 × poll_interval with a run stuck in progress."""
    service = StubRunService([snapshot(RunStatus.IN_PROGRESS)])
    result = await _monitor(
        service, clock, poll_interval=1.0, max_wait=2.0
    ).monitor(HANDLE)

    assert result.status is RunStatus.CANCELLED
    assert result.error.code == "timeout"
    assert result.error.elapsed_seconds == pytest.approx(2.0)
    assert "timeout exceeded" in result.error.message
    assert service.ops() == ["fetch", "fetch", "fetch", "cancel"]
    assert clock.sleeps == [1.0, 1.0]


@pytest.mark.asyncio
async def test_timeout_applies_to_queued_runs(clock):
    service = StubRunService([snapshot(RunStatus.QUEUED)])
    result = await _monitor(
        service, clock, poll_interval=1.0, max_wait=3.0
    ).monitor(HANDLE)
    assert result.status is RunStatus.CANCELLED
    assert service.ops().count("cancel") == 1


@pytest.mark.asyncio
async def test_cancel_fault_is_tolerated(clock):
    """A cancel racing with a terminal transition still reports the timeout."""
    service = StubRunService(
        [snapshot(RunStatus.IN_PROGRESS)],
        cancel_error=ServiceFault("run already completed", status_code=400),
    )
    result = await _monitor(
        service, clock, poll_interval=1.0, max_wait=1.0
    ).monitor(HANDLE)
    assert result.status is RunStatus.CANCELLED
    assert result.error.code == "timeout"


@pytest.mark.asyncio
async def test_no_timeout_check_before_first_sleep(clock):
    """The immediate fetch never triggers cancellation, even with max_wait == interval."""
    service = StubRunService([
        snapshot(RunStatus.IN_PROGRESS),
        snapshot(RunStatus.COMPLETED),
    ])
    result = await _monitor(
        service, clock, poll_interval=1.0, max_wait=1.0
    ).monitor(HANDLE)
    assert result.status is RunStatus.COMPLETED
    assert "cancel" not in service.ops()


# ---------------------------------------------------------------------------
# Approval relay
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_relays_only_approved_calls(clock):
    """Calls #1 and #3 approved, #2 denied and omitted."""
    service = StubRunService([
        approval_snapshot("search_docs", "delete_docs", "fetch_docs"),
        snapshot(RunStatus.COMPLETED),
    ])

    def policy(call):
        return call.id in {"call-1", "call-3"}

    result = await _monitor(service, clock, policy).monitor(HANDLE)

    assert result.status is RunStatus.COMPLETED
    assert service.submissions() == [[
        ToolApprovalDecision("call-1", approve=True),
        ToolApprovalDecision("call-3", approve=True),
    ]]
    assert service.ops() == ["fetch", "submit", "fetch"]


@pytest.mark.asyncio
async def test_explicit_denial_mode_sends_deny_entries(clock):
    service = StubRunService([
        approval_snapshot("search_docs", "delete_docs", "fetch_docs"),
        snapshot(RunStatus.COMPLETED),
    ])

    def policy(call):
        return call.name != "delete_docs"

    await _monitor(
        service, clock, policy, denial_mode=DenialMode.EXPLICIT
    ).monitor(HANDLE)

    assert service.submissions() == [[
        ToolApprovalDecision("call-1", approve=True),
        ToolApprovalDecision("call-2", approve=False),
        ToolApprovalDecision("call-3", approve=True),
    ]]


@pytest.mark.asyncio
async def test_all_denied_in_omit_mode_submits_nothing(clock):
    service = StubRunService([
        approval_snapshot("delete_docs"),
        snapshot(RunStatus.EXPIRED),
    ])
    result = await _monitor(service, clock, deny_all).monitor(HANDLE)
    assert result.status is RunStatus.EXPIRED
    assert "submit" not in service.ops()


@pytest.mark.asyncio
async def test_empty_required_action_is_not_submitted(clock):
    service = StubRunService([
        approval_snapshot(),
        snapshot(RunStatus.COMPLETED),
    ])
    await _monitor(service, clock).monitor(HANDLE)
    assert "submit" not in service.ops()


@pytest.mark.asyncio
async def test_repeated_batches_are_not_deduplicated(clock):
    service = StubRunService([
        approval_snapshot("search_docs"),
        approval_snapshot("search_docs"),
        snapshot(RunStatus.COMPLETED),
    ])
    await _monitor(service, clock).monitor(HANDLE)
    assert len(service.submissions()) == 2


@pytest.mark.asyncio
async def test_requires_action_after_polling(clock):
    service = StubRunService([
        snapshot(RunStatus.IN_PROGRESS),
        approval_snapshot("search_docs"),
        snapshot(RunStatus.IN_PROGRESS),
        snapshot(RunStatus.COMPLETED),
    ])
    result = await _monitor(service, clock).monitor(HANDLE)
    assert result.status is RunStatus.COMPLETED
    assert service.ops() == ["fetch", "fetch", "submit", "fetch", "fetch"]


@pytest.mark.asyncio
async def test_async_policy_is_awaited(clock):
    service = StubRunService([
        approval_snapshot("search_docs"),
        snapshot(RunStatus.COMPLETED),
    ])

    async def policy(call):
        await asyncio.sleep(0)
        return True

    await _monitor(service, clock, policy).monitor(HANDLE)
    assert service.submissions() == [[ToolApprovalDecision("call-1", approve=True)]]


@pytest.mark.asyncio
async def test_submit_response_does_not_skip_polling(clock):
    """Polling resumes after submission even if the submit response is terminal."""
    service = StubRunService(
        [approval_snapshot("search_docs"), snapshot(RunStatus.COMPLETED)],
        submit_response=snapshot(RunStatus.COMPLETED),
    )
    await _monitor(service, clock).monitor(HANDLE)
    assert service.ops() == ["fetch", "submit", "fetch"]
    assert clock.sleeps == [1.0]


# ---------------------------------------------------------------------------
# Faults
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_fetch_fault_propagates_without_cancel(clock):
    fault = ServiceFault("connection reset")
    service = StubRunService([snapshot(RunStatus.IN_PROGRESS), fault])

    with pytest.raises(MonitorFault) as exc_info:
        await _monitor(service, clock).monitor(HANDLE)

    assert exc_info.value.fault is fault
    assert exc_info.value.__cause__ is fault
    assert service.ops() == ["fetch", "fetch"]


@pytest.mark.asyncio
async def test_not_found_is_a_monitor_fault(clock):
    service = StubRunService([NotFound("no such run", status_code=404)])
    with pytest.raises(MonitorFault) as exc_info:
        await _monitor(service, clock).monitor(HANDLE)
    assert isinstance(exc_info.value.fault, NotFound)
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_submit_fault_aborts_loop(clock):
    service = StubRunService(
        [approval_snapshot("search_docs"), snapshot(RunStatus.COMPLETED)],
        submit_error=ServiceFault("tool call already resolved", status_code=400),
    )
    with pytest.raises(MonitorFault):
        await _monitor(service, clock).monitor(HANDLE)
    assert service.ops() == ["fetch", "submit"]


# ---------------------------------------------------------------------------
# Policy violations and caller cancellation
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_max_wait_shorter_than_interval_is_rejected(clock):
    service = StubRunService([snapshot(RunStatus.COMPLETED)])
    with pytest.raises(PolicyViolation):
        await _monitor(
            service, clock, poll_interval=1.0, max_wait=0.5
        ).monitor(HANDLE)
    assert service.calls == []


@pytest.mark.asyncio
async def test_non_positive_interval_is_rejected(clock):
    service = StubRunService([snapshot(RunStatus.COMPLETED)])
    with pytest.raises(PolicyViolation):
        await _monitor(service, clock, poll_interval=0).monitor(HANDLE)
    assert service.calls == []


@pytest.mark.asyncio
async def test_caller_cancellation_does_not_cancel_run():
    service = StubRunService([snapshot(RunStatus.IN_PROGRESS)])

    async def cancelled_sleep(seconds):
        raise asyncio.CancelledError

    monitor = RunMonitor(
        service, poll_interval=1.0, max_wait=2.0, sleep=cancelled_sleep
    )
    with pytest.raises(asyncio.CancelledError):
        await monitor.monitor(HANDLE)
    assert service.ops() == ["fetch"]


@pytest.mark.asyncio
async def test_monitor_run_helper(clock):
    service = StubRunService([snapshot(RunStatus.COMPLETED)])
    result = await monitor_run(
        service,
        HANDLE,
        approve_all,
        poll_interval=0.5,
        max_wait=5.0,
        sleep=clock.sleep,
        clock=clock,
    )
    assert result.succeeded
