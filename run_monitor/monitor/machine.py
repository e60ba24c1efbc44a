"""Run monitor — drives a submitted run to a terminal status.

The monitor fetches the run's status immediately, then alternates
sleep → fetch until the service reports a terminal status. Tool-approval
requests are answered through the approval policy, and a run that is still
queued or in progress once ``max_wait`` has elapsed is cancelled with a
single fire-and-forget request.

Service faults are never retried: they abort the loop as MonitorFault.
Caller cancellation (asyncio.CancelledError) propagates from the current
await without touching the remote run.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable

from .errors import MonitorFault, PolicyViolation, ServiceFault
from .models import (
    ErrorDetail,
    MonitorResult,
    PollingSession,
    RunHandle,
    RunStatus,
    ToolApprovalDecision,
)
from .policies import ApprovalPolicy, DenialMode, approve_all, policy_from_settings
from .service import AgentRunService

if TYPE_CHECKING:
    from run_monitor.approvals import ApprovalHub
    from run_monitor.config import Settings

logger = logging.getLogger(__name__)


class MonitorState(str, Enum):
    POLLING = "polling"
    AWAITING_APPROVAL = "awaiting_approval"
    CANCELLING = "cancelling"
    TERMINAL = "terminal"


class RunMonitor:
    """Polls one run at a time; create one monitor() call per handle."""

    def __init__(
        self,
        service: AgentRunService,
        approval_policy: ApprovalPolicy = approve_all,
        *,
        poll_interval: float = 1.0,
        max_wait: float = 300.0,
        denial_mode: DenialMode = DenialMode.OMIT,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.service = service
        self.approval_policy = approval_policy
        self.poll_interval = poll_interval
        self.max_wait = max_wait
        self.denial_mode = DenialMode(denial_mode)
        self._sleep = sleep
        self._clock = clock
        self._handlers = {
            MonitorState.POLLING: self._poll,
            MonitorState.AWAITING_APPROVAL: self._relay_approvals,
            MonitorState.CANCELLING: self._cancel,
        }

    @classmethod
    def from_settings(
        cls,
        service: AgentRunService,
        settings: Settings,
        hub: ApprovalHub | None = None,
        *,
        poll_interval: float | None = None,
        max_wait: float | None = None,
    ) -> RunMonitor:
        return cls(
            service,
            policy_from_settings(settings, hub),
            poll_interval=(
                poll_interval
                if poll_interval is not None
                else settings.poll_interval_seconds
            ),
            max_wait=max_wait if max_wait is not None else settings.max_wait_seconds,
            denial_mode=DenialMode(settings.denial_mode),
        )

    def check_policy(self) -> None:
        """Raise PolicyViolation unless 0 < poll_interval <= max_wait."""
        if self.poll_interval <= 0:
            raise PolicyViolation(
                f"poll_interval must be positive, got {self.poll_interval}"
            )
        if self.max_wait < self.poll_interval:
            raise PolicyViolation(
                f"max_wait ({self.max_wait}s) is shorter than "
                f"poll_interval ({self.poll_interval}s)"
            )

    async def monitor(self, handle: RunHandle) -> MonitorResult:
        """Drive ``handle`` to a terminal status and return the outcome."""
        self.check_policy()
        session = PollingSession(
            handle=handle,
            poll_interval=self.poll_interval,
            max_wait=self.max_wait,
            started_at=self._clock(),
        )
        try:
            await self._fetch(session)
            state = self._next_state(session)
            while state is not MonitorState.TERMINAL:
                logger.debug(
                    "Run %s: %s (status=%s)", handle, state.value, session.status.value
                )
                state = await self._handlers[state](session)
        except asyncio.CancelledError:
            logger.info("Monitoring of run %s abandoned by caller", handle)
            raise
        return self._finish(session)

    # --- state handlers ---

    async def _poll(self, session: PollingSession) -> MonitorState:
        await self._sleep(self.poll_interval)
        await self._fetch(session)
        state = self._next_state(session)
        if state is MonitorState.POLLING:
            if session.elapsed(self._clock()) >= self.max_wait:
                return MonitorState.CANCELLING
        return state

    async def _relay_approvals(self, session: PollingSession) -> MonitorState:
        handle = session.handle
        action = session.snapshot.required_action if session.snapshot else None
        calls = action.tool_calls if action is not None else ()

        decisions: list[ToolApprovalDecision] = []
        for call in calls:
            approved = self.approval_policy(call)
            if inspect.isawaitable(approved):
                approved = await approved
            if approved:
                logger.info(
                    "Approving %s tool call %s: %s", call.kind.value, call.id, call.name
                )
                decisions.append(ToolApprovalDecision(call.id, approve=True))
            elif self.denial_mode is DenialMode.EXPLICIT:
                logger.info("Denying tool call %s: %s", call.id, call.name)
                decisions.append(ToolApprovalDecision(call.id, approve=False))
            else:
                logger.info("Withholding approval for tool call %s: %s", call.id, call.name)

        if decisions:
            try:
                snapshot = await self.service.submit_approvals(
                    handle.thread_id, handle.run_id, decisions
                )
            except ServiceFault as exc:
                raise MonitorFault(
                    f"Submitting approvals for run {handle} failed: {exc}", exc
                ) from exc
            logger.debug(
                "Run %s reports %s after approval submission",
                handle,
                snapshot.status.value,
            )
        return MonitorState.POLLING

    async def _cancel(self, session: PollingSession) -> MonitorState:
        handle = session.handle
        elapsed = session.elapsed(self._clock())
        logger.info(
            "Run %s still %s after %.1fs (max %.1fs), cancelling",
            handle,
            session.status.value,
            elapsed,
            self.max_wait,
        )
        try:
            await self.service.cancel_run(handle.thread_id, handle.run_id)
        except ServiceFault as exc:
            # The run may have reached a terminal status since the last poll.
            logger.warning("Cancel request for run %s failed: %s", handle, exc)
        session.status = RunStatus.CANCELLED
        session.error = ErrorDetail(
            code="timeout",
            message=f"timeout exceeded after {elapsed:.1f}s",
            elapsed_seconds=elapsed,
        )
        return MonitorState.TERMINAL

    # --- helpers ---

    async def _fetch(self, session: PollingSession) -> None:
        handle = session.handle
        try:
            snapshot = await self.service.fetch_run_status(
                handle.thread_id, handle.run_id
            )
        except ServiceFault as exc:
            raise MonitorFault(
                f"Fetching status of run {handle} failed: {exc}", exc
            ) from exc
        session.observe(snapshot)

    @staticmethod
    def _next_state(session: PollingSession) -> MonitorState:
        status = session.status
        if status.is_terminal:
            return MonitorState.TERMINAL
        if status is RunStatus.REQUIRES_ACTION:
            return MonitorState.AWAITING_APPROVAL
        return MonitorState.POLLING

    def _finish(self, session: PollingSession) -> MonitorResult:
        error = session.error
        if error is None and session.snapshot is not None:
            error = session.snapshot.last_error
        if session.status is RunStatus.FAILED and error is None:
            error = ErrorDetail(
                code="run_failed", message="Run failed without error details"
            )
        elapsed = session.elapsed(self._clock())
        logger.info(
            "Run %s finished with status %s after %.1fs",
            session.handle,
            session.status.value,
            elapsed,
        )
        return MonitorResult(
            status=session.status,
            error=error,
            elapsed_seconds=elapsed,
            polls=session.polls,
        )


async def monitor_run(
    service: AgentRunService,
    handle: RunHandle,
    approval_policy: ApprovalPolicy = approve_all,
    poll_interval: float = 1.0,
    max_wait: float = 300.0,
    **kwargs,
) -> MonitorResult:
    """One-shot helper around RunMonitor(...).monitor(handle)."""
    monitor = RunMonitor(
        service,
        approval_policy,
        poll_interval=poll_interval,
        max_wait=max_wait,
        **kwargs,
    )
    return await monitor.monitor(handle)
