"""
Port definition for the remote agent-run service.
"""

from __future__ import annotations

from typing import Protocol, Sequence

from .models import RunSnapshot, ToolApprovalDecision


class AgentRunService(Protocol):
    async def fetch_run_status(self, thread_id: str, run_id: str) -> RunSnapshot: ...

    async def submit_approvals(
        self,
        thread_id: str,
        run_id: str,
        decisions: Sequence[ToolApprovalDecision],
    ) -> RunSnapshot: ...

    async def cancel_run(self, thread_id: str, run_id: str) -> None: ...


__all__ = ["AgentRunService"]
