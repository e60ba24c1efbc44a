"""In-memory hub for human tool-call approvals.

A monitor configured with ``approval_mode="human"`` uses ``ApprovalHub.decide``
as its approval policy: each pending tool call waits here until someone
resolves it through the /approve endpoint, or the wait times out (deny).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from run_monitor.monitor.models import PendingToolCall

logger = logging.getLogger(__name__)


@dataclass
class PendingApproval:
    call: PendingToolCall
    future: asyncio.Future[bool]
    created_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


class ApprovalHub:
    def __init__(self, timeout: float = 120.0) -> None:
        self.timeout = timeout
        self._pending: dict[str, PendingApproval] = {}

    async def decide(self, call: PendingToolCall) -> bool:
        """Wait for a human decision on ``call``. Unanswered calls are denied."""
        entry = self._pending.get(call.id)
        if entry is None:
            future: asyncio.Future[bool] = asyncio.get_running_loop().create_future()
            entry = PendingApproval(call=call, future=future)
            self._pending[call.id] = entry
            logger.info("Tool call %s (%s) awaiting approval", call.id, call.name)
        try:
            return await asyncio.wait_for(
                asyncio.shield(entry.future), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                "No decision for tool call %s after %.0fs, denying",
                call.id,
                self.timeout,
            )
            return False
        finally:
            self._pending.pop(call.id, None)

    def resolve(self, tool_call_id: str, approved: bool) -> bool:
        """Record a decision. Returns False when no such call is waiting."""
        entry = self._pending.get(tool_call_id)
        if entry is None or entry.future.done():
            return False
        entry.future.set_result(approved)
        logger.info(
            "Tool call %s %s", tool_call_id, "approved" if approved else "rejected"
        )
        return True

    def pending(self) -> list[PendingApproval]:
        return [e for e in self._pending.values() if not e.future.done()]
