"""Run monitor data model — handles, statuses, pending tool calls, results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator


class RunStatus(str, Enum):
    """Lifecycle status of a remote run. Values are the service's wire strings."""

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    REQUIRES_ACTION = "requires_action"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES


_TERMINAL_STATUSES = frozenset({
    RunStatus.COMPLETED,
    RunStatus.FAILED,
    RunStatus.CANCELLED,
    RunStatus.EXPIRED,
})


class ToolKind(str, Enum):
    MCP = "mcp"
    FUNCTION = "function"
    OTHER = "other"


@dataclass(frozen=True)
class RunHandle:
    """Identifies a run accepted by the agent service."""

    thread_id: str
    run_id: str

    def __str__(self) -> str:
        return f"{self.thread_id}/{self.run_id}"


@dataclass(frozen=True)
class PendingToolCall:
    id: str
    kind: ToolKind
    name: str
    arguments: str | None = None
    server_label: str | None = None


@dataclass(frozen=True)
class RequiredAction:
    tool_calls: tuple[PendingToolCall, ...] = ()
    type: str = "submit_tool_approval"


@dataclass(frozen=True)
class ToolApprovalDecision:
    tool_call_id: str
    approve: bool

    def to_payload(self) -> dict[str, Any]:
        return {"tool_call_id": self.tool_call_id, "approve": self.approve}


@dataclass(frozen=True)
class ErrorDetail:
    code: str
    message: str
    elapsed_seconds: float | None = None


@dataclass(frozen=True)
class RunSnapshot:
    """One observation of a run's status."""

    status: RunStatus
    required_action: RequiredAction | None = None
    last_error: ErrorDetail | None = None


@dataclass
class PollingSession:
    """Working state of a single monitor() call. Never persisted."""

    handle: RunHandle
    poll_interval: float
    max_wait: float
    started_at: float
    status: RunStatus | None = None
    snapshot: RunSnapshot | None = None
    error: ErrorDetail | None = None
    polls: int = 0

    def observe(self, snapshot: RunSnapshot) -> None:
        self.snapshot = snapshot
        self.status = snapshot.status
        self.polls += 1

    def elapsed(self, now: float) -> float:
        return now - self.started_at


@dataclass(frozen=True)
class MonitorResult:
    """Terminal outcome of a monitored run.

    Unpacks as ``(status, error)`` so callers can write
    ``status, error = await monitor.monitor(handle)``.
    """

    status: RunStatus
    error: ErrorDetail | None = None
    elapsed_seconds: float = 0.0
    polls: int = field(default=0, compare=False)

    def __iter__(self) -> Iterator[Any]:
        yield self.status
        yield self.error

    @property
    def succeeded(self) -> bool:
        return self.status is RunStatus.COMPLETED
