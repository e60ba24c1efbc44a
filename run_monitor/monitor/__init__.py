"""Run monitor — polling/approval state machine for remote agent runs."""

from run_monitor.monitor.errors import (
    MonitorFault,
    NotFound,
    PolicyViolation,
    RunMonitorError,
    ServiceFault,
)
from run_monitor.monitor.machine import MonitorState, RunMonitor, monitor_run
from run_monitor.monitor.models import (
    ErrorDetail,
    MonitorResult,
    PendingToolCall,
    PollingSession,
    RequiredAction,
    RunHandle,
    RunSnapshot,
    RunStatus,
    ToolApprovalDecision,
    ToolKind,
)
from run_monitor.monitor.policies import (
    ApprovalPolicy,
    DenialMode,
    allow_tools,
    approve_all,
    deny_all,
    policy_from_settings,
)
from run_monitor.monitor.service import AgentRunService

__all__ = [
    "AgentRunService",
    "ApprovalPolicy",
    "DenialMode",
    "ErrorDetail",
    "MonitorFault",
    "MonitorResult",
    "MonitorState",
    "NotFound",
    "PendingToolCall",
    "PolicyViolation",
    "PollingSession",
    "RequiredAction",
    "RunHandle",
    "RunMonitor",
    "RunMonitorError",
    "RunSnapshot",
    "RunStatus",
    "ServiceFault",
    "ToolApprovalDecision",
    "ToolKind",
    "allow_tools",
    "approve_all",
    "deny_all",
    "monitor_run",
    "policy_from_settings",
]
