"""Fault taxonomy for the agent service and the run monitor."""

from __future__ import annotations


class ServiceFault(Exception):
    """Transport or remote-service error from the agent run service."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class NotFound(ServiceFault):
    """The thread or run referenced by a handle is unknown to the service."""


class RunMonitorError(Exception):
    """Base for errors meaning the monitor could not complete its job."""


class MonitorFault(RunMonitorError):
    """A ServiceFault aborted monitoring. The cause is kept on ``fault``."""

    def __init__(self, message: str, fault: ServiceFault) -> None:
        super().__init__(message)
        self.fault = fault


class PolicyViolation(RunMonitorError, ValueError):
    """Invalid polling policy (non-positive interval or max_wait < interval)."""
