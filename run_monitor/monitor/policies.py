"""Approval policies — decide which pending tool calls the monitor approves."""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Iterable, Union

from .models import PendingToolCall

if TYPE_CHECKING:
    from run_monitor.approvals import ApprovalHub
    from run_monitor.config import Settings

logger = logging.getLogger(__name__)

ApprovalPolicy = Callable[[PendingToolCall], Union[bool, Awaitable[bool]]]

WILDCARD = "*"


class DenialMode(str, Enum):
    """How denied calls are reported back to the service.

    OMIT leaves denied calls out of the submission; EXPLICIT sends them
    with ``approve=False``.
    """

    OMIT = "omit"
    EXPLICIT = "explicit"


def approve_all(call: PendingToolCall) -> bool:
    return True


def deny_all(call: PendingToolCall) -> bool:
    return False


def allow_tools(names: Iterable[str]) -> ApprovalPolicy:
    """Approve calls whose tool name (or MCP server label) is in ``names``."""
    allowed = frozenset(names)
    if WILDCARD in allowed:
        return approve_all

    def policy(call: PendingToolCall) -> bool:
        approved = call.name in allowed or (
            call.server_label is not None and call.server_label in allowed
        )
        if not approved:
            logger.info("Tool call %s (%s) not in allow list", call.id, call.name)
        return approved

    return policy


def policy_from_settings(
    settings: Settings, hub: ApprovalHub | None = None
) -> ApprovalPolicy:
    """Build the configured policy. ``approval_mode="human"`` requires a hub."""
    if settings.approval_mode == "human":
        if hub is None:
            raise ValueError("approval_mode 'human' requires an ApprovalHub")
        return hub.decide
    return allow_tools(settings.auto_approve_tools)
