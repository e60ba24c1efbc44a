"""Approval endpoints — answer tool calls waiting on a human decision."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request

from run_monitor.approvals import ApprovalHub
from run_monitor.schemas.approve import ApprovalRequest, ApprovalResponse, PendingItem

router = APIRouter()
logger = logging.getLogger(__name__)


def _get_hub(request: Request) -> ApprovalHub:
    hub = getattr(request.app.state, "approval_hub", None)
    if hub is None:
        raise HTTPException(status_code=503, detail="Approval hub not available")
    return hub


@router.post("/approve", response_model=ApprovalResponse)
async def approve_tool_call(req: ApprovalRequest, request: Request):
    """Approve or reject a tool call a monitored run is waiting on."""
    hub = _get_hub(request)
    if not hub.resolve(req.tool_call_id, req.approved):
        raise HTTPException(
            status_code=404, detail="No pending approval for this tool call"
        )
    return ApprovalResponse(
        status="approved" if req.approved else "rejected",
        tool_call_id=req.tool_call_id,
    )


@router.get("/pending", response_model=list[PendingItem])
async def list_pending(request: Request):
    """List tool calls awaiting a decision."""
    hub = _get_hub(request)
    return [
        PendingItem(
            tool_call_id=p.call.id,
            tool_name=p.call.name,
            kind=p.call.kind.value,
            server_label=p.call.server_label,
            arguments=p.call.arguments,
            created_at=p.created_at,
        )
        for p in hub.pending()
    ]
