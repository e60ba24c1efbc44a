"""Request/response schemas for the approval endpoints."""

from pydantic import BaseModel


class ApprovalRequest(BaseModel):
    tool_call_id: str
    approved: bool


class ApprovalResponse(BaseModel):
    status: str  # "approved", "rejected"
    tool_call_id: str


class PendingItem(BaseModel):
    tool_call_id: str
    tool_name: str
    kind: str
    server_label: str | None = None
    arguments: str | None = None
    created_at: str
