"""Request/response schemas for the chat endpoint."""

from pydantic import BaseModel

from run_monitor.schemas.runs import RunError


class ChatRequest(BaseModel):
    message: str
    conversation_id: str | None = None
    agent_id: str | None = None


class ChatResponse(BaseModel):
    response: str
    conversation_id: str
    thread_id: str
    run_id: str
    status: str
    error: RunError | None = None
