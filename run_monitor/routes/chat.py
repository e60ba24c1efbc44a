"""Chat endpoint — posts a message to an agent thread and monitors the run."""

import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Request

from run_monitor.clients.agents import AgentsClient
from run_monitor.clients.messages import last_assistant_text
from run_monitor.monitor import RunMonitor, RunMonitorError, ServiceFault
from run_monitor.persistence.store import ConversationRecord, ConversationStore
from run_monitor.routes.runs import http_error
from run_monitor.schemas.chat import ChatRequest, ChatResponse
from run_monitor.schemas.runs import RunError

router = APIRouter()

# In-memory fallback (used when no SQLite store is configured, e.g. tests)
_conversations: dict[str, ConversationRecord] = {}


def get_conversations() -> dict[str, ConversationRecord]:
    """Accessor for the in-memory conversation map (test compatibility)."""
    return _conversations


def _get_store(request: Request) -> ConversationStore | None:
    """Get the SQLite conversation store from app state, if available."""
    return getattr(request.app.state, "conversation_store", None)


async def _load_conversation(
    store: ConversationStore | None, conversation_id: str
) -> ConversationRecord | None:
    if store:
        return await store.get_conversation(conversation_id)
    return _conversations.get(conversation_id)


async def _save_conversation(
    store: ConversationStore | None, record: ConversationRecord
) -> None:
    if store:
        await store.upsert_conversation(record)
    else:
        _conversations[record.conversation_id] = record


@router.post("/chat", response_model=ChatResponse)
async def chat(req: ChatRequest, request: Request):
    """Send a user message through the agent and wait for its reply."""
    client: AgentsClient = request.app.state.agents_client
    monitor: RunMonitor = request.app.state.run_monitor
    store = _get_store(request)
    conversation_id = req.conversation_id or str(uuid.uuid4())

    record = await _load_conversation(store, conversation_id)
    agent_id = (
        req.agent_id
        or (record.agent_id if record else "")
        or request.app.state.settings.agent_id
    )
    if not agent_id:
        raise HTTPException(
            status_code=400,
            detail="No agent_id given and no default AGENT_ID configured",
        )

    try:
        if record is None:
            thread = await client.create_thread()
            record = ConversationRecord(
                conversation_id=conversation_id,
                thread_id=thread["id"],
                agent_id=agent_id,
                created_at=datetime.now(timezone.utc).isoformat(),
            )
        record.agent_id = agent_id
        await _save_conversation(store, record)

        await client.create_message(record.thread_id, req.message)
        handle, _ = await client.create_run(record.thread_id, agent_id)
        result = await monitor.monitor(handle)
        if store:
            await store.record_run(handle, result)

        messages = await client.list_messages(record.thread_id)
    except (ServiceFault, RunMonitorError) as exc:
        raise http_error(exc) from exc

    return ChatResponse(
        response=last_assistant_text(messages) if result.succeeded else "",
        conversation_id=conversation_id,
        thread_id=handle.thread_id,
        run_id=handle.run_id,
        status=result.status.value,
        error=RunError.from_detail(result.error),
    )
