"""Unit tests for SQLite-backed conversation and run persistence."""

import pytest

from run_monitor.monitor import ErrorDetail, MonitorResult, RunHandle, RunStatus
from run_monitor.persistence.store import ConversationRecord


@pytest.mark.asyncio
async def test_create_and_get_conversation(conversation_store):
    """Creating a conversation and retrieving it returns matching data."""
    await conversation_store.upsert_conversation(ConversationRecord(
        conversation_id="conv-1",
        thread_id="thread-1",
        agent_id="asst-1",
        created_at="2026-02-24T00:00:00Z",
    ))
    result = await conversation_store.get_conversation("conv-1")
    assert result is not None
    assert result.thread_id == "thread-1"
    assert result.agent_id == "asst-1"
    assert result.created_at == "2026-02-24T00:00:00Z"


@pytest.mark.asyncio
async def test_get_missing_conversation(conversation_store):
    assert await conversation_store.get_conversation("nonexistent") is None


@pytest.mark.asyncio
async def test_upsert_keeps_created_at(conversation_store):
    await conversation_store.upsert_conversation(ConversationRecord(
        conversation_id="conv-2",
        thread_id="thread-2",
        agent_id="asst-1",
        created_at="2026-02-24T00:00:00Z",
    ))
    await conversation_store.upsert_conversation(ConversationRecord(
        conversation_id="conv-2",
        thread_id="thread-2",
        agent_id="asst-2",
        created_at="2026-03-01T00:00:00Z",
    ))
    result = await conversation_store.get_conversation("conv-2")
    assert result.agent_id == "asst-2"
    assert result.created_at == "2026-02-24T00:00:00Z"


@pytest.mark.asyncio
async def test_record_and_list_runs(conversation_store):
    await conversation_store.record_run(
        RunHandle("thread-1", "run-1"),
        MonitorResult(status=RunStatus.COMPLETED, elapsed_seconds=3.5),
    )
    await conversation_store.record_run(
        RunHandle("thread-1", "run-2"),
        MonitorResult(
            status=RunStatus.CANCELLED,
            error=ErrorDetail("timeout", "timeout exceeded after 300.0s", 300.0),
            elapsed_seconds=300.0,
        ),
    )

    runs = await conversation_store.list_runs()
    assert [r.run_id for r in runs] == ["run-2", "run-1"]
    assert runs[0].status == "cancelled"
    assert runs[0].error_code == "timeout"
    assert runs[1].error_code is None
    assert runs[1].elapsed_seconds == 3.5


@pytest.mark.asyncio
async def test_record_run_overwrites_same_run(conversation_store):
    handle = RunHandle("thread-1", "run-1")
    await conversation_store.record_run(handle, MonitorResult(RunStatus.FAILED))
    await conversation_store.record_run(handle, MonitorResult(RunStatus.COMPLETED))
    runs = await conversation_store.list_runs(limit=10)
    assert len(runs) == 1
    assert runs[0].status == "completed"
