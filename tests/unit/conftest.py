"""Shared test fixtures for run monitor unit tests."""

import os
import tempfile

import pytest

from run_doubles import FakeClock
from run_monitor.persistence.store import ConversationStore


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def conversation_store():
    """Temporary SQLite-backed ConversationStore for tests."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name
    store = ConversationStore(db_path)
    await store.init_db()
    yield store
    await store.close()
    os.unlink(db_path)
