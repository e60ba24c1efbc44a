"""Run monitor FastAPI application with lifespan-managed agent client and store."""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from run_monitor.approvals import ApprovalHub
from run_monitor.clients.agents import AgentsClient
from run_monitor.config import settings
from run_monitor.middleware.timing import RunTimingMiddleware
from run_monitor.monitor import RunMonitor
from run_monitor.persistence.store import ConversationStore
from run_monitor.routes.approve import router as approve_router
from run_monitor.routes.chat import router as chat_router
from run_monitor.routes.health import router as health_router
from run_monitor.routes.runs import router as runs_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the agent client, persistence and run monitor."""
    missing = settings.missing_required()
    if missing:
        logger.warning("Missing configuration: %s", ", ".join(missing))

    client = AgentsClient(settings)

    # Initialize persistence (SQLite for conversations + run outcomes)
    db_dir = os.path.dirname(settings.db_path)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)
    store = ConversationStore(settings.db_path)
    await store.init_db()
    logger.info("SQLite persistence initialized at %s", settings.db_path)

    hub = ApprovalHub(timeout=settings.human_approval_timeout_seconds)
    monitor = RunMonitor.from_settings(client, settings, hub)
    # Fail at startup rather than on the first request
    monitor.check_policy()

    app.state.settings = settings
    app.state.agents_client = client
    app.state.conversation_store = store
    app.state.approval_hub = hub
    app.state.run_monitor = monitor

    logger.info(
        "Run monitor started — poll every %.1fs, max wait %.0fs, approvals %s",
        monitor.poll_interval,
        monitor.max_wait,
        settings.approval_mode,
    )
    yield

    # Cleanup
    await store.close()
    await client.close()
    logger.info("Run monitor shutdown — clients closed")


app = FastAPI(title="Agent Run Monitor", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RunTimingMiddleware)

app.include_router(health_router)
app.include_router(chat_router)
app.include_router(runs_router)
app.include_router(approve_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.agent_port)
