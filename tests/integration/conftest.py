"""Live tests run against a real AI Foundry project and create (then delete)
an agent and a thread in it.

They are collected but skipped unless RUN_MONITOR_INTEGRATION=1 is set and
the service principal settings (PROJECT_ENDPOINT, MODEL_DEPLOYMENT_NAME,
TENANT_ID, CLIENT_ID, CLIENT_SECRET) are available from the environment or .env.
"""

import os

import pytest

from run_monitor.config import Settings


def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "integration: talks to a live AI Foundry project with a service principal"
        " (deselect with '-m \"not integration\"')",
    )


def _skip_reason() -> str | None:
    if os.environ.get("RUN_MONITOR_INTEGRATION") != "1":
        return "Set RUN_MONITOR_INTEGRATION=1 to run live agent service tests"
    missing = Settings().missing_required()
    if missing:
        return f"Live agent service tests need {', '.join(missing)}"
    return None


def pytest_collection_modifyitems(config, items):
    live = [item for item in items if "integration" in item.keywords]
    if not live:
        return
    reason = _skip_reason()
    if reason is None:
        return
    for item in live:
        item.add_marker(pytest.mark.skip(reason=reason))
