"""Run the MCP sample against a live AI Foundry project.

Usage:
    python scripts/run_sample.py "Please summarize the Cosmos DB Per-Region Per Partition Feature"

Creates an agent with the Microsoft Learn MCP tool, posts the question to a
new thread, monitors the run (approving MCP tool calls), prints the
conversation and deletes the agent and thread again.
"""

import asyncio
import logging
import sys

from run_monitor.clients.agents import AgentsClient, mcp_tool, mcp_tool_resources
from run_monitor.clients.messages import format_transcript
from run_monitor.config import Settings
from run_monitor.monitor import RunMonitor, RunMonitorError, RunStatus, ServiceFault

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

MCP_SERVER_LABEL = "search_mslearn_docs"
MCP_SERVER_URL = "https://learn.microsoft.com/api/mcp"

DEFAULT_QUESTION = "Please summarize the Cosmos DB Per-Region Per Partition Feature"

INSTRUCTIONS = (
    "You are a helpful agent that can use MCP tools to assist users. "
    "Use the available MCP tools to answer questions and perform tasks. "
    "When searching for information, provide comprehensive and accurate "
    "responses based on the official Microsoft documentation."
)


async def main(question: str) -> int:
    settings = Settings()
    missing = settings.missing_required()
    if missing:
        for name in missing:
            logger.error("%s is required", name)
        logger.error("Please set the required environment variables and try again.")
        return 2

    client = AgentsClient(settings)
    agent_id = thread_id = None
    try:
        agent = await client.create_agent(
            model=settings.model_deployment_name,
            name="mslearn-mcp-agent",
            instructions=INSTRUCTIONS,
            tools=[mcp_tool(MCP_SERVER_LABEL, MCP_SERVER_URL)],
        )
        agent_id = agent["id"]
        thread_id = (await client.create_thread())["id"]
        await client.create_message(thread_id, question)

        handle, _ = await client.create_run(
            thread_id, agent_id, tool_resources=mcp_tool_resources(MCP_SERVER_LABEL)
        )
        monitor = RunMonitor.from_settings(client, settings)
        status, error = await monitor.monitor(handle)

        if status is not RunStatus.COMPLETED:
            logger.warning("Run did not complete successfully. Status: %s", status.value)
            if error is not None:
                logger.warning("Error: %s: %s", error.code, error.message)
        print(format_transcript(await client.list_messages(thread_id)))
        return 0 if status is RunStatus.COMPLETED else 1
    except (ServiceFault, RunMonitorError) as e:
        logger.error("Sample failed: %s", e)
        return 1
    finally:
        # Best-effort cleanup
        try:
            if thread_id:
                await client.delete_thread(thread_id)
            if agent_id:
                await client.delete_agent(agent_id)
        except ServiceFault as e:
            logger.warning("Error during cleanup: %s", e)
        await client.close()


if __name__ == "__main__":
    sys.exit(asyncio.run(main(" ".join(sys.argv[1:]) or DEFAULT_QUESTION)))
