"""Azure AI Foundry agents REST client with service-principal token management."""

import logging
from typing import Any, Sequence

import httpx

from run_monitor.config import Settings
from run_monitor.monitor.errors import NotFound, ServiceFault
from run_monitor.monitor.models import (
    ErrorDetail,
    PendingToolCall,
    RequiredAction,
    RunHandle,
    RunSnapshot,
    RunStatus,
    ToolApprovalDecision,
    ToolKind,
)

logger = logging.getLogger(__name__)

_WIRE_STATUS: dict[str, RunStatus] = {status.value: status for status in RunStatus}
# Transient remote status while a cancel request is being processed
_WIRE_STATUS["cancelling"] = RunStatus.IN_PROGRESS

_TOOL_KINDS = {kind.value: kind for kind in ToolKind}

TOOL_APPROVAL_ACTION = "submit_tool_approval"


def _parse_tool_call(raw: dict[str, Any]) -> PendingToolCall:
    kind = _TOOL_KINDS.get(raw.get("type", ""), ToolKind.OTHER)
    name = raw.get("name") or raw.get(raw.get("type", ""), {}).get("name", "")
    return PendingToolCall(
        id=raw["id"],
        kind=kind,
        name=name,
        arguments=raw.get("arguments"),
        server_label=raw.get("server_label"),
    )


def _parse_required_action(raw: dict[str, Any] | None) -> RequiredAction:
    raw = raw or {}
    action_type = raw.get("type", "")
    if action_type != TOOL_APPROVAL_ACTION:
        logger.warning("Unsupported required action %r, nothing to approve", action_type)
        return RequiredAction(tool_calls=(), type=action_type)
    calls = raw.get(TOOL_APPROVAL_ACTION, {}).get("tool_calls", [])
    return RequiredAction(
        tool_calls=tuple(_parse_tool_call(c) for c in calls),
        type=action_type,
    )


def parse_run_snapshot(data: dict[str, Any]) -> RunSnapshot:
    """Convert a run resource into a RunSnapshot.

    Payloads that do not have the expected shape raise ServiceFault.
    """
    try:
        return _parse_run(data)
    except (KeyError, TypeError, AttributeError) as exc:
        raise ServiceFault(f"Malformed run payload: {exc!r}") from exc


def _parse_run(data: dict[str, Any]) -> RunSnapshot:
    raw_status = data.get("status")
    status = _WIRE_STATUS.get(raw_status)  # type: ignore[arg-type]
    if status is None:
        raise ServiceFault(f"Unexpected run status: {raw_status!r}")

    required_action = None
    if status is RunStatus.REQUIRES_ACTION:
        required_action = _parse_required_action(data.get("required_action"))

    last_error = None
    raw_error = data.get("last_error")
    if raw_error:
        last_error = ErrorDetail(
            code=raw_error.get("code") or "unknown",
            message=raw_error.get("message") or "",
        )
    return RunSnapshot(
        status=status, required_action=required_action, last_error=last_error
    )


def _fault_from_response(resp: httpx.Response) -> ServiceFault:
    code = None
    message = resp.text
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        code = body["error"].get("code")
        message = body["error"].get("message") or message
    text = f"{resp.request.method} {resp.request.url.path} returned {resp.status_code}: {message}"
    fault_cls = NotFound if resp.status_code == 404 else ServiceFault
    return fault_cls(text, status_code=resp.status_code, code=code)


def mcp_tool(server_label: str, server_url: str) -> dict[str, Any]:
    """MCP tool definition for create_agent()."""
    return {"type": "mcp", "server_label": server_label, "server_url": server_url}


def mcp_tool_resources(
    server_label: str, require_approval: str = "always"
) -> dict[str, Any]:
    """Per-run MCP tool resources. require_approval is "always" or "never"."""
    return {
        "mcp": [{"server_label": server_label, "require_approval": require_approval}]
    }


class AgentsClient:
    """Async client for the persistent agents API of an AI Foundry project.

    Obtains a bearer token with the client-credentials grant on first use
    and re-authenticates once on 401 (token expiry). HTTP and transport
    errors surface as ServiceFault (NotFound for 404); nothing is retried.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._access_token: str | None = None

        if settings.project_endpoint.startswith("http://"):
            logger.warning("Connecting to the agent service over plain HTTP")
        if not settings.verify_ssl:
            logger.warning(
                "TLS verification disabled — dev only, do NOT use in production"
            )

        self.http = httpx.AsyncClient(
            timeout=settings.request_timeout_seconds,
            verify=settings.verify_ssl,
        )

    # --- OAuth2 ---

    async def authenticate(self) -> None:
        """Client-credentials token request against the Entra ID authority."""
        url = (
            f"{self.settings.authority_host.rstrip('/')}/"
            f"{self.settings.tenant_id}/oauth2/v2.0/token"
        )
        payload = {
            "grant_type": "client_credentials",
            "client_id": self.settings.client_id,
            "client_secret": self.settings.client_secret,
            "scope": self.settings.token_scope,
        }
        resp = await self.http.post(
            url,
            data=payload,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        resp.raise_for_status()
        try:
            self._access_token = resp.json()["access_token"]
        except (ValueError, KeyError, TypeError) as exc:
            raise ServiceFault(
                "Token response has no access_token", status_code=resp.status_code
            ) from exc
        logger.info("Agent service token obtained")

    def _auth_headers(self) -> dict[str, str]:
        if not self._access_token:
            raise RuntimeError("Not authenticated — call authenticate() first")
        return {"Authorization": f"Bearer {self._access_token}"}

    # --- HTTP helpers ---

    def _url(self, path: str) -> str:
        return f"{self.settings.project_endpoint.rstrip('/')}/{path}"

    async def _send(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send a request with auto-retry on 401."""
        if not self._access_token:
            await self.authenticate()
        query = {"api-version": self.settings.agents_api_version, **(params or {})}
        url = self._url(path)
        resp = await self.http.request(
            method, url, headers=self._auth_headers(), json=json, params=query
        )
        if resp.status_code == 401:
            logger.info("Token expired, re-authenticating")
            await self.authenticate()
            resp = await self.http.request(
                method, url, headers=self._auth_headers(), json=json, params=query
            )
        resp.raise_for_status()
        return resp

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        try:
            resp = await self._send(method, path, json=json, params=params)
        except httpx.HTTPStatusError as exc:
            raise _fault_from_response(exc.response) from exc
        except httpx.HTTPError as exc:
            raise ServiceFault(f"{method} {path} failed: {exc}") from exc
        if not resp.content:
            return {}
        try:
            body = resp.json()
        except ValueError as exc:
            raise ServiceFault(
                f"{method} {path} returned a non-JSON body",
                status_code=resp.status_code,
            ) from exc
        if not isinstance(body, dict):
            raise ServiceFault(
                f"{method} {path} returned {type(body).__name__}, expected an object",
                status_code=resp.status_code,
            )
        return body

    # --- agents and threads ---

    async def create_agent(
        self,
        model: str,
        name: str,
        instructions: str,
        tools: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": model,
            "name": name,
            "instructions": instructions,
        }
        if tools:
            payload["tools"] = tools
        agent = await self._request("POST", "assistants", json=payload)
        logger.info("Agent created: %s (%s)", agent.get("name"), agent.get("id"))
        return agent

    async def delete_agent(self, agent_id: str) -> None:
        await self._request("DELETE", f"assistants/{agent_id}")

    async def create_thread(self) -> dict[str, Any]:
        return await self._request("POST", "threads", json={})

    async def delete_thread(self, thread_id: str) -> None:
        await self._request("DELETE", f"threads/{thread_id}")

    async def create_message(
        self, thread_id: str, content: str, role: str = "user"
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"threads/{thread_id}/messages",
            json={"role": role, "content": content},
        )

    async def list_messages(
        self, thread_id: str, order: str = "asc"
    ) -> list[dict[str, Any]]:
        """All messages of a thread, following pagination cursors."""
        messages: list[dict[str, Any]] = []
        params = {"order": order}
        while True:
            page = await self._request(
                "GET", f"threads/{thread_id}/messages", params=params
            )
            messages.extend(page.get("data", []))
            if not page.get("has_more") or not page.get("last_id"):
                return messages
            params = {"order": order, "after": page["last_id"]}

    # --- runs ---

    async def create_run(
        self,
        thread_id: str,
        agent_id: str,
        tool_resources: dict[str, Any] | None = None,
    ) -> tuple[RunHandle, RunSnapshot]:
        payload: dict[str, Any] = {"assistant_id": agent_id}
        if tool_resources:
            payload["tool_resources"] = tool_resources
        run = await self._request("POST", f"threads/{thread_id}/runs", json=payload)
        if not run.get("id"):
            raise ServiceFault(f"Run created on thread {thread_id} has no id")
        handle = RunHandle(thread_id=thread_id, run_id=run["id"])
        logger.info("Run %s created for agent %s", handle, agent_id)
        return handle, parse_run_snapshot(run)

    async def fetch_run_status(self, thread_id: str, run_id: str) -> RunSnapshot:
        run = await self._request("GET", f"threads/{thread_id}/runs/{run_id}")
        return parse_run_snapshot(run)

    async def submit_approvals(
        self,
        thread_id: str,
        run_id: str,
        decisions: Sequence[ToolApprovalDecision],
    ) -> RunSnapshot:
        run = await self._request(
            "POST",
            f"threads/{thread_id}/runs/{run_id}/submit_tool_outputs",
            json={"tool_approvals": [d.to_payload() for d in decisions]},
        )
        return parse_run_snapshot(run)

    async def cancel_run(self, thread_id: str, run_id: str) -> None:
        await self._request("POST", f"threads/{thread_id}/runs/{run_id}/cancel")

    async def close(self) -> None:
        await self.http.aclose()
