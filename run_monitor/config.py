"""Run monitor configuration — loaded from environment variables / .env file."""

from typing import Literal

from pydantic_settings import BaseSettings

# Settings a live connection to the agent service cannot do without
REQUIRED_SETTINGS = (
    "project_endpoint",
    "model_deployment_name",
    "tenant_id",
    "client_id",
    "client_secret",
)


class Settings(BaseSettings):
    # Azure AI Foundry project
    project_endpoint: str = ""
    model_deployment_name: str = "gpt-4o"
    agents_api_version: str = "v1"
    agent_id: str = ""

    # Entra ID service principal
    tenant_id: str = ""
    client_id: str = ""
    client_secret: str = ""
    authority_host: str = "https://login.microsoftonline.com"
    token_scope: str = "https://ai.azure.com/.default"

    # Run monitor policy
    poll_interval_seconds: float = 1.0
    max_wait_seconds: float = 300.0
    denial_mode: Literal["omit", "explicit"] = "omit"
    approval_mode: Literal["auto", "human"] = "auto"
    auto_approve_tools: list[str] = ["*"]
    human_approval_timeout_seconds: float = 120.0

    # Transport
    request_timeout_seconds: float = 30.0
    verify_ssl: bool = True

    # Service
    agent_port: int = 8000
    db_path: str = "data/run_monitor.db"
    log_dir: str = "logs"

    model_config = {"env_file": ".env", "extra": "ignore"}

    def missing_required(self) -> list[str]:
        """Env var names of required settings that are empty."""
        return [
            name.upper()
            for name in REQUIRED_SETTINGS
            if not str(getattr(self, name)).strip()
        ]


settings = Settings()
