"""Process-wide configuration — env-driven, resolved once at startup.

Centralized config using pydantic-settings.  Reads from a .env file and
APPFORGE_* environment variables.  The object is frozen: build it once and
pass it into the Orchestrator; components never read the environment
themselves.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppforgeConfig(BaseSettings):
    """Provisioning configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export APPFORGE_GITHUB_TOKEN=ghp_...
        export APPFORGE_GITHUB_USER=octocat
        export APPFORGE_GCP_PROJECT_ID=my-project
        export APPFORGE_REGION=us-central1

    Or via .env file::

        APPFORGE_OPENAI_API_KEY=sk-...
        APPFORGE_GCP_SA_KEY_FILE=/secrets/sa-key.b64
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="APPFORGE_",
        env_file_encoding="utf-8",
        frozen=True,
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"

    # Source hosting
    github_token: SecretStr = SecretStr("")
    github_user: str = ""
    github_org: str = ""  # create repositories under this org instead of the user
    github_api_url: str = "https://api.github.com"
    repo_private: bool = False
    default_branch: str = "main"
    commit_author_name: str = "Appforge Bot"
    commit_author_email: str = "appforge-bot@users.noreply.github.com"

    # Completion service (OpenAI-compatible chat completions)
    openai_api_key: SecretStr = SecretStr("")
    completion_base_url: str = "https://api.openai.com/v1"
    completion_model: str = "gpt-4o"
    completion_temperature: float = 0.7
    completion_max_tokens: int = 2048

    # Cloud deployment target
    gcp_project_id: str = ""
    gcp_project_number: str = ""  # looked up from metadata_url when empty
    gcp_sa_key_file: Path | None = None
    region: str = "asia-northeast1"
    platform_domain: str = "run.app"
    metadata_url: str = "http://metadata.google.internal/computeMetadata/v1"

    # CI wiring
    deploy_secret_name: str = "GCP_SA_KEY"
    workflow_file: str = "deploy.yml"
    trigger_mode: Literal["dispatch", "push"] = "dispatch"
    propagation_delay_seconds: float = 3.0

    # Bounds on every suspension point
    request_timeout_seconds: float = 30.0
    git_timeout_seconds: float = 120.0

    # Local storage
    workspace_root: Path = Path(".appforge/workspaces")
    ledger_path: Path = Path(".appforge/ledger.db")

    @property
    def is_production(self) -> bool:
        """Whether running in production mode."""
        return self.environment == "production"

    @property
    def repository_owner(self) -> str:
        """Account that owns created repositories."""
        return self.github_org or self.github_user
