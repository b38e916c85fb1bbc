"""Startup configuration guard — fails hard before any run starts.

The guard validates that every process-wide setting the pipeline needs is
present.  It runs once at Orchestrator construction time and raises
``ConfigurationMissingError`` listing *all* violations, not just the first.

This module is the single enforcement point.  Components should not scatter
``if not config.x`` checks; the guard ensures the system is in a known-good
state at startup.
"""

from __future__ import annotations

import logging

from appforge.config import AppforgeConfig
from appforge.core.errors import ConfigurationMissingError

logger = logging.getLogger(__name__)

# Settings that must be non-empty, mapped to the env var an operator sets.
REQUIRED_SETTINGS: dict[str, str] = {
    "github_token": "APPFORGE_GITHUB_TOKEN",
    "github_user": "APPFORGE_GITHUB_USER",
    "openai_api_key": "APPFORGE_OPENAI_API_KEY",
    "gcp_project_id": "APPFORGE_GCP_PROJECT_ID",
    "gcp_sa_key_file": "APPFORGE_GCP_SA_KEY_FILE",
    "region": "APPFORGE_REGION",
}


def _is_blank(value: object) -> bool:
    if value is None:
        return True
    if hasattr(value, "get_secret_value"):
        value = value.get_secret_value()
    return not str(value).strip()


def enforce_required_settings(config: AppforgeConfig) -> None:
    """Validate all required settings; raise with the complete list if any are absent.

    Constraints enforced
    --------------------
    1. Every key in ``REQUIRED_SETTINGS`` is set to a non-blank value.
    2. The deploy credential file exists and is a regular file.
    """
    missing: list[str] = []

    for field_name, env_var in REQUIRED_SETTINGS.items():
        if _is_blank(getattr(config, field_name, None)):
            missing.append(f"{field_name} (set {env_var})")

    key_file = config.gcp_sa_key_file
    if key_file is not None and not key_file.is_file():
        missing.append(f"gcp_sa_key_file: {key_file} does not exist")

    if missing:
        error = ConfigurationMissingError(missing)
        logger.critical("%s", error)
        raise error

    logger.info("Configuration guard passed.")
