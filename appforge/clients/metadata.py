"""Project number resolution for the predicted service URL.

The numeric project identifier comes from configuration when set, otherwise
from the cloud metadata server (available when running on the platform).
"""

from __future__ import annotations

import logging

import httpx

from appforge.config import AppforgeConfig
from appforge.core.errors import ResolutionError, StepTimeoutError

logger = logging.getLogger(__name__)

NUMERIC_PROJECT_ID_PATH = "/project/numeric-project-id"


def _is_project_number(value: str) -> bool:
    # str.isdigit alone accepts non-ASCII digits such as "²"
    return value.isascii() and value.isdigit()


class ProjectNumberResolver:
    """Returns the numeric project identifier, configured or looked up."""

    def __init__(
        self, config: AppforgeConfig, *, http_client: httpx.Client | None = None
    ) -> None:
        self._config = config
        self._http = http_client or httpx.Client(
            base_url=config.metadata_url,
            timeout=config.request_timeout_seconds,
        )

    def resolve(self) -> str:
        configured = self._config.gcp_project_number.strip()
        if configured:
            if not _is_project_number(configured):
                raise ResolutionError(
                    f"Configured project number {configured!r} is not numeric"
                )
            return configured

        try:
            response = self._http.get(
                NUMERIC_PROJECT_ID_PATH, headers={"Metadata-Flavor": "Google"}
            )
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise StepTimeoutError(f"Metadata lookup timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise ResolutionError(
                "Project number not configured and metadata lookup failed "
                f"(set APPFORGE_GCP_PROJECT_NUMBER): {exc}"
            ) from exc

        number = response.text.strip()
        if not _is_project_number(number):
            raise ResolutionError(f"Metadata server returned {number!r}, not a project number")
        logger.info("Resolved project number from metadata server")
        return number

    def close(self) -> None:
        self._http.close()
