"""Deploy Trigger — start the CI pipeline and predict the service URL.

The orchestrator never waits for the deploy.  The URL it reports is built
from the slug, the numeric project identifier and the region; it is valid
only if the asynchronous build and deploy succeed.
"""

from __future__ import annotations

import logging

from appforge.clients.github import GitHubApiError, GitHubClient
from appforge.clients.metadata import ProjectNumberResolver
from appforge.config import AppforgeConfig
from appforge.models.provisioning import AppSlug, RepositoryHandle
from appforge.core.errors import DispatchError

logger = logging.getLogger(__name__)


def build_service_url(
    slug: AppSlug, project_number: str, region: str, platform_domain: str
) -> str:
    """``https://{slug}-{project_number}.{region}.{platform_domain}``."""
    return f"https://{slug.name}-{project_number}.{region}.{platform_domain}"


class DeployTrigger:
    """Dispatches the deploy workflow and resolves the predicted URL."""

    def __init__(
        self,
        github: GitHubClient,
        resolver: ProjectNumberResolver,
        config: AppforgeConfig,
    ) -> None:
        self._github = github
        self._resolver = resolver
        self._config = config

    def dispatch(self, handle: RepositoryHandle) -> bool:
        """Trigger the workflow on the default branch.

        Returns ``False`` without calling the API in ``push`` trigger mode,
        where the workflow push itself started the pipeline.
        """
        if self._config.trigger_mode == "push":
            logger.info("Deploy triggered by push to %s; no dispatch sent", handle.full_name)
            return False

        try:
            self._github.dispatch_workflow(
                handle.owner,
                handle.name,
                self._config.workflow_file,
                ref=handle.default_branch,
            )
        except GitHubApiError as exc:
            raise DispatchError(
                f"Dispatch of {self._config.workflow_file} on {handle.full_name} "
                f"was rejected: {exc}"
            ) from exc
        logger.info("Dispatched %s on %s", self._config.workflow_file, handle.full_name)
        return True

    def resolve_service_url(self, slug: AppSlug) -> str:
        project_number = self._resolver.resolve()
        return build_service_url(
            slug, project_number, self._config.region, self._config.platform_domain
        )
