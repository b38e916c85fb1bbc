"""Repository Provisioner — create the remote repository and push workspaces.

The repository is named by ``AppSlug.name``, so the image tag and service
name built from the same slug always agree with it.  Creation never retries
under another name: a name clash is a ``NameConflictError`` and the caller
starts a new run with a fresh suffix.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from urllib.parse import urlsplit, urlunsplit

from appforge.clients.git import GitRunner
from appforge.clients.github import GitHubApiError, GitHubClient
from appforge.config import AppforgeConfig
from appforge.core.errors import NameConflictError, RepositoryCreationError
from appforge.models.provisioning import AppSlug, RepositoryHandle, Workspace

logger = logging.getLogger(__name__)


def _is_name_conflict(error: GitHubApiError) -> bool:
    return error.status_code == 422 and any(
        "already exists" in message.lower() for message in error.error_messages
    )


def authenticated_remote_url(clone_url: str, token: str) -> str:
    """Embed *token* in an https clone URL for non-interactive pushes."""
    parts = urlsplit(clone_url)
    if parts.scheme != "https" or not token:
        return clone_url
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    return urlunsplit(parts._replace(netloc=f"x-access-token:{token}@{host}"))


class RepositoryProvisioner:
    """Creates the run's repository and pushes staged files to it.

    Parameters
    ----------
    github:
        Source-hosting API client.
    git:
        Local git runner (should redact the token).
    config:
        Visibility, owner, branch and token settings.
    """

    def __init__(
        self, github: GitHubClient, git: GitRunner, config: AppforgeConfig
    ) -> None:
        self._github = github
        self._git = git
        self._config = config

    def create_repository(self, slug: AppSlug) -> RepositoryHandle:
        """Create a repository named ``slug.name``.

        Raises ``NameConflictError`` when the name is taken.
        """
        try:
            body = self._github.create_repository(
                slug.name,
                private=self._config.repo_private,
                org=self._config.github_org,
            )
        except GitHubApiError as exc:
            if _is_name_conflict(exc):
                raise NameConflictError(
                    f"Repository {slug.name!r} already exists; start a new run "
                    "with a fresh suffix"
                ) from exc
            raise RepositoryCreationError(f"Repository creation failed: {exc}") from exc

        if body.get("name") != slug.name:
            raise RepositoryCreationError(
                f"Remote created {body.get('name')!r} instead of {slug.name!r}"
            )

        owner = (body.get("owner") or {}).get("login") or self._config.repository_owner
        handle = RepositoryHandle(
            owner=owner,
            name=body["name"],
            clone_url=body["clone_url"],
            html_url=body.get("html_url", ""),
            default_branch=self._config.default_branch,
        )
        logger.info("Repository created: %s", handle.full_name)
        return handle

    def commit_and_push(
        self,
        workspace: Workspace,
        handle: RepositoryHandle,
        files: Iterable[str],
        message: str,
    ) -> str:
        """Commit *files* in the workspace and push them to *handle*'s branch.

        Returns the pushed commit sha.  Raises ``LocalCommitError`` or
        ``PushRejectedError``.
        """
        remote_url = authenticated_remote_url(
            handle.clone_url, self._config.github_token.get_secret_value()
        )
        return self._git.commit_and_push(
            workspace.path,
            remote_url=remote_url,
            branch=handle.default_branch,
            files=files,
            message=message,
        )
