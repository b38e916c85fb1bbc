"""Source-hosting REST client (GitHub API) over httpx.

Only the four calls the pipeline needs: create a repository, fetch the
repository's secret-store public key, upsert a sealed secret, and dispatch a
workflow.  Every call is scoped to one repository and authenticated with a
bearer token.  Non-success answers raise ``GitHubApiError``; the
provisioners translate those into their own failure kinds.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from appforge.config import AppforgeConfig
from appforge.core.errors import StepTimeoutError

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"


class GitHubApiError(RuntimeError):
    """Non-success response from the source-hosting API."""

    def __init__(self, method: str, path: str, status_code: int, body: Any) -> None:
        self.method = method
        self.path = path
        self.status_code = status_code
        self.body = body
        message = body.get("message", "") if isinstance(body, dict) else str(body)
        super().__init__(f"{method} {path} -> {status_code}: {message}")

    @property
    def error_messages(self) -> list[str]:
        """Flattened ``message`` fields from the body and its ``errors`` list."""
        if not isinstance(self.body, dict):
            return [str(self.body)]
        messages = [str(self.body.get("message", ""))]
        for item in self.body.get("errors") or []:
            if isinstance(item, dict):
                messages.append(str(item.get("message", "")))
            else:
                messages.append(str(item))
        return [m for m in messages if m]


class GitHubClient:
    """Thin wrapper over the REST endpoints the pipeline calls.

    Parameters
    ----------
    config:
        Supplies the API URL and token.
    http_client:
        Optional pre-built ``httpx.Client`` (tests pass one with a
        ``MockTransport``).
    """

    def __init__(
        self, config: AppforgeConfig, *, http_client: httpx.Client | None = None
    ) -> None:
        self._config = config
        self._http = http_client or httpx.Client(
            base_url=config.github_api_url,
            timeout=config.request_timeout_seconds,
        )
        self._headers = {
            "Authorization": f"Bearer {config.github_token.get_secret_value()}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._http.request(method, path, headers=self._headers, **kwargs)
        except httpx.TimeoutException as exc:
            raise StepTimeoutError(f"{method} {path} timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise GitHubApiError(method, path, 0, str(exc)) from exc

        if response.is_error:
            try:
                body: Any = response.json()
            except ValueError:
                body = response.text
            raise GitHubApiError(method, path, response.status_code, body)

        logger.debug("%s %s -> %d", method, path, response.status_code)
        return response

    @staticmethod
    def _json_fields(
        response: httpx.Response, method: str, path: str, *required: str
    ) -> dict[str, Any]:
        """Decode a success body that must be an object holding *required* keys."""
        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict) or any(key not in body for key in required):
            raise GitHubApiError(
                method,
                path,
                response.status_code,
                f"unexpected response body: {response.text[:200]!r}",
            )
        return body

    # ------------------------------------------------------------------
    # Repositories
    # ------------------------------------------------------------------

    def create_repository(
        self, name: str, *, private: bool = False, org: str = ""
    ) -> dict[str, Any]:
        """Create a repository for the authenticated user, or under *org*."""
        path = f"/orgs/{org}/repos" if org else "/user/repos"
        response = self._request(
            "POST", path, json={"name": name, "private": private, "auto_init": False}
        )
        return self._json_fields(response, "POST", path, "name", "clone_url")

    # ------------------------------------------------------------------
    # Actions secrets
    # ------------------------------------------------------------------

    def get_public_key(self, owner: str, repo: str) -> dict[str, str]:
        """Fetch the current secret-store public key: ``{"key_id", "key"}``."""
        path = f"/repos/{owner}/{repo}/actions/secrets/public-key"
        response = self._request("GET", path)
        body = self._json_fields(response, "GET", path, "key_id", "key")
        return {"key_id": str(body["key_id"]), "key": str(body["key"])}

    def put_secret(
        self, owner: str, repo: str, name: str, *, encrypted_value: str, key_id: str
    ) -> int:
        """Create or replace a secret; returns 201 (created) or 204 (updated)."""
        response = self._request(
            "PUT",
            f"/repos/{owner}/{repo}/actions/secrets/{name}",
            json={"encrypted_value": encrypted_value, "key_id": key_id},
        )
        return response.status_code

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------

    def dispatch_workflow(
        self,
        owner: str,
        repo: str,
        workflow_file: str,
        *,
        ref: str,
        inputs: dict[str, str] | None = None,
    ) -> None:
        """Trigger a ``workflow_dispatch`` run of *workflow_file* on *ref*."""
        payload: dict[str, Any] = {"ref": ref}
        if inputs:
            payload["inputs"] = inputs
        self._request(
            "POST",
            f"/repos/{owner}/{repo}/actions/workflows/{workflow_file}/dispatches",
            json=payload,
        )

    def close(self) -> None:
        self._http.close()
