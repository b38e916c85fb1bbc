"""Shared test fixtures for Appforge."""

from __future__ import annotations

import base64
import json
import subprocess
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest
from nacl.public import PrivateKey, SealedBox

from appforge.clients.completion import CompletionClient
from appforge.clients.github import GitHubClient
from appforge.clients.metadata import ProjectNumberResolver
from appforge.config import AppforgeConfig
from appforge.core.orchestrator import Orchestrator
from appforge.core.run_ledger import RunLedger
from appforge.core.state_machine import ProvisioningStateMachine

SERVICE_ACCOUNT_KEY = {
    "type": "service_account",
    "project_id": "demo-project",
    "private_key_id": "abc123",
    "client_email": "deployer@demo-project.iam.gserviceaccount.com",
}

SAMPLE_COMPLETION = """\
Here is your application.

```html
<!DOCTYPE html>
<html>
<head><link rel="stylesheet" href="styles.css"></head>
<body><h1>Demo App</h1><script src="script.js" defer></script></body>
</html>
```

```css
body { font-family: Roboto, sans-serif; }
```

```js
document.querySelector('h1').addEventListener('click', () => alert('hi'));
```
"""


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def key_file(tmp_dir: Path) -> Path:
    """A base64-encoded service-account key file, as operators store it."""
    path = tmp_dir / "sa-key.b64"
    path.write_bytes(base64.b64encode(json.dumps(SERVICE_ACCOUNT_KEY).encode()))
    return path


@pytest.fixture
def make_config(tmp_dir: Path, key_file: Path) -> Callable[..., AppforgeConfig]:
    """Factory fixture: a complete config rooted in the temp directory."""

    def _factory(**overrides: Any) -> AppforgeConfig:
        defaults: dict[str, Any] = {
            "github_token": "ghp_testtoken",
            "github_user": "octocat",
            "openai_api_key": "sk-test",
            "gcp_project_id": "demo-project",
            "gcp_project_number": "123456789012",
            "gcp_sa_key_file": key_file,
            "region": "asia-northeast1",
            "workspace_root": tmp_dir / "workspaces",
            "ledger_path": tmp_dir / "ledger.db",
        }
        defaults.update(overrides)
        return AppforgeConfig(_env_file=None, **defaults)

    return _factory


@pytest.fixture
def config(make_config: Callable[..., AppforgeConfig]) -> AppforgeConfig:
    return make_config()


@pytest.fixture
def ledger(tmp_dir: Path) -> RunLedger:
    """Provide a fresh RunLedger backed by a temp SQLite database."""
    return RunLedger(tmp_dir / "test_ledger.db")


@pytest.fixture
def state_machine(ledger: RunLedger) -> ProvisioningStateMachine:
    return ProvisioningStateMachine(ledger)


@pytest.fixture
def sample_completion() -> str:
    """A well-formed completion with one fenced block per content type."""
    return SAMPLE_COMPLETION


@pytest.fixture
def run_id() -> str:
    """Provide a deterministic test run ID."""
    return "af-test-run-001"


# ---------------------------------------------------------------------------
# Source-hosting API stub served through httpx.MockTransport
# ---------------------------------------------------------------------------


class GitHubStub:
    """In-memory stand-in for the REST endpoints the pipeline calls.

    ``overrides`` maps ``"METHOD /path"`` to ``(status, body)`` to force a
    specific answer; a ``str`` body is sent as plain text, anything else as
    JSON.  Every request is recorded in ``calls``.
    """

    def __init__(self, owner: str = "octocat") -> None:
        self.owner = owner
        self.private_key = PrivateKey.generate()
        self.key_id = "568250167242549743"
        self.repositories: set[str] = set()
        self.secrets: dict[str, dict[str, Any]] = {}
        self.dispatches: list[dict[str, Any]] = []
        self.calls: list[tuple[str, str]] = []
        self.overrides: dict[str, tuple[int, Any]] = {}
        # When set, created repositories are real bare repositories under this path
        self.clone_root: Path | None = None
        self.on_dispatch: Callable[[], None] | None = None

    @property
    def public_key_b64(self) -> str:
        return base64.b64encode(bytes(self.private_key.public_key)).decode()

    def decrypt_secret(self, name: str) -> bytes:
        sealed = base64.b64decode(self.secrets[name]["encrypted_value"])
        return SealedBox(self.private_key).decrypt(sealed)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        method, path = request.method, request.url.path
        self.calls.append((method, path))
        body = json.loads(request.content) if request.content else None

        override = self.overrides.get(f"{method} {path}")
        if override is not None:
            status, payload = override
            if isinstance(payload, str):
                return httpx.Response(status, text=payload)
            return httpx.Response(status, json=payload)

        if method == "POST" and (path == "/user/repos" or path.startswith("/orgs/")):
            name = body["name"]
            if name in self.repositories:
                return httpx.Response(
                    422,
                    json={
                        "message": "Repository creation failed.",
                        "errors": [{
                            "resource": "Repository",
                            "code": "custom",
                            "field": "name",
                            "message": "name already exists on this account",
                        }],
                    },
                )
            self.repositories.add(name)
            clone_url = f"https://github.com/{self.owner}/{name}.git"
            if self.clone_root is not None:
                bare = self.clone_root / f"{name}.git"
                subprocess.run(["git", "init", "--bare", str(bare)], check=True, capture_output=True)
                clone_url = str(bare)
            return httpx.Response(
                201,
                json={
                    "name": name,
                    "owner": {"login": self.owner},
                    "clone_url": clone_url,
                    "html_url": f"https://github.com/{self.owner}/{name}",
                },
            )
        if method == "GET" and path.endswith("/actions/secrets/public-key"):
            return httpx.Response(200, json={"key_id": self.key_id, "key": self.public_key_b64})
        if method == "PUT" and "/actions/secrets/" in path:
            name = path.rsplit("/", 1)[-1]
            status = 204 if name in self.secrets else 201
            self.secrets[name] = body
            return httpx.Response(status)
        if method == "POST" and path.endswith("/dispatches"):
            if self.on_dispatch is not None:
                self.on_dispatch()
            self.dispatches.append({"path": path, **body})
            return httpx.Response(204)
        return httpx.Response(404, json={"message": "Not Found"})


@pytest.fixture
def github_stub() -> GitHubStub:
    return GitHubStub()


@pytest.fixture
def github_client(config: AppforgeConfig, github_stub: GitHubStub) -> GitHubClient:
    http = httpx.Client(
        base_url=config.github_api_url, transport=httpx.MockTransport(github_stub)
    )
    return GitHubClient(config, http_client=http)


# ---------------------------------------------------------------------------
# Completion service and metadata server stubs
# ---------------------------------------------------------------------------


def completion_transport(text: str, status: int = 200) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if status != 200:
            return httpx.Response(status, json={"error": {"message": "boom"}})
        return httpx.Response(
            200, json={"choices": [{"index": 0, "message": {"role": "assistant", "content": text}}]}
        )

    return httpx.MockTransport(handler)


@pytest.fixture
def make_completion_client(
    config: AppforgeConfig,
) -> Callable[..., CompletionClient]:
    def _factory(text: str = SAMPLE_COMPLETION, status: int = 200) -> CompletionClient:
        http = httpx.Client(
            base_url=config.completion_base_url,
            transport=completion_transport(text, status),
        )
        return CompletionClient(config, http_client=http)

    return _factory


@pytest.fixture
def project_resolver(config: AppforgeConfig) -> ProjectNumberResolver:
    """Resolver whose metadata server must not be consulted."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError(f"unexpected metadata request {request.url}")

    http = httpx.Client(base_url=config.metadata_url, transport=httpx.MockTransport(handler))
    return ProjectNumberResolver(config, http_client=http)


# ---------------------------------------------------------------------------
# Git stand-in that records pushes instead of touching a remote
# ---------------------------------------------------------------------------


class FakeGitRunner:
    """Records ``commit_and_push`` calls; optionally fails on the Nth push."""

    def __init__(self) -> None:
        self.pushes: list[dict[str, Any]] = []
        self.fail_on_push: int | None = None
        self.error: Exception | None = None

    def commit_and_push(
        self,
        path: Path,
        *,
        remote_url: str,
        branch: str,
        files: Any,
        message: str,
    ) -> str:
        files = sorted(files)
        if self.fail_on_push == len(self.pushes) + 1 and self.error is not None:
            raise self.error
        missing = [f for f in files if not (path / f).is_file()]
        assert not missing, f"pushing unstaged files: {missing}"
        self.pushes.append(
            {
                "path": path,
                "remote_url": remote_url,
                "branch": branch,
                "files": files,
                "message": message,
            }
        )
        return f"{len(self.pushes):040x}"


@pytest.fixture
def fake_git() -> FakeGitRunner:
    return FakeGitRunner()


@pytest.fixture
def make_orchestrator(
    config: AppforgeConfig,
    github_client: GitHubClient,
    make_completion_client: Callable[..., CompletionClient],
    fake_git: FakeGitRunner,
    project_resolver: ProjectNumberResolver,
) -> Callable[..., Orchestrator]:
    """Factory fixture: an Orchestrator wired to the stubs, never sleeping."""

    def _factory(
        completion_text: str = SAMPLE_COMPLETION,
        completion_status: int = 200,
        *,
        orchestrator_config: AppforgeConfig | None = None,
        **overrides: Any,
    ) -> Orchestrator:
        kwargs: dict[str, Any] = {
            "completion_client": make_completion_client(completion_text, completion_status),
            "github_client": github_client,
            "git_runner": fake_git,
            "project_resolver": project_resolver,
            "sleep": lambda seconds: None,
            "suffix_factory": lambda: "test01",
        }
        kwargs.update(overrides)
        return Orchestrator(orchestrator_config or config, **kwargs)

    return _factory
