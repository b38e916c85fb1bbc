"""Provisioning run models — all frozen; a run advances by ``model_copy``."""

from __future__ import annotations

import base64
import uuid
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from appforge.models.states import ProvisioningState

_SLUG_CHARS = frozenset("abcdefghijklmnopqrstuvwxyz0123456789-")


class ErrorKind(str, Enum):
    """Why a run ended in ``failed``."""

    CONFIGURATION_MISSING = "configuration_missing"
    UPSTREAM_REQUEST_FAILED = "upstream_request_failed"
    NAME_CONFLICT = "name_conflict"
    REPOSITORY_CREATION_FAILED = "repository_creation_failed"
    WORKSPACE_CONFLICT = "workspace_conflict"
    WORKSPACE_UNAVAILABLE = "workspace_unavailable"
    VERSION_CONTROL_FAILED = "version_control_failed"
    SECRET_REGISTRATION_FAILED = "secret_registration_failed"
    DISPATCH_FAILED = "dispatch_failed"
    RESOLUTION_FAILED = "resolution_failed"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    UNEXPECTED = "unexpected"


class ProvisioningRequest(BaseModel):
    """The only per-request input: a name and a free-text description."""

    model_config = ConfigDict(frozen=True)

    application_name: str
    application_description: str


class AppSlug(BaseModel):
    """The naming key shared by the repository, image tag and service.

    ``base`` is the slugified application name and ``suffix`` the per-run
    uniqueness suffix.  Downstream names must come from ``name``.
    """

    model_config = ConfigDict(frozen=True)

    base: str
    suffix: str

    @field_validator("base", "suffix")
    @classmethod
    def _check_grammar(cls, value: str) -> str:
        if not value:
            raise ValueError("slug parts must be non-empty")
        if not set(value) <= _SLUG_CHARS:
            raise ValueError(f"{value!r} contains characters outside [a-z0-9-]")
        if value.startswith("-") or value.endswith("-") or "--" in value:
            raise ValueError(f"{value!r} has stray hyphens")
        return value

    @computed_field  # type: ignore[prop-decorator]
    @property
    def name(self) -> str:
        return f"{self.base}-{self.suffix}"

    def __str__(self) -> str:
        return self.name


class GeneratedArtifact(BaseModel):
    """Markup, style and script extracted from one completion."""

    model_config = ConfigDict(frozen=True)

    markup: str
    style: str
    script: str


class Workspace(BaseModel):
    """A staging directory owned by exactly one run."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    path: Path


class RepositoryHandle(BaseModel):
    """A remote repository created for a run; ``name`` equals the slug name."""

    model_config = ConfigDict(frozen=True)

    owner: str
    name: str
    clone_url: str
    html_url: str = ""
    default_branch: str = "main"

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


class SecretBundle(BaseModel):
    """A sealed secret ready for exactly one upsert call."""

    model_config = ConfigDict(frozen=True)

    encrypted_value: bytes
    key_id: str

    @property
    def encoded_value(self) -> str:
        """Base64 text form expected by the source-hosting API."""
        return base64.b64encode(self.encrypted_value).decode("ascii")


class FailureReport(BaseModel):
    """Where and why a run stopped.

    ``failed_state`` is the state the run was trying to reach;
    ``last_state`` is the last one it actually reached.  ``phase`` is set for
    version-control failures: ``"local"`` (commit) or ``"remote"`` (push).
    """

    model_config = ConfigDict(frozen=True)

    failed_state: ProvisioningState
    last_state: ProvisioningState
    kind: ErrorKind
    message: str
    phase: str | None = None


class PipelineRun(BaseModel):
    """Aggregate result record of one provisioning run."""

    model_config = ConfigDict(frozen=True)

    run_id: str = Field(default_factory=lambda: f"af-{uuid.uuid4().hex[:12]}")
    request: ProvisioningRequest
    slug: AppSlug
    state: ProvisioningState = ProvisioningState.INIT
    artifact: GeneratedArtifact | None = None
    workspace: Workspace | None = None
    repository: RepositoryHandle | None = None
    secret_registered: bool = False
    workflow_pushed: bool = False
    deploy_dispatched: bool = False
    service_url: str | None = None
    failure: FailureReport | None = None
    started_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def succeeded(self) -> bool:
        return self.state == ProvisioningState.DONE

    @property
    def failed(self) -> bool:
        return self.state == ProvisioningState.FAILED
