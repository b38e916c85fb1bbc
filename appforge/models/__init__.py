"""Appforge data models — all Pydantic v2, all frozen (immutable)."""

from appforge.models.ledger import LedgerEntry
from appforge.models.provisioning import (
    AppSlug,
    ErrorKind,
    FailureReport,
    GeneratedArtifact,
    PipelineRun,
    ProvisioningRequest,
    RepositoryHandle,
    SecretBundle,
    Workspace,
)
from appforge.models.states import (
    STATE_ORDER,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    ProvisioningState,
    next_state,
)

__all__ = [
    # states
    "ProvisioningState",
    "STATE_ORDER",
    "TERMINAL_STATES",
    "VALID_TRANSITIONS",
    "next_state",
    # provisioning
    "AppSlug",
    "ErrorKind",
    "FailureReport",
    "GeneratedArtifact",
    "PipelineRun",
    "ProvisioningRequest",
    "RepositoryHandle",
    "SecretBundle",
    "Workspace",
    # ledger
    "LedgerEntry",
]
