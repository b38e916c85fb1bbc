"""Provisioning error hierarchy.

Every component failure is a ``ProvisioningError`` carrying an ``ErrorKind``.
The orchestrator turns these into a ``failed`` run; nothing here is retried.
"""

from __future__ import annotations

from appforge.models.provisioning import ErrorKind


class ProvisioningError(RuntimeError):
    """Base class for failures that terminate a provisioning run."""

    kind: ErrorKind = ErrorKind.UNEXPECTED


class ConfigurationMissingError(ProvisioningError):
    """Raised at startup when required settings are absent.

    This error means no run can safely start.  It must not be caught and
    ignored; the process should exit.
    """

    kind = ErrorKind.CONFIGURATION_MISSING

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__(
            "Required configuration missing:\n"
            + "\n".join(f"  - {item}" for item in self.missing)
        )


class UpstreamRequestError(ProvisioningError):
    """The completion service was unreachable or answered non-success."""

    kind = ErrorKind.UPSTREAM_REQUEST_FAILED


class NameConflictError(ProvisioningError):
    """A repository with the requested name already exists remotely."""

    kind = ErrorKind.NAME_CONFLICT


class RepositoryCreationError(ProvisioningError):
    """Repository creation failed for a reason other than a name clash."""

    kind = ErrorKind.REPOSITORY_CREATION_FAILED


class WorkspaceConflictError(ProvisioningError):
    """The staging directory belongs to another run or a file would be overwritten."""

    kind = ErrorKind.WORKSPACE_CONFLICT


class WorkspaceUnavailableError(ProvisioningError):
    """The workspace root or a staged file could not be created or written."""

    kind = ErrorKind.WORKSPACE_UNAVAILABLE


class VersionControlError(ProvisioningError):
    """Base for git failures; ``phase`` is ``"local"`` or ``"remote"``."""

    kind = ErrorKind.VERSION_CONTROL_FAILED
    phase: str = "local"


class LocalCommitError(VersionControlError):
    """init/config/add/commit failed in the working directory."""

    phase = "local"


class PushRejectedError(VersionControlError):
    """The push failed: auth, network, or remote rejection."""

    phase = "remote"


class SecretRegistrationError(ProvisioningError):
    """Public-key fetch, sealing or secret upsert failed."""

    kind = ErrorKind.SECRET_REGISTRATION_FAILED


class DispatchError(ProvisioningError):
    """The workflow dispatch was rejected."""

    kind = ErrorKind.DISPATCH_FAILED


class ResolutionError(ProvisioningError):
    """The project number could not be resolved, so no URL can be predicted."""

    kind = ErrorKind.RESOLUTION_FAILED


class StepTimeoutError(ProvisioningError):
    """A network suspension point exceeded its timeout."""

    kind = ErrorKind.TIMEOUT


class RunCancelledError(ProvisioningError):
    """The caller cancelled the run between two steps."""

    kind = ErrorKind.CANCELLED
