"""Provisioning orchestrator: the central coordinator for Appforge runs.

The Orchestrator wires the completion client, extractor, workspace stager,
repository/secret provisioners and deploy trigger into one strictly linear
pipeline.  Every step advances the ProvisioningStateMachine exactly once and
is recorded in the Run Ledger; the first failure moves the run to ``failed``
and nothing after it executes.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from appforge.clients.completion import CompletionClient
from appforge.clients.git import GitRunner
from appforge.clients.github import GitHubClient
from appforge.clients.metadata import ProjectNumberResolver
from appforge.config import AppforgeConfig
from appforge.core.config_guard import enforce_required_settings
from appforge.core.descriptors import (
    DOCKERFILE,
    artifact_files,
    render_deploy_workflow,
    render_dockerfile,
    workflow_path,
)
from appforge.core.errors import (
    ProvisioningError,
    RunCancelledError,
    VersionControlError,
)
from appforge.core.extractor import extract
from appforge.core.hasher import content_address
from appforge.core.run_ledger import RunLedger
from appforge.core.slug import make_app_slug
from appforge.core.state_machine import ProvisioningStateMachine
from appforge.core.workspace import WorkspaceStager
from appforge.models.provisioning import (
    ErrorKind,
    FailureReport,
    PipelineRun,
    ProvisioningRequest,
)
from appforge.models.states import ProvisioningState
from appforge.provisioners.deploy import DeployTrigger
from appforge.provisioners.repository import RepositoryProvisioner
from appforge.provisioners.secrets import SecretProvisioner, load_deploy_credential

logger = logging.getLogger(__name__)

INITIAL_COMMIT_MESSAGE = "Initial commit"
WORKFLOW_COMMIT_MESSAGE = "Add deploy workflow"

StepResult = tuple[PipelineRun, dict[str, Any]]


class Orchestrator:
    """Central provisioning orchestrator.

    Validates configuration once at construction, then runs any number of
    provisioning requests.  Each run is independent: it gets its own slug,
    workspace and repository, and shares only the ledger with other runs.

    Parameters
    ----------
    config:
        Process-wide configuration.  Required settings are enforced here.
    completion_client, github_client, git_runner, project_resolver:
        Outbound collaborators.  Built from *config* when omitted.
    ledger:
        Run Ledger.  Defaults to ``RunLedger(config.ledger_path)``.
    sleep:
        Used for the propagation delay before secret and dispatch calls.
    suffix_factory:
        Produces the slug uniqueness suffix.  Defaults to timestamp + random.
    """

    def __init__(
        self,
        config: AppforgeConfig,
        *,
        completion_client: CompletionClient | None = None,
        github_client: GitHubClient | None = None,
        git_runner: GitRunner | None = None,
        project_resolver: ProjectNumberResolver | None = None,
        ledger: RunLedger | None = None,
        sleep: Callable[[float], None] = time.sleep,
        suffix_factory: Callable[[], str] | None = None,
    ) -> None:
        # Fails hard before any run starts if required settings are missing
        enforce_required_settings(config)
        self.config = config

        self.completion = completion_client or CompletionClient(config)
        self.github = github_client or GitHubClient(config)
        self.git = git_runner or GitRunner(
            author_name=config.commit_author_name,
            author_email=config.commit_author_email,
            timeout=config.git_timeout_seconds,
            secrets=[config.github_token.get_secret_value()],
        )
        self.resolver = project_resolver or ProjectNumberResolver(config)

        self.ledger = ledger or RunLedger(config.ledger_path)
        self.state_machine = ProvisioningStateMachine(self.ledger)
        self.stager = WorkspaceStager(config.workspace_root)
        self.repositories = RepositoryProvisioner(self.github, self.git, config)
        self.secrets = SecretProvisioner(self.github)
        self.deploy = DeployTrigger(self.github, self.resolver, config)

        self._sleep = sleep
        self._suffix_factory = suffix_factory

        self._steps: list[tuple[ProvisioningState, Callable[[PipelineRun], StepResult]]] = [
            (ProvisioningState.CONTENT_REQUESTED, self._request_content),
            (ProvisioningState.ARTIFACT_EXTRACTED, self._extract_artifact),
            (ProvisioningState.WORKSPACE_STAGED, self._stage_workspace),
            (ProvisioningState.REPO_CREATED, self._create_repository),
            (ProvisioningState.CODE_PUSHED, self._push_code),
            (ProvisioningState.SECRET_REGISTERED, self._register_secret),
            (ProvisioningState.WORKFLOW_STAGED, self._stage_workflow),
            (ProvisioningState.WORKFLOW_PUSHED, self._push_workflow),
            (ProvisioningState.DEPLOY_DISPATCHED, self._dispatch_deploy),
            (ProvisioningState.URL_RESOLVED, self._resolve_url),
        ]
        # Completion text between the request and extraction steps
        self._pending_completion: dict[str, str] = {}

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    def run(
        self,
        request: ProvisioningRequest,
        cancel_event: threading.Event | None = None,
    ) -> PipelineRun:
        """Provision one application end to end.

        Returns the final PipelineRun: ``done`` with a service URL, or
        ``failed`` with a FailureReport.  Unexpected exceptions are recorded
        as a failure and then re-raised.
        """
        suffix = self._suffix_factory() if self._suffix_factory else None
        slug = make_app_slug(request.application_name, suffix)
        run = PipelineRun(request=request, slug=slug)
        self.state_machine.initialize_run(run.run_id, slug.name)
        logger.info("Run %s started for %s", run.run_id, slug.name)

        try:
            for target, step in self._steps:
                if cancel_event is not None and cancel_event.is_set():
                    run = self._record_failure(
                        run, target, RunCancelledError("Run cancelled by caller")
                    )
                    return run
                try:
                    run, detail = step(run)
                except ProvisioningError as exc:
                    return self._record_failure(run, target, exc)
                except Exception as exc:
                    self._record_failure(run, target, exc)
                    raise
                self.state_machine.transition(run.run_id, target, detail=detail)
                run = run.model_copy(update={"state": target})
                logger.info("Run %s reached %s", run.run_id, target.value)

            self.state_machine.transition(run.run_id, ProvisioningState.DONE)
            run = run.model_copy(update={"state": ProvisioningState.DONE})
            logger.info("Run %s done: %s", run.run_id, run.service_url)
            return run
        finally:
            self._pending_completion.pop(run.run_id, None)

    def _record_failure(
        self, run: PipelineRun, attempted: ProvisioningState, exc: Exception
    ) -> PipelineRun:
        kind = exc.kind if isinstance(exc, ProvisioningError) else ErrorKind.UNEXPECTED
        phase = exc.phase if isinstance(exc, VersionControlError) else None
        message = str(exc) or type(exc).__name__
        self.state_machine.fail(
            run.run_id, kind=kind.value, message=message, attempted=attempted, phase=phase
        )
        logger.error(
            "Run %s failed reaching %s (%s): %s",
            run.run_id, attempted.value, kind.value, message,
        )
        return run.model_copy(
            update={
                "state": ProvisioningState.FAILED,
                "failure": FailureReport(
                    failed_state=attempted,
                    last_state=run.state,
                    kind=kind,
                    message=message,
                    phase=phase,
                ),
            }
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _request_content(self, run: PipelineRun) -> StepResult:
        text = self.completion.complete(run.request.application_description)
        self._pending_completion[run.run_id] = text
        return run, {"completion_chars": len(text)}

    def _extract_artifact(self, run: PipelineRun) -> StepResult:
        artifact = extract(self._pending_completion.pop(run.run_id))
        return (
            run.model_copy(update={"artifact": artifact}),
            {"artifact_hash": content_address(artifact.model_dump())},
        )

    def _stage_workspace(self, run: PipelineRun) -> StepResult:
        workspace = self.stager.create(run.run_id, run.slug)
        written = self.stager.stage(
            workspace, run.artifact, {DOCKERFILE: render_dockerfile()}
        )
        return (
            run.model_copy(update={"workspace": workspace}),
            {"path": str(workspace.path), "files": sorted(written)},
        )

    def _create_repository(self, run: PipelineRun) -> StepResult:
        handle = self.repositories.create_repository(run.slug)
        return (
            run.model_copy(update={"repository": handle}),
            {"repository": handle.full_name},
        )

    def _push_code(self, run: PipelineRun) -> StepResult:
        files = [*artifact_files(run.artifact), DOCKERFILE]
        sha = self.repositories.commit_and_push(
            run.workspace, run.repository, files, INITIAL_COMMIT_MESSAGE
        )
        return run, {"commit": sha}

    def _register_secret(self, run: PipelineRun) -> StepResult:
        self._propagation_delay()
        credential = load_deploy_credential(self.config.gcp_sa_key_file)
        self.secrets.register_secret(
            run.repository, self.config.deploy_secret_name, credential
        )
        return (
            run.model_copy(update={"secret_registered": True}),
            {"secret": self.config.deploy_secret_name},
        )

    def _stage_workflow(self, run: PipelineRun) -> StepResult:
        relative = workflow_path(self.config.workflow_file)
        content = render_deploy_workflow(
            run.slug,
            project_id=self.config.gcp_project_id,
            region=self.config.region,
            secret_name=self.config.deploy_secret_name,
            branch=run.repository.default_branch,
            trigger_mode=self.config.trigger_mode,
        )
        self.stager.stage(run.workspace, descriptors={relative: content})
        return run, {"workflow": relative}

    def _push_workflow(self, run: PipelineRun) -> StepResult:
        sha = self.repositories.commit_and_push(
            run.workspace,
            run.repository,
            [workflow_path(self.config.workflow_file)],
            WORKFLOW_COMMIT_MESSAGE,
        )
        return run.model_copy(update={"workflow_pushed": True}), {"commit": sha}

    def _dispatch_deploy(self, run: PipelineRun) -> StepResult:
        if self.config.trigger_mode == "dispatch":
            self._propagation_delay()
        dispatched = self.deploy.dispatch(run.repository)
        return (
            run.model_copy(update={"deploy_dispatched": dispatched}),
            {"trigger": "dispatch" if dispatched else "push"},
        )

    def _resolve_url(self, run: PipelineRun) -> StepResult:
        url = self.deploy.resolve_service_url(run.slug)
        return run.model_copy(update={"service_url": url}), {"service_url": url}

    def _propagation_delay(self) -> None:
        delay = self.config.propagation_delay_seconds
        if delay > 0:
            self._sleep(delay)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def history(self, run_id: str) -> list[dict[str, Any]]:
        """Ledger entries of *run_id* as plain dicts, oldest first."""
        return [entry.model_dump(mode="json") for entry in self.ledger.get_run_entries(run_id)]

    def close(self) -> None:
        """Release HTTP connection pools held by the clients."""
        self.completion.close()
        self.github.close()
        self.resolver.close()
