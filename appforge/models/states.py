"""Provisioning state machine models — strictly linear, failure from anywhere."""

from __future__ import annotations

from enum import Enum


class ProvisioningState(str, Enum):
    """Every state a provisioning run passes through, in order."""

    INIT = "init"
    CONTENT_REQUESTED = "content_requested"
    ARTIFACT_EXTRACTED = "artifact_extracted"
    WORKSPACE_STAGED = "workspace_staged"
    REPO_CREATED = "repo_created"
    CODE_PUSHED = "code_pushed"
    SECRET_REGISTERED = "secret_registered"
    WORKFLOW_STAGED = "workflow_staged"
    WORKFLOW_PUSHED = "workflow_pushed"
    DEPLOY_DISPATCHED = "deploy_dispatched"
    URL_RESOLVED = "url_resolved"
    DONE = "done"
    FAILED = "failed"


# The happy path, in execution order.
STATE_ORDER: list[ProvisioningState] = [
    ProvisioningState.INIT,
    ProvisioningState.CONTENT_REQUESTED,
    ProvisioningState.ARTIFACT_EXTRACTED,
    ProvisioningState.WORKSPACE_STAGED,
    ProvisioningState.REPO_CREATED,
    ProvisioningState.CODE_PUSHED,
    ProvisioningState.SECRET_REGISTERED,
    ProvisioningState.WORKFLOW_STAGED,
    ProvisioningState.WORKFLOW_PUSHED,
    ProvisioningState.DEPLOY_DISPATCHED,
    ProvisioningState.URL_RESOLVED,
    ProvisioningState.DONE,
]

TERMINAL_STATES: frozenset[ProvisioningState] = frozenset(
    {ProvisioningState.DONE, ProvisioningState.FAILED}
)


def _build_transitions() -> dict[ProvisioningState, set[ProvisioningState]]:
    table: dict[ProvisioningState, set[ProvisioningState]] = {}
    for current, following in zip(STATE_ORDER, STATE_ORDER[1:]):
        table[current] = {following, ProvisioningState.FAILED}
    for terminal in TERMINAL_STATES:
        table[terminal] = set()
    return table


# Valid state transitions, enforced structurally by ProvisioningStateMachine.
# Terminal states (DONE, FAILED) have no outgoing transitions; there is no retry.
VALID_TRANSITIONS: dict[ProvisioningState, set[ProvisioningState]] = _build_transitions()


def next_state(state: ProvisioningState) -> ProvisioningState:
    """Return the happy-path successor of *state*.

    Raises ``ValueError`` for terminal states.
    """
    if state in TERMINAL_STATES:
        raise ValueError(f"{state.value} is terminal and has no successor")
    return STATE_ORDER[STATE_ORDER.index(state) + 1]
