"""Deterministic provisioning state machine.

Enforces:
- Valid state transitions only (VALID_TRANSITIONS table, strictly linear)
- ``failed`` reachable from every non-terminal state, and terminal
- No retry: a failed run stays failed; callers start a new run
- Every transition recorded in the Run Ledger
"""

from __future__ import annotations

from typing import Any

from appforge.core.run_ledger import RunLedger
from appforge.models.ledger import LedgerEntry
from appforge.models.states import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    ProvisioningState,
)


class InvalidTransitionError(RuntimeError):
    """Raised when a requested state transition is not valid."""


class ProvisioningStateMachine:
    """Tracks the current state of each run and records transitions.

    Parameters
    ----------
    ledger:
        The Run Ledger to record transitions into.
    """

    def __init__(self, ledger: RunLedger) -> None:
        self._ledger = ledger
        # Live runs only: run_id -> (slug, state)
        self._states: dict[str, tuple[str, ProvisioningState]] = {}

    # ------------------------------------------------------------------
    # State management
    # ------------------------------------------------------------------

    def initialize_run(self, run_id: str, slug: str) -> LedgerEntry:
        """Register a new run in ``init`` and record its creation."""
        if run_id in self._states or self._ledger.get_latest(run_id) is not None:
            raise InvalidTransitionError(f"Run {run_id} already exists")
        self._states[run_id] = (slug, ProvisioningState.INIT)
        return self._ledger.append(
            LedgerEntry(
                run_id=run_id,
                slug=slug,
                state_transition=f"->{ProvisioningState.INIT.value}",
            )
        )

    def get_current_state(self, run_id: str) -> ProvisioningState:
        """Return the current state of a run."""
        return self._lookup(run_id)[1]

    def _lookup(self, run_id: str) -> tuple[str, ProvisioningState]:
        """Return ``(slug, state)``, rebuilding from the ledger when not cached.

        Only live runs are cached; terminal ones are read back on demand.
        """
        cached = self._states.get(run_id)
        if cached is not None:
            return cached
        latest = self._ledger.get_latest(run_id)
        if latest is None:
            raise KeyError(f"Unknown run {run_id}")
        rebuilt = (latest.slug, ProvisioningState(latest.to_state))
        if rebuilt[1] not in TERMINAL_STATES:
            self._states[run_id] = rebuilt
        return rebuilt

    # ------------------------------------------------------------------
    # Transition logic
    # ------------------------------------------------------------------

    def transition(
        self,
        run_id: str,
        target_state: ProvisioningState,
        *,
        detail: dict[str, Any] | None = None,
    ) -> LedgerEntry:
        """Move a run to *target_state*, recording it in the ledger.

        Returns the sealed LedgerEntry.
        """
        slug, current = self._lookup(run_id)

        allowed = VALID_TRANSITIONS.get(current, set())
        if target_state not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition {run_id} from {current.value} to {target_state.value}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )

        sealed = self._ledger.append(
            LedgerEntry(
                run_id=run_id,
                slug=slug,
                state_transition=f"{current.value}->{target_state.value}",
                detail=detail or {},
            )
        )
        if target_state in TERMINAL_STATES:
            self._states.pop(run_id, None)
        else:
            self._states[run_id] = (slug, target_state)
        return sealed

    def fail(
        self,
        run_id: str,
        *,
        kind: str,
        message: str,
        attempted: ProvisioningState,
        phase: str | None = None,
    ) -> LedgerEntry:
        """Move a run to ``failed``, recording what it was attempting and why.

        *phase* (``"local"`` or ``"remote"``) is recorded for version-control
        failures only.
        """
        detail: dict[str, Any] = {
            "kind": kind,
            "message": message,
            "attempted_state": attempted.value,
        }
        if phase is not None:
            detail["phase"] = phase
        return self.transition(run_id, ProvisioningState.FAILED, detail=detail)

    # ------------------------------------------------------------------
    # Convenience methods
    # ------------------------------------------------------------------

    def is_terminal(self, run_id: str) -> bool:
        return self.get_current_state(run_id) in TERMINAL_STATES

    def get_available_transitions(self, run_id: str) -> set[ProvisioningState]:
        """Return the set of valid target states for a run."""
        return VALID_TRANSITIONS.get(self.get_current_state(run_id), set())
