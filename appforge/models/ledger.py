"""Run Ledger entry model — append-only, hash-chained state transitions.

The ledger is the durable record of how far each run got.  Operators read it
to find partially created remote resources after a failed run.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class LedgerEntry(BaseModel):
    """A single state transition of a provisioning run."""

    model_config = ConfigDict(frozen=True)

    entry_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    run_id: str
    slug: str
    state_transition: str  # "from_state->to_state", e.g. "init->content_requested"
    timestamp_utc: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    detail: dict[str, Any] = {}  # step output summary or failure kind/message
    previous_entry_hash: str = ""  # entry_hash of the previous entry in this run
    entry_hash: str = ""  # computed on append, seals this entry

    @property
    def to_state(self) -> str:
        return self.state_transition.split("->", 1)[-1]
