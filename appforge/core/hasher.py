"""Hashing for the run ledger's chain and for recording artifact digests.

Everything hashes the same canonical JSON form (sorted keys, compact
separators, ASCII-only) so a digest computed today can be recomputed from the
stored row tomorrow.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

from appforge.models.ledger import LedgerEntry

# Fields excluded when sealing a ledger entry; the seal cannot cover itself.
_UNSEALED_FIELDS = frozenset({"entry_hash"})


def canonical_json(obj: Any) -> bytes:
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def digest(obj: Any) -> str:
    """Hex SHA-256 of the canonical JSON form of *obj*."""
    return hashlib.sha256(canonical_json(obj)).hexdigest()


def content_address(obj: Any) -> str:
    """``sha256:<hex>`` label for a JSON-serializable value."""
    return f"sha256:{digest(obj)}"


def seal_entry(entry: LedgerEntry, previous_entry_hash: str) -> LedgerEntry:
    """Return *entry* linked to its predecessor and sealed with its own hash."""
    linked = entry.model_copy(
        update={"previous_entry_hash": previous_entry_hash, "entry_hash": ""}
    )
    return linked.model_copy(update={"entry_hash": entry_digest(linked)})


def entry_digest(entry: LedgerEntry) -> str:
    """The hash an entry should carry, recomputed from its other fields."""
    fields = {
        key: value
        for key, value in entry.model_dump(mode="json").items()
        if key not in _UNSEALED_FIELDS
    }
    return digest(fields)
