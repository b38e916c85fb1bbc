"""Append-only, hash-chained Run Ledger backed by SQLite.

Every state transition of every provisioning run lands here.  A failed run
can leave a repository and a registered secret behind, so the ledger is
where an operator looks to see how far it got.

Entries within one run are chained: each stores the hash of its predecessor
and a hash over its own fields.  Runs never share a chain, so any number of
them may write to the same file (WAL mode).
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import closing, contextmanager
from pathlib import Path

from appforge.core.hasher import entry_digest, seal_entry
from appforge.models.ledger import LedgerEntry

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS run_ledger (
    id                    INTEGER PRIMARY KEY AUTOINCREMENT,
    entry_id              TEXT NOT NULL UNIQUE,
    run_id                TEXT NOT NULL,
    slug                  TEXT NOT NULL,
    state_transition      TEXT NOT NULL,
    timestamp_utc         TEXT NOT NULL,
    detail_json           TEXT NOT NULL DEFAULT '{}',
    previous_entry_hash   TEXT NOT NULL DEFAULT '',
    entry_hash            TEXT NOT NULL UNIQUE
);
CREATE INDEX IF NOT EXISTS idx_ledger_run ON run_ledger(run_id, id);
CREATE INDEX IF NOT EXISTS idx_ledger_slug ON run_ledger(slug, id);
"""

_COLUMNS = (
    "entry_id, run_id, slug, state_transition, timestamp_utc, "
    "detail_json, previous_entry_hash, entry_hash"
)


class LedgerIntegrityError(RuntimeError):
    """A run's stored entries no longer form a valid hash chain."""


class RunLedger:
    """Append-only, hash-chained Run Ledger.

    Parameters
    ----------
    db_path:
        SQLite database file.  Parent directories are created as needed.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._session() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(_SCHEMA)

    @property
    def path(self) -> Path:
        return self._db_path

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        """One short-lived connection; commits on success, always closes."""
        with closing(sqlite3.connect(str(self._db_path), timeout=30.0)) as conn:
            conn.row_factory = sqlite3.Row
            with conn:
                yield conn

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def append(self, entry: LedgerEntry) -> LedgerEntry:
        """Chain *entry* onto its run and store it.

        The predecessor lookup and the insert share one transaction, so two
        writers on the same run cannot both link to the same predecessor.
        Returns the sealed entry.
        """
        with self._session() as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT entry_hash FROM run_ledger WHERE run_id = ? "
                "ORDER BY id DESC LIMIT 1",
                (entry.run_id,),
            ).fetchone()
            sealed = seal_entry(entry, row["entry_hash"] if row else "")
            conn.execute(
                f"INSERT INTO run_ledger ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                _to_row(sealed),
            )
        logger.debug("Ledger %s: %s", sealed.run_id, sealed.state_transition)
        return sealed

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_latest(self, run_id: str) -> LedgerEntry | None:
        """Most recent entry of *run_id*, or None if the run is unknown."""
        entries = self._select(
            "WHERE run_id = ? ORDER BY id DESC LIMIT 1", (run_id,)
        )
        return entries[0] if entries else None

    def get_run_entries(self, run_id: str) -> list[LedgerEntry]:
        """All entries of *run_id*, oldest first."""
        return self._select("WHERE run_id = ? ORDER BY id", (run_id,))

    def get_slug_entries(self, slug: str) -> list[LedgerEntry]:
        """All entries recorded under *slug*, oldest first."""
        return self._select("WHERE slug = ? ORDER BY id", (slug,))

    def get_all_run_ids(self) -> list[str]:
        """Distinct run ids, most recently written first."""
        with self._session() as conn:
            rows = conn.execute(
                "SELECT run_id FROM run_ledger GROUP BY run_id ORDER BY MAX(id) DESC"
            ).fetchall()
        return [row["run_id"] for row in rows]

    def _select(self, clause: str, params: tuple) -> list[LedgerEntry]:
        with self._session() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM run_ledger {clause}", params
            ).fetchall()
        return [_from_row(row) for row in rows]

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify_chain(self, run_id: str) -> bool:
        """Check every link and seal of *run_id*.

        Returns True for an intact (or empty) chain and raises
        LedgerIntegrityError at the first bad entry.
        """
        expected_previous = ""
        for entry in self.get_run_entries(run_id):
            if entry.previous_entry_hash != expected_previous:
                raise LedgerIntegrityError(
                    f"Chain broken at entry {entry.entry_id} "
                    f"({entry.state_transition}): links to "
                    f"{entry.previous_entry_hash!r}, expected {expected_previous!r}"
                )
            recomputed = entry_digest(entry)
            if entry.entry_hash != recomputed:
                raise LedgerIntegrityError(
                    f"Tampered entry {entry.entry_id} "
                    f"({entry.state_transition}): stored hash "
                    f"{entry.entry_hash!r} does not match {recomputed!r}"
                )
            expected_previous = entry.entry_hash
        return True


def _to_row(entry: LedgerEntry) -> tuple[str, ...]:
    return (
        entry.entry_id,
        entry.run_id,
        entry.slug,
        entry.state_transition,
        entry.timestamp_utc.isoformat(),
        json.dumps(entry.detail, sort_keys=True),
        entry.previous_entry_hash,
        entry.entry_hash,
    )


def _from_row(row: sqlite3.Row) -> LedgerEntry:
    return LedgerEntry(
        entry_id=row["entry_id"],
        run_id=row["run_id"],
        slug=row["slug"],
        state_transition=row["state_transition"],
        timestamp_utc=row["timestamp_utc"],
        detail=json.loads(row["detail_json"]),
        previous_entry_hash=row["previous_entry_hash"],
        entry_hash=row["entry_hash"],
    )
