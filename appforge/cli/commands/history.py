"""``appforge history`` — show ledger entries for a run, or list runs."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from appforge.config import AppforgeConfig
from appforge.core.run_ledger import LedgerIntegrityError, RunLedger

console = Console()


def history_cmd(
    run_id: str = typer.Argument(
        None, help="Run ID to show.  Lists all runs when omitted."
    ),
    ledger_db: Path = typer.Option(
        None, "--ledger", "-l", help="Path to the ledger SQLite database."
    ),
    verify_chain: bool = typer.Option(
        False, "--verify-chain", "-V", help="Verify the run's hash chain."
    ),
) -> None:
    """Show the recorded state transitions of a provisioning run."""
    db_path = ledger_db or AppforgeConfig().ledger_path
    if not db_path.exists():
        console.print(f"[bold red]Ledger not found:[/bold red] {db_path}")
        raise typer.Exit(code=1)

    ledger = RunLedger(db_path)

    if run_id is None:
        run_ids = ledger.get_all_run_ids()
        if not run_ids:
            console.print("[dim]No runs recorded.[/dim]")
            return
        table = Table(title="Runs")
        table.add_column("Run ID", style="cyan")
        table.add_column("Slug")
        table.add_column("State")
        for rid in run_ids:
            latest = ledger.get_latest(rid)
            table.add_row(rid, latest.slug, latest.to_state)
        console.print(table)
        return

    entries = ledger.get_run_entries(run_id)
    if not entries:
        console.print(f"[bold red]Unknown run:[/bold red] {run_id}")
        raise typer.Exit(code=1)

    table = Table(title=f"Run {run_id} ({entries[0].slug})")
    table.add_column("#", justify="right")
    table.add_column("Transition", style="cyan", no_wrap=True)
    table.add_column("Timestamp (UTC)", no_wrap=True)
    table.add_column("Detail")
    for index, entry in enumerate(entries):
        detail = ", ".join(f"{k}={v}" for k, v in entry.detail.items())
        table.add_row(
            str(index),
            entry.state_transition,
            entry.timestamp_utc.strftime("%Y-%m-%d %H:%M:%S"),
            detail,
        )
    console.print(table)

    if verify_chain:
        try:
            ledger.verify_chain(run_id)
        except LedgerIntegrityError as exc:
            console.print(f"[bold red]Hash chain broken:[/bold red] {exc}")
            raise typer.Exit(code=1)
        console.print("[green]Hash chain verified.[/green]")
