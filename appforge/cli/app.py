"""Main Typer application — imports and registers all CLI commands.

Entry point: ``appforge`` (configured via pyproject.toml project.scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

from appforge.cli.commands.history import history_cmd
from appforge.cli.commands.provision import provision_cmd
from appforge.cli.commands.slug import slug_cmd

app = typer.Typer(
    name="appforge",
    help="Appforge: from an application description to a deployed service.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def configure_logging(
    log_level: str = typer.Option(
        "INFO", "--log-level", envvar="APPFORGE_LOG_LEVEL", help="Logging level."
    ),
) -> None:
    """Route library logging through Rich."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


# Register subcommands
app.command(name="provision", help="Provision an application from its description.")(provision_cmd)
app.command(name="slug", help="Preview the slug for an application name.")(slug_cmd)
app.command(name="history", help="Show ledger history for a run.")(history_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
