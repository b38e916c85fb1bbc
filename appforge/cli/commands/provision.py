"""``appforge provision`` — run the provisioning pipeline for one application.

Prints the predicted service URL on success.  On failure prints the state the
run stopped at and why, and exits non-zero.
"""

from __future__ import annotations

import typer
from rich.console import Console
from rich.panel import Panel

from appforge.config import AppforgeConfig
from appforge.core.errors import ConfigurationMissingError
from appforge.core.orchestrator import Orchestrator
from appforge.models.provisioning import ProvisioningRequest

console = Console()


def provision_cmd(
    name: str = typer.Option(..., "--name", "-n", help="Application name."),
    description: str = typer.Option(
        ..., "--description", "-d", help="Free-text description of the application."
    ),
) -> None:
    """Generate, publish and deploy an application from its description."""
    try:
        orchestrator = Orchestrator(AppforgeConfig())
    except ConfigurationMissingError as exc:
        console.print(f"[bold red]{exc}[/bold red]")
        raise typer.Exit(code=2)

    try:
        run = orchestrator.run(
            ProvisioningRequest(application_name=name, application_description=description)
        )
    finally:
        orchestrator.close()

    console.print()
    if run.succeeded:
        console.print(
            Panel(
                "\n".join([
                    "[bold green]Application provisioned![/bold green]",
                    "",
                    f"[bold]Run ID:[/bold]      {run.run_id}",
                    f"[bold]Slug:[/bold]        {run.slug.name}",
                    f"[bold]Repository:[/bold]  {run.repository.html_url or run.repository.full_name}",
                    f"[bold]Service URL:[/bold] {run.service_url}",
                    "",
                    "[dim]The deploy runs asynchronously; the URL serves once it finishes.[/dim]",
                ]),
                title="[bold]Appforge[/bold]",
                border_style="green",
                padding=(1, 2),
            )
        )
        console.print()
        # Print the URL plainly for scripting
        console.print(run.service_url)
        return

    failure = run.failure
    console.print(
        Panel(
            "\n".join([
                "[bold red]Provisioning failed.[/bold red]",
                "",
                f"[bold]Run ID:[/bold]        {run.run_id}",
                f"[bold]Slug:[/bold]          {run.slug.name}",
                f"[bold]Last reached:[/bold]  {failure.last_state.value}",
                f"[bold]Failed at:[/bold]     {failure.failed_state.value}",
                f"[bold]Kind:[/bold]          {failure.kind.value}"
                + (f" ({failure.phase})" if failure.phase else ""),
                f"[bold]Message:[/bold]       {failure.message}",
            ]),
            title="[bold]Appforge[/bold]",
            border_style="red",
            padding=(1, 2),
        )
    )
    raise typer.Exit(code=1)
