"""``appforge slug NAME`` — preview the slug a run would use for NAME."""

from __future__ import annotations

import typer
from rich.console import Console

from appforge.core.slug import make_app_slug, slugify

console = Console()


def slug_cmd(
    name: str = typer.Argument(..., help="Application name."),
    suffix: str = typer.Option(
        None, "--suffix", "-s", help="Fixed suffix instead of timestamp + random."
    ),
) -> None:
    """Show how an application name maps to repository and service names."""
    try:
        slug = make_app_slug(name, suffix)
    except ValueError as exc:
        console.print(f"[bold red]Invalid suffix:[/bold red] {exc}")
        raise typer.Exit(code=2)
    console.print(f"[bold]Slugified:[/bold] {slugify(name) or '[dim](empty)[/dim]'}")
    console.print(f"[bold]Base:[/bold]      {slug.base}")
    console.print(f"[bold]Suffix:[/bold]    {slug.suffix}")
    console.print(f"[bold]Name:[/bold]      {slug.name}")
