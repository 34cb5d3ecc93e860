"""reviewers command - list the configured reviewer roster."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from mdcouncil_core.config import load_reviewers

console = Console()


@click.command("reviewers")
@click.pass_context
def reviewers_cmd(ctx):
    """List the reviewers the council can call on.

    Reviewers come from the `reviewers` list in .mdcouncil.yml, or the
    built-in roster when that list is absent.
    """
    try:
        roster = load_reviewers(ctx.obj["config"])
    except (ValueError, FileNotFoundError) as e:
        raise click.UsageError(str(e))

    table = Table(title="Council Reviewers", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="bold")
    table.add_column("Name")
    table.add_column("Model")
    table.add_column("Role", width=8)
    table.add_column("Enabled", justify="center", width=8)

    for r in roster:
        table.add_row(
            r.id,
            r.label,
            r.model,
            "[green]editor[/green]" if r.is_editor else "council",
            "✓" if r.enabled else "[dim]—[/dim]",
        )

    console.print(table)
