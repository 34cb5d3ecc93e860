"""history command - display past review records from the store."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

console = Console()


def _require_store(ctx):
    from mdcouncil_store.noop import NoOpStore

    store = ctx.obj.get("store") if ctx.obj else None
    if store is None or isinstance(store, NoOpStore):
        raise click.UsageError(
            "No store configured. Add 'store: sqlite' to .mdcouncil.yml, or run `mdcouncil init` to set one up."
        )
    return store


@click.command("history")
@click.option("--document", "document_path", default=None, help="Only show reviews of this document.")
@click.option("--limit", default=20, show_default=True, help="Maximum number of records to show.")
@click.pass_context
def history_cmd(ctx, document_path: str | None, limit: int):
    """Show past council reviews."""
    store = _require_store(ctx)

    records = store.list_reviews(document_path)
    if not records:
        console.print("[yellow]No review records found.[/yellow]")
        return

    # Most recent first, capped at --limit.
    records = list(reversed(records))[:limit]

    title = f"Review History - {document_path}" if document_path else "Review History"
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Document", max_width=40)
    table.add_column("Reviewers", max_width=30)
    table.add_column("Findings", justify="right", width=9)
    table.add_column("Accepted", justify="right", width=9)
    table.add_column("Reviewed At", width=20)

    for r in records:
        accepted = sum(1 for f in r.findings if f.status == "accepted")
        table.add_row(
            r.document_path,
            ", ".join(r.reviewers),
            str(r.total_findings),
            f"[green]{accepted}[/green]" if accepted else "0",
            r.reviewed_at[:19].replace("T", " "),
        )

    console.print(table)
