"""stats command - aggregate findings across review history."""

from __future__ import annotations

from collections import Counter

import click
from rich.console import Console
from rich.table import Table

from mdcouncil_cli.commands.history import _require_store

console = Console()


@click.command("stats")
@click.option("--document", "document_path", default=None, help="Only count reviews of this document.")
@click.option("--top", default=10, show_default=True, help="Number of top entries to show per category.")
@click.pass_context
def stats_cmd(ctx, document_path: str | None, top: int):
    """Show aggregated review statistics.

    Reports finding types and per-reviewer acceptance rates. Low acceptance
    usually means a reviewer prompt needs tuning.
    """
    store = _require_store(ctx)

    records = store.list_reviews(document_path)
    if not records:
        console.print("[yellow]No review records found.[/yellow]")
        return

    total_reviews = len(records)
    total_findings = sum(r.total_findings for r in records)
    type_counter: Counter[str] = Counter()
    reviewer_total: Counter[str] = Counter()
    reviewer_accepted: Counter[str] = Counter()
    document_counter: Counter[str] = Counter(r.document_path for r in records)

    for record in records:
        for finding in record.findings:
            type_counter[finding.type] += 1
            reviewer_total[finding.reviewer] += 1
            if finding.status == "accepted":
                reviewer_accepted[finding.reviewer] += 1

    # --- Summary ---
    console.print("\n[bold]Council review stats[/bold]")
    console.print(f"  Total reviews:  {total_reviews}")
    console.print(f"  Total findings: {total_findings}")
    console.print(f"  Avg per review: {total_findings / total_reviews:.1f}")

    # --- Type breakdown ---
    if type_counter:
        type_table = Table(title="Finding Types", show_header=True)
        type_table.add_column("Type", style="bold")
        type_table.add_column("Count", justify="right")
        type_table.add_column("% of total", justify="right")
        _type_style = {"error": "red", "warning": "yellow", "suggestion": "blue", "question": "magenta", "praise": "green"}
        counted = sum(type_counter.values())
        for finding_type in ["error", "warning", "suggestion", "question", "praise"]:
            count = type_counter.get(finding_type, 0)
            style = _type_style[finding_type]
            type_table.add_row(f"[{style}]{finding_type}[/{style}]", str(count), f"{count / counted * 100:.1f}%")
        console.print(type_table)

    # --- Acceptance per reviewer ---
    if reviewer_total:
        reviewer_table = Table(title="Acceptance by Reviewer", show_header=True)
        reviewer_table.add_column("Reviewer")
        reviewer_table.add_column("Findings", justify="right")
        reviewer_table.add_column("Accepted", justify="right")
        for reviewer, count in reviewer_total.most_common(top):
            accepted = reviewer_accepted.get(reviewer, 0)
            reviewer_table.add_row(reviewer, str(count), f"{accepted} ({accepted / count * 100:.0f}%)")
        console.print(reviewer_table)

    # --- Most reviewed documents ---
    doc_table = Table(title=f"Top {top} Most Reviewed Documents", show_header=True)
    doc_table.add_column("Document")
    doc_table.add_column("Reviews", justify="right")
    for path, count in document_counter.most_common(top):
        doc_table.add_row(path, str(count))
    console.print(doc_table)
