"""review command - run a council review on a markdown document."""

from __future__ import annotations

import asyncio
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape

from mdcouncil_core.config import ReviewSettings, load_reviewers
from mdcouncil_core.events import ReviewEvent
from mdcouncil_core.gateway import OllamaClient
from mdcouncil_core.models import ReviewDocument, ReviewSession, Reviewer, Selection
from mdcouncil_core.orchestrator import ReviewOrchestrator
from mdcouncil_core.utils.document import make_selection
from mdcouncil_store.models import FindingRecord, ReviewRecord

console = Console()

_TYPE_COLOR = {"error": "red", "warning": "yellow", "suggestion": "blue", "question": "magenta", "praise": "green"}
_SEVERITY_COLOR = {"high": "red", "medium": "yellow", "low": "dim"}
_PRIORITY_COLOR = {"high": "red", "medium": "yellow", "low": "blue"}
_DECISIONS = {"a": "accepted", "r": "rejected", "d": "dismissed"}


def _parse_lines(content: str, lines: str | None) -> Selection | None:
    """Turn ``--lines 3-10`` (or ``--lines 7``) into a Selection."""
    if not lines:
        return None
    start, _, end = lines.partition("-")
    try:
        start_line = int(start)
        end_line = int(end) if end else start_line
        return make_selection(content, start_line, end_line)
    except ValueError as e:
        raise click.UsageError(f"Invalid --lines value {lines!r}: {e}")


def _print_event(event: ReviewEvent) -> None:
    if event.kind == "phase":
        if event.status != "idle":
            console.print(f"[bold cyan]▸ {event.status.replace('_', ' ')}[/bold cyan]")
        return
    if not event.detail:
        return
    if event.status == "error":
        console.print(f"  [red]{escape(event.detail)}[/red]")
    elif event.kind == "residency":
        console.print(f"  [dim]{escape(event.detail)}[/dim]")
    else:
        console.print(f"  {escape(event.detail)}")


def print_findings(document: ReviewDocument) -> None:
    """Print every council entry and its findings to the terminal."""
    for entry in document.council_feedback:
        header = f"{entry.reviewer_icon} {entry.reviewer_name}".strip()
        console.print(f"\n[bold]{header}[/bold] [dim]({entry.model})[/dim]")
        if entry.error:
            console.print(f"  [red]Failed: {escape(entry.error)}[/red]")
            continue
        console.print(f"  [dim]{escape(entry.summary)}[/dim]")
        for f in entry.findings:
            color = _TYPE_COLOR.get(f.type, "white")
            sev_color = _SEVERITY_COLOR.get(f.severity, "white")
            console.print(
                f"  line [bold]{f.start_line}[/bold]  [{color}]{f.type.upper()}[/{color}]  "
                f"[{sev_color}]{f.severity}[/{sev_color}]"
            )
            if f.original_text.strip():
                console.print(f"    [dim]{escape(f.original_text.strip())}[/dim]")
            console.print(f"    {escape(f.comment)}")
            if f.suggested_fix:
                console.print(f"    [green]→ {escape(f.suggested_fix)}[/green]")


def print_synthesis(document: ReviewDocument) -> None:
    synthesis = document.editor_synthesis
    if synthesis is None:
        console.print("\n[yellow]No editor synthesis available.[/yellow]")
        return
    console.print("\n[bold]Editor synthesis[/bold]")
    console.print(f"  {escape(synthesis.overall_assessment)}")
    for change in synthesis.prioritized_changes:
        color = _PRIORITY_COLOR.get(change.priority, "white")
        console.print(f"  [{color}]{change.priority.upper()}[/{color}] {escape(change.description)}")
        if change.reason:
            console.print(f"    [dim]{escape(change.reason)}[/dim]")
    for conflict in synthesis.conflicting_feedback:
        console.print(f"  [magenta]Conflict:[/magenta] {escape(conflict)}")
    if synthesis.recommended_focus:
        console.print(f"  [bold]Focus first:[/bold] {escape(synthesis.recommended_focus)}")


def _decide(orchestrator: ReviewOrchestrator, document: ReviewDocument, accept_all: bool) -> None:
    """Ask the user to accept, reject or dismiss each finding."""
    for f in document.all_findings():
        if accept_all:
            orchestrator.update_finding_status(f.id, "accepted")
            continue
        console.print(f"\n[bold]{f.reviewer_name}[/bold] line {f.start_line}: {escape(f.comment)}")
        choice = click.prompt(
            "[a]ccept / [r]eject / [d]ismiss / [s]kip",
            type=click.Choice(["a", "r", "d", "s"]),
            default="s",
            show_choices=False,
        )
        if choice in _DECISIONS:
            orchestrator.update_finding_status(f.id, _DECISIONS[choice])


def _to_record(session: ReviewSession, document: ReviewDocument) -> ReviewRecord:
    """Map the finished session to a ReviewRecord for the store."""
    synthesis = document.editor_synthesis
    return ReviewRecord(
        session_id=session.id,
        document_path=session.document_path,
        reviewed_at=session.started_at.isoformat(),
        reviewers=list(session.reviewer_ids),
        summary=session.summary or "",
        total_findings=len(session.findings),
        overall_assessment=synthesis.overall_assessment if synthesis else "",
        findings=[
            FindingRecord(
                reviewer=f.reviewer_name,
                line=f.start_line,
                type=f.type,
                severity=f.severity,
                status=f.status,
                comment=f.comment,
            )
            for f in session.findings
        ],
    )


async def _run_council(
    config: dict,
    roster: list[Reviewer],
    path: str,
    content: str,
    reviewer_ids: list[str],
    selection: Selection | None,
) -> tuple[ReviewOrchestrator, ReviewDocument | None]:
    async with OllamaClient.from_config(config) as gateway:
        orchestrator = ReviewOrchestrator(roster, gateway, ReviewSettings.from_config(config))
        orchestrator.events.subscribe(_print_event)
        document = await orchestrator.run_review(path, content, reviewer_ids, selection)
    return orchestrator, document


@click.command("review")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--reviewer",
    "-r",
    "reviewer_ids",
    multiple=True,
    help="Reviewer id to include (repeatable). Defaults to every enabled reviewer.",
)
@click.option("--lines", default=None, help="Review only a line range, e.g. 10-25.")
@click.option("--parallel", is_flag=True, help="Dispatch all reviewers at once instead of one model at a time.")
@click.option("--yes", "-y", is_flag=True, help="Accept every finding without prompting.")
@click.option(
    "--shadow",
    "-s",
    is_flag=True,
    help="Dry-run mode: print findings without recording decisions or saving history.",
)
@click.pass_context
def review_cmd(ctx, path: str, reviewer_ids: tuple[str, ...], lines: str | None, parallel: bool, yes: bool, shadow: bool):
    """Review a markdown document with the council of writers.

    Each council reviewer reads the document with its own model, then the
    editor merges their findings into a prioritized list of changes.

    \b
    Environment variables:
      OLLAMA_HOST    Ollama server address (default http://localhost:11434)
    """
    config = dict(ctx.obj["config"])
    if parallel:
        config["execution_mode"] = "parallel"

    try:
        roster = load_reviewers(config)
    except (ValueError, FileNotFoundError) as e:
        raise click.UsageError(str(e))

    known = {r.id for r in roster}
    unknown = [rid for rid in reviewer_ids if rid not in known]
    if unknown:
        raise click.UsageError(f"Unknown reviewer(s): {', '.join(unknown)}. Run `mdcouncil reviewers` to list them.")
    ids = list(reviewer_ids) or [r.id for r in roster if r.enabled]

    content = Path(path).read_text(encoding="utf-8")
    selection = _parse_lines(content, lines)

    orchestrator, document = asyncio.run(_run_council(config, roster, path, content, ids, selection))
    if document is None:
        console.print("[yellow]No council reviewers enabled. Nothing to review.[/yellow]")
        return

    print_findings(document)
    print_synthesis(document)
    console.print(f"\n[bold]{escape(orchestrator.session.summary or '')}[/bold]")

    if shadow:
        console.print("[bold]Shadow review complete. No decisions recorded.[/bold]")
        return

    _decide(orchestrator, document, accept_all=yes)
    orchestrator.complete_review()

    stats = document.finding_stats()["by_status"]
    console.print(
        f"\n[green]Review complete: {stats['accepted']} accepted, {stats['rejected']} rejected, "
        f"{stats['dismissed']} dismissed, {stats['pending']} pending.[/green]"
    )

    store = ctx.obj.get("store") if ctx.obj else None
    if store is not None:
        store.save(_to_record(orchestrator.session, document))
