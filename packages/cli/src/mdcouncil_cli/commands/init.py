"""init command - write a starter .mdcouncil.yml.

The generated file points at the Ollama server, picks a history store and
copies the built-in reviewer roster in so it can be edited in place.
"""

from __future__ import annotations

from pathlib import Path

import click
import yaml
from rich.console import Console

from mdcouncil_core.config import BUILTIN_PRESETS_DIR

console = Console()


@click.command("init")
@click.option("--ollama-url", default=None, help="Ollama server address. Prompted for when omitted.")
@click.option("--force", is_flag=True, help="Overwrite keys in an existing config file.")
@click.pass_context
def init_cmd(ctx, ollama_url: str | None, force: bool):
    """Set up mdcouncil in the current directory."""
    config_path = Path(ctx.obj.get("config_path", ".mdcouncil.yml") if ctx.obj else ".mdcouncil.yml")
    console.print("\n[bold cyan]mdcouncil init[/bold cyan] - council setup\n")

    if config_path.exists() and not force:
        raise click.UsageError(f"{config_path} already exists. Re-run with --force to update it.")

    if ollama_url is None:
        ollama_url = click.prompt("Ollama server URL", default="http://localhost:11434")

    # --- Choose store backend ---
    console.print("\nReview history store:")
    console.print("  [bold]none[/bold]    - no persistence (default)")
    console.print("  [bold]sqlite[/bold]  - local SQLite file")
    store_type = click.prompt("Store backend", type=click.Choice(["none", "sqlite"]), default="none")

    config: dict = {"ollama_url": ollama_url}
    if store_type == "sqlite":
        db_path = click.prompt("SQLite database path", default=".mdcouncil.db")
        config["store"] = "sqlite"
        if db_path != ".mdcouncil.db":
            config["store_path"] = db_path

    if click.confirm("Copy the built-in reviewer roster into the config for editing?", default=True):
        config["reviewers"] = yaml.safe_load((BUILTIN_PRESETS_DIR / "reviewers.yml").read_text(encoding="utf-8"))

    _write_config(config_path, config)
    console.print(f"[green]Created {config_path}[/green]")

    console.print("\n[bold green]Setup complete![/bold green]")
    console.print("Run a review with: [bold]mdcouncil review <document.md>[/bold]")


def _write_config(path: Path, config: dict) -> None:
    """Write or update the config file, preserving any existing keys."""
    existing: dict = {}
    if path.exists():
        existing = yaml.safe_load(path.read_text()) or {}
    existing.update(config)
    path.write_text(yaml.dump(existing, default_flow_style=False, sort_keys=False, allow_unicode=True))
