"""models command - show or unload models resident on the Ollama server."""

from __future__ import annotations

import asyncio

import click
from rich.console import Console
from rich.table import Table

from mdcouncil_core.gateway import OllamaClient
from mdcouncil_core.models import ResidentModel
from mdcouncil_core.residency import ModelResidencyController, format_bytes

console = Console()


async def _resident_models(config: dict, unload: bool) -> tuple[list[ResidentModel], int]:
    async with OllamaClient.from_config(config) as gateway:
        residency = ModelResidencyController(
            gateway,
            unload_settle_seconds=config.get("unload_settle_seconds", 0.5),
            load_timeout=config.get("load_timeout", 300.0),
        )
        evicted = await residency.evict_all() if unload else 0
        return await residency.list_resident(), evicted


@click.command("models")
@click.option("--unload", is_flag=True, help="Unload every resident model to free device memory.")
@click.pass_context
def models_cmd(ctx, unload: bool):
    """Show which models are loaded on the Ollama server and how much VRAM they use."""
    config = ctx.obj["config"]
    loaded, evicted = asyncio.run(_resident_models(config, unload))

    if unload:
        console.print(f"[green]Unloaded {evicted} model(s).[/green]")

    if not loaded:
        console.print(f"[yellow]No models resident on {config['ollama_url']}.[/yellow]")
        return

    table = Table(title="Resident Models", show_header=True, header_style="bold cyan")
    table.add_column("Model", style="bold")
    table.add_column("Size", justify="right")
    table.add_column("VRAM", justify="right")
    table.add_column("Expires", width=20)
    for m in loaded:
        table.add_row(m.name, format_bytes(m.size), format_bytes(m.size_vram), m.expires_at[:19].replace("T", " "))
    console.print(table)

    total = sum(m.size_vram for m in loaded)
    console.print(f"  Total VRAM in use: [bold]{format_bytes(total)}[/bold]")
