"""CLI entry point for mdcouncil.

Commands:
  review     - run a council review on a markdown document
  reviewers  - list the configured reviewer roster
  models     - show (or unload) models resident on the Ollama server
  history    - display past review records from the configured store
  stats      - aggregate findings across review history
  init       - write a starter .mdcouncil.yml
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from mdcouncil_cli.commands.history import history_cmd
from mdcouncil_cli.commands.init import init_cmd
from mdcouncil_cli.commands.models import models_cmd
from mdcouncil_cli.commands.review import review_cmd
from mdcouncil_cli.commands.reviewers import reviewers_cmd
from mdcouncil_cli.commands.stats import stats_cmd

console = Console()


def _build_store(config: dict):
    """Instantiate the configured store from .mdcouncil.yml settings.

      store: sqlite → SQLiteStore (store_path or .mdcouncil.db)
      (default)     → NoOpStore  (no persistence)
    """
    from mdcouncil_store.noop import NoOpStore

    if config.get("store", "noop") == "sqlite":
        from mdcouncil_store.sqlite import SQLiteStore

        return SQLiteStore(db_path=config.get("store_path") or ".mdcouncil.db")

    return NoOpStore()


def _get_version() -> str:
    try:
        return importlib.metadata.version("mdcouncil")
    except importlib.metadata.PackageNotFoundError:
        return "0.0.0"


@click.group()
@click.version_option(version=_get_version(), prog_name="mdcouncil")
@click.option(
    "--config",
    "config_path",
    default=".mdcouncil.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="MDCOUNCIL_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Council-of-writers document review on local Ollama models."""
    from mdcouncil_core.config import load_config

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )

    ctx.ensure_object(dict)

    try:
        config = load_config(config_path)
    except ValueError as e:
        raise click.UsageError(str(e))

    store = _build_store(config)
    ctx.obj["store"] = store
    ctx.obj["config"] = config
    ctx.obj["config_path"] = config_path
    ctx.call_on_close(store.close)


main.add_command(review_cmd)
main.add_command(reviewers_cmd)
main.add_command(models_cmd)
main.add_command(history_cmd)
main.add_command(stats_cmd)
main.add_command(init_cmd)
