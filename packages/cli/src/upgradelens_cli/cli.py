"""CLI entry point for upgradelens.

Commands:
  init      — interactive setup wizard writing .upgradelens.yml
  analyze   — run (or resume) a batched AI analysis over Drupal modules
  explain   — upgrade advice on drush output or a SQL query
  progress  — show, list or abandon unfinished batches
  report    — severity tables and report files from stored results
  stats     — most flagged files and issue-type breakdown
  patch     — build a diff from stored suggestions and optionally apply it
  rollback  — restore a patched file from its backup
  backups   — list or expire backups
  history   — per-module analysis history
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from upgradelens_cli.commands.analyze import analyze_cmd
from upgradelens_cli.commands.explain import explain_cmd
from upgradelens_cli.commands.history import history_cmd
from upgradelens_cli.commands.init import init_cmd
from upgradelens_cli.commands.patch import backups_cmd, patch_cmd, rollback_cmd
from upgradelens_cli.commands.progress import progress_cmd
from upgradelens_cli.commands.report import report_cmd
from upgradelens_cli.commands.stats import stats_cmd

console = Console()


def _build_store(config: dict):
    """Instantiate the configured store from .upgradelens.yml settings.

    Store selection:
      store: sqlite → SQLiteStore (store_path, default .upgradelens.db)
      store: memory → MemoryStore (nothing persists; --resume impossible)

    This factory lives in cli.py so neither upgradelens_core nor
    upgradelens_store know about the CLI config format.
    """
    store_type = config.get("store", "sqlite")

    if store_type == "memory":
        from upgradelens_store.memory import MemoryStore

        return MemoryStore()

    if store_type != "sqlite":
        console.print(f"[yellow]Unknown store {store_type!r}. Falling back to sqlite.[/yellow]")

    from upgradelens_store.sqlite import SQLiteStore

    return SQLiteStore(db_path=config.get("store_path", ".upgradelens.db"))


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=verbose)],
        force=True,
    )


def _version() -> str:
    try:
        return importlib.metadata.version("upgradelens")
    except importlib.metadata.PackageNotFoundError:
        return "0.0.0"


class _Group(click.Group):
    """Report store failures from any command as a one-line error."""

    def invoke(self, ctx: click.Context):
        from upgradelens_store.base import StoreError

        try:
            return super().invoke(ctx)
        except StoreError as e:
            raise click.ClickException(f"State store error: {e}") from e


@click.group(cls=_Group)
@click.version_option(version=_version(), prog_name="upgradelens")
@click.option(
    "--config",
    "config_path",
    default=".upgradelens.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="UPGRADELENS_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """AI-assisted Drupal upgrade analysis for custom and contributed code."""
    from upgradelens_core.config import load_config
    from upgradelens_core.exceptions import ConfigError
    from upgradelens_store.base import StoreError

    _setup_logging(verbose)
    ctx.ensure_object(dict)

    try:
        config = load_config(config_path)
    except ConfigError as e:
        raise click.ClickException(str(e))

    try:
        store = _build_store(config)
    except StoreError as e:
        raise click.ClickException(str(e))

    ctx.obj["store"] = store
    ctx.obj["config"] = config
    ctx.obj["config_path"] = config_path
    ctx.call_on_close(store.close)


main.add_command(init_cmd)
main.add_command(analyze_cmd)
main.add_command(explain_cmd)
main.add_command(progress_cmd)
main.add_command(report_cmd)
main.add_command(stats_cmd)
main.add_command(patch_cmd)
main.add_command(rollback_cmd)
main.add_command(backups_cmd)
main.add_command(history_cmd)
