"""init command — interactive setup wizard.

Why an init wizard:
- Writes .upgradelens.yml once so every later command runs without flags.
- Detects the Drupal layout (web/, docroot/ or a bare root) and shows
  which modules would be analyzed, so a wrong root is caught before any
  API credits are spent.
"""

from __future__ import annotations

from pathlib import Path

import click
import yaml
from rich.console import Console

from upgradelens_core.config import PROVIDERS
from upgradelens_core.reports import REPORT_FORMATS
from upgradelens_core.scanner import discover_modules, find_drupal_root

console = Console()


@click.command("init")
@click.option("--root", default=".", show_default=True, help="Drupal site root.")
@click.pass_context
def init_cmd(ctx, root: str):
    """Set up upgradelens for a Drupal site.

    Creates .upgradelens.yml in the current directory (existing keys are
    kept unless you change them here).
    """
    from upgradelens_cli.auth import KEY_ENV_VARS

    console.print("\n[bold cyan]upgradelens init[/bold cyan] — setup wizard\n")

    drupal_root = find_drupal_root(root)
    modules = discover_modules(drupal_root, scan_custom=True, scan_contrib=True, scan_themes=True)
    console.print(f"[dim]Drupal root: {drupal_root}[/dim]")
    for kind in ("custom", "contrib", "theme"):
        count = sum(1 for m in modules if m.kind == kind)
        console.print(f"[dim]  {kind}: {count}[/dim]")

    # --- Choose provider ---
    provider = click.prompt("Analyzer", type=click.Choice(PROVIDERS), default="openai")

    # --- What to scan ---
    scan_custom = click.confirm("Scan custom modules?", default=True)
    scan_contrib = click.confirm("Scan contributed modules?", default=False)
    scan_themes = click.confirm("Scan themes?", default=False)

    target_version = click.prompt("Target Drupal major version", default="10")
    batch_size = click.prompt("Files per chunk", type=click.IntRange(min=1), default=50)

    # --- Store backend ---
    console.print("\nState store:")
    console.print("  [bold]sqlite[/bold]  — local file, interrupted runs can be resumed (default)")
    console.print("  [bold]memory[/bold]  — nothing persists between commands")
    store_type = click.prompt("Store backend", type=click.Choice(["sqlite", "memory"]), default="sqlite")

    config: dict = {
        "provider": provider,
        "scan_custom_modules": scan_custom,
        "scan_contrib_modules": scan_contrib,
        "scan_themes": scan_themes,
        "target_version": str(target_version),
        "batch_size": batch_size,
        "store": store_type,
    }

    if store_type == "sqlite":
        db_path = click.prompt("SQLite database path", default=".upgradelens.db")
        if db_path != ".upgradelens.db":
            config["store_path"] = db_path

    formats = click.prompt(
        f"Report formats (comma separated: {', '.join(REPORT_FORMATS)})",
        default="json",
    )
    config["report_formats"] = [f.strip() for f in formats.split(",") if f.strip() in REPORT_FORMATS] or ["json"]

    # --- Write .upgradelens.yml ---
    config_path = (ctx.obj or {}).get("config_path", ".upgradelens.yml")
    _write_config(config, config_path)
    console.print(f"[green]Created {config_path}[/green]")

    if provider in KEY_ENV_VARS:
        console.print(
            f"\n[yellow]Remember to export [bold]{KEY_ENV_VARS[provider]}[/bold] before running an analysis.[/yellow]"
        )

    console.print("\n[bold green]Setup complete![/bold green]")
    console.print(f"Run an analysis with: [bold]upgradelens analyze --root {root}[/bold]")


def _write_config(config: dict, config_path: str = ".upgradelens.yml") -> None:
    """Write or update the config file, preserving any existing keys."""
    path = Path(config_path)
    existing: dict = {}
    if path.exists():
        existing = yaml.safe_load(path.read_text()) or {}
    existing.update(config)
    path.write_text(yaml.dump(existing, default_flow_style=False, sort_keys=False))
