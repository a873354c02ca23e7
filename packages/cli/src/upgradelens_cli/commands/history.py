"""history command — display per-module analysis history."""

from __future__ import annotations

from datetime import datetime

import click
from rich.console import Console
from rich.table import Table

console = Console()


def _fmt_time(ts: float | None) -> str:
    if not ts:
        return "-"
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M:%S")


@click.command("history")
@click.option("--module", required=True, help="Module directory, as passed to `upgradelens analyze`.")
@click.option("--limit", default=10, show_default=True, help="Maximum number of entries to show.")
@click.pass_context
def history_cmd(ctx, module: str, limit: int):
    """Show past analyses of a module, newest first."""
    from upgradelens_cli.wiring import build_tracker, context_objects

    config, store = context_objects(ctx)
    tracker = build_tracker(config, store)

    entries = tracker.history(module)[:limit]
    if not entries:
        console.print("[yellow]No analysis history for this module.[/yellow]")
        return

    table = Table(title=f"Analysis History — {module}", show_header=True, header_style="bold cyan")
    table.add_column("Type", width=14)
    table.add_column("Status", width=12)
    table.add_column("Started", width=20)
    table.add_column("Finished", width=20)
    table.add_column("Critical", justify="right")
    table.add_column("Warning", justify="right")

    _status_style = {"completed": "green", "in_progress": "yellow", "failed": "red"}

    for entry in entries:
        style = _status_style.get(entry["status"], "white")
        results = entry.get("results") or {}
        table.add_row(
            entry["type"],
            f"[{style}]{entry['status']}[/{style}]",
            _fmt_time(entry.get("start_time")),
            _fmt_time(entry.get("end_time")),
            str(results.get("critical", "-")),
            str(results.get("warning", "-")),
        )

    console.print(table)
    if tracker.needs_reanalysis(module, entries[0]["type"]):
        console.print("[dim]Due for re-analysis.[/dim]")
