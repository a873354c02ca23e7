"""progress command — inspect or discard unfinished batches."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

console = Console()


@click.command("progress")
@click.option("--list", "list_all", is_flag=True, help="List every unfinished batch, not just the active one.")
@click.option("--abandon", is_flag=True, help="Delete the active batch's state (or --batch's) without finishing it.")
@click.option("--batch", "batch_id", default=None, help="Batch id for --abandon. Defaults to the active batch.")
@click.pass_context
def progress_cmd(ctx, list_all: bool, abandon: bool, batch_id: str | None):
    """Show progress of the active analysis batch."""
    from upgradelens_cli.wiring import build_batch, context_objects

    config, store = context_objects(ctx)
    batch = build_batch(config, store)

    if abandon:
        if batch.abandon(batch_id):
            console.print(f"[green]Abandoned batch {batch_id or '(active)'}.[/green]")
        else:
            console.print("[yellow]No batch state to abandon.[/yellow]")
        return

    if list_all:
        pending = batch.pending_batches()
        if not pending:
            console.print("[yellow]No unfinished batches.[/yellow]")
            return
        active = store.get(batch.current_key)
        for pending_id in pending:
            marker = " [bold](active)[/bold]" if pending_id == active else ""
            console.print(f"  {pending_id}{marker}")
        return

    progress = batch.get_progress()
    if not progress:
        console.print("[yellow]No analysis batch is running.[/yellow]")
        return

    console.print(f"\n[bold]Batch {progress['batch_id']}[/bold] ({progress['state']})")
    console.print(f"  Module:   {progress['current_module'] or '-'}")
    console.print(f"  Files:    {progress['files_processed']}/{progress['total_files']} ({progress['progress']}%)")
    console.print(f"  Errors:   {len(progress['errors'])}")

    if progress["errors"]:
        table = Table(title="Errors", show_header=True, header_style="bold red")
        table.add_column("Path")
        table.add_column("Error", max_width=80)
        for path, message in sorted(progress["errors"].items()):
            table.add_row(path, message)
        console.print(table)
