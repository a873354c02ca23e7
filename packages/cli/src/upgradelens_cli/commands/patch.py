"""patch, rollback and backups commands."""

from __future__ import annotations

import os
from datetime import datetime

import click
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from upgradelens_core.exceptions import PatchError
from upgradelens_core.models import AnalysisResult
from upgradelens_core.utils.files import printable

console = Console()


def _find_result(results: dict[str, AnalysisResult], file_path: str) -> AnalysisResult | None:
    if file_path in results:
        return results[file_path]
    wanted = os.path.abspath(file_path)
    for path, result in results.items():
        if os.path.abspath(path) == wanted:
            return result
    return None


@click.command("patch")
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--apply", "apply_patch", is_flag=True, help="Apply the patch after a dry run succeeds.")
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt.")
@click.option("--save/--no-save", default=True, show_default=True, help="Write the diff under report_path/patches.")
@click.pass_context
def patch_cmd(ctx, file_path: str, apply_patch: bool, yes: bool, save: bool):
    """Build a diff from the stored suggestions for FILE_PATH.

    Only issues carrying both the current code and a code example are
    turned into changes. Applying takes a backup first; undo with
    `upgradelens rollback <change id>`.
    """
    from upgradelens_cli.wiring import build_batch, build_patch_generator, context_objects

    config, store = context_objects(ctx)
    result = _find_result(build_batch(config, store).stored_results(), file_path)
    if result is None:
        raise click.UsageError(f"No analysis results for {file_path}. Run `upgradelens analyze` first.")

    changes = [i for i in result.issues if i.current_code and i.suggested_code]
    if not changes:
        console.print("[yellow]No suggested code changes for this file.[/yellow]")
        return

    generator = build_patch_generator(config, store)
    for problem in generator.validate_changes(changes, file_path):
        console.print(f"[yellow]  {problem}[/yellow]")

    try:
        patch = generator.generate_patch(file_path, changes)
    except PatchError as e:
        raise click.ClickException(str(e))

    console.print(Syntax(printable(patch.diff), "diff", theme="ansi_dark"))
    if save:
        saved = generator.save(patch, os.path.join(config.get("report_path", "upgradelens-reports"), "patches"))
        console.print(f"[dim]Saved {saved}[/dim]")

    if not (apply_patch or config.get("auto_apply_patches")):
        return

    if not generator.is_safe(patch, file_path):
        raise click.ClickException("Patch does not apply cleanly; the file was left untouched.")
    if not yes and not click.confirm(f"Apply this patch to {file_path}?", default=False):
        console.print("[yellow]Not applied.[/yellow]")
        return

    try:
        generator.apply_patch(patch, file_path)
    except PatchError as e:
        raise click.ClickException(str(e))
    console.print(f"[green]Applied. Undo with: upgradelens rollback {patch.change_id}[/green]")


@click.command("rollback")
@click.argument("change_id")
@click.pass_context
def rollback_cmd(ctx, change_id: str):
    """Restore the file changed by CHANGE_ID from its backup."""
    from upgradelens_cli.wiring import build_rollback, context_objects

    config, store = context_objects(ctx)
    try:
        backup = build_rollback(config, store).rollback(change_id)
    except PatchError as e:
        raise click.ClickException(str(e))
    console.print(f"[green]Restored {backup.file_path}[/green]")


@click.command("backups")
@click.option("--cleanup", is_flag=True, help="Delete backups older than backup_max_age.")
@click.pass_context
def backups_cmd(ctx, cleanup: bool):
    """List registered backups."""
    from upgradelens_cli.wiring import build_rollback, context_objects

    config, store = context_objects(ctx)
    manager = build_rollback(config, store)

    if cleanup:
        removed = manager.cleanup_old_backups(max_age=config.get("backup_max_age", 604800))
        console.print(f"[green]Removed {len(removed)} expired backup(s).[/green]")

    backups = manager.list_backups()
    if not backups:
        console.print("[yellow]No backups registered.[/yellow]")
        return

    table = Table(title="Backups", show_header=True, header_style="bold cyan")
    table.add_column("Change ID", style="bold", no_wrap=True)
    table.add_column("File")
    table.add_column("Created", width=20)
    table.add_column("Valid", width=6)
    for backup in backups:
        valid = "[green]yes[/green]" if manager.validate_backup(backup) else "[red]no[/red]"
        created = datetime.fromtimestamp(backup.created_at).strftime("%Y-%m-%d %H:%M:%S")
        table.add_row(backup.change_id, backup.file_path, created, valid)
    console.print(table)
