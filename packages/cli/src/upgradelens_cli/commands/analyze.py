"""analyze command — run or resume a batched analysis."""

from __future__ import annotations

import click
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn
from rich.table import Table

from upgradelens_core.batch import get_analyzer
from upgradelens_core.config import PROVIDERS
from upgradelens_core.exceptions import UpgradeLensError
from upgradelens_core.models import BatchReport, ProgressUpdate
from upgradelens_core.prompts import FILE_ANALYSIS_TYPES
from upgradelens_core.reports import generate_reports
from upgradelens_core.scanner import discover_modules, is_compatible
from upgradelens_store.base import StoreError

console = Console()


def _print_report(report: BatchReport) -> None:
    style = {"completed": "green", "completed_with_errors": "yellow", "failed": "red"}.get(report.status, "white")
    console.print(f"\n[bold]Batch {report.batch_id}[/bold]: [{style}]{report.status}[/{style}]")
    console.print(
        f"  {report.files_processed}/{report.total_files} files in {report.duration_seconds:.0f}s, "
        f"{report.error_count} error(s)"
    )
    totals = report.summary.get("totals")
    if not totals:
        return
    table = Table(title="Issues found", show_header=True, header_style="bold cyan")
    table.add_column("Module")
    table.add_column("Critical", justify="right", style="red")
    table.add_column("Warning", justify="right", style="yellow")
    table.add_column("Suggestion", justify="right", style="blue")
    for module, counts in report.summary["modules"].items():
        table.add_row(module, str(counts["critical"]), str(counts["warning"]), str(counts["suggestion"]))
    table.add_row(
        "[bold]Total[/bold]", str(totals["critical"]), str(totals["warning"]), str(totals["suggestion"])
    )
    console.print(table)


def _discover_targets(root: str, config: dict) -> list[str]:
    """Return discovered module paths, reporting modules that do not declare the target core version."""
    found = discover_modules(
        root,
        scan_custom=config.get("scan_custom_modules", True),
        scan_contrib=config.get("scan_contrib_modules", True),
        scan_themes=config.get("scan_themes", False),
    )
    target = config.get("target_version", "10")
    not_ready = [m.name for m in found if not is_compatible(m.core_version_requirement, target)]
    if not_ready:
        console.print(
            f"[yellow]{len(not_ready)} of {len(found)} module(s) do not declare Drupal {target} "
            f"compatibility: {', '.join(not_ready)}[/yellow]"
        )
    return [m.path for m in found]


@click.command("analyze")
@click.option("--root", default=".", show_default=True, help="Drupal site root used for module discovery.")
@click.option(
    "--module",
    "modules",
    multiple=True,
    help="Module directory to analyze. Repeatable. Defaults to every discovered module.",
)
@click.option(
    "--type",
    "analysis_type",
    type=click.Choice(FILE_ANALYSIS_TYPES),
    default="general",
    show_default=True,
    help="Analysis focus.",
)
@click.option("--chunk-size", type=click.IntRange(min=1), default=None, help="Files per chunk. Overrides batch_size.")
@click.option("--provider", type=click.Choice(PROVIDERS), default=None, help="Analyzer. Overrides config file.")
@click.option("--test-mode", is_flag=True, help="Return canned results without calling the AI service.")
@click.option("--resume", "resume_id", default=None, help="Continue an interrupted batch by id.")
@click.option("--only-stale", is_flag=True, help="Skip modules analyzed more recently than recheck_interval.")
@click.option("--format", "formats", multiple=True, help="Report format to write (json, markdown). Repeatable.")
@click.pass_context
def analyze_cmd(
    ctx,
    root: str,
    modules: tuple[str, ...],
    analysis_type: str,
    chunk_size: int | None,
    provider: str | None,
    test_mode: bool,
    resume_id: str | None,
    only_stale: bool,
    formats: tuple[str, ...],
):
    """Analyze Drupal modules for upgrade issues.

    Files are analyzed in chunks and checkpointed after every file, so an
    interrupted run can be continued with --resume.

    \b
    Required environment variables:
      OPENAI_API_KEY       Required with provider openai (the default)
      ANTHROPIC_API_KEY    Required with provider anthropic
    """
    from upgradelens_cli.auth import credential_problem
    from upgradelens_cli.wiring import build_batch, context_objects

    base_config, store = context_objects(ctx)
    config = dict(base_config)
    if provider:
        config["provider"] = provider
    if test_mode:
        config["test_mode"] = True

    problem = credential_problem(config)
    if problem:
        raise click.UsageError(problem)

    analyzer = get_analyzer(config)
    batch = build_batch(config, store, analyzer)

    run = None
    try:
        if resume_id:
            run = batch.resume(resume_id)
        else:
            targets = list(modules) or _discover_targets(root, config)
            if only_stale:
                targets = [m for m in targets if batch.tracker.needs_reanalysis(m, analysis_type)]
            if not targets:
                console.print("[yellow]No modules to analyze.[/yellow]")
                return
            run = batch.create_batch(targets, chunk_size=chunk_size, analysis_type=analysis_type)

        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=console,
        ) as progress:
            task = progress.add_task("Analyzing", total=run.total_files, completed=run.files_processed)

            def _on_progress(update: ProgressUpdate) -> None:
                progress.update(
                    task,
                    completed=update.files_processed,
                    description=f"Analyzing {update.current_module}",
                )

            report = batch.run(run, on_progress=_on_progress)
    except UpgradeLensError as e:
        raise click.ClickException(str(e))
    except StoreError as e:
        hint = f" Once the store is reachable, run: upgradelens analyze --resume {run.batch_id}" if run else ""
        raise click.ClickException(f"State store error: {e}.{hint}")

    _print_report(report)
    if report.status == "failed":
        raise click.ClickException(
            f"Batch aborted. Fix the problem above and run: upgradelens analyze --resume {report.batch_id}"
        )

    report_formats = list(formats) or config.get("report_formats", [])
    if report_formats:
        output_dir = config.get("report_path", "upgradelens-reports")
        written = generate_reports(batch.stored_results(), report.summary, report_formats, output_dir)
        for fmt, path in written.items():
            console.print(f"[green]Wrote {fmt} report: {path}[/green]")
