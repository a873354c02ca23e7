"""stats command — aggregate patterns across stored results."""

from __future__ import annotations

from collections import Counter
from datetime import datetime

import click
from rich.console import Console
from rich.table import Table

from upgradelens_core.aggregator import aggregate

console = Console()


@click.command("stats")
@click.option("--top", default=10, show_default=True, help="Number of top entries to show per category.")
@click.pass_context
def stats_cmd(ctx, top: int):
    """Show the most flagged files and the issue-type breakdown.

    Useful for deciding where to start: a handful of files usually carry
    most of the critical deprecations.
    """
    from upgradelens_cli.wiring import build_batch, build_tracker, context_objects

    config, store = context_objects(ctx)
    results = build_batch(config, store).stored_results()
    if not results:
        console.print("[yellow]No analysis results found. Run `upgradelens analyze` first.[/yellow]")
        return

    summary = aggregate(results)
    total_issues = summary["total_issues"]
    file_counter: Counter[str] = Counter({path: len(r.issues) for path, r in results.items() if r.issues})

    # --- Summary ---
    console.print("\n[bold]Analysis stats[/bold]")
    console.print(f"  Files analyzed: {summary['files_analyzed']}")
    console.print(f"  Total issues:   {total_issues}")
    if summary["files_analyzed"]:
        console.print(f"  Avg per file:   {total_issues / summary['files_analyzed']:.1f}")
    degraded = summary["statuses"].get("degraded", 0) + summary["statuses"].get("unavailable", 0)
    if degraded:
        console.print(f"  [yellow]Incomplete:     {degraded} file(s) without a usable analysis[/yellow]")

    # --- Type breakdown ---
    if total_issues:
        type_table = Table(title="Issue Types", show_header=True)
        type_table.add_column("Type", style="bold")
        type_table.add_column("Count", justify="right")
        type_table.add_column("% of total", justify="right")
        for issue_type, count in sorted(summary["types"].items(), key=lambda kv: -kv[1]):
            if count:
                type_table.add_row(issue_type, str(count), f"{count / total_issues * 100:.1f}%")
        console.print(type_table)

    # --- Most flagged files ---
    if file_counter:
        file_table = Table(title=f"Top {top} Most Flagged Files", show_header=True)
        file_table.add_column("File")
        file_table.add_column("Issues", justify="right")
        for file_path, count in file_counter.most_common(top):
            file_table.add_row(file_path, str(count))
        console.print(file_table)

    # --- Analysis history ---
    modules = sorted({r.module for r in results.values() if r.module})
    history = build_tracker(config, store).stats(modules)
    console.print("\n[bold]Module history[/bold]")
    console.print(f"  Analyzed:         {history['total_analyzed']} of {len(modules)}")
    console.print(f"  Due for recheck:  {history['needs_reanalysis']}")
    if history["last_analysis"]:
        last = datetime.fromtimestamp(history["last_analysis"]).strftime("%Y-%m-%d %H:%M:%S")
        console.print(f"  Last analysis:    {last}")
    for analysis_type, count in sorted(history["by_type"].items()):
        console.print(f"  [dim]{analysis_type}: {count} run(s)[/dim]")
