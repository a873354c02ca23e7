"""report command — severity tables and report files from stored results."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from upgradelens_core.aggregator import aggregate
from upgradelens_core.reports import REPORT_FORMATS, generate_reports

console = Console()


@click.command("report")
@click.option(
    "--format",
    "formats",
    type=click.Choice(REPORT_FORMATS),
    multiple=True,
    help="Also write a report file in this format. Repeatable.",
)
@click.option("--output", "output_dir", default=None, help="Directory for report files. Overrides report_path.")
@click.pass_context
def report_cmd(ctx, formats: tuple[str, ...], output_dir: str | None):
    """Summarise stored analysis results by module and severity."""
    from upgradelens_cli.wiring import build_batch, context_objects

    config, store = context_objects(ctx)
    results = build_batch(config, store).stored_results()
    if not results:
        console.print("[yellow]No analysis results found. Run `upgradelens analyze` first.[/yellow]")
        return

    summary = aggregate(results)
    totals = summary["totals"]

    table = Table(title="Upgrade Issues by Module", show_header=True, header_style="bold cyan")
    table.add_column("Module")
    table.add_column("Files", justify="right")
    table.add_column("Critical", justify="right")
    table.add_column("Warning", justify="right")
    table.add_column("Suggestion", justify="right")
    for module, counts in summary["modules"].items():
        table.add_row(
            module,
            str(counts["files"]),
            f"[red]{counts['critical']}[/red]" if counts["critical"] else "0",
            f"[yellow]{counts['warning']}[/yellow]" if counts["warning"] else "0",
            str(counts["suggestion"]),
        )
    console.print(table)
    console.print(
        f"\n  {summary['files_analyzed']} files, {summary['files_with_issues']} with issues, "
        f"{summary['total_issues']} issues total "
        f"([red]{totals['critical']} critical[/red], [yellow]{totals['warning']} warning[/yellow], "
        f"{totals['suggestion']} suggestion)"
    )
    if totals["unknown"]:
        console.print(f"  [dim]{totals['unknown']} issue(s) had an unrecognised priority.[/dim]")

    if formats:
        written = generate_reports(
            results, summary, list(formats), output_dir or config.get("report_path", "upgradelens-reports")
        )
        for fmt, path in written.items():
            console.print(f"[green]Wrote {fmt} report: {path}[/green]")
