"""explain command: ask for upgrade advice on drush output or a SQL query."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from upgradelens_core.batch import get_analyzer
from upgradelens_core.config import PROVIDERS
from upgradelens_core.exceptions import UpgradeLensError
from upgradelens_core.models import AnalysisRequest
from upgradelens_core.prompts import TEXT_ANALYSIS_TYPES

console = Console()


@click.command("explain")
@click.argument("source", type=click.File("r"), default="-")
@click.option(
    "--type",
    "analysis_type",
    type=click.Choice(TEXT_ANALYSIS_TYPES),
    required=True,
    help="What SOURCE contains.",
)
@click.option("--module", default="", help="Module the text belongs to, if any.")
@click.option("--provider", type=click.Choice(PROVIDERS), default=None, help="Analyzer. Overrides config file.")
@click.option("--test-mode", is_flag=True, help="Return canned results without calling the AI service.")
@click.pass_context
def explain_cmd(ctx, source, analysis_type: str, module: str, provider: str | None, test_mode: bool):
    """Explain command output or a SQL query in upgrade terms.

    SOURCE is a file, or - (the default) to read standard input:

    \b
      drush upgrade_status:analyze mymodule | upgradelens explain --type command_output
      upgradelens explain --type sql query.sql
    """
    from upgradelens_cli.auth import credential_problem
    from upgradelens_cli.wiring import context_objects

    base_config, _store = context_objects(ctx)
    config = dict(base_config)
    if provider:
        config["provider"] = provider
    if test_mode:
        config["test_mode"] = True

    problem = credential_problem(config)
    if problem:
        raise click.UsageError(problem)

    text = source.read()
    if not text.strip():
        raise click.UsageError("Nothing to explain: SOURCE is empty.")

    request = AnalysisRequest(
        file_path=source.name,
        module=module,
        framework_version=str(config.get("framework_version", "9")),
        target_version=str(config.get("target_version", "10")),
        analysis_type=analysis_type,
    )
    try:
        result = get_analyzer(config).analyze(text, request)
    except UpgradeLensError as e:
        raise click.ClickException(str(e))

    if result.summary:
        console.print(f"\n[bold]{result.summary}[/bold]")
    if result.issues:
        table = Table(title="Findings", show_header=True, header_style="bold cyan")
        table.add_column("Priority", width=10)
        table.add_column("Type", width=14)
        table.add_column("Description")
        table.add_column("Suggestion")
        for issue in result.issues:
            table.add_row(issue.priority, issue.type, issue.description, issue.suggested_code)
        console.print(table)
    else:
        console.print("[green]No problems found.[/green]")
    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")
