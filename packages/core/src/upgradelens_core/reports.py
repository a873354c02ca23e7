"""Write finished analysis results to report files.

Two formats: ``json`` (machine-readable, the full result map plus the
aggregate) and ``markdown`` (a human summary with one section per module).
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from pathlib import Path

from upgradelens_core.models import SEVERITIES, AnalysisResult

logger = logging.getLogger(__name__)

REPORT_FORMATS = ("json", "markdown")

_SEVERITY_ORDER = {sev: rank for rank, sev in enumerate((*SEVERITIES, "unknown"))}


def render_json(results: Mapping[str, AnalysisResult], summary: dict) -> str:
    data = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "summary": summary,
        "results": {path: results[path].to_dict() for path in sorted(results)},
    }
    return json.dumps(data, indent=2)


def render_markdown(results: Mapping[str, AnalysisResult], summary: dict) -> str:
    totals = summary.get("totals", {})
    lines = [
        "# Upgrade analysis report",
        "",
        f"- Files analyzed: {summary.get('files_analyzed', 0)}",
        f"- Files with issues: {summary.get('files_with_issues', 0)}",
        f"- Critical: {totals.get('critical', 0)}, warnings: {totals.get('warning', 0)}, "
        f"suggestions: {totals.get('suggestion', 0)}",
        "",
    ]

    by_module: dict[str, list[AnalysisResult]] = {}
    for path in sorted(results):
        by_module.setdefault(results[path].module or "(none)", []).append(results[path])

    for module, module_results in by_module.items():
        counts = summary.get("modules", {}).get(module, {})
        lines.append(f"## {module}")
        lines.append("")
        lines.append(
            f"{counts.get('critical', 0)} critical, {counts.get('warning', 0)} warning, "
            f"{counts.get('suggestion', 0)} suggestion"
        )
        lines.append("")
        for result in module_results:
            if not result.issues and not result.warnings:
                continue
            lines.append(f"### `{result.file_path}`")
            lines.append("")
            for issue in sorted(result.issues, key=lambda i: (_SEVERITY_ORDER[i.severity], i.line_number or 0)):
                where = f" (line {issue.line_number})" if issue.line_number else ""
                lines.append(f"- **{issue.severity}** [{issue.type}]{where}: {issue.description}")
                if issue.current_code and issue.suggested_code:
                    lines.append(f"  - `{issue.current_code}` → `{issue.suggested_code}`")
            for warning in result.warnings:
                lines.append(f"- _warning_: {warning}")
            lines.append("")
    return "\n".join(lines).rstrip() + "\n"


_RENDERERS = {"json": (render_json, "json"), "markdown": (render_markdown, "md")}


def generate_reports(
    results: Mapping[str, AnalysisResult],
    summary: dict,
    formats: list[str],
    output_dir: str,
) -> dict[str, Path]:
    """Write one file per requested format and return format → path.

    Unknown formats are skipped with a warning rather than failing the run.
    """
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")

    written: dict[str, Path] = {}
    for fmt in formats:
        if fmt not in _RENDERERS:
            logger.warning("Unknown report format %r; expected one of %s", fmt, ", ".join(REPORT_FORMATS))
            continue
        render, ext = _RENDERERS[fmt]
        path = out / f"upgrade-report-{stamp}.{ext}"
        path.write_text(render(results, summary), encoding="utf-8")
        logger.info("Wrote %s report to %s", fmt, path)
        written[fmt] = path
    return written
