"""Roll per-file results up into per-module and run-wide counts.

aggregate() is a pure function: it never reads incremental counters, it
recomputes everything from the result map, so calling it twice on the same
map yields the same summary.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping

from upgradelens_core.models import ISSUE_TYPES, SEVERITIES, AnalysisResult, canonical_type

_SEVERITY_BUCKETS = (*SEVERITIES, "unknown")


def _empty_counts() -> dict[str, int]:
    return {sev: 0 for sev in _SEVERITY_BUCKETS}


def aggregate(results: Mapping[str, AnalysisResult]) -> dict:
    """Summarise a file → AnalysisResult map.

    Returns a plain dict (JSON-serialisable) with:
      modules            per-module severity counts plus file/issue totals
      totals             run-wide severity counts
      types              issue-type histogram (unknown types bucketed)
      statuses           how many results were ok / degraded / unavailable
      files_analyzed, files_with_issues, total_issues
    """
    modules: dict[str, dict[str, int]] = {}
    totals = _empty_counts()
    types: Counter[str] = Counter({t: 0 for t in (*ISSUE_TYPES, "unknown")})
    statuses: Counter[str] = Counter()
    files_with_issues = 0

    for path in sorted(results):
        result = results[path]
        module = result.module or "(none)"
        bucket = modules.setdefault(module, {**_empty_counts(), "files": 0, "issues": 0})
        bucket["files"] += 1
        statuses[result.status] += 1
        if result.issues:
            files_with_issues += 1
        for sev, count in result.severity_counts().items():
            bucket[sev] += count
            totals[sev] += count
        bucket["issues"] += len(result.issues)
        for issue in result.issues:
            types[canonical_type(issue.type)] += 1

    return {
        "modules": {name: modules[name] for name in sorted(modules)},
        "totals": totals,
        "types": dict(types),
        "statuses": dict(sorted(statuses.items())),
        "files_analyzed": len(results),
        "files_with_issues": files_with_issues,
        "total_issues": sum(totals.values()),
    }
