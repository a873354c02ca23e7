"""Tests for result aggregation."""

from upgradelens_core.aggregator import aggregate
from upgradelens_core.models import AnalysisResult, Issue


def _issue(priority, type_="deprecation"):
    return Issue(type=type_, description="x", priority=priority)


def _results():
    return {
        "mod_a/a.php": AnalysisResult("mod_a/a.php", "mod_a", [_issue("critical"), _issue("high", "security")]),
        "mod_a/b.php": AnalysisResult("mod_a/b.php", "mod_a", [_issue("medium", "performance")]),
        "mod_b/c.php": AnalysisResult("mod_b/c.php", "mod_b", [_issue("low", "standards"), _issue("bogus", "weird")]),
        "mod_b/d.php": AnalysisResult("mod_b/d.php", "mod_b", [], warnings=["unparsed"], status="degraded"),
    }


def test_per_module_counts():
    summary = aggregate(_results())
    assert summary["modules"]["mod_a"]["critical"] == 2
    assert summary["modules"]["mod_a"]["warning"] == 1
    assert summary["modules"]["mod_a"]["files"] == 2
    assert summary["modules"]["mod_b"]["suggestion"] == 1
    assert summary["modules"]["mod_b"]["unknown"] == 1
    assert list(summary["modules"]) == ["mod_a", "mod_b"]


def test_totals_and_file_counts():
    summary = aggregate(_results())
    assert summary["totals"] == {"critical": 2, "warning": 1, "suggestion": 1, "unknown": 1}
    assert summary["total_issues"] == 5
    assert summary["files_analyzed"] == 4
    assert summary["files_with_issues"] == 3
    assert summary["statuses"] == {"degraded": 1, "ok": 3}


def test_type_histogram_buckets_unknown_types():
    types = aggregate(_results())["types"]
    assert types["deprecation"] == 1
    assert types["security"] == 1
    assert types["best_practice"] == 0
    assert types["unknown"] == 1


def test_aggregate_is_idempotent():
    results = _results()
    assert aggregate(results) == aggregate(results)


def test_empty_results():
    summary = aggregate({})
    assert summary["modules"] == {}
    assert summary["total_issues"] == 0
    assert summary["files_analyzed"] == 0


def test_result_without_module():
    summary = aggregate({"x.php": AnalysisResult("x.php", "", [_issue("critical")])})
    assert summary["modules"]["(none)"]["critical"] == 1
