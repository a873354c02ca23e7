"""Tests for the offline rule-table analyzer."""

from upgradelens_core.models import AnalysisRequest
from upgradelens_core.patches import apply_change
from upgradelens_core.providers.static import StaticAnalyzer

REQUEST = AnalysisRequest(file_path="example.module", module="example")


def test_always_available():
    assert StaticAnalyzer().is_available() is True


def test_clean_source_has_no_issues():
    result = StaticAnalyzer().analyze("<?php\n$x = \\Drupal::messenger();\n", REQUEST)
    assert result.issues == []
    assert result.summary == "Static scan completed with 0 issues found."


def test_finds_deprecated_calls_with_line_numbers():
    source = "<?php\n\ndrupal_set_message('hi');\n$r = db_query('SELECT 1');\n"
    result = StaticAnalyzer().analyze(source, REQUEST)
    assert [(i.current_code, i.line_number) for i in result.issues] == [
        ("drupal_set_message(", 3),
        ("db_query(", 4),
    ]
    assert result.issues[0].suggested_code == "\\Drupal::messenger()->addMessage("
    assert result.module == "example"
    assert result.summary == "Static scan completed with 2 issues found."


def test_method_calls_are_not_flagged():
    source = "<?php\n$this->db_query('x');\nFoo::check_plain('y');\n$obj->drupal_render($el);\n"
    assert StaticAnalyzer().analyze(source, REQUEST).issues == []


def test_drupal_get_path_keeps_quotes_and_type():
    result = StaticAnalyzer().analyze("$p = drupal_get_path('module', 'example');", REQUEST)
    issue = result.issues[0]
    assert issue.current_code == "drupal_get_path('module', "
    assert issue.suggested_code == "\\Drupal::service('extension.list.module')->getPath("
    assert issue.severity == "critical"


def test_warning_priority_rules():
    issue = StaticAnalyzer().analyze("print check_plain($t);", REQUEST).issues[0]
    assert issue.severity == "warning"


def test_suggestion_feeds_into_apply_change():
    source = "<?php\nfunction f() {\n  drupal_set_message('done');\n}\n"
    issue = StaticAnalyzer().analyze(source, REQUEST).issues[0]
    assert apply_change(source, issue) == "<?php\nfunction f() {\n  \\Drupal::messenger()->addMessage('done');\n}\n"
