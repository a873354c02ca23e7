"""Offline deprecation scanner.

NO AI CALLS HERE. Matches source against a fixed table of Drupal APIs that
were deprecated in 8.x/9.x and removed in 10, and emits the same
AnalysisResult shape the AI providers produce. Used with ``provider: static``
for air-gapped runs and as a cheap first pass before spending API credits.

Each rule's replacement is a regex substitution template, so the suggested
code for a match can be fed straight into PatchGenerator.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from upgradelens_core.models import AnalysisRequest, AnalysisResult, Issue

logger = logging.getLogger(__name__)

# Not preceded by an identifier char, -> or :: so method calls don't match.
_NOT_METHOD = r"(?<![\w>:$\\])"


@dataclass(frozen=True)
class DeprecationRule:
    name: str
    pattern: re.Pattern
    replacement: str
    priority: str = "critical"


RULES: list[DeprecationRule] = [
    DeprecationRule(
        "drupal_get_path",
        re.compile(_NOT_METHOD + r"drupal_get_path\(\s*(['\"])(module|theme|profile)\1\s*,\s*"),
        r"\\Drupal::service(\1extension.list.\2\1)->getPath(",
    ),
    DeprecationRule(
        "drupal_set_message",
        re.compile(_NOT_METHOD + r"drupal_set_message\("),
        r"\\Drupal::messenger()->addMessage(",
    ),
    DeprecationRule("db_query", re.compile(_NOT_METHOD + r"db_query\("), r"\\Drupal::database()->query("),
    DeprecationRule("db_select", re.compile(_NOT_METHOD + r"db_select\("), r"\\Drupal::database()->select("),
    DeprecationRule("db_insert", re.compile(_NOT_METHOD + r"db_insert\("), r"\\Drupal::database()->insert("),
    DeprecationRule("db_update", re.compile(_NOT_METHOD + r"db_update\("), r"\\Drupal::database()->update("),
    DeprecationRule("db_delete", re.compile(_NOT_METHOD + r"db_delete\("), r"\\Drupal::database()->delete("),
    DeprecationRule(
        "entity_load",
        re.compile(_NOT_METHOD + r"entity_load\(\s*(['\"])(\w+)\1\s*,\s*"),
        r"\\Drupal::entityTypeManager()->getStorage(\1\2\1)->load(",
    ),
    DeprecationRule("node_load", re.compile(_NOT_METHOD + r"node_load\("), r"\\Drupal\\node\\Entity\\Node::load("),
    DeprecationRule("user_load", re.compile(_NOT_METHOD + r"user_load\("), r"\\Drupal\\user\\Entity\\User::load("),
    DeprecationRule(
        "format_date",
        re.compile(_NOT_METHOD + r"format_date\("),
        r"\\Drupal::service('date.formatter')->format(",
        priority="warning",
    ),
    DeprecationRule(
        "file_create_url",
        re.compile(_NOT_METHOD + r"file_create_url\("),
        r"\\Drupal::service('file_url_generator')->generateAbsoluteString(",
    ),
    DeprecationRule(
        "drupal_render",
        re.compile(_NOT_METHOD + r"drupal_render\("),
        r"\\Drupal::service('renderer')->render(",
    ),
    DeprecationRule(
        "check_plain",
        re.compile(_NOT_METHOD + r"check_plain\("),
        r"\\Drupal\\Component\\Utility\\Html::escape(",
        priority="warning",
    ),
]


class StaticAnalyzer:
    """Rule-table analyzer with the same analyze() contract as BaseAnalyzer."""

    PROVIDER = "static"

    def __init__(self, rules: list[DeprecationRule] | None = None):
        self.rules = RULES if rules is None else rules

    def is_available(self) -> bool:
        return True

    def analyze(self, source: str, context: AnalysisRequest | None = None) -> AnalysisResult:
        request = context or AnalysisRequest(file_path="<input>")
        issues: list[Issue] = []
        for line_number, line in enumerate(source.splitlines(), start=1):
            for rule in self.rules:
                for match in rule.pattern.finditer(line):
                    current = match.group(0)
                    issues.append(
                        Issue(
                            type="deprecation",
                            description=f"Using deprecated function {rule.name}()",
                            priority=rule.priority,
                            current_code=current,
                            suggested_code=match.expand(rule.replacement),
                            line_number=line_number,
                        )
                    )
        logger.debug("Static scan of %s found %d issue(s)", request.file_path, len(issues))
        return AnalysisResult(
            file_path=request.file_path,
            module=request.module,
            issues=issues,
            summary=f"Static scan completed with {len(issues)} issue{'s' if len(issues) != 1 else ''} found.",
        )
