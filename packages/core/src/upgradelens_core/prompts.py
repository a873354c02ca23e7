"""Prompt templates sent to the AI service.

The system prompt fixes the reviewer persona and the JSON contract; the
per-type focus list and the user prompt vary with the analysis type. Any
change to the JSON shape here must be mirrored in BaseAnalyzer._parse.
"""

from __future__ import annotations

from upgradelens_core.models import AnalysisRequest

# Types that run over module source files, and types that explain pasted text.
FILE_ANALYSIS_TYPES = ("general", "deprecation", "security", "performance")
TEXT_ANALYSIS_TYPES = ("command_output", "sql")
ANALYSIS_TYPES = FILE_ANALYSIS_TYPES + TEXT_ANALYSIS_TYPES

_FOCUS: dict[str, list[str]] = {
    "general": [
        "Deprecated function usage",
        "API changes between Drupal versions",
        "Coding standards compliance",
        "Security best practices",
        "Performance optimizations",
    ],
    "deprecation": [
        "Functions, hooks and services deprecated in the current version and removed in the target version",
        "The replacement API for each deprecated call",
        "info.yml core_version_requirement changes",
    ],
    "security": [
        "Unsanitised output and XSS",
        "SQL built by string concatenation",
        "Missing access checks on routes and entity operations",
        "Insecure file handling",
    ],
    "performance": [
        "Uncached expensive operations and missing cache metadata",
        "Entity loads inside loops",
        "Unbounded database queries",
    ],
    "command_output": [
        "Errors and warnings printed by drush, composer or upgrade_status",
        "The next recommended upgrade step",
        "Severity of each problem reported in the output",
    ],
    "sql": [
        "Raw queries that should use the database API or entity queries",
        "Schema or table names that changed between versions",
        "Injection risks in query construction",
    ],
}

_SYSTEM_TEMPLATE = """You are an expert Drupal developer analyzing code for upgrade compatibility issues and improvements.
Focus on:
{focus}

For each issue found, provide:
1. Issue type (deprecation, security, performance, best_practice, standards)
2. Description of the problem
3. Priority (critical, warning, suggestion)
4. Current problematic code, copied verbatim from the input
5. Example of the corrected code
6. Line number if available

Respond with **only** a JSON object of this shape:
{{
  "issues": [
    {{
      "type": "string",
      "description": "string",
      "priority": "string",
      "current_code": "string",
      "code_example": "string",
      "line_number": number
    }}
  ],
  "warnings": ["string"],
  "summary": "string"
}}
If there are no issues, return an empty "issues" list. Do not return any text outside the JSON object."""


def focus_for(analysis_type: str) -> list[str]:
    return _FOCUS.get(analysis_type, _FOCUS["general"])


def build_system_prompt(analysis_type: str = "general") -> str:
    focus = "\n".join(f"{i}. {item}" for i, item in enumerate(focus_for(analysis_type), start=1))
    return _SYSTEM_TEMPLATE.format(focus=focus)


def build_user_prompt(request: AnalysisRequest, max_chars: int | None = None) -> str:
    """Build the per-file user prompt.

    Source longer than max_chars is truncated with a marker so the model
    knows it is not seeing the whole file.
    """
    source = request.source
    if max_chars and len(source) > max_chars:
        source = source[:max_chars] + "\n... [truncated]"

    if request.analysis_type == "command_output":
        header = "Analyze the following Drupal command output and provide upgrade recommendations."
        fence = "text"
    elif request.analysis_type == "sql":
        header = "Analyze the following SQL used by a Drupal module and provide upgrade recommendations."
        fence = "sql"
    else:
        header = "Please analyze the following Drupal code for compatibility issues and improvement opportunities."
        fence = "php"

    return f"""{header}

File: {request.file_path}
Module: {request.module}
Current Drupal version: {request.framework_version}
Target Drupal version: {request.target_version}

```{fence}
{source}
```

Provide your analysis in the specified JSON format."""
