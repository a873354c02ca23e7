"""Pipeline data models.

Every model that is persisted to the key-value store has a to_dict /
from_dict pair producing plain JSON types. The store layer never sees these
classes, which keeps upgradelens_store free of any core knowledge.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone

ISSUE_TYPES = ("deprecation", "security", "performance", "best_practice", "standards")

SEVERITIES = ("critical", "warning", "suggestion")

# The service may answer with either vocabulary; both map onto ours.
SEVERITY_ALIASES = {
    "critical": "critical",
    "high": "critical",
    "warning": "warning",
    "medium": "warning",
    "suggestion": "suggestion",
    "low": "suggestion",
}


def canonical_severity(priority: str | None) -> str:
    """Map a raw priority onto critical/warning/suggestion, or 'unknown'."""
    return SEVERITY_ALIASES.get((priority or "").strip().lower(), "unknown")


def canonical_type(issue_type: str | None) -> str:
    value = (issue_type or "").strip().lower()
    return value if value in ISSUE_TYPES else "unknown"


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _as_line(value) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    return None


@dataclass(frozen=True)
class AnalysisRequest:
    """Everything the analyzer needs to know about one file visit."""

    file_path: str
    module: str = ""
    source: str = ""
    framework_version: str = "9"
    target_version: str = "10"
    analysis_type: str = "general"


@dataclass(frozen=True)
class Issue:
    """A single upgrade finding inside one file.

    ``suggested_code`` is called ``code_example`` on the wire and in the
    store; from_dict accepts either name.
    """

    type: str
    description: str
    priority: str
    current_code: str = ""
    suggested_code: str = ""
    line_number: int | None = None

    @property
    def severity(self) -> str:
        return canonical_severity(self.priority)

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "description": self.description,
            "priority": self.priority,
            "current_code": self.current_code,
            "code_example": self.suggested_code,
            "line_number": self.line_number,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Issue:
        return cls(
            type=str(data.get("type") or "unknown"),
            description=str(data.get("description") or ""),
            priority=str(data.get("priority") or "unknown"),
            current_code=str(data.get("current_code") or ""),
            suggested_code=str(data.get("code_example") or data.get("suggested_code") or ""),
            line_number=_as_line(data.get("line_number")),
        )


@dataclass
class AnalysisResult:
    """Outcome of analysing one file.

    status:
      ok          — the service answered with a well-formed payload
      degraded    — the payload could not be parsed; issues is empty and
                    warnings says why
      unavailable — no usable credential; nothing was sent
    """

    file_path: str
    module: str = ""
    issues: list[Issue] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    summary: str = ""
    status: str = "ok"

    def severity_counts(self) -> dict[str, int]:
        counts = {sev: 0 for sev in (*SEVERITIES, "unknown")}
        for issue in self.issues:
            counts[issue.severity] += 1
        return counts

    def to_dict(self) -> dict:
        return {
            "file_path": self.file_path,
            "module": self.module,
            "issues": [i.to_dict() for i in self.issues],
            "warnings": list(self.warnings),
            "errors": list(self.errors),
            "summary": self.summary,
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: dict) -> AnalysisResult:
        return cls(
            file_path=data.get("file_path", ""),
            module=data.get("module", ""),
            issues=[Issue.from_dict(i) for i in data.get("issues", [])],
            warnings=list(data.get("warnings", [])),
            errors=list(data.get("errors", [])),
            summary=data.get("summary", ""),
            status=data.get("status", "ok"),
        )


class Outcome(enum.Enum):
    """What happened to one file visit."""

    SUCCESS = "success"  # analysis recorded
    PARTIAL = "partial"  # error recorded against the file; batch continues
    FATAL = "fatal"  # batch must abort


@dataclass(frozen=True)
class FileOutcome:
    file_path: str
    outcome: Outcome
    error: str | None = None


@dataclass
class Chunk:
    """A bounded slice of one module's files, processed in a single step."""

    module: str
    files: list[str]

    def to_dict(self) -> dict:
        return {"module": self.module, "files": list(self.files)}

    @classmethod
    def from_dict(cls, data: dict) -> Chunk:
        return cls(module=data["module"], files=list(data["files"]))


@dataclass
class BatchRun:
    """Persisted state of one batch, checkpointed after every file.

    ``chunk_index`` and ``offset`` form the resume cursor: the next file to
    visit is ``chunks[chunk_index].files[offset]``.
    """

    batch_id: str
    total_files: int
    chunks: list[Chunk] = field(default_factory=list)
    current_module: str = ""
    files_processed: int = 0
    errors: dict[str, str] = field(default_factory=dict)
    results: dict[str, AnalysisResult] = field(default_factory=dict)
    chunk_index: int = 0
    offset: int = 0
    analysis_type: str = "general"
    modules: list[str] = field(default_factory=list)
    started_at: str = field(default_factory=utc_now)
    state: str = "running"  # running | aborted

    @property
    def exhausted(self) -> bool:
        return self.chunk_index >= len(self.chunks)

    @property
    def progress_percent(self) -> float:
        if self.total_files == 0:
            return 100.0
        return round(self.files_processed / self.total_files * 100, 1)

    def to_dict(self) -> dict:
        return {
            "batch_id": self.batch_id,
            "total_files": self.total_files,
            "chunks": [c.to_dict() for c in self.chunks],
            "current_module": self.current_module,
            "files_processed": self.files_processed,
            "errors": dict(self.errors),
            "results": {path: r.to_dict() for path, r in self.results.items()},
            "chunk_index": self.chunk_index,
            "offset": self.offset,
            "analysis_type": self.analysis_type,
            "modules": list(self.modules),
            "started_at": self.started_at,
            "state": self.state,
        }

    @classmethod
    def from_dict(cls, data: dict) -> BatchRun:
        return cls(
            batch_id=data["batch_id"],
            total_files=data.get("total_files", 0),
            chunks=[Chunk.from_dict(c) for c in data.get("chunks", [])],
            current_module=data.get("current_module", ""),
            files_processed=data.get("files_processed", 0),
            errors=dict(data.get("errors", {})),
            results={path: AnalysisResult.from_dict(r) for path, r in data.get("results", {}).items()},
            chunk_index=data.get("chunk_index", 0),
            offset=data.get("offset", 0),
            analysis_type=data.get("analysis_type", "general"),
            modules=list(data.get("modules", [])),
            started_at=data.get("started_at", ""),
            state=data.get("state", "running"),
        )


@dataclass(frozen=True)
class ProgressUpdate:
    """Returned after each processed chunk.

    ``finished`` is the fraction of the whole run completed so far, which is
    what a progress bar wants; ``done`` is True once no chunks remain.
    """

    batch_id: str
    current_module: str
    files_processed: int
    total_files: int
    error_count: int
    finished: float
    done: bool
    outcome: Outcome = Outcome.SUCCESS

    @property
    def progress_percent(self) -> float:
        if self.total_files == 0:
            return 100.0
        return round(self.files_processed / self.total_files * 100, 1)


@dataclass
class BatchReport:
    """Final result of a batch.

    status is ``completed``, ``completed_with_errors`` (some files failed) or
    ``failed`` (the batch itself aborted; its state is kept for --resume).
    """

    batch_id: str
    status: str
    files_processed: int
    total_files: int
    error_count: int
    duration_seconds: float
    summary: dict = field(default_factory=dict)


@dataclass
class Backup:
    file_path: str
    backup_path: str
    change_id: str
    created_at: float

    def to_dict(self) -> dict:
        return {
            "file_path": self.file_path,
            "backup_path": self.backup_path,
            "change_id": self.change_id,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Backup:
        return cls(
            file_path=data["file_path"],
            backup_path=data["backup_path"],
            change_id=data["change_id"],
            created_at=float(data.get("created_at", 0)),
        )


_PATCH_TRANSITIONS = {"pending": {"applied", "failed"}, "applied": set(), "failed": set()}


@dataclass
class Patch:
    """A generated diff for one file.

    status moves pending → applied or pending → failed, never back.
    """

    file_path: str
    diff: str
    change_id: str
    description: str = ""
    format: str = "unified"
    status: str = "pending"
    created_at: str = field(default_factory=utc_now)

    def mark(self, status: str) -> None:
        if status not in _PATCH_TRANSITIONS.get(self.status, set()):
            raise ValueError(f"Patch cannot move from {self.status!r} to {status!r}")
        self.status = status


@dataclass(frozen=True)
class ModuleInfo:
    """A Drupal extension found under the site root."""

    name: str
    path: str
    kind: str  # custom | contrib | theme
    core_version_requirement: str = ""
