"""Pydantic schemas and internal contracts for the gateway and orchestrator."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _now_utc() -> datetime:
    return datetime.now(tz=timezone.utc)


class EventAction(str, Enum):
    """Pull request actions the gateway understands."""

    OPENED = "opened"
    SYNCHRONIZED = "synchronized"
    REOPENED = "reopened"
    READY_FOR_REVIEW = "ready_for_review"
    OTHER = "other"

    @classmethod
    def from_wire(cls, value: Any) -> "EventAction":
        """Map a GitHub `action` value, including `synchronize`, onto the enum."""
        raw = str(value or "").strip().lower()
        if raw == "synchronize":
            return cls.SYNCHRONIZED
        try:
            return cls(raw)
        except ValueError:
            return cls.OTHER


REVIEWABLE_ACTIONS = frozenset(
    {
        EventAction.OPENED,
        EventAction.SYNCHRONIZED,
        EventAction.REOPENED,
        EventAction.READY_FOR_REVIEW,
    }
)


class RepositoryRef(BaseModel):
    """Owner/name pair identifying a repository."""

    model_config = ConfigDict(frozen=True)

    owner: str = Field(min_length=1)
    name: str = Field(min_length=1)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


class InboundEvent(BaseModel):
    """Verified, in-scope pull request event emitted by the gateway."""

    model_config = ConfigDict(frozen=True)

    action: EventAction
    subject_id: int
    repository: RepositoryRef
    sender_id: str = ""
    head_sha: str | None = None
    title: str | None = None
    received_at: datetime = Field(default_factory=_now_utc)
    payload: dict[str, Any] = Field(default_factory=dict, repr=False)

    @field_validator("action")
    @classmethod
    def _reject_other(cls, value: EventAction) -> EventAction:
        if value is EventAction.OTHER:
            raise ValueError("Events with action 'other' are never materialized.")
        return value


class FileStatus(str, Enum):
    """GitHub file change status."""

    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"
    RENAMED = "renamed"
    COPIED = "copied"
    CHANGED = "changed"
    UNCHANGED = "unchanged"


class ChangedFile(BaseModel):
    """One file-level diff supplied by the version control collaborator."""

    model_config = ConfigDict(frozen=True)

    path: str
    status: FileStatus = FileStatus.MODIFIED
    diff_text: str | None = None
    added_lines: int = 0
    removed_lines: int = 0

    @property
    def diff_size(self) -> int:
        return len(self.diff_text or "")

    @property
    def is_reviewable(self) -> bool:
        return self.status is not FileStatus.REMOVED and bool(self.diff_text)

    @classmethod
    def from_github(cls, row: dict[str, Any]) -> "ChangedFile":
        """Build from one row of the GitHub "list pull request files" API."""
        try:
            status = FileStatus(str(row.get("status", "modified")))
        except ValueError:
            status = FileStatus.MODIFIED
        return cls(
            path=str(row.get("filename", "unknown")),
            status=status,
            diff_text=row.get("patch"),
            added_lines=int(row.get("additions", 0) or 0),
            removed_lines=int(row.get("deletions", 0) or 0),
        )


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    SUGGESTION = "suggestion"


class Category(str, Enum):
    SECURITY = "security"
    PERFORMANCE = "performance"
    ERROR_HANDLING = "error-handling"
    BEST_PRACTICE = "best-practice"
    COMPLEXITY = "complexity"
    NAMING = "naming"
    DEBUG_STATEMENT = "debug-statement"
    TODO_COMMENT = "todo-comment"
    LARGE_FILE = "large-file"
    MERGE_CONFLICT = "merge-conflict"
    DUPLICATE_CODE = "duplicate-code"


class Issue(BaseModel):
    """One normalized finding attributed to a file and line."""

    model_config = ConfigDict(frozen=True)

    id: str
    file: str
    line: int = Field(default=0, ge=0)
    severity: Severity
    category: Category
    message: str = Field(min_length=1)
    snippet: str | None = None
    suggestion: str | None = None


class FileReview(BaseModel):
    """Issues grouped under one file."""

    model_config = ConfigDict(frozen=True)

    file: str
    status: FileStatus | None = None
    added_lines: int = 0
    removed_lines: int = 0
    issues: tuple[Issue, ...] = ()


class ReviewSummary(BaseModel):
    """Per-severity issue counts."""

    model_config = ConfigDict(frozen=True)

    total_files: int = 0
    total_issues: int = 0
    errors: int = 0
    warnings: int = 0
    info: int = 0
    suggestions: int = 0

    @classmethod
    def from_issues(cls, issues: tuple[Issue, ...] | list[Issue], total_files: int) -> "ReviewSummary":
        counts = {severity: 0 for severity in Severity}
        for issue in issues:
            counts[issue.severity] += 1
        return cls(
            total_files=total_files,
            total_issues=len(issues),
            errors=counts[Severity.ERROR],
            warnings=counts[Severity.WARNING],
            info=counts[Severity.INFO],
            suggestions=counts[Severity.SUGGESTION],
        )


class ReviewStatus(str, Enum):
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"

    @classmethod
    def from_summary(cls, summary: ReviewSummary) -> "ReviewStatus":
        if summary.errors > 0:
            return cls.FAIL
        if summary.warnings > 0:
            return cls.WARN
        return cls.PASS


class ReviewOutcome(BaseModel):
    """Aggregated, immutable result of one review call."""

    model_config = ConfigDict(frozen=True)

    issues: tuple[Issue, ...] = ()
    per_file: tuple[FileReview, ...] = ()
    summary: ReviewSummary
    status: ReviewStatus
    model_used: str | None = None
    failed_batches: int = 0
    reviewed_at: datetime = Field(default_factory=_now_utc)

    @model_validator(mode="after")
    def _check_invariants(self) -> "ReviewOutcome":
        if self.summary.total_issues != len(self.issues):
            raise ValueError("summary.total_issues must equal the number of issues.")
        if self.status is not ReviewStatus.from_summary(self.summary):
            raise ValueError("status does not match the severity counts.")
        if sum(len(entry.issues) for entry in self.per_file) != len(self.issues):
            raise ValueError("per_file must partition issues.")
        return self


class ReviewLimits(BaseModel):
    """Batching, timeout, retry, and generation bounds for one review."""

    model_config = ConfigDict(frozen=True)

    max_batch_chars: int = Field(default=25_000, gt=0)
    request_timeout: float = Field(default=90.0, gt=0)
    max_retries: int = Field(default=2, ge=0)
    backoff_seconds: float = Field(default=10.0, ge=0)
    temperature: float = Field(default=0.15, ge=0, le=2)
    top_p: float = Field(default=0.8, gt=0, le=1)
    max_tokens: int = Field(default=8192, gt=0)


class ReviewConfig(BaseModel):
    """Rule configuration passed explicitly into every review call."""

    model_config = ConfigDict(frozen=True)

    categories: list[str] = Field(default_factory=list)
    custom_rules: list[str] = Field(default_factory=list)
    limits: ReviewLimits = Field(default_factory=ReviewLimits)


class HealthResponse(BaseModel):
    """Liveness payload for the gateway health path."""

    status: str = "ok"
    timestamp: datetime = Field(default_factory=_now_utc)


class WebhookAck(BaseModel):
    """Response body for an accepted pull request event."""

    message: str = "Review triggered"
    pr: int
    action: EventAction


class WebhookIgnored(BaseModel):
    """Response body for an intentionally ignored delivery."""

    message: str
    ignored: bool = True
