"""Validation and normalization of the completion service's issue payload."""

from __future__ import annotations

from collections.abc import Sequence
import json
import logging
import re
from typing import Any

from reviewgate.models.schemas import Category, ChangedFile, Issue, Severity

logger = logging.getLogger(__name__)

UNKNOWN_FILE = "unknown"

SEVERITY_SYNONYMS: dict[str, Severity] = {
    "error": Severity.ERROR,
    "critical": Severity.ERROR,
    "high": Severity.ERROR,
    "warning": Severity.WARNING,
    "warn": Severity.WARNING,
    "medium": Severity.WARNING,
    "info": Severity.INFO,
    "low": Severity.INFO,
    "information": Severity.INFO,
    "suggestion": Severity.SUGGESTION,
    "hint": Severity.SUGGESTION,
    "enhancement": Severity.SUGGESTION,
}

CATEGORY_SYNONYMS: dict[str, Category] = {
    "security": Category.SECURITY,
    "performance": Category.PERFORMANCE,
    "error-handling": Category.ERROR_HANDLING,
    "error handling": Category.ERROR_HANDLING,
    "best-practice": Category.BEST_PRACTICE,
    "best-practices": Category.BEST_PRACTICE,
    "best practice": Category.BEST_PRACTICE,
    "code-quality": Category.BEST_PRACTICE,
    "complexity": Category.COMPLEXITY,
    "naming": Category.NAMING,
    "debug-statement": Category.DEBUG_STATEMENT,
    "debug-statements": Category.DEBUG_STATEMENT,
    "debug": Category.DEBUG_STATEMENT,
    "todo-comment": Category.TODO_COMMENT,
    "todo-comments": Category.TODO_COMMENT,
    "todo": Category.TODO_COMMENT,
    "large-file": Category.LARGE_FILE,
    "merge-conflict": Category.MERGE_CONFLICT,
    "duplicate-code": Category.DUPLICATE_CODE,
}

_LEADING_FENCE = re.compile(r"^```[a-zA-Z]*\s*")
_TRAILING_FENCE = re.compile(r"\s*```$")


def normalize_severity(value: Any) -> Severity:
    """Map a free-form severity onto the closed set; unknown values become info."""
    return SEVERITY_SYNONYMS.get(str(value or "").strip().lower(), Severity.INFO)


def normalize_category(value: Any) -> Category:
    """Map a free-form category onto the closed set; unknown values become best-practice."""
    return CATEGORY_SYNONYMS.get(str(value or "").strip().lower(), Category.BEST_PRACTICE)


def strip_code_fences(raw: str) -> str:
    # Only the outer fence; backticks inside string values are left alone.
    cleaned = _LEADING_FENCE.sub("", raw.strip())
    return _TRAILING_FENCE.sub("", cleaned.strip())


def extract_json_array(raw: str) -> list[Any] | None:
    """Return the first complete JSON array embedded in ``raw``, if any."""
    text = strip_code_fences(raw)
    decoder = json.JSONDecoder()
    start = text.find("[")
    while start >= 0:
        try:
            value, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("[", start + 1)
            continue
        if isinstance(value, list):
            return value
        start = text.find("[", start + 1)
    return None


def _coerce_line(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    if isinstance(value, float) and value.is_integer():
        return max(int(value), 0)
    if isinstance(value, str) and value.strip().isdecimal():
        return int(value.strip())
    return 0


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def resolve_file(reported: Any, batch: Sequence[ChangedFile]) -> str:
    """Attribute a reported file name to a file of the batch when possible."""
    name = str(reported or "").strip()
    paths = [item.path for item in batch]
    if name in paths:
        return name
    if name:
        suffix = name.removeprefix("./")
        for path in paths:
            if path.endswith(f"/{suffix}") or path == suffix:
                return path
    if len(paths) == 1:
        return paths[0]
    return name or UNKNOWN_FILE


def parse_issues(
    raw: str,
    batch: Sequence[ChangedFile] = (),
    start_index: int = 0,
) -> list[Issue]:
    """Turn a raw completion payload into validated issues.

    A payload without a JSON array yields no issues; the service is allowed to
    find nothing. Elements lacking a message are dropped.
    """
    items = extract_json_array(raw)
    if items is None:
        logger.warning("Completion payload contained no JSON array: %s", raw[:200])
        return []

    issues: list[Issue] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        message = item.get("message")
        if not isinstance(message, str) or not message.strip():
            continue

        index = start_index + len(issues)
        file = resolve_file(item.get("file"), batch)
        line = _coerce_line(item.get("line"))
        issues.append(
            Issue(
                id=f"ai-{file}-{line}-{index}",
                file=file,
                line=line,
                severity=normalize_severity(item.get("severity")),
                category=normalize_category(item.get("category")),
                message=message.strip(),
                snippet=_optional_text(item.get("snippet")),
                suggestion=_optional_text(item.get("suggestion")),
            )
        )
    return issues
