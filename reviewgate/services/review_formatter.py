"""Markdown rendering of a review outcome for pull request comments."""

from __future__ import annotations

from reviewgate.models.schemas import ReviewOutcome, ReviewStatus, Severity

_STATUS_ICONS = {
    ReviewStatus.PASS: "✅",
    ReviewStatus.WARN: "⚠️",
    ReviewStatus.FAIL: "❌",
}

_SEVERITY_ICONS = {
    Severity.ERROR: "🔴",
    Severity.WARNING: "🟡",
    Severity.INFO: "🔵",
    Severity.SUGGESTION: "🟢",
}

_RECOMMENDATIONS = {
    ReviewStatus.FAIL: "> **⛔ Please address the errors above before merging. Re-check the branch after fixes.**",
    ReviewStatus.WARN: "> **⚠️ Warnings found. Please review and consider fixing before merging.**",
    ReviewStatus.PASS: "> **✅ No critical issues found. Ready for merge after final human review.**",
}


def status_description(outcome: ReviewOutcome) -> str:
    """One-line summary used for commit statuses."""
    summary = outcome.summary
    return (
        f"{summary.total_issues} issues found "
        f"({summary.errors} errors, {summary.warnings} warnings)"
    )


def format_review_comment(outcome: ReviewOutcome, subject_id: int) -> str:
    summary = outcome.summary
    lines = [
        f"## {_STATUS_ICONS[outcome.status]} Automated Code Review — PR #{subject_id}",
        "",
        "| Metric | Count |",
        "|--------|-------|",
        f"| Files Reviewed | {summary.total_files} |",
        f"| Total Issues | {summary.total_issues} |",
        f"| 🔴 Errors | {summary.errors} |",
        f"| 🟡 Warnings | {summary.warnings} |",
        f"| 🔵 Info | {summary.info} |",
        f"| 🟢 Suggestions | {summary.suggestions} |",
    ]

    files_with_issues = [entry for entry in outcome.per_file if entry.issues]
    if files_with_issues:
        lines.extend(["", "### Files with Issues", ""])
        for entry in files_with_issues:
            lines.append(
                f"<details>\n<summary><strong>{entry.file}</strong> — {len(entry.issues)} issue(s)</summary>\n"
            )
            for issue in entry.issues:
                lines.append(
                    f"- {_SEVERITY_ICONS[issue.severity]} **Line {issue.line}** "
                    f"[{issue.category.value}]: {issue.message}"
                )
                if issue.snippet:
                    lines.append(f"  ```\n  {issue.snippet}\n  ```")
                if issue.suggestion:
                    lines.append(f"  > 💡 {issue.suggestion}")
            lines.append("\n</details>")

    lines.extend(["", _RECOMMENDATIONS[outcome.status], "", "---"])
    model = f" with {outcome.model_used}" if outcome.model_used else ""
    lines.append(f"*Reviewed by reviewgate{model} at {outcome.reviewed_at:%Y-%m-%d %H:%M UTC}*")
    return "\n".join(lines)
