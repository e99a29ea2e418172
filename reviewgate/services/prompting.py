"""Prompt construction for one review batch."""

from __future__ import annotations

from collections.abc import Sequence

from reviewgate.models.schemas import Category, ChangedFile, Severity

SYSTEM_PROMPT = (
    "You are a code review assistant. You analyze code diffs and return issues as a JSON array. "
    "Respond with ONLY valid JSON, no markdown fences or extra text."
)

DEFAULT_CATEGORIES = (
    "security",
    "performance",
    "error-handling",
    "best-practices",
    "code-quality",
    "naming",
    "complexity",
    "debug-statements",
    "todo-comments",
)

_OUTPUT_EXAMPLE = """[
  {
    "file": "filename.js",
    "line": 10,
    "severity": "error",
    "category": "security",
    "message": "Clear, specific description of the issue",
    "suggestion": "Concrete fix or improvement",
    "snippet": "the problematic code line"
  }
]"""

_SEVERITY_GUIDE = """SEVERITY DEFINITIONS (be accurate):
- "error"      -> WILL cause bugs, crashes, security vulnerabilities, data loss, or injection attacks
- "warning"    -> BAD practice that COULD lead to problems
- "info"       -> Minor improvement or code smell
- "suggestion" -> Optional enhancement"""

_INSTRUCTIONS = """IMPORTANT:
- Focus on ADDED lines (lines starting with + in the diff), not removed lines
- Be specific - include the actual problematic code in "snippet"
- Line numbers should match the diff's @@ hunk headers
- Do NOT flag trivial style issues - only substantial problems
- If you find NOTHING wrong, return an empty array: []
- Respond with ONLY the raw JSON array. No markdown fences, no explanations."""


def effective_categories(categories: Sequence[str]) -> list[str]:
    """Configured categories, or the default list when none are configured."""
    cleaned = [item.strip() for item in categories if item and item.strip()]
    return cleaned or list(DEFAULT_CATEGORIES)


def render_custom_rules(custom_rules: Sequence[str]) -> str:
    rules = [rule.strip() for rule in custom_rules if rule and rule.strip()]
    if not rules:
        return ""
    numbered = "\n".join(f"{idx}. {rule}" for idx, rule in enumerate(rules, start=1))
    return (
        "ADDITIONAL REVIEW RULES (from the developer - treat these as MANDATORY checks):\n"
        f"{numbered}"
    )


def render_file_diffs(files: Sequence[ChangedFile]) -> str:
    return "\n".join(f"\n### File: {item.path}\n```diff\n{item.diff_text or ''}\n```" for item in files)


def build_review_prompt(
    files: Sequence[ChangedFile],
    categories: Sequence[str] = (),
    custom_rules: Sequence[str] = (),
) -> str:
    """Render the user prompt for a single batch."""
    severity_values = ", ".join(f'"{item.value}"' for item in Severity)
    category_values = ", ".join(f'"{item.value}"' for item in Category)
    custom_section = render_custom_rules(custom_rules)

    sections = [
        "You are a world-class senior code reviewer performing an automated pull request review.\n"
        "Analyze the following PR diff thoroughly and identify ALL issues.",
        f"REVIEW CATEGORIES TO CHECK: {', '.join(effective_categories(categories))}",
    ]
    if custom_section:
        sections.append(custom_section)
    sections.extend(
        [
            "For EVERY issue found, respond in EXACTLY this JSON format (array of objects):\n"
            f"{_OUTPUT_EXAMPLE}",
            f"SEVERITY VALUES (use exactly these): {severity_values}\n{_SEVERITY_GUIDE}",
            f"CATEGORY VALUES (use exactly these):\n{category_values}",
            _INSTRUCTIONS,
            f"PR DIFF TO REVIEW:\n{render_file_diffs(files)}",
        ]
    )
    return "\n\n".join(sections)
