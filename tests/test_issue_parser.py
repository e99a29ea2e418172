"""Tests for completion payload validation and normalization."""

import json

import pytest

from reviewgate.models.schemas import Category, Severity
from reviewgate.services.issue_parser import (
    extract_json_array,
    normalize_category,
    normalize_severity,
    parse_issues,
    resolve_file,
)
from tests.helpers import issues_payload, make_file

BATCH = [make_file("src/app.py"), make_file("src/util/helpers.py")]


class TestExtractJsonArray:
    def test_fenced_empty_array_after_chatter(self):
        assert extract_json_array("Sure! ```json\n[]\n```") == []

    def test_plain_array(self):
        assert extract_json_array('[{"message": "x"}]') == [{"message": "x"}]

    def test_skips_bracketed_prose_before_the_array(self):
        raw = 'Findings [see below]:\n[{"message": "real"}]'
        assert extract_json_array(raw) == [{"message": "real"}]

    def test_brackets_inside_strings_do_not_end_the_array(self):
        raw = '[{"message": "index ] out of range", "snippet": "a[0]"}] trailing text'
        assert extract_json_array(raw) == [{"message": "index ] out of range", "snippet": "a[0]"}]

    def test_backticks_inside_values_survive(self):
        payload = json.dumps([{"message": "Use this:\n```python\nfoo()\n```"}])
        result = extract_json_array(f"```json\n{payload}\n```")
        assert "```python" in result[0]["message"]

    @pytest.mark.parametrize("raw", ["", "no json here", '{"message": "object"}', "[unterminated"])
    def test_returns_none_without_an_array(self, raw):
        assert extract_json_array(raw) is None


class TestNormalizers:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("critical", Severity.ERROR),
            ("HIGH", Severity.ERROR),
            ("warn", Severity.WARNING),
            ("Medium", Severity.WARNING),
            ("low", Severity.INFO),
            ("information", Severity.INFO),
            ("hint", Severity.SUGGESTION),
            ("enhancement", Severity.SUGGESTION),
            ("catastrophic", Severity.INFO),
            (None, Severity.INFO),
        ],
    )
    def test_severity(self, raw, expected):
        assert normalize_severity(raw) is expected

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Error Handling", Category.ERROR_HANDLING),
            ("best-practices", Category.BEST_PRACTICE),
            ("code-quality", Category.BEST_PRACTICE),
            ("debug", Category.DEBUG_STATEMENT),
            ("todo", Category.TODO_COMMENT),
            ("SECURITY", Category.SECURITY),
            ("style", Category.BEST_PRACTICE),
            (None, Category.BEST_PRACTICE),
        ],
    )
    def test_category(self, raw, expected):
        assert normalize_category(raw) is expected


class TestResolveFile:
    def test_exact_match(self):
        assert resolve_file("src/app.py", BATCH) == "src/app.py"

    def test_suffix_match(self):
        assert resolve_file("helpers.py", BATCH) == "src/util/helpers.py"
        assert resolve_file("./src/app.py", BATCH) == "src/app.py"

    def test_single_file_batch_absorbs_unknown_names(self):
        assert resolve_file(None, [make_file("only.py")]) == "only.py"

    def test_unmatched_name_kept(self):
        assert resolve_file("elsewhere.py", BATCH) == "elsewhere.py"
        assert resolve_file("", BATCH) == "unknown"


class TestParseIssues:
    def test_normalizes_fields(self):
        raw = issues_payload(
            {
                "file": "src/app.py",
                "line": 12,
                "severity": "critical",
                "category": "error handling",
                "message": "  Unchecked return value  ",
                "snippet": "f()",
                "suggestion": "",
            }
        )
        (issue,) = parse_issues(raw, BATCH)
        assert issue.id == "ai-src/app.py-12-0"
        assert issue.severity is Severity.ERROR
        assert issue.category is Category.ERROR_HANDLING
        assert issue.message == "Unchecked return value"
        assert issue.snippet == "f()"
        assert issue.suggestion is None

    def test_missing_or_invalid_line_defaults_to_zero(self):
        raw = issues_payload(
            {"file": "src/app.py", "message": "a"},
            {"file": "src/app.py", "line": "7", "message": "b"},
            {"file": "src/app.py", "line": "seven", "message": "c"},
            {"file": "src/app.py", "line": -3, "message": "d"},
            {"file": "src/app.py", "line": "\u00b2", "message": "e"},
            {"file": "src/app.py", "line": " 12 ", "message": "f"},
        )
        assert [issue.line for issue in parse_issues(raw, BATCH)] == [0, 7, 0, 0, 0, 12]

    def test_drops_elements_without_message(self):
        raw = issues_payload(
            {"file": "src/app.py", "message": ""},
            {"file": "src/app.py"},
            {"file": "src/app.py", "message": "kept"},
        )
        raw = raw[:-1] + ', "not an object", 42]'
        issues = parse_issues(raw, BATCH)
        assert [issue.message for issue in issues] == ["kept"]
        assert issues[0].id == "ai-src/app.py-0-0"

    def test_ids_continue_from_start_index_and_stay_unique(self):
        raw = issues_payload(
            {"file": "src/app.py", "line": 3, "message": "one"},
            {"file": "src/app.py", "line": 3, "message": "two"},
        )
        ids = [issue.id for issue in parse_issues(raw, BATCH, start_index=5)]
        assert ids == ["ai-src/app.py-3-5", "ai-src/app.py-3-6"]

    def test_unparsable_payload_yields_no_issues(self):
        assert parse_issues("I could not review this.", BATCH) == []
