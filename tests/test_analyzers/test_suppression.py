"""Tests for inline ignore markers and configured ignore entries."""

import pytest
from pydantic import ValidationError

from shieldlint.analyzers.results import Finding, Location, Severity, Status
from shieldlint.analyzers.security.sql_injection import SqlInjectionRule
from shieldlint.analyzers.suppression import IgnoreRule, is_line_suppressed, marker_rule_ids

MARKED_QUERIES = '''<?php

use Illuminate\\Support\\Facades\\DB;

function search($id)
{
    // @shieldlint-ignore sql-injection
    $a = DB::select("SELECT * FROM users WHERE id = $id");
    $b = DB::select("SELECT * FROM posts WHERE id = $id"); // @shieldlint-ignore
    $count = 0;
    $c = DB::select("SELECT * FROM tags WHERE id = $id"); // @shieldlint-ignore xss
    $d = DB::select("SELECT * FROM logs WHERE id = $id");
    return [$a, $b, $c, $d, $count];
}
'''

UNMARKED_QUERY = '''<?php

use Illuminate\\Support\\Facades\\DB;

function find($id)
{
    return DB::select("SELECT * FROM users WHERE id = $id");
}
'''


def make_finding(file_path: str = "app/Services/Search.php", message: str = "Potential SQL injection") -> Finding:
    return Finding(
        severity=Severity.CRITICAL,
        message=message,
        location=Location(file_path, 3),
        recommendation="",
    )


class TestInlineMarkers:
    """Tests for @shieldlint-ignore markers."""

    @pytest.mark.parametrize("line,expected", [
        ("$a = 1;", None),
        ("// @shieldlint-ignore", frozenset()),
        ("// @ShieldLint-Ignore xss", frozenset({"xss"})),
        ("/* @shieldlint-ignore sql-injection,xss */", frozenset({"sql-injection", "xss"})),
    ])
    def test_marker_rule_ids(self, line, expected):
        """Markers are case-insensitive and may name rules."""
        assert marker_rule_ids(line) == expected

    def test_same_line_and_line_above(self):
        """A marker covers its own line and the next one."""
        lines = ["<?php", "// @shieldlint-ignore csrf", "$form = 1;", "$other = 2;"]

        assert is_line_suppressed(lines, 2, "csrf")
        assert is_line_suppressed(lines, 3, "csrf")
        assert not is_line_suppressed(lines, 4, "csrf")
        assert not is_line_suppressed(lines, 3, "xss")

    def test_out_of_range_lines(self):
        """Line numbers outside the file are never suppressed."""
        assert not is_line_suppressed([], 1, "csrf")
        assert not is_line_suppressed(["// @shieldlint-ignore"], 5, "csrf")

    def test_rule_skips_marked_lines(self, make_context):
        """Only findings without a matching marker reach the outcome."""
        context = make_context({"app/Services/Search.php": MARKED_QUERIES})

        outcome = SqlInjectionRule().evaluate(context)

        assert outcome.status is Status.FAILED
        assert [f.location.line_number for f in outcome.findings] == [11, 12]

    def test_all_findings_marked_passes(self, make_context):
        """A rule whose findings are all silenced passes."""
        marked = UNMARKED_QUERY.replace("$id\");", "$id\"); // @shieldlint-ignore sql-injection")
        context = make_context({"app/Services/Finder.php": marked})

        outcome = SqlInjectionRule().evaluate(context)

        assert outcome.status is Status.PASSED


class TestIgnoreRule:
    """Tests for configured ignore entries."""

    @pytest.mark.parametrize("entry", [
        {"path": "/app/Services/Search.php"},
        {"path": "app/Services/Search.php"},
        {"path_pattern": "*/Services/*"},
        {"path_pattern": "app/*/Search.php"},
        {"message": "Potential SQL injection"},
        {"message_pattern": "*SQL injection*"},
        {"path_pattern": "*/Search*", "message_pattern": "*injection"},
    ])
    def test_matches(self, entry):
        """Paths, patterns and messages select findings."""
        assert IgnoreRule.model_validate(entry).matches(make_finding())

    @pytest.mark.parametrize("entry", [
        {"path": "app/Services/Other.php"},
        {"path_pattern": "routes/*"},
        {"message": "Potential SQL"},
        {"path_pattern": "*/Search*", "message_pattern": "*XSS*"},
    ])
    def test_does_not_match(self, entry):
        """Every key set on an entry must match."""
        assert not IgnoreRule.model_validate(entry).matches(make_finding())

    @pytest.mark.parametrize("entry", [
        {"path": "a.php", "path_pattern": "*.php"},
        {"message": "x", "message_pattern": "*x*"},
        {},
        {"file": "a.php"},
    ])
    def test_invalid_entries(self, entry):
        """Conflicting, empty and unknown keys are rejected."""
        with pytest.raises(ValidationError):
            IgnoreRule.model_validate(entry)

    def test_rule_drops_ignored_findings(self, make_context):
        """Ignored findings are removed before the outcome is decided."""
        context = make_context({
            "app/Services/Finder.php": UNMARKED_QUERY,
            "app/Legacy/Report.php": UNMARKED_QUERY,
        })
        rule = SqlInjectionRule(ignore=[IgnoreRule(path_pattern="app/Legacy/*")])

        outcome = rule.evaluate(context)

        assert outcome.status is Status.FAILED
        assert [f.location.file_path for f in outcome.findings] == ["app/Services/Finder.php"]
        assert outcome.summary == "Found 1 potential SQL injection vulnerabilities"

    def test_everything_ignored_passes(self, make_context):
        """A rule left without findings passes."""
        context = make_context({"app/Services/Finder.php": UNMARKED_QUERY})
        rule = SqlInjectionRule(ignore=[IgnoreRule(message_pattern="*SQL injection*")])

        outcome = rule.evaluate(context)

        assert outcome.status is Status.PASSED
        assert outcome.summary == "No SQL injection vulnerabilities detected"
