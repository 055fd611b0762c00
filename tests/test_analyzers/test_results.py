"""Tests for findings, outcomes and aggregation."""

import itertools

import pytest

from shieldlint.analyzers.results import (
    Finding,
    Location,
    Outcome,
    Severity,
    Status,
    aggregate,
    format_summary,
)


def make_finding(severity: Severity, line: int = 1) -> Finding:
    return Finding(
        severity=severity,
        message=f"{severity.value} issue",
        location=Location("app/Http/Controllers/UserController.php", line),
        recommendation="Fix it",
    )


class TestSeverity:
    """Tests for severity ordering."""

    def test_ordering(self):
        """Info < Low < Medium < High < Critical."""
        assert Severity.INFO < Severity.LOW < Severity.MEDIUM < Severity.HIGH < Severity.CRITICAL
        assert max([Severity.LOW, Severity.CRITICAL, Severity.MEDIUM]) is Severity.CRITICAL

    def test_string_value(self):
        """Severities serialize as lower-case strings."""
        assert Severity("high") is Severity.HIGH
        assert Severity.HIGH.value == "high"


class TestAggregate:
    """Tests for the aggregation policy."""

    def test_empty_passes(self):
        """No findings means Passed with the passed summary."""
        outcome = aggregate([], "All good", "Found {count} issue{s}")

        assert outcome.status is Status.PASSED
        assert outcome.summary == "All good"
        assert outcome.findings == ()

    @pytest.mark.parametrize("size", [1, 2, 3])
    def test_failed_iff_high_or_above(self, size):
        """Every severity multiset fails exactly when one finding is High or Critical."""
        for severities in itertools.combinations_with_replacement(list(Severity), size):
            findings = [make_finding(severity, index + 1) for index, severity in enumerate(severities)]
            outcome = aggregate(findings, "ok", "Found {count} issue{s}")

            expected = Status.FAILED if max(severities) >= Severity.HIGH else Status.WARNING
            assert outcome.status is expected, severities
            assert outcome.findings == tuple(findings)

    def test_high_boundary_fails(self):
        """Exactly High is the failing threshold."""
        outcome = aggregate([make_finding(Severity.HIGH)], "ok", "Found {count} issue{s}")

        assert outcome.status is Status.FAILED

    def test_many_low_findings_warn(self):
        """Many Low and Medium findings still only warn."""
        findings = [make_finding(Severity.LOW, n) for n in range(50)] + [make_finding(Severity.MEDIUM)]

        assert aggregate(findings, "ok", "Found {count} issue{s}").status is Status.WARNING

    def test_summary_formatting(self):
        """Count and plural suffix are filled in."""
        one = aggregate([make_finding(Severity.LOW)], "ok", "Found {count} issue{s}")
        two = aggregate([make_finding(Severity.LOW), make_finding(Severity.LOW)], "ok", "Found {count} issue{s}")

        assert one.summary == "Found 1 issue"
        assert two.summary == "Found 2 issues"
        assert format_summary("{count} rule{s}", 0) == "0 rules"


class TestOutcome:
    """Tests for outcome invariants."""

    def test_failed_requires_findings(self):
        """Failed and Warning outcomes need findings."""
        with pytest.raises(ValueError):
            Outcome.failed("broken", [])
        with pytest.raises(ValueError):
            Outcome.warning("broken", [])

    def test_passed_rejects_findings(self):
        """Passed, Skipped and Errored outcomes carry no findings."""
        with pytest.raises(ValueError):
            Outcome(Status.PASSED, "ok", (make_finding(Severity.LOW),))

    def test_constructors(self):
        """Factory methods set status and message."""
        assert Outcome.skipped("No routes").status is Status.SKIPPED
        assert Outcome.errored("timeout").summary == "timeout"
        assert Outcome.passed("ok").max_severity is None

    def test_max_severity(self):
        """Reports the most severe finding."""
        outcome = Outcome.failed("x", [make_finding(Severity.LOW), make_finding(Severity.CRITICAL)])

        assert outcome.max_severity is Severity.CRITICAL

    def test_location_str(self):
        """Locations render as path:line."""
        assert str(Location("routes/web.php", 12)) == "routes/web.php:12"
