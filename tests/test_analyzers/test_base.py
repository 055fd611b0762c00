"""Tests for the rule contract and lifecycle."""

import pytest

from shieldlint.analyzers.base import Rule, RuleMetadata, RuleOptions, ScanContext
from shieldlint.analyzers.results import Category, Severity, Status
from shieldlint.exceptions import AnalysisError, ConfigurationError


def make_metadata(rule_id: str) -> RuleMetadata:
    return RuleMetadata(
        id=rule_id,
        name=rule_id.title(),
        description="Test rule",
        category=Category.SECURITY,
        default_severity=Severity.MEDIUM,
    )


class CountingRule(Rule):
    metadata = make_metadata("counting")
    failed_summary = "Found {count} counted issue{s}"

    class Options(RuleOptions):
        issues: int = 2
        severity: Severity = Severity.MEDIUM

    def analyze(self, context):
        path = context.path("app", "Service.php")
        return [
            self.finding(context, f"Issue {index}", path, index + 1, severity=self.options.severity)
            for index in range(self.options.issues)
        ]


class CrashingRule(Rule):
    metadata = make_metadata("crashing")

    def analyze(self, context):
        raise RuntimeError("boom")


class BrokenInputRule(Rule):
    metadata = make_metadata("broken-input")

    def analyze(self, context):
        raise AnalysisError("composer.lock is not valid JSON")


class InapplicableRule(Rule):
    metadata = make_metadata("inapplicable")

    def applies(self, context):
        return context.exists("composer.lock")

    def skip_reason(self, context):
        return "No composer.lock file found"

    def analyze(self, context):
        raise AssertionError("analyze must not run for skipped rules")


class ExplodingApplicabilityRule(Rule):
    metadata = make_metadata("exploding")

    def applies(self, context):
        raise OSError("permission denied")


@pytest.fixture
def context(tmp_path):
    service = tmp_path / "app" / "Service.php"
    service.parent.mkdir(parents=True)
    service.write_text("<?php\n$a = 1;\n$b = 2;\n", encoding="utf-8")
    return ScanContext(root=tmp_path, php_files=(service,))


class TestRuleLifecycle:
    """Tests for Rule.evaluate and Rule.execute."""

    def test_findings_are_aggregated(self, context):
        """Findings fold into one outcome."""
        outcome = CountingRule().evaluate(context)

        assert outcome.status is Status.WARNING
        assert outcome.summary == "Found 2 counted issues"
        assert [f.location.line_number for f in outcome.findings] == [1, 2]

    def test_no_findings_pass(self, context):
        """A rule without findings passes."""
        outcome = CountingRule({"issues": 0}).evaluate(context)

        assert outcome.status is Status.PASSED

    def test_execute_is_idempotent(self, context):
        """Executing twice on an unchanged project gives equal outcomes."""
        rule = CountingRule({"issues": 3, "severity": "high"})

        first = rule.execute(context)
        second = rule.execute(context)

        assert first == second
        assert first.status is Status.FAILED

    def test_crash_becomes_errored(self, context):
        """Unexpected exceptions become Errored outcomes."""
        outcome = CrashingRule().evaluate(context)

        assert outcome.status is Status.ERRORED
        assert outcome.summary == "RuntimeError: boom"
        assert outcome.findings == ()

    def test_crash_does_not_affect_other_rules(self, context):
        """A rule executed after a crashing one is unaffected."""
        before = CountingRule().execute(context)
        CrashingRule().execute(context)
        after = CountingRule().execute(context)

        assert before == after

    def test_analysis_error_message_kept(self, context):
        """AnalysisError messages are reported verbatim."""
        outcome = BrokenInputRule().evaluate(context)

        assert outcome.status is Status.ERRORED
        assert outcome.summary == "composer.lock is not valid JSON"

    def test_inapplicable_rule_is_skipped(self, context):
        """applies() false skips with the rule's reason."""
        outcome = InapplicableRule().evaluate(context)

        assert outcome.status is Status.SKIPPED
        assert outcome.summary == "No composer.lock file found"

    def test_applicability_failure_is_errored(self, context):
        """A crash in applies() is an Errored outcome too."""
        outcome = ExplodingApplicabilityRule().evaluate(context)

        assert outcome.status is Status.ERRORED
        assert "permission denied" in outcome.summary


class TestRuleOptions:
    """Tests for option validation."""

    def test_defaults(self):
        """Options fall back to declared defaults."""
        rule = CountingRule()

        assert rule.options.issues == 2
        assert rule.id == "counting"

    def test_invalid_value(self):
        """Values of the wrong type raise ConfigurationError."""
        with pytest.raises(ConfigurationError, match="counting"):
            CountingRule({"issues": "many"})

    def test_unknown_option(self):
        """Unknown option names are rejected."""
        with pytest.raises(ConfigurationError):
            CountingRule({"issue_count": 4})

    def test_options_are_frozen(self):
        """Options cannot be changed after construction."""
        rule = CountingRule()

        with pytest.raises(Exception):
            rule.options.issues = 10


class TestFindingHelper:
    """Tests for Rule.finding."""

    def test_relative_path_and_snippet(self, context):
        """Findings carry project-relative paths and the offending line."""
        rule = CountingRule()
        finding = rule.finding(context, "Bad", context.path("app", "Service.php"), 3)

        assert finding.location.file_path == "app/Service.php"
        assert finding.location.line_number == 3
        assert finding.code_snippet == "$b = 2;"
        assert finding.severity is Severity.MEDIUM

    def test_line_is_at_least_one(self, context):
        """Unknown lines are reported as line 1."""
        finding = CountingRule().finding(context, "Bad", context.path("app", "Service.php"), 0)

        assert finding.location.line_number == 1


class TestScanContext:
    """Tests for ScanContext helpers."""

    def test_paths(self, context, tmp_path):
        """Builds and checks project paths."""
        assert context.path("app", "Service.php") == tmp_path / "app" / "Service.php"
        assert context.exists("app", "Service.php")
        assert not context.exists(".env")

    def test_relative_outside_root(self, context, tmp_path_factory):
        """Paths outside the root are returned unchanged."""
        outside = tmp_path_factory.mktemp("other") / "x.php"

        assert context.relative(outside) == str(outside)

    def test_default_exclusion(self, context):
        """Nothing is excluded without a predicate."""
        assert not context.is_excluded(context.path("vendor", "a.php"))
